"""
Tests for ImportExecutionService: the end-to-end import run.

Covers dependency-ordered writes, conflict policies, rerun idempotence,
derived families and billing, per-record isolation, cancellation, abort,
and the audit trail.
"""

import json
import threading
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from migration_ingestion.domain.types import ConflictPolicy, EntityKind, RunState
from migration_ingestion.promoters import SchoolPromoter, default_promoter_registry
from migration_ingestion.services import ImportAuditRepository, ImportExecutionService, actor_id_for
from migration_kernel.exceptions import InvalidRunTransitionError
from migration_kernel.models import (
    Activity,
    ClassGroup,
    Family,
    FieldChange,
    ImportAuditLog,
    Invoice,
    Payment,
    School,
    Student,
    StudentFamily,
)
from migration_kernel.models.audit import ImportRunStatus


@pytest.fixture
def executor(session, settings, deterministic_clock):
    return ImportExecutionService(session, settings, clock=deterministic_clock)


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def _counts(session) -> dict:
    return {
        model.__name__: _count(session, model)
        for model in (School, ClassGroup, Activity, Student, Family, StudentFamily, Invoice, Payment)
    }


class TestFirstImport:
    def test_creates_every_kind(self, executor, session, full_export):
        result = executor.execute(full_export)

        assert result.status is ImportRunStatus.COMPLETED
        assert executor.state is RunState.DONE
        for kind in (EntityKind.SCHOOL, EntityKind.CLASS_GROUP, EntityKind.ACTIVITY,
                     EntityKind.STUDENT, EntityKind.FAMILY):
            assert result.kind(kind).created == 1, kind
        assert result.kind(EntityKind.BILLING).created == 2  # invoice + deposit
        assert result.total_failed == 0
        assert result.exceptions == ()
        assert result.exceptions_path is None
        assert result.success_rate == 100.0
        assert not result.has_errors

    def test_references_are_resolved(self, executor, session, full_export):
        executor.execute(full_export)

        school = session.scalars(select(School)).one()
        group = session.scalars(select(ClassGroup)).one()
        student = session.scalars(select(Student)).one()
        assert group.school_id == school.id
        assert student.school_id == school.id
        assert student.class_group_id == group.id

    def test_billing_rows(self, executor, session, full_export):
        executor.execute(full_export)

        invoice = session.scalars(select(Invoice)).one()
        payment = session.scalars(select(Payment)).one()
        assert invoice.legacy_key == "INV-S001"
        assert invoice.amount == Decimal("1250")
        assert payment.legacy_key == "DEP-S001"
        assert payment.invoice_id == invoice.id
        assert payment.receipt_number == "RCP-LEGACY-20240115-00001"

    def test_audit_row(self, executor, session, full_export):
        result = executor.execute(full_export, run_by="alice")

        log = session.get(ImportAuditLog, result.run_id)
        assert log.status == "completed"
        assert log.run_by == "alice"
        assert log.policy == "fail_on_conflict"
        assert log.schools_created == 1
        assert log.billing_created == 2
        assert log.total_failed == 0
        assert log.completed_at is not None
        assert log.created_by_id == actor_id_for("alice")

    def test_siblings_share_one_family(self, executor, session, legacy_dir, school_record, student_record):
        sibling = {**student_record, "Reference": "S002", "Child Name": "Ben", "Charge": None, "Deposit": None}
        root = legacy_dir(schools=[school_record], students=[student_record, sibling])

        result = executor.execute(root)

        assert result.kind(EntityKind.FAMILY).created == 1
        assert _count(session, Family) == 1
        assert _count(session, StudentFamily) == 2

    def test_run_logs_carry_correlation_id(self, executor, full_export, captured_logs):
        result = executor.execute(full_export)

        completed = [r for r in captured_logs() if r["message"] == "run_completed"]
        assert len(completed) == 1
        assert completed[0]["correlation_id"] == str(result.run_id)
        assert completed[0]["producer"] == "ingestion"
        created = [r for r in captured_logs() if r["message"] == "record_created"]
        assert {r["entity_type"] for r in created} >= {"school", "student"}


class TestConflictPolicies:
    def test_skip_existing_rerun_is_idempotent(self, executor, session, full_export):
        executor.execute(full_export, ConflictPolicy.SKIP_EXISTING)
        before = _counts(session)

        result = executor.execute(full_export, ConflictPolicy.SKIP_EXISTING)

        assert _counts(session) == before
        assert result.total_created == 0
        assert result.total_failed == 0
        for kind in (EntityKind.SCHOOL, EntityKind.CLASS_GROUP, EntityKind.ACTIVITY, EntityKind.STUDENT):
            assert result.kind(kind).skipped == 1
        assert result.status is ImportRunStatus.COMPLETED
        assert result.is_reimport

    def test_fail_on_conflict_fails_each_existing_record(self, executor, session, full_export):
        executor.execute(full_export)
        before = _counts(session)

        result = executor.execute(full_export, ConflictPolicy.FAIL_ON_CONFLICT)

        assert _counts(session) == before
        assert result.total_failed == 4
        assert result.status is ImportRunStatus.COMPLETED_WITH_ERRORS
        assert result.has_errors
        school_error = next(e for e in result.exceptions if e.entity_type is EntityKind.SCHOOL)
        assert school_error.natural_key == "1"
        assert "already exists" in school_error.reason

    def test_conflict_report_written_to_default_path(self, executor, full_export):
        executor.execute(full_export)
        result = executor.execute(full_export)

        expected = full_export / "import-exceptions-2026-03-14.json"
        assert result.exceptions_path == str(expected)
        payload = json.loads(expected.read_text(encoding="utf-8"))
        assert payload["importRun"]["status"] == "completed_with_errors"
        assert payload["summary"]["totalFailed"] == 4
        assert len(payload["exceptions"]) == 4
        assert {e["entityType"] for e in payload["exceptions"]} == {
            "school", "class_group", "activity", "student",
        }

    def test_unwritable_report_keeps_the_run(self, executor, session, legacy_dir, school_record, tmp_path):
        root = legacy_dir(schools=[school_record, {**school_record, "School Id": "0"}])
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        result = executor.execute(root, exceptions_path=blocker / "report.json")

        assert executor.state is RunState.DONE
        assert result.kind(EntityKind.SCHOOL).created == 1
        assert _count(session, School) == 1
        assert result.report_failed
        assert result.exceptions_path is None
        assert result.has_errors
        assert result.notes.startswith("Exceptions report could not be written:")
        log = ImportAuditRepository(session).get_by_id(result.run_id)
        assert log.status == "completed_with_errors"
        assert log.schools_created == 1
        assert log.notes == result.notes

    def test_update_logs_field_changes(self, executor, session, legacy_dir, full_export, school_record):
        first = executor.execute(full_export)
        legacy_dir(schools=[{**school_record, "Taal": "Afrikaans"}])

        result = executor.execute(full_export, ConflictPolicy.UPDATE, run_by="bob")

        assert result.kind(EntityKind.SCHOOL).updated == 1
        assert result.kind(EntityKind.STUDENT).updated == 1
        assert session.scalars(select(School)).one().language == "Afrikaans"
        changes = session.scalars(select(FieldChange).where(FieldChange.run_id == result.run_id)).all()
        assert [(c.entity_type, c.field_name) for c in changes] == [("school", "language")]
        change = changes[0]
        assert change.old_value == "English"
        assert change.new_value == "Afrikaans"
        assert change.changed_by == "bob"
        assert change.legacy_id == "1"
        assert first.run_id != result.run_id

    def test_update_reuses_family_and_skips_existing_billing(self, executor, session, full_export):
        executor.execute(full_export)
        before = _counts(session)

        result = executor.execute(full_export, ConflictPolicy.UPDATE)

        assert _counts(session) == before
        assert result.kind(EntityKind.FAMILY).skipped == 1
        assert result.kind(EntityKind.BILLING).skipped == 2
        assert result.total_failed == 0


class TestPartialInput:
    def test_schools_only(self, executor, session, legacy_dir, school_record):
        root = legacy_dir(schools=[school_record])

        result = executor.execute(root)

        assert result.status is ImportRunStatus.COMPLETED
        assert result.kind(EntityKind.SCHOOL).created == 1
        assert result.skipped_kinds == (EntityKind.CLASS_GROUP, EntityKind.ACTIVITY, EntityKind.STUDENT)
        assert _count(session, Student) == 0

    def test_document_at_input_root(self, executor, session, legacy_dir, school_record, settings, tmp_path):
        layout = settings.layout["school"]
        nested = legacy_dir(schools=[school_record], root=tmp_path / "nested")
        flat = tmp_path / "flat"
        flat.mkdir()
        for name in (layout.document, layout.schema):
            (flat / name).write_bytes((nested / layout.folder / name).read_bytes())

        result = executor.execute(flat)
        assert result.kind(EntityKind.SCHOOL).created == 1


class TestRecordIsolation:
    def test_mapping_skip_and_reject_are_counted_separately(
        self, executor, legacy_dir, school_record, class_group_record, student_record
    ):
        root = legacy_dir(
            schools=[school_record],
            class_groups=[{**class_group_record, "Import": "false"}],
            students=[{**student_record, "Reference": None}],
        )
        result = executor.execute(root)

        assert result.kind(EntityKind.CLASS_GROUP).skipped == 1
        assert result.kind(EntityKind.CLASS_GROUP).failed == 0
        assert result.kind(EntityKind.STUDENT).failed == 1
        rejected = [e for e in result.exceptions if e.entity_type is EntityKind.STUDENT]
        assert rejected[0].field == "Reference"

    def test_unresolved_school_fails_class_group(self, executor, legacy_dir, class_group_record):
        root = legacy_dir(class_groups=[{**class_group_record, "School Id": "42"}])

        result = executor.execute(root)

        assert result.kind(EntityKind.CLASS_GROUP).failed == 1
        error = result.exceptions[0]
        assert error.field == "school_id"
        assert error.reason == "School '42' not found in database."
        assert error.original_value == "42"

    def test_unresolved_student_references_are_warnings(self, executor, session, legacy_dir, student_record):
        root = legacy_dir(students=[student_record])

        result = executor.execute(root)

        assert result.kind(EntityKind.STUDENT).created == 1
        student = session.scalars(select(Student)).one()
        assert student.school_id is None
        assert student.class_group_id is None
        assert any("Greenside Primary" in w and "not found" in w for w in result.warnings)

    def test_failing_record_rolls_back_alone(self, session, settings, deterministic_clock, legacy_dir, school_record):
        class ExplodingSchoolPromoter(SchoolPromoter):
            def create(self, entity, session, actor_id):
                row_id = super().create(entity, session, actor_id)
                if entity.legacy_id == "2":
                    raise RuntimeError("disk full")
                return row_id

        promoters = default_promoter_registry()
        promoters[EntityKind.SCHOOL] = ExplodingSchoolPromoter()
        executor = ImportExecutionService(session, settings, clock=deterministic_clock, promoters=promoters)
        root = legacy_dir(schools=[
            school_record,
            {**school_record, "School Id": "2", "School Description": "Two"},
            {**school_record, "School Id": "3", "School Description": "Three"},
        ])

        result = executor.execute(root)

        assert result.kind(EntityKind.SCHOOL).created == 2
        assert result.kind(EntityKind.SCHOOL).failed == 1
        assert sorted(s.legacy_id for s in session.scalars(select(School))) == ["1", "3"]
        assert result.exceptions[0].reason == "Failed to write school '2': disk full"

    def test_malformed_document_is_a_read_error(self, executor, legacy_dir, school_record, settings):
        root = legacy_dir(schools=[school_record])
        layout = settings.layout["school"]
        (root / layout.folder / layout.document).write_text("<dataroot><School>", encoding="utf-8")

        result = executor.execute(root)

        assert result.read_error_count == 1
        assert result.status is ImportRunStatus.COMPLETED_WITH_ERRORS
        assert result.has_errors
        assert result.exceptions[0].field == "_parse"


class TestAbortAndCancel:
    def test_missing_input_directory_aborts(self, executor, session, tmp_path):
        result = executor.execute(tmp_path / "missing")

        assert result.status is ImportRunStatus.ABORTED
        assert executor.state is RunState.ABORTED
        assert result.has_errors
        assert "Input directory not found" in result.notes
        log = session.get(ImportAuditLog, result.run_id)
        assert log.status == "aborted"
        assert log.notes == result.notes

    def test_missing_schema_aborts_before_writing(self, executor, session, legacy_dir, school_record):
        root = legacy_dir(schools=[school_record], schemas={EntityKind.SCHOOL: None})

        result = executor.execute(root)

        assert result.status is ImportRunStatus.ABORTED
        assert "Schema definition not found" in result.notes
        assert _count(session, School) == 0

    def test_cancel_before_start(self, executor, session, full_export):
        event = threading.Event()
        event.set()

        result = executor.execute(full_export, cancel_event=event)

        assert result.status is ImportRunStatus.CANCELLED
        assert result.total_processed == 0
        assert _count(session, School) == 0
        assert session.get(ImportAuditLog, result.run_id).status == "cancelled"

    def test_cancel_mid_run_keeps_finished_records(
        self, session, settings, deterministic_clock, legacy_dir, school_record, student_record
    ):
        event = threading.Event()

        class CancellingSchoolPromoter(SchoolPromoter):
            def create(self, entity, session, actor_id):
                row_id = super().create(entity, session, actor_id)
                event.set()
                return row_id

        promoters = default_promoter_registry()
        promoters[EntityKind.SCHOOL] = CancellingSchoolPromoter()
        executor = ImportExecutionService(session, settings, clock=deterministic_clock, promoters=promoters)
        root = legacy_dir(
            schools=[school_record, {**school_record, "School Id": "2"}],
            students=[student_record],
        )

        result = executor.execute(root, cancel_event=event)

        assert result.status is ImportRunStatus.CANCELLED
        assert result.kind(EntityKind.SCHOOL).created == 1
        assert result.kind(EntityKind.STUDENT).processed == 0
        assert _count(session, School) == 1


class TestStateMachine:
    def test_illegal_transition_raises(self, executor):
        with pytest.raises(InvalidRunTransitionError):
            executor._transition(RunState.WRITING)

    def test_history_lists_runs(self, executor, session, full_export):
        executor.execute(full_export, ConflictPolicy.SKIP_EXISTING)
        executor.execute(full_export, ConflictPolicy.SKIP_EXISTING)

        recent = ImportAuditRepository(session).get_recent(5)
        assert len(recent) == 2
        assert {log.policy for log in recent} == {"skip_existing"}
