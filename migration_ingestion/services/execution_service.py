"""
Execution service: one import run, end to end.

State machine::

    IDLE -> VALIDATING -> MAPPING -> (RESOLVING -> WRITING)* -> REPORTING -> DONE
                 \\-> ABORTED  (missing input directory or schema definition)

Kinds are written strictly in dependency order (schools, class groups,
activities, students, families, billing); each kind resolves its references
against the kinds already written.  Every record is written inside its own
SAVEPOINT: a failure rolls back that record only, becomes one
ImportException, and the run carries on.

Conflict policies (natural key = legacy id):

* FAIL_ON_CONFLICT -- existing row fails that record.
* SKIP_EXISTING    -- existing row is counted as skipped.
* UPDATE           -- existing row is overwritten; each changed column is
                      recorded as a FieldChange.

The lookup-then-insert pair is protected by the unique constraint on the
legacy key: an IntegrityError on insert means another writer won the race,
and the record is retried once as a conflict.

Families and billing are derived only from students created or updated in
this run.  Existing families are reused and existing billing keys skipped
under every policy; UPDATE touches primary kinds only.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid5

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from migration_config.schema import ImportSettings
from migration_kernel.domain.clock import Clock, SystemClock
from migration_kernel.exceptions import (
    ConflictError,
    InputError,
    InvalidRunTransitionError,
    LegacyKeyConflictError,
    RecordPersistenceError,
)
from migration_kernel.logging_config import LogContext, get_logger
from migration_kernel.models.audit import FieldChange, ImportAuditLog, ImportRunStatus
from migration_ingestion.domain.mapped import MappingResult, MappingStatus
from migration_ingestion.domain.types import (
    ALLOWED_TRANSITIONS,
    PRIMARY_KINDS,
    ConflictPolicy,
    EntityImportResult,
    EntityKind,
    ImportException,
    ImportRunResult,
    RecordOutcome,
    RunState,
)
from migration_ingestion.promoters import (
    BillingPromoter,
    EntityPromoter,
    FamilyPromoter,
    FieldDiff,
    PromoteResult,
    default_promoter_registry,
)
from migration_ingestion.resolution.resolver import LookupTable, ReferenceResolver
from migration_ingestion.services.import_service import (
    ImportService,
    KindMapping,
    format_warning,
    mapping_exception,
    read_error_exceptions,
)
from migration_ingestion.services.report_service import (
    ExceptionReportWriter,
    ImportAuditRepository,
)
from migration_ingestion.synthesis.billing import BillingSynthesizer, InvoiceDraft, PaymentDraft
from migration_ingestion.synthesis.families import FamilyGroup, group_families

logger = get_logger("ingestion.execution_service")


def actor_id_for(run_by: str) -> UUID:
    """Stable actor id for a run_by name (audit columns need a UUID)."""
    return uuid5(NAMESPACE_URL, f"legacy-import:{run_by}")


def _audit_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


# -----------------------------------------------------------------------------
# Run bookkeeping
# -----------------------------------------------------------------------------


@dataclass
class _Tally:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def add(self, outcome: RecordOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def freeze(self) -> EntityImportResult:
        return EntityImportResult(self.created, self.updated, self.skipped, self.failed)


@dataclass
class _Run:
    run_id: UUID
    actor_id: UUID
    run_by: str
    policy: ConflictPolicy
    tallies: dict[EntityKind, _Tally] = field(default_factory=dict)
    exceptions: list[ImportException] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    students: list[tuple[UUID, Any]] = field(default_factory=list)
    cancelled: bool = False

    def tally(self, kind: EntityKind) -> _Tally:
        return self.tallies.setdefault(kind, _Tally())


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


class ImportExecutionService:
    """Runs the full pipeline against one input directory."""

    def __init__(
        self,
        session: Session,
        settings: ImportSettings,
        clock: Clock | None = None,
        import_service: ImportService | None = None,
        promoters: dict[EntityKind, EntityPromoter] | None = None,
        report_writer: ExceptionReportWriter | None = None,
    ):
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._imports = import_service or ImportService(settings, clock=self._clock)
        self._promoters = promoters or default_promoter_registry()
        self._families = FamilyPromoter()
        self._billing = BillingPromoter()
        self._writer = report_writer or ExceptionReportWriter(self._clock)
        self._audit = ImportAuditRepository(session, self._clock)
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, to_state: RunState) -> None:
        if to_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidRunTransitionError(self._state.value, to_state.value)
        logger.debug("run_state_changed", extra={"from_state": self._state.value, "to_state": to_state.value})
        self._state = to_state

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def execute(
        self,
        input_path: Path | str,
        policy: ConflictPolicy = ConflictPolicy.FAIL_ON_CONFLICT,
        *,
        cancel_event: threading.Event | None = None,
        run_by: str | None = None,
        exceptions_path: Path | str | None = None,
    ) -> ImportRunResult:
        """
        Import every document under ``input_path``.

        Never raises for bad data: record failures are counted and reported,
        and a missing directory/schema ends the run as ABORTED.
        """
        input_path = Path(input_path)
        run_by = run_by or self._settings.default_actor
        actor_id = actor_id_for(run_by)
        started_at = self._clock.now()
        self._state = RunState.IDLE

        audit_log = self._audit.create(str(input_path), policy, run_by, actor_id, started_at)
        run = _Run(audit_log.id, actor_id, run_by, policy)

        with LogContext.bind(correlation_id=str(run.run_id), producer="ingestion", actor_id=str(actor_id)):
            logger.info(
                "run_started",
                extra={"input_path": str(input_path), "policy": policy.value, "run_by": run_by},
            )
            self._transition(RunState.VALIDATING)
            try:
                documents, skipped_kinds = self._imports.locate(input_path)
            except InputError as exc:
                return self._abort(run, audit_log, input_path, started_at, exc)

            reads = self._imports.read_all(documents)
            for read in reads.values():
                run.exceptions.extend(read_error_exceptions(read))
            read_error_count = sum(len(r.errors) for r in reads.values())

            self._transition(RunState.MAPPING)
            mappings = self._imports.map_all(reads)

            resolver = ReferenceResolver()
            for kind in PRIMARY_KINDS:
                self._transition(RunState.RESOLVING)
                if kind is EntityKind.CLASS_GROUP:
                    resolver.schools = LookupTable.for_schools(self._session)
                elif kind is EntityKind.STUDENT:
                    resolver.schools = LookupTable.for_schools(self._session)
                    resolver.class_groups = LookupTable.for_class_groups(self._session)
                self._transition(RunState.WRITING)
                if kind in mappings:
                    self._write_primary_kind(kind, mappings[kind], resolver, run, cancel_event)

            self._transition(RunState.RESOLVING)
            groups = group_families(run.students)
            self._transition(RunState.WRITING)
            self._write_families(groups, run, cancel_event)

            self._transition(RunState.RESOLVING)
            synthesizer = BillingSynthesizer(
                self._settings.billing,
                self._settings.mapping,
                self._clock,
                resolver.school_default_price,
            )
            self._transition(RunState.WRITING)
            self._write_billing(synthesizer, run, cancel_event)

            self._transition(RunState.REPORTING)
            result = self._build_result(run, input_path, started_at, skipped_kinds, read_error_count)
            if result.has_exceptions:
                result = self._write_report(result, exceptions_path)
            self._audit.complete(audit_log, result, actor_id)
            self._transition(RunState.DONE)

            logger.info(
                "run_completed",
                extra={
                    "status": result.status.value,
                    "total_created": result.total_created,
                    "total_updated": result.total_updated,
                    "total_skipped": result.total_skipped,
                    "total_failed": result.total_failed,
                    "success_rate": result.success_rate,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Run outcomes
    # -------------------------------------------------------------------------

    def _abort(
        self,
        run: _Run,
        audit_log: ImportAuditLog,
        input_path: Path,
        started_at: datetime,
        exc: InputError,
    ) -> ImportRunResult:
        self._transition(RunState.ABORTED)
        result = ImportRunResult(
            run_id=run.run_id,
            policy=run.policy,
            input_path=str(input_path),
            started_at=started_at,
            completed_at=self._clock.now(),
            status=ImportRunStatus.ABORTED,
            run_by=run.run_by,
            notes=str(exc),
        )
        self._audit.complete(audit_log, result, run.actor_id)
        logger.error("run_aborted", extra={"error_code": exc.code, "error_msg": str(exc)})
        return result

    def _build_result(
        self,
        run: _Run,
        input_path: Path,
        started_at: datetime,
        skipped_kinds: tuple[EntityKind, ...],
        read_error_count: int,
    ) -> ImportRunResult:
        per_kind = {kind: tally.freeze() for kind, tally in run.tallies.items()}
        failed = sum(r.failed for r in per_kind.values())
        if run.cancelled:
            status = ImportRunStatus.CANCELLED
        elif failed or read_error_count:
            status = ImportRunStatus.COMPLETED_WITH_ERRORS
        else:
            status = ImportRunStatus.COMPLETED
        return ImportRunResult(
            run_id=run.run_id,
            policy=run.policy,
            input_path=str(input_path),
            started_at=started_at,
            completed_at=self._clock.now(),
            status=status,
            per_kind=per_kind,
            exceptions=tuple(run.exceptions),
            skipped_kinds=skipped_kinds,
            warnings=tuple(run.warnings),
            read_error_count=read_error_count,
            run_by=run.run_by,
            notes="Cancelled before all records were processed." if run.cancelled else None,
        )

    def _write_report(self, result: ImportRunResult, exceptions_path: Path | str | None) -> ImportRunResult:
        """Write the exceptions report; a failed write is noted on the result, never raised."""
        try:
            path = self._writer.write(result, exceptions_path)
        except OSError as exc:
            logger.error("exceptions_report_failed", extra={"error_msg": str(exc)})
            note = f"Exceptions report could not be written: {exc}"
            notes = f"{result.notes} {note}" if result.notes else note
            return replace(result, exceptions_path=None, notes=notes, report_failed=True)
        return replace(result, exceptions_path=str(path))

    @staticmethod
    def _cancel_requested(run: _Run, cancel_event: threading.Event | None) -> bool:
        if run.cancelled:
            return True
        if cancel_event is not None and cancel_event.is_set():
            run.cancelled = True
            logger.warning("run_cancel_requested")
            return True
        return False

    # -------------------------------------------------------------------------
    # Primary kinds
    # -------------------------------------------------------------------------

    def _write_primary_kind(
        self,
        kind: EntityKind,
        mapping: KindMapping,
        resolver: ReferenceResolver,
        run: _Run,
        cancel_event: threading.Event | None,
    ) -> None:
        tally = run.tally(kind)
        for result in mapping.results:
            if self._cancel_requested(run, cancel_event):
                return
            with LogContext.bind(entity_type=kind.value, legacy_id=result.natural_key or None):
                self._process_record(kind, result, resolver, run)
        logger.info("kind_written", extra={"kind": kind.value, "counts": vars(tally)})

    def _process_record(
        self,
        kind: EntityKind,
        result: MappingResult[Any],
        resolver: ReferenceResolver,
        run: _Run,
    ) -> None:
        tally = run.tally(kind)
        key = result.natural_key
        run.warnings.extend(format_warning(kind, key, w) for w in result.warnings)

        if result.status is MappingStatus.SKIPPED:
            tally.add(RecordOutcome.SKIPPED)
            logger.info("record_skipped", extra={"reason": str(result.errors[0])})
            return
        if result.status is MappingStatus.REJECTED:
            tally.add(RecordOutcome.FAILED)
            run.exceptions.append(mapping_exception(kind, result))
            logger.info("record_rejected", extra={"reason": str(result.errors[0])})
            return

        entity = result.entity
        if kind is EntityKind.CLASS_GROUP:
            entity, unresolved = resolver.resolve_class_group(entity)
            if unresolved:
                tally.add(RecordOutcome.FAILED)
                ref = unresolved[0]
                run.exceptions.append(ImportException(
                    kind, key, ref.field, ref.message, original_value=ref.natural_key,
                ))
                logger.info("record_unresolved", extra={"field": ref.field, "natural_key": ref.natural_key})
                return
        elif kind is EntityKind.STUDENT:
            entity, unresolved = resolver.resolve_student(entity)
            run.warnings.extend(format_warning(kind, key, ref) for ref in unresolved)

        promoted = self._write_primary(kind, entity, key, run)
        tally.add(promoted.outcome)
        if promoted.outcome is RecordOutcome.FAILED:
            run.exceptions.append(ImportException(kind, key, "legacy_id", promoted.error or "Unknown error"))
            return
        if kind is EntityKind.STUDENT and promoted.outcome in (RecordOutcome.CREATED, RecordOutcome.UPDATED):
            run.students.append((promoted.entity_id, entity))

    def _write_primary(self, kind: EntityKind, entity: Any, key: str, run: _Run) -> PromoteResult:
        """Atomic upsert of one record inside a SAVEPOINT."""
        promoter = self._promoters[kind]
        for attempt in (1, 2):
            savepoint = self._session.begin_nested()
            try:
                existing = promoter.find_existing(key, self._session)
                if existing is None:
                    entity_id = promoter.create(entity, self._session, run.actor_id)
                    promoted = PromoteResult(RecordOutcome.CREATED, entity_id)
                else:
                    promoted = self._apply_policy(kind, promoter, existing, entity, key, run)
                savepoint.commit()
            except IntegrityError as exc:
                savepoint.rollback()
                if attempt == 2:
                    error = RecordPersistenceError(kind.value, key, str(exc.orig))
                    logger.warning("record_write_failed", extra={"error_code": error.code, "error_msg": str(error)})
                    return PromoteResult(RecordOutcome.FAILED, error=str(error))
                logger.info("record_insert_raced")
                continue
            except ConflictError as exc:
                savepoint.rollback()
                logger.warning("record_conflict", extra={"error_code": exc.code, "error_msg": str(exc)})
                return PromoteResult(RecordOutcome.FAILED, error=str(exc))
            except Exception as exc:
                savepoint.rollback()
                error = RecordPersistenceError(kind.value, key, str(exc))
                logger.warning("record_write_failed", extra={"error_code": error.code, "error_msg": str(error)})
                return PromoteResult(RecordOutcome.FAILED, error=str(error))

            logger.info("record_" + promoted.outcome.value, extra={"entity_id": promoted.entity_id})
            return promoted
        raise AssertionError("unreachable")

    def _apply_policy(
        self,
        kind: EntityKind,
        promoter: EntityPromoter,
        existing: Any,
        entity: Any,
        key: str,
        run: _Run,
    ) -> PromoteResult:
        if run.policy is ConflictPolicy.FAIL_ON_CONFLICT:
            raise LegacyKeyConflictError(kind.value, key, str(existing.id))
        if run.policy is ConflictPolicy.SKIP_EXISTING:
            return PromoteResult(RecordOutcome.SKIPPED, existing.id)
        changes = promoter.update(existing, entity, self._session, run.actor_id)
        self._record_changes(kind, existing.id, key, changes, run)
        return PromoteResult(RecordOutcome.UPDATED, existing.id, changes=changes)

    def _record_changes(
        self,
        kind: EntityKind,
        entity_id: UUID,
        key: str,
        changes: tuple[FieldDiff, ...],
        run: _Run,
    ) -> None:
        now = self._clock.now()
        for change in changes:
            self._session.add(FieldChange(
                run_id=run.run_id,
                entity_type=kind.value,
                entity_id=entity_id,
                legacy_id=key,
                field_name=change.field_name,
                old_value=_audit_value(change.old_value),
                new_value=_audit_value(change.new_value),
                changed_by=run.run_by,
                changed_at=now,
                created_by_id=run.actor_id,
            ))
        if changes:
            self._session.flush()

    # -------------------------------------------------------------------------
    # Derived kinds
    # -------------------------------------------------------------------------

    def _write_families(
        self,
        groups: list[FamilyGroup],
        run: _Run,
        cancel_event: threading.Event | None,
    ) -> None:
        tally = run.tally(EntityKind.FAMILY)
        for group in groups:
            if self._cancel_requested(run, cancel_event):
                return
            with LogContext.bind(entity_type=EntityKind.FAMILY.value, legacy_id=group.key):
                savepoint = self._session.begin_nested()
                try:
                    existing = self._families.find_existing(group.key, self._session)
                    if existing is None:
                        family_id = self._families.create(group, self._session, run.actor_id)
                        outcome = RecordOutcome.CREATED
                    else:
                        family_id, outcome = existing.id, RecordOutcome.SKIPPED
                    linked = self._families.link_members(family_id, group, self._session, run.actor_id)
                    savepoint.commit()
                except Exception as exc:
                    savepoint.rollback()
                    tally.add(RecordOutcome.FAILED)
                    run.exceptions.append(ImportException(
                        EntityKind.FAMILY, group.key, "family_name", str(exc), original_value=group.key,
                    ))
                    logger.warning("family_write_failed", extra={"error_msg": str(exc)})
                    continue
                tally.add(outcome)
                logger.info(
                    "family_" + outcome.value,
                    extra={"family_id": family_id, "members": len(group.members), "linked": linked},
                )

    def _write_billing(
        self,
        synthesizer: BillingSynthesizer,
        run: _Run,
        cancel_event: threading.Event | None,
    ) -> None:
        for student_id, student in run.students:
            if self._cancel_requested(run, cancel_event):
                return
            with LogContext.bind(entity_type=EntityKind.BILLING.value, legacy_id=student.reference):
                artifact = synthesizer.synthesize(
                    student_id, student.reference, student.school_id, student.billing,
                )
                run.warnings.extend(
                    format_warning(EntityKind.BILLING, student.reference, w) for w in artifact.warnings
                )
                invoice_id = None
                if artifact.invoice is not None:
                    invoice_id = self._write_invoice(artifact.invoice, run)
                for payment in artifact.payments:
                    self._write_payment(payment, invoice_id, run)

    def _write_invoice(self, draft: InvoiceDraft, run: _Run) -> UUID | None:
        def write() -> tuple[RecordOutcome, UUID]:
            existing = self._billing.find_invoice(draft.legacy_key, self._session)
            if existing is not None:
                return RecordOutcome.SKIPPED, existing.id
            return RecordOutcome.CREATED, self._billing.create_invoice(draft, self._session, run.actor_id)

        return self._write_billing_row(draft.legacy_key, "amount", str(draft.amount), write, run)

    def _write_payment(self, draft: PaymentDraft, invoice_id: UUID | None, run: _Run) -> UUID | None:
        def write() -> tuple[RecordOutcome, UUID]:
            existing = self._billing.find_payment(draft.legacy_key, self._session)
            if existing is not None:
                return RecordOutcome.SKIPPED, existing.id
            return RecordOutcome.CREATED, self._billing.create_payment(
                draft, invoice_id, self._session, run.actor_id,
            )

        return self._write_billing_row(draft.legacy_key, "amount", str(draft.amount), write, run)

    def _write_billing_row(self, legacy_key: str, field_name: str, value: str, write: Any, run: _Run) -> UUID | None:
        tally = run.tally(EntityKind.BILLING)
        savepoint = self._session.begin_nested()
        try:
            outcome, row_id = write()
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            tally.add(RecordOutcome.FAILED)
            error = RecordPersistenceError(EntityKind.BILLING.value, legacy_key, str(exc))
            run.exceptions.append(ImportException(
                EntityKind.BILLING, legacy_key, field_name, str(error), original_value=value,
            ))
            logger.warning("billing_write_failed", extra={"legacy_key": legacy_key, "error_msg": str(exc)})
            return None
        tally.add(outcome)
        logger.info("billing_" + outcome.value, extra={"legacy_key": legacy_key, "row_id": row_id})
        return row_id
