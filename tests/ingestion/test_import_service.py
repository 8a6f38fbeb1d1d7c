"""Tests for ImportService: locate, parse (reader only) and preview (dry run)."""

import pytest
from sqlalchemy import func, select

from migration_ingestion.domain.types import EntityKind
from migration_ingestion.services import ImportService
from migration_kernel.exceptions import InputDirectoryNotFoundError, SchemaDefinitionNotFoundError
from migration_kernel.models import School


@pytest.fixture
def service(settings, deterministic_clock):
    return ImportService(settings, clock=deterministic_clock)


class TestLocate:
    def test_missing_directory(self, service, tmp_path):
        with pytest.raises(InputDirectoryNotFoundError):
            service.locate(tmp_path / "nope")

    def test_missing_document_skips_kind(self, service, legacy_dir, school_record):
        documents, skipped = service.locate(legacy_dir(schools=[school_record]))
        assert list(documents) == [EntityKind.SCHOOL]
        assert skipped == (EntityKind.CLASS_GROUP, EntityKind.ACTIVITY, EntityKind.STUDENT)

    def test_missing_schema_is_fatal(self, service, legacy_dir, school_record):
        root = legacy_dir(schools=[school_record], schemas={EntityKind.SCHOOL: None})
        with pytest.raises(SchemaDefinitionNotFoundError):
            service.locate(root)


class TestParse:
    def test_counts_and_errors(self, service, legacy_dir, school_record, class_group_record):
        root = legacy_dir(
            schools=[school_record, {**school_record, "School Id": None}],
            class_groups=[class_group_record],
        )
        report = service.parse(root)

        assert report.reads[EntityKind.SCHOOL].records[1].get("School Id") == "0"
        assert report.error_count == 1
        assert report.has_errors
        payload = report.to_dict()
        assert payload["kinds"]["school"]["recordCount"] == 2
        assert payload["kinds"]["class_group"]["errors"] == []
        assert payload["skippedKinds"] == ["activity", "student"]
        assert payload["errorCount"] == 1


class TestPreview:
    def test_preview_writes_nothing(self, service, session, full_export):
        report = service.preview(full_export)

        assert session.scalar(select(func.count()).select_from(School)) == 0
        assert report.result.preview is True
        assert report.result.total_created == 0
        assert report.result.total_updated == 0
        assert report.total_valid == 4
        assert report.samples[EntityKind.SCHOOL] == ("1: Greenside Primary",)
        assert report.samples[EntityKind.CLASS_GROUP] == (
            "GS-MON-1: Greenside Monday (school 1, monday 14:00-15:00)",
        )

    def test_preview_reports_rejections_and_warnings(self, service, legacy_dir, school_record, student_record):
        root = legacy_dir(
            schools=[{**school_record, "Trok": "999"}],
            students=[{**student_record, "Reference": None}],
        )
        report = service.preview(root)

        assert report.mapped_counts == {EntityKind.SCHOOL: 1, EntityKind.STUDENT: 0}
        assert report.result.kind(EntityKind.STUDENT).failed == 1
        assert report.result.has_errors
        assert any(w.startswith("[Schools 1] Trok:") for w in report.warnings)
        assert report.errors == ("[Students] Reference: Student has no Reference.",)

    def test_preview_to_dict(self, service, full_export):
        payload = service.preview(full_export).to_dict()
        assert payload["preview"] is True
        assert payload["kinds"]["student"] == {"parsed": 1, "mapped": 1, "samples": ["S001: Anna Smith (Greenside Primary)"]}
        assert payload["exceptions"] == []
