"""
Pytest fixtures for the legacy migration test suite.

Provides:
- In-memory SQLite sessions (fresh schema per test)
- Import settings loaded from the packaged defaults
- A builder that writes legacy export folders (XML + XSD) under tmp_path
- Structured-log capture
"""

import json
import logging
from datetime import UTC, datetime
from io import StringIO
from pathlib import Path
from typing import Generator
from uuid import uuid4
from xml.sax.saxutils import escape

import pytest
from sqlalchemy.orm import Session

from migration_config import get_import_settings
from migration_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from migration_kernel.domain.clock import DeterministicClock
from migration_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from migration_ingestion.domain.types import EntityKind

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

FIXED_NOW = datetime(2026, 3, 14, 9, 30, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture migration_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.execute(...)
            logs = captured_logs()
            assert any(r["message"] == "run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("migration_kernel")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Session on a fresh in-memory database."""
    init_engine_from_url("sqlite://")
    create_tables()
    s = get_session()
    try:
        yield s
    finally:
        s.rollback()
        s.close()
        reset_engine()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def settings():
    return get_import_settings()


# =============================================================================
# Legacy export builder
# =============================================================================


def encode_field_name(name: str) -> str:
    """Inverse of the adapter's decoding: spaces become ``_x0020_``."""
    return name.replace(" ", "_x0020_")


def xml_document(record_element: str, records: list[dict]) -> str:
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', "<dataroot>"]
    for record in records:
        parts.append(f"  <{record_element}>")
        for name, value in record.items():
            if value is None:
                continue
            tag = encode_field_name(name)
            parts.append(f"    <{tag}>{escape(str(value))}</{tag}>")
        parts.append(f"  </{record_element}>")
    parts.append("</dataroot>")
    return "\n".join(parts) + "\n"


def lax_schema(record_element: str) -> str:
    """Schema accepting any fields inside each record element."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema" elementFormDefault="qualified">
  <xs:element name="dataroot">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="{record_element}" minOccurs="0" maxOccurs="unbounded">
          <xs:complexType>
            <xs:sequence>
              <xs:any processContents="skip" minOccurs="0" maxOccurs="unbounded"/>
            </xs:sequence>
          </xs:complexType>
        </xs:element>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""


SCHOOL_RECORD = {
    "School Id": "1",
    "Short School": "Greenside",
    "School Description": "Greenside Primary",
    "Price": "450.00",
    "Trok": "3",
    "E-mail adress": "office@greenside.example",
    "Taal": "English",
    "Print": "true",
    "Import": "true",
}

CLASS_GROUP_RECORD = {
    "Class Group": "GS-MON-1",
    "School Id": "1",
    "DayId": "1",
    "Start Time": "14:00",
    "End Time": "15:00",
    "Sequence": "1",
    "Description": "Greenside Monday",
    "Import": "true",
}

ACTIVITY_RECORD = {
    "ActivityID": "10",
    "Program": "ROB",
    "ProgramName": "Robotics",
    "Educational Focus": "Build and program small robots.",
    "Grade": "4-7",
}

STUDENT_RECORD = {
    "Reference": "S001",
    "Child Name": "Anna",
    "Child Surname": "Smith",
    "Child birthdate": "2015-04-02",
    "Sex": "F",
    "School Name": "Greenside Primary",
    "Class Group": "GS-MON-1",
    "Family": "Smith",
    "Mother Name": "Jane",
    "Mother Surname": "Smith",
    "Mother Cell": "0821234567",
    "Address1": "1 Main Road",
    "Code": "2193",
    "Charge": "R 1,250.00",
    "Deposit": "500",
    "PayDate": "2024-01-15",
    "Financial Code": "FC1",
    "Status": "Active",
}


@pytest.fixture
def legacy_dir(tmp_path: Path, settings):
    """
    Factory writing a legacy export directory.

    Pass a list of record dicts per kind; ``None`` leaves that kind's folder
    out.  ``schemas`` maps a kind to replacement XSD text (or ``None`` to
    omit the schema file).
    """

    def _build(
        schools: list[dict] | None = None,
        class_groups: list[dict] | None = None,
        activities: list[dict] | None = None,
        students: list[dict] | None = None,
        *,
        schemas: dict[EntityKind, str | None] | None = None,
        root: Path | None = None,
    ) -> Path:
        root = root or tmp_path / "export"
        root.mkdir(parents=True, exist_ok=True)
        per_kind = {
            EntityKind.SCHOOL: schools,
            EntityKind.CLASS_GROUP: class_groups,
            EntityKind.ACTIVITY: activities,
            EntityKind.STUDENT: students,
        }
        for kind, records in per_kind.items():
            if records is None:
                continue
            layout = settings.layout[kind.value]
            folder = root / layout.folder
            folder.mkdir(exist_ok=True)
            (folder / layout.document).write_text(
                xml_document(layout.record_element, records), encoding="utf-8",
            )
            schema_text = lax_schema(layout.record_element)
            if schemas and kind in schemas:
                schema_text = schemas[kind]
            if schema_text is not None:
                (folder / layout.schema).write_text(schema_text, encoding="utf-8")
        return root

    return _build


@pytest.fixture
def full_export(legacy_dir):
    """One school, class group, activity and student."""
    return legacy_dir(
        schools=[SCHOOL_RECORD],
        class_groups=[CLASS_GROUP_RECORD],
        activities=[ACTIVITY_RECORD],
        students=[STUDENT_RECORD],
    )


@pytest.fixture
def school_record() -> dict:
    return dict(SCHOOL_RECORD)


@pytest.fixture
def class_group_record() -> dict:
    return dict(CLASS_GROUP_RECORD)


@pytest.fixture
def activity_record() -> dict:
    return dict(ACTIVITY_RECORD)


@pytest.fixture
def student_record() -> dict:
    return dict(STUDENT_RECORD)
