"""
migration_ingestion.domain.types -- Pure frozen dataclasses and enums for the
import run.  ZERO I/O.

Every entity kind, conflict policy, run state and result shape the executor,
reporter and CLI exchange is defined here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from migration_kernel.models.audit import ImportRunStatus


# =============================================================================
# Entity kinds
# =============================================================================


class EntityKind(str, Enum):
    """Closed set of kinds the pipeline writes, in dependency order."""

    SCHOOL = "school"
    CLASS_GROUP = "class_group"
    ACTIVITY = "activity"
    STUDENT = "student"
    FAMILY = "family"  # Derived from students
    BILLING = "billing"  # Derived from students

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EntityKind.SCHOOL: "Schools",
    EntityKind.CLASS_GROUP: "Class Groups",
    EntityKind.ACTIVITY: "Activities",
    EntityKind.STUDENT: "Students",
    EntityKind.FAMILY: "Families",
    EntityKind.BILLING: "Billing",
}

PRIMARY_KINDS: tuple[EntityKind, ...] = (
    EntityKind.SCHOOL,
    EntityKind.CLASS_GROUP,
    EntityKind.ACTIVITY,
    EntityKind.STUDENT,
)

WRITE_ORDER: tuple[EntityKind, ...] = PRIMARY_KINDS + (
    EntityKind.FAMILY,
    EntityKind.BILLING,
)


# =============================================================================
# Conflict policy and record outcomes
# =============================================================================


class ConflictPolicy(str, Enum):
    """What happens when an incoming legacy key already exists in the store."""

    FAIL_ON_CONFLICT = "fail_on_conflict"  # default
    SKIP_EXISTING = "skip_existing"
    UPDATE = "update"


class RecordOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


# =============================================================================
# Run state machine
# =============================================================================


class RunState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    MAPPING = "mapping"
    RESOLVING = "resolving"
    WRITING = "writing"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


# WRITING -> RESOLVING: each kind resolves against the kinds written before it.
ALLOWED_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.VALIDATING}),
    RunState.VALIDATING: frozenset({RunState.MAPPING, RunState.ABORTED}),
    RunState.MAPPING: frozenset({RunState.RESOLVING}),
    RunState.RESOLVING: frozenset({RunState.WRITING}),
    RunState.WRITING: frozenset({RunState.RESOLVING, RunState.REPORTING}),
    RunState.REPORTING: frozenset({RunState.DONE}),
    RunState.DONE: frozenset(),
    RunState.ABORTED: frozenset(),
}


# =============================================================================
# Raw records and exceptions
# =============================================================================


@dataclass(frozen=True)
class RawRecord:
    """One source row: decoded field name -> normalized string (or None)."""

    fields: dict[str, str | None]
    source_line: int | None = None

    def get(self, name: str) -> str | None:
        return self.fields.get(name)


@dataclass(frozen=True)
class ImportException:
    """One failed or rejected record, with enough context to fix and rerun."""

    entity_type: EntityKind
    natural_key: str
    field: str
    reason: str
    original_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityType": self.entity_type.value,
            "legacyId": self.natural_key,
            "field": self.field,
            "reason": self.reason,
            "originalValue": self.original_value,
        }


# =============================================================================
# Run results
# =============================================================================


def compute_success_rate(created: int, updated: int, processed: int) -> float:
    """(created + updated) / processed as a percentage, 1 decimal; 0 when nothing ran."""
    if processed == 0:
        return 0.0
    return round((created + updated) / processed * 100, 1)


@dataclass(frozen=True)
class EntityImportResult:
    """Counters for one kind. failed and skipped are always distinct."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped + self.failed


@dataclass(frozen=True)
class ImportRunResult:
    """Outcome of one run (or one preview)."""

    run_id: UUID | None
    policy: ConflictPolicy
    input_path: str
    started_at: datetime
    completed_at: datetime | None
    status: ImportRunStatus
    per_kind: dict[EntityKind, EntityImportResult] = field(default_factory=dict)
    exceptions: tuple[ImportException, ...] = ()
    skipped_kinds: tuple[EntityKind, ...] = ()
    warnings: tuple[str, ...] = ()
    read_error_count: int = 0
    run_by: str = "system"
    preview: bool = False
    notes: str | None = None
    exceptions_path: str | None = None
    report_failed: bool = False

    def kind(self, kind: EntityKind) -> EntityImportResult:
        return self.per_kind.get(kind, EntityImportResult())

    @property
    def total_created(self) -> int:
        return sum(r.created for r in self.per_kind.values())

    @property
    def total_updated(self) -> int:
        return sum(r.updated for r in self.per_kind.values())

    @property
    def total_skipped(self) -> int:
        return sum(r.skipped for r in self.per_kind.values())

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.per_kind.values())

    @property
    def total_processed(self) -> int:
        return sum(r.processed for r in self.per_kind.values())

    @property
    def success_rate(self) -> float:
        return compute_success_rate(self.total_created, self.total_updated, self.total_processed)

    @property
    def has_exceptions(self) -> bool:
        return bool(self.exceptions)

    @property
    def has_errors(self) -> bool:
        """True on abort, on any record or document error, or when the exceptions report was not written."""
        if self.status is ImportRunStatus.ABORTED or self.report_failed:
            return True
        return self.total_failed > 0 or self.read_error_count > 0

    @property
    def is_reimport(self) -> bool:
        return self.total_updated > 0 or self.total_skipped > 0
