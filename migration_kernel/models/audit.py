"""
Module: migration_kernel.models.audit
Responsibility: ORM persistence for the run-summary record of every import
    run and for the field-level change trail written by the Update policy.

Audit relevance:
    ImportAuditLog is created IN_PROGRESS when a run starts and completed
    when it ends, so a crashed run remains visible in the history.
    FieldChange records old/new values and the acting identity for each
    field an Update overwrote.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import TrackedBase, UUIDString


class ImportRunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


class ImportAuditLog(TrackedBase):
    """Persisted summary of one import run."""

    __tablename__ = "import_audit_logs"

    __table_args__ = (Index("idx_import_audit_started", "started_at"),)

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    run_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")
    source_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    policy: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ImportRunStatus.IN_PROGRESS.value
    )

    schools_created: Mapped[int] = mapped_column(nullable=False, default=0)
    class_groups_created: Mapped[int] = mapped_column(nullable=False, default=0)
    activities_created: Mapped[int] = mapped_column(nullable=False, default=0)
    students_created: Mapped[int] = mapped_column(nullable=False, default=0)
    families_created: Mapped[int] = mapped_column(nullable=False, default=0)
    billing_created: Mapped[int] = mapped_column(nullable=False, default=0)
    total_updated: Mapped[int] = mapped_column(nullable=False, default=0)
    total_failed: Mapped[int] = mapped_column(nullable=False, default=0)
    total_skipped: Mapped[int] = mapped_column(nullable=False, default=0)

    exceptions_file_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def total_created(self) -> int:
        return (
            self.schools_created
            + self.class_groups_created
            + self.activities_created
            + self.students_created
            + self.families_created
            + self.billing_created
        )


class FieldChange(TrackedBase):
    """One field overwritten by the Update conflict policy."""

    __tablename__ = "import_field_changes"

    __table_args__ = (
        Index("idx_field_change_run", "run_id"),
        Index("idx_field_change_entity", "entity_type", "legacy_id"),
    )

    run_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("import_audit_logs.id"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    legacy_id: Mapped[str] = mapped_column(String(100), nullable=False)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(nullable=False)
