"""
Module: migration_kernel.models.class_group
Responsibility: ORM persistence for class groups (a weekly time slot at one
    school).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - legacy_id (the legacy class-group code) is unique.
    - school_id is NOT NULL: a class group is never written without its
      school, so an unresolved school reference fails the record.
    - end_time > start_time (guaranteed by the mapper, not the database).
"""

from datetime import time
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import LEGACY_ID_LENGTH, TrackedBase, UUIDString


class Weekday(str, Enum):
    """Day a class group meets."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class ClassGroup(TrackedBase):
    """Weekly class slot hosted by a school."""

    __tablename__ = "class_groups"

    __table_args__ = (
        UniqueConstraint("legacy_id", name="uq_class_group_legacy_id"),
        Index("idx_class_group_school", "school_id"),
    )

    legacy_id: Mapped[str] = mapped_column(String(LEGACY_ID_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    school_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("schools.id"),
        nullable=False,
    )
    day_of_week: Mapped[str] = mapped_column(
        String(10), nullable=False, default=Weekday.MONDAY.value
    )
    start_time: Mapped[time] = mapped_column(nullable=False)
    end_time: Mapped[time] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False, default=1)

    truck_day: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    evaluate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    group_message: Mapped[str | None] = mapped_column(String(255), nullable=True)
    send_certificates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    money_message: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ixl: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ClassGroup {self.legacy_id}: {self.day_of_week} {self.start_time}-{self.end_time}>"
