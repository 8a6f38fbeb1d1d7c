"""
Module: migration_kernel.models.activity
Responsibility: ORM persistence for activities (the programmes taught in
    class groups).  No references to other kinds.
"""

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import LEGACY_ID_LENGTH, TrackedBase


class Activity(TrackedBase):
    """Programme offered to students; icon is a base64 image."""

    __tablename__ = "activities"

    __table_args__ = (UniqueConstraint("legacy_id", name="uq_activity_legacy_id"),)

    legacy_id: Mapped[str] = mapped_column(String(LEGACY_ID_LENGTH), nullable=False)
    code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    folder: Mapped[str | None] = mapped_column(String(255), nullable=True)
    grade_level: Mapped[str | None] = mapped_column(String(255), nullable=True)
    icon: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Activity {self.legacy_id}: {self.name} ({self.code})>"
