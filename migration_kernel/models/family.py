"""
Module: migration_kernel.models.family
Responsibility: ORM persistence for households synthesized from the legacy
    free-text family field, and the student <-> family link table.

Invariants enforced:
    - family_name is unique; grouping is by exact string equality.
    - A student is linked to a family at most once.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import TrackedBase, UUIDString


class RelationshipType(str, Enum):
    PARENT = "parent"
    GUARDIAN = "guardian"
    OTHER = "other"


class Family(TrackedBase):
    """Household grouping of students sharing the same legacy family string."""

    __tablename__ = "families"

    __table_args__ = (UniqueConstraint("family_name", name="uq_family_name"),)

    family_name: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Family {self.family_name}>"


class StudentFamily(TrackedBase):
    """Link row between a student and a family."""

    __tablename__ = "student_families"

    __table_args__ = (
        UniqueConstraint("student_id", "family_id", name="uq_student_family"),
    )

    student_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("students.id"), nullable=False
    )
    family_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("families.id"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RelationshipType.PARENT.value
    )
