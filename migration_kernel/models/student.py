"""
Module: migration_kernel.models.student
Responsibility: ORM persistence for students (the legacy "Children" rows).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - legacy_id (the legacy Reference) is unique.
    - school_id and class_group_id are nullable: an unresolved reference
      leaves the foreign key empty rather than pointing at a missing row.

Audit relevance:
    school_name and class_group_code keep the raw natural keys next to the
    resolved foreign keys so an unresolved reference can be fixed by hand
    and the row re-imported with the Update policy.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import LEGACY_ID_LENGTH, TrackedBase, UUIDString


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNSPECIFIED = "unspecified"


class StudentStatus(str, Enum):
    """Enrolment status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    WAITING_LIST = "waiting_list"


class Student(TrackedBase):
    """A child enrolled through a school."""

    __tablename__ = "students"

    __table_args__ = (
        UniqueConstraint("legacy_id", name="uq_student_legacy_id"),
        Index("idx_student_school", "school_id"),
        Index("idx_student_class_group", "class_group_id"),
        Index("idx_student_family_name", "family_name"),
    )

    legacy_id: Mapped[str] = mapped_column(String(LEGACY_ID_LENGTH), nullable=False)
    reference: Mapped[str] = mapped_column(String(LEGACY_ID_LENGTH), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(nullable=True)
    gender: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Gender.UNSPECIFIED.value
    )
    language: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Account holder
    account_person_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_surname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_id_number: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_cellphone: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_office: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_home: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_person_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    relation: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Parents
    mother_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mother_surname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mother_office: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mother_cell: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mother_home: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mother_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_surname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_office: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_cell: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_home: Mapped[str | None] = mapped_column(String(255), nullable=True)
    father_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    address1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # References (natural key + resolved id)
    school_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    school_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("schools.id"), nullable=True
    )
    class_group_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    class_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("class_groups.id"), nullable=True
    )

    grade: Mapped[str | None] = mapped_column(String(255), nullable=True)
    teacher: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attending_at: Mapped[str | None] = mapped_column(String(255), nullable=True)
    aftercare: Mapped[str | None] = mapped_column(String(255), nullable=True)
    terms: Mapped[str | None] = mapped_column(String(255), nullable=True)
    seat: Mapped[str | None] = mapped_column(String(255), nullable=True)
    truck: Mapped[str | None] = mapped_column(String(255), nullable=True)
    family_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    financial_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_classes: Mapped[date | None] = mapped_column(nullable=True)
    tshirt_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tshirt_size1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tshirt_size2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    general_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    print_id_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    photo_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StudentStatus.ACTIVE.value
    )
    legacy_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Student {self.reference}: {self.first_name} {self.last_name}>"
