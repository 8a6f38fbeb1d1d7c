"""
Module: migration_kernel.models.school
Responsibility: ORM persistence for schools, the organizations that host
    class groups and own the default tuition price used by billing synthesis.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - legacy_id is unique (uq_school_legacy_id).  It is the natural key the
      conflict policies match on across reruns.

Failure modes:
    - IntegrityError on duplicate legacy_id.  The school promoter turns this
      into a conflict instead of a failure.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import LEGACY_ID_LENGTH, TrackedBase


class School(TrackedBase):
    """
    Organization hosting class groups.

    Guarantees:
        - legacy_id is globally unique.
        - name is never empty (the mapper falls back to the short name).
    """

    __tablename__ = "schools"

    __table_args__ = (
        UniqueConstraint("legacy_id", name="uq_school_legacy_id"),
        Index("idx_school_name", "name"),
    )

    legacy_id: Mapped[str] = mapped_column(String(LEGACY_ID_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Scheduling
    truck_id: Mapped[int | None] = mapped_column(nullable=True)
    visit_sequence: Mapped[str | None] = mapped_column(String(255), nullable=True)
    visit_day: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Tuition
    price: Mapped[Decimal | None] = mapped_column(nullable=True)
    fee_description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    formula: Mapped[Decimal | None] = mapped_column(nullable=True)
    money_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Contacts
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_cell: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telephone: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fax: Mapped[str | None] = mapped_column(String(255), nullable=True)
    headmaster: Mapped[str | None] = mapped_column(String(255), nullable=True)
    headmaster_cell: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str | None] = mapped_column(String(255), nullable=True)
    web_page: Mapped[str | None] = mapped_column(String(255), nullable=True)
    web_page_link: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Aftercare partners
    afterschool1_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    afterschool1_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    afterschool2_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    afterschool2_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)

    safe_notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    circulars_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    print_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    import_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<School {self.legacy_id}: {self.name}>"
