"""
Module: migration_kernel.models.billing
Responsibility: ORM persistence for invoices and payments synthesized from
    the legacy charge / deposit / t-shirt money fields.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - legacy_key is unique per table (``INV-<ref>``, ``DEP-<ref>``,
      ``TS1-<ref>``, ``TS2-<ref>``) so billing artifacts are never
      duplicated by a rerun.
    - Amounts are Decimal, never float.
    - A payment's invoice_id, when set, names an invoice of the same student.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from migration_kernel.db.base import TrackedBase, UUIDString


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    EFT = "eft"
    CARD = "card"
    OTHER = "other"


class PaymentPurpose(str, Enum):
    """Which legacy slot produced the payment."""

    DEPOSIT = "deposit"
    TSHIRT_1 = "tshirt_1"
    TSHIRT_2 = "tshirt_2"


class Invoice(TrackedBase):
    """Tuition invoice for one student."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("legacy_key", name="uq_invoice_legacy_key"),
        Index("idx_invoice_student", "student_id"),
    )

    legacy_key: Mapped[str] = mapped_column(String(100), nullable=False)
    student_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("students.id"), nullable=False
    )
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.PENDING.value
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Payment(TrackedBase):
    """Payment received from a student's account holder."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("legacy_key", name="uq_payment_legacy_key"),
        Index("idx_payment_student", "student_id"),
        Index("idx_payment_receipt", "receipt_number"),
    )

    legacy_key: Mapped[str] = mapped_column(String(100), nullable=False)
    student_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("students.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True
    )
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.OTHER.value
    )
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
