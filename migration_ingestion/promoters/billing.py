"""
Billing promoter: InvoiceDraft / PaymentDraft -> Invoice / Payment rows.

Natural key: ``legacy_key`` (``INV-``, ``DEP-``, ``TS1-``, ``TS2-`` +
student reference).  Billing rows are only ever created, never updated.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_kernel.models import Invoice, InvoiceStatus, Payment
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.synthesis.billing import InvoiceDraft, PaymentDraft


class BillingPromoter:
    entity_type = EntityKind.BILLING

    def find_invoice(self, legacy_key: str, session: Session) -> Invoice | None:
        return session.scalars(select(Invoice).where(Invoice.legacy_key == legacy_key)).first()

    def find_payment(self, legacy_key: str, session: Session) -> Payment | None:
        return session.scalars(select(Payment).where(Payment.legacy_key == legacy_key)).first()

    def create_invoice(self, draft: InvoiceDraft, session: Session, actor_id: UUID) -> UUID:
        invoice = Invoice(
            legacy_key=draft.legacy_key,
            student_id=draft.student_id,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            amount=draft.amount,
            status=InvoiceStatus.PENDING.value,
            description=draft.description,
            notes=draft.notes,
            created_by_id=actor_id,
        )
        session.add(invoice)
        session.flush()
        return invoice.id

    def create_payment(
        self,
        draft: PaymentDraft,
        invoice_id: UUID | None,
        session: Session,
        actor_id: UUID,
    ) -> UUID:
        payment = Payment(
            legacy_key=draft.legacy_key,
            student_id=draft.student_id,
            invoice_id=invoice_id if draft.links_invoice else None,
            payment_date=draft.payment_date,
            amount=draft.amount,
            method=draft.method.value,
            purpose=draft.purpose.value,
            receipt_number=draft.receipt_number,
            notes=draft.notes,
            created_by_id=actor_id,
        )
        session.add(payment)
        session.flush()
        return payment.id
