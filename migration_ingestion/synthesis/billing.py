"""
Billing synthesis: invoices and payments from free-text legacy fields.

Per student the synthesizer may produce:

* one invoice from ``Charge``, falling back to the school's default price
  when the charge is absent or not positive;
* one deposit payment from ``Deposit``, linked to that invoice;
* up to two T-shirt payments from their amount/date pairs.

Every artifact has a deterministic legacy key (``INV-``, ``DEP-``, ``TS1-``,
``TS2-`` + student reference) so reruns can detect what already landed.
Unparsable amounts produce a warning and no artifact for that slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable
from uuid import UUID

from migration_config.schema import BillingSettings, MappingSettings
from migration_kernel.domain.clock import Clock
from migration_kernel.models.billing import PaymentMethod, PaymentPurpose
from migration_ingestion.domain.mapped import BillingSource, MappingWarning
from migration_ingestion.mapping.engine import parse_amount, parse_date


class ReceiptSequence:
    """
    Receipt numbers ``{prefix}-{yyyymmdd}-{n:05d}``.

    The counter belongs to one sequence instance; numbers are unique only
    within that instance's lifetime.
    """

    def __init__(self, prefix: str = "RCP-LEGACY", start: int = 1) -> None:
        self.prefix = prefix
        self._next = start

    @property
    def next_number(self) -> int:
        return self._next

    def issue(self, on: date) -> str:
        number = f"{self.prefix}-{on.strftime('%Y%m%d')}-{self._next:05d}"
        self._next += 1
        return number


@dataclass(frozen=True)
class InvoiceDraft:
    legacy_key: str
    student_id: UUID
    invoice_date: date
    due_date: date
    amount: Decimal
    description: str
    notes: str
    used_default_price: bool = False


@dataclass(frozen=True)
class PaymentDraft:
    legacy_key: str
    student_id: UUID
    payment_date: date
    amount: Decimal
    method: PaymentMethod
    purpose: PaymentPurpose
    receipt_number: str
    notes: str
    links_invoice: bool = False


@dataclass(frozen=True)
class BillingArtifact:
    """Everything synthesized for one student."""

    student_reference: str
    invoice: InvoiceDraft | None = None
    payment: PaymentDraft | None = None
    ancillary_payments: tuple[PaymentDraft, ...] = ()
    warnings: tuple[MappingWarning, ...] = ()

    @property
    def payments(self) -> tuple[PaymentDraft, ...]:
        return ((self.payment,) if self.payment else ()) + self.ancillary_payments

    @property
    def is_empty(self) -> bool:
        return self.invoice is None and not self.payments


def invoice_key(reference: str) -> str:
    return f"INV-{reference}"


_PAYMENT_KEY_PREFIX = {
    PaymentPurpose.DEPOSIT: "DEP",
    PaymentPurpose.TSHIRT_1: "TS1",
    PaymentPurpose.TSHIRT_2: "TS2",
}


def payment_key(purpose: PaymentPurpose, reference: str) -> str:
    return f"{_PAYMENT_KEY_PREFIX[purpose]}-{reference}"


class BillingSynthesizer:
    """
    Builds BillingArtifacts; owns the ReceiptSequence for its lifetime.

    ``default_price`` maps a resolved school id to that school's default
    price (None when unknown).
    """

    def __init__(
        self,
        settings: BillingSettings,
        mapping: MappingSettings,
        clock: Clock,
        default_price: Callable[[UUID | None], Decimal | None],
    ) -> None:
        self._settings = settings
        self._mapping = mapping
        self._clock = clock
        self._default_price = default_price
        self.receipts = ReceiptSequence(settings.receipt_prefix, settings.starting_receipt_number)

    def synthesize(
        self,
        student_id: UUID,
        reference: str,
        school_id: UUID | None,
        source: BillingSource,
    ) -> BillingArtifact:
        warnings: list[MappingWarning] = []
        invoice = self._invoice(student_id, reference, school_id, source, warnings)
        deposit = self._payment(
            student_id, reference, source.deposit, source.pay_date,
            PaymentPurpose.DEPOSIT, ("Deposit", "PayDate"), warnings,
            notes="Imported from legacy system (deposit payment)",
            links_invoice=invoice is not None,
        )
        ancillary = tuple(
            p for p in (
                self._payment(
                    student_id, reference, source.tshirt_money1, source.tshirt_money_date1,
                    PaymentPurpose.TSHIRT_1, ("Tshirt Money 1", "Tshirt MoneyDate 1"), warnings,
                    notes="Imported from legacy system (T-shirt payment 1)",
                ),
                self._payment(
                    student_id, reference, source.tshirt_money2, source.tshirt_money_date2,
                    PaymentPurpose.TSHIRT_2, ("Tshirt Money 2", "Tshirt MoneyDate 2"), warnings,
                    notes="Imported from legacy system (T-shirt payment 2)",
                ),
            )
            if p is not None
        )
        return BillingArtifact(
            student_reference=reference,
            invoice=invoice,
            payment=deposit,
            ancillary_payments=ancillary,
            warnings=tuple(warnings),
        )

    # -------------------------------------------------------------------------
    # Slots
    # -------------------------------------------------------------------------

    def _amount(self, value: str | None, field_name: str, warnings: list[MappingWarning]) -> Decimal | None:
        if value is None or not value.strip():
            return None
        amount = parse_amount(value, self._settings.currency_symbols, self._settings.thousands_separator)
        if amount is None:
            warnings.append(MappingWarning(
                field_name, f"Could not parse {field_name} amount: '{value}'", original=value,
            ))
        return amount

    def _date(self, value: str | None, field_name: str, warnings: list[MappingWarning]) -> date:
        parsed = parse_date(value, self._mapping.date_formats, self._mapping.fallback_date_formats)
        if parsed is None:
            already = any(w.field == field_name and w.original == value for w in warnings)
            if value and not already:
                warnings.append(MappingWarning(
                    field_name, f"Could not parse {field_name} date: '{value}'. Using today.",
                    original=value,
                ))
            return self._clock.today()
        return parsed

    def _invoice(
        self,
        student_id: UUID,
        reference: str,
        school_id: UUID | None,
        source: BillingSource,
        warnings: list[MappingWarning],
    ) -> InvoiceDraft | None:
        amount = self._amount(source.charge, "Charge", warnings)
        used_default = False
        if amount is None or amount <= 0:
            fallback = self._default_price(school_id)
            if fallback is not None and fallback > 0:
                amount, used_default = fallback, True
        if amount is None or amount <= 0:
            return None

        invoice_date = self._date(source.pay_date, "PayDate", warnings)
        suffix = " (school default rate)" if used_default else ""
        code = source.financial_code
        description = (
            f"Legacy tuition fees - Code: {code}{suffix}" if code else f"Legacy tuition fees{suffix}"
        )
        if code:
            notes = f"Financial Code: {code}. Imported from legacy system"
        else:
            notes = "Imported from legacy system"
        if used_default:
            notes += " (using school default rate)"

        return InvoiceDraft(
            legacy_key=invoice_key(reference),
            student_id=student_id,
            invoice_date=invoice_date,
            due_date=invoice_date + timedelta(days=self._settings.invoice_due_days),
            amount=amount,
            description=description,
            notes=notes,
            used_default_price=used_default,
        )

    def _payment(
        self,
        student_id: UUID,
        reference: str,
        amount_raw: str | None,
        date_raw: str | None,
        purpose: PaymentPurpose,
        field_names: tuple[str, str],
        warnings: list[MappingWarning],
        *,
        notes: str,
        links_invoice: bool = False,
    ) -> PaymentDraft | None:
        amount_field, date_field = field_names
        amount = self._amount(amount_raw, amount_field, warnings)
        if amount is None or amount <= 0:
            return None
        payment_date = self._date(date_raw, date_field, warnings)
        return PaymentDraft(
            legacy_key=payment_key(purpose, reference),
            student_id=student_id,
            payment_date=payment_date,
            amount=amount,
            method=PaymentMethod.OTHER,
            purpose=purpose,
            receipt_number=self.receipts.issue(payment_date),
            notes=notes,
            links_invoice=links_invoice,
        )
