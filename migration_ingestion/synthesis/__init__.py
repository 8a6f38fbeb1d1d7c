"""Derived-entity synthesis: households and billing artifacts."""

from migration_ingestion.synthesis.billing import (
    BillingArtifact,
    BillingSynthesizer,
    InvoiceDraft,
    PaymentDraft,
    ReceiptSequence,
)
from migration_ingestion.synthesis.families import FamilyGroup, FamilyMember, group_families

__all__ = [
    "BillingArtifact",
    "BillingSynthesizer",
    "FamilyGroup",
    "FamilyMember",
    "InvoiceDraft",
    "PaymentDraft",
    "ReceiptSequence",
    "group_families",
]
