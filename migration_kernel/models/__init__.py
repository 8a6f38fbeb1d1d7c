"""ORM models of the target store written by the migration pipeline."""

from migration_kernel.models.activity import Activity
from migration_kernel.models.audit import FieldChange, ImportAuditLog, ImportRunStatus
from migration_kernel.models.billing import (
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentPurpose,
)
from migration_kernel.models.class_group import ClassGroup, Weekday
from migration_kernel.models.family import Family, RelationshipType, StudentFamily
from migration_kernel.models.school import School
from migration_kernel.models.student import Gender, Student, StudentStatus

__all__ = [
    "Activity",
    "ClassGroup",
    "Family",
    "FieldChange",
    "Gender",
    "ImportAuditLog",
    "ImportRunStatus",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentPurpose",
    "RelationshipType",
    "School",
    "Student",
    "StudentFamily",
    "StudentStatus",
    "Weekday",
]
