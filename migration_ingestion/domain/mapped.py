"""
migration_ingestion.domain.mapped -- Typed, normalized entities produced by
the field mappers, and the mapping result envelope.  ZERO I/O.

Field names match the ORM column names of the target store so promoters can
write ``entity.to_columns()`` directly.  Natural keys that are not columns
(for example a class group's legacy school id) are listed in
``NON_COLUMN_FIELDS`` and consumed by the reference resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar
from uuid import UUID


# =============================================================================
# Warnings and errors
# =============================================================================


@dataclass(frozen=True)
class MappingWarning:
    """Lossy but continuable transform (truncation, unknown alias, bad optional value)."""

    field: str
    message: str
    original: str | None = None
    mapped: str | None = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class MappingIssue:
    """Reason a record was rejected or skipped."""

    field: str
    message: str
    original: str | None = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class MappingStatus(str, Enum):
    MAPPED = "mapped"  # entity present, possibly with warnings
    REJECTED = "rejected"  # mandatory identifying field absent
    SKIPPED = "skipped"  # record deliberately excluded by the source (e.g. Import=0)


T = TypeVar("T")


@dataclass(frozen=True)
class MappingResult(Generic[T]):
    """One raw record's mapping outcome."""

    status: MappingStatus
    entity: T | None = None
    warnings: tuple[MappingWarning, ...] = ()
    errors: tuple[MappingIssue, ...] = ()
    natural_key: str = ""

    @classmethod
    def mapped(cls, entity: T, warnings: list[MappingWarning], natural_key: str) -> MappingResult[T]:
        return cls(MappingStatus.MAPPED, entity, tuple(warnings), (), natural_key)

    @classmethod
    def rejected(
        cls, issue: MappingIssue, warnings: list[MappingWarning], natural_key: str = ""
    ) -> MappingResult[T]:
        return cls(MappingStatus.REJECTED, None, tuple(warnings), (issue,), natural_key)

    @classmethod
    def skipped(cls, issue: MappingIssue, natural_key: str = "") -> MappingResult[T]:
        return cls(MappingStatus.SKIPPED, None, (), (issue,), natural_key)

    @property
    def is_mapped(self) -> bool:
        return self.status is MappingStatus.MAPPED


# =============================================================================
# Mapped entities
# =============================================================================


class _Columns:
    """Mixin: expose dataclass fields as ORM column values."""

    NON_COLUMN_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def to_columns(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)  # type: ignore[arg-type]
            if f.name not in self.NON_COLUMN_FIELDS
        }


@dataclass(frozen=True)
class MappedSchool(_Columns):
    legacy_id: str
    name: str
    short_name: str | None = None
    truck_id: int | None = None
    visit_sequence: str | None = None
    visit_day: str | None = None
    price: Decimal | None = None
    fee_description: str | None = None
    formula: Decimal | None = None
    money_message: str | None = None
    contact_person: str | None = None
    contact_cell: str | None = None
    email: str | None = None
    telephone: str | None = None
    fax: str | None = None
    headmaster: str | None = None
    headmaster_cell: str | None = None
    address: str | None = None
    address2: str | None = None
    language: str | None = None
    web_page: str | None = None
    web_page_link: str | None = None
    afterschool1_name: str | None = None
    afterschool1_contact: str | None = None
    afterschool2_name: str | None = None
    afterschool2_contact: str | None = None
    safe_notes: str | None = None
    circulars_email: str | None = None
    print_enabled: bool = False
    import_enabled: bool = False


@dataclass(frozen=True)
class MappedClassGroup(_Columns):
    NON_COLUMN_FIELDS: ClassVar[frozenset[str]] = frozenset({"school_legacy_id"})

    legacy_id: str
    name: str
    school_legacy_id: str
    start_time: time
    end_time: time
    day_of_week: str
    sequence: int = 1
    school_id: UUID | None = None  # set by the resolver
    truck_day: str | None = None
    description: str | None = None
    evaluate: bool = False
    notes: str | None = None
    group_message: str | None = None
    send_certificates: bool = False
    money_message: str | None = None
    ixl: str | None = None


@dataclass(frozen=True)
class MappedActivity(_Columns):
    legacy_id: str
    code: str | None = None
    name: str | None = None
    description: str | None = None
    folder: str | None = None
    grade_level: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class ContactSource:
    """One candidate household contact (account person, mother or father)."""

    role: str
    name: str | None
    phone: str | None
    email: str | None


def _first_non_empty(values: Any) -> str | None:
    for value in values:
        if value:
            return value
    return None


@dataclass(frozen=True)
class FamilyInfo:
    """
    Household details extracted from one student row.

    ``contacts`` is ordered highest priority first; each contact field takes
    the first non-empty value in that order.
    """

    family_name: str
    contacts: tuple[ContactSource, ...] = ()
    address: str | None = None

    @property
    def primary_contact_name(self) -> str | None:
        return _first_non_empty(c.name for c in self.contacts)

    @property
    def phone(self) -> str | None:
        return _first_non_empty(c.phone for c in self.contacts)

    @property
    def email(self) -> str | None:
        return _first_non_empty(c.email for c in self.contacts)


@dataclass(frozen=True)
class BillingSource:
    """Free-text legacy billing fields, parsed later by the billing synthesizer."""

    charge: str | None = None
    deposit: str | None = None
    pay_date: str | None = None
    financial_code: str | None = None
    tshirt_money1: str | None = None
    tshirt_money_date1: str | None = None
    tshirt_money2: str | None = None
    tshirt_money_date2: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.charge, self.deposit, self.tshirt_money1, self.tshirt_money2))


@dataclass(frozen=True)
class MappedStudent(_Columns):
    NON_COLUMN_FIELDS: ClassVar[frozenset[str]] = frozenset({"family", "billing"})

    legacy_id: str
    reference: str
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: str = "unspecified"
    language: str | None = None
    account_person_name: str | None = None
    account_person_surname: str | None = None
    account_person_id_number: str | None = None
    account_person_cellphone: str | None = None
    account_person_office: str | None = None
    account_person_home: str | None = None
    account_person_email: str | None = None
    relation: str | None = None
    mother_name: str | None = None
    mother_surname: str | None = None
    mother_office: str | None = None
    mother_cell: str | None = None
    mother_home: str | None = None
    mother_email: str | None = None
    father_name: str | None = None
    father_surname: str | None = None
    father_office: str | None = None
    father_cell: str | None = None
    father_home: str | None = None
    father_email: str | None = None
    address1: str | None = None
    address2: str | None = None
    postal_code: str | None = None
    school_name: str | None = None
    school_id: UUID | None = None  # set by the resolver
    class_group_code: str | None = None
    class_group_id: UUID | None = None  # set by the resolver
    grade: str | None = None
    teacher: str | None = None
    attending_at: str | None = None
    aftercare: str | None = None
    terms: str | None = None
    seat: str | None = None
    truck: str | None = None
    family_name: str | None = None
    financial_code: str | None = None
    start_classes: date | None = None
    tshirt_code: str | None = None
    tshirt_size1: str | None = None
    tshirt_size2: str | None = None
    general_note: str | None = None
    print_id_card: bool = False
    photo_url: str | None = None
    status: str = "active"
    legacy_status: str | None = None
    family: FamilyInfo | None = None
    billing: BillingSource = field(default_factory=BillingSource)
