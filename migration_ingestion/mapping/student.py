"""
Student mapper: legacy ``Children`` rows -> MappedStudent.

Besides the student itself, the mapper carries two things forward for the
synthesizers: the household contact details (``FamilyInfo``) and the raw
billing strings (``BillingSource``).  School and class group stay as natural
keys until the resolver runs.
"""

from __future__ import annotations

from migration_config.schema import MappingSettings
from migration_kernel.db.base import LEGACY_ID_LENGTH
from migration_ingestion.domain.aliases import GENDER_ALIASES, STUDENT_STATUS_ALIASES
from migration_ingestion.domain.mapped import (
    BillingSource,
    ContactSource,
    FamilyInfo,
    MappedStudent,
    MappingIssue,
    MappingResult,
)
from migration_ingestion.domain.types import EntityKind, RawRecord
from migration_ingestion.mapping.engine import RecordMapper


def _full_name(first: str | None, last: str | None) -> str | None:
    return " ".join(part for part in (first, last) if part) or None


# Priority order for household contact details.
_CONTACT_ROLES = (
    ("account_person", "Account Person Name", "Account Person Surname",
     "Account Person Cellphone", "Account Person Email"),
    ("mother", "Mother Name", "Mother Surname", "Mother Cell", "Mother Email"),
    ("father", "Father Name", "Father Surname", "Father Cell", "Father Email"),
)


def extract_family_info(record: RawRecord) -> FamilyInfo | None:
    """
    Household details for a row with a non-empty ``Family`` value.

    Contacts are ordered account person, mother, father; the address joins
    Address1, Address2 and the postal code.
    """
    family_name = record.get("Family")
    if not family_name:
        return None

    contacts = tuple(
        ContactSource(
            role=role,
            name=_full_name(record.get(first), record.get(last)),
            phone=record.get(phone),
            email=record.get(email),
        )
        for role, first, last, phone, email in _CONTACT_ROLES
    )
    address_parts = [
        part for part in (record.get("Address1"), record.get("Address2"), record.get("Code")) if part
    ]
    return FamilyInfo(
        family_name=family_name,
        contacts=contacts,
        address=", ".join(address_parts) or None,
    )


class StudentMapper:
    kind = EntityKind.STUDENT

    def __init__(self, settings: MappingSettings) -> None:
        self._settings = settings

    def map(self, record: RawRecord) -> MappingResult[MappedStudent]:
        m = RecordMapper(record, self._settings)
        reference = m.text("Reference", max_length=LEGACY_ID_LENGTH)
        if reference is None:
            return MappingResult.rejected(
                MappingIssue("Reference", "Student has no Reference."), m.warnings,
            )

        status_raw = m.raw("Status")
        student = MappedStudent(
            legacy_id=reference,
            reference=reference,
            first_name=m.text("Child Name"),
            last_name=m.text("Child Surname"),
            date_of_birth=m.date("Child birthdate"),
            gender=m.alias("Sex", GENDER_ALIASES).value,
            language=m.text("Language"),
            account_person_name=m.text("Account Person Name"),
            account_person_surname=m.text("Account Person Surname"),
            account_person_id_number=m.text("Account Person Idnumber"),
            account_person_cellphone=m.text("Account Person Cellphone"),
            account_person_office=m.text("Account Person Office"),
            account_person_home=m.text("Account Person Home"),
            account_person_email=m.text("Account Person Email"),
            relation=m.text("Relation"),
            mother_name=m.text("Mother Name"),
            mother_surname=m.text("Mother Surname"),
            mother_office=m.text("Mother Office"),
            mother_cell=m.text("Mother Cell"),
            mother_home=m.text("Mother Home"),
            mother_email=m.text("Mother Email"),
            father_name=m.text("Father Name"),
            father_surname=m.text("Father Surname"),
            father_office=m.text("Father Office"),
            father_cell=m.text("Father Cell"),
            father_home=m.text("Father Home"),
            father_email=m.text("Father Email"),
            address1=m.text("Address1"),
            address2=m.text("Address2"),
            postal_code=m.text("Code"),
            school_name=m.text("School Name"),
            class_group_code=m.text("Class Group", max_length=LEGACY_ID_LENGTH),
            grade=m.text("Grade"),
            teacher=m.text("Teacher"),
            attending_at=m.text("Attending KCOW at"),
            aftercare=m.text("Aftercare"),
            terms=m.text("Terms"),
            seat=m.text("Seat"),
            truck=m.text("Truck"),
            family_name=m.text("Family"),
            financial_code=m.text("Financial Code"),
            start_classes=m.date("Start Classes"),
            tshirt_code=m.text("Tshirt Code"),
            tshirt_size1=m.text("TshirtSize1"),
            tshirt_size2=m.text("TshirtSize2"),
            general_note=m.long_text("General Note"),
            print_id_card=m.flag("Print Id Card"),
            photo_url=m.text("Photo"),
            status=m.alias("Status", STUDENT_STATUS_ALIASES).value,
            legacy_status=status_raw,
            family=extract_family_info(record),
            billing=BillingSource(
                charge=m.raw("Charge"),
                deposit=m.raw("Deposit"),
                pay_date=m.raw("PayDate"),
                financial_code=m.raw("Financial Code"),
                tshirt_money1=m.raw("Tshirt Money 1"),
                tshirt_money_date1=m.raw("Tshirt MoneyDate 1"),
                tshirt_money2=m.raw("Tshirt Money 2"),
                tshirt_money_date2=m.raw("Tshirt MoneyDate 2"),
            ),
        )
        return MappingResult.mapped(student, m.warnings, reference)
