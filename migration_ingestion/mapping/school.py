"""School mapper: legacy ``School`` rows -> MappedSchool."""

from __future__ import annotations

from migration_config.schema import MappingSettings
from migration_ingestion.domain.mapped import MappedSchool, MappingIssue, MappingResult
from migration_ingestion.domain.types import EntityKind, RawRecord
from migration_ingestion.mapping.engine import RecordMapper


class SchoolMapper:
    """Maps one legacy school row; rejects rows without a School Id."""

    kind = EntityKind.SCHOOL

    def __init__(self, settings: MappingSettings) -> None:
        self._settings = settings

    def map(self, record: RawRecord) -> MappingResult[MappedSchool]:
        m = RecordMapper(record, self._settings)
        school_id = m.integer("School Id")
        if not school_id:
            return MappingResult.rejected(
                MappingIssue("School Id", "School Id is missing or zero.", m.raw("School Id")),
                m.warnings,
            )
        legacy_id = str(school_id)

        short_name = m.text("Short School")
        name = m.text("School Description") or short_name
        if name is None:
            m.warn("School Description", f"School {legacy_id} is missing a description and short name.")
            name = f"School {legacy_id}"

        school = MappedSchool(
            legacy_id=legacy_id,
            name=name,
            short_name=short_name,
            truck_id=m.integer("Trok", minimum=0, maximum=255),
            visit_sequence=m.text("Sequence"),
            visit_day=m.text("Day"),
            price=m.decimal("Price"),
            fee_description=m.text("F Descr"),
            formula=m.decimal("Formula"),
            money_message=m.long_text("MoneyMessage"),
            contact_person=m.text("ContactPerson"),
            contact_cell=m.text("ContactCell"),
            email=m.text("E-mail adress"),
            telephone=m.text("Telephone"),
            fax=m.text("Fax"),
            headmaster=m.text("Headmaster"),
            headmaster_cell=m.text("HeadmasterCell"),
            address=m.text("Address1"),
            address2=m.text("Address2"),
            language=m.text("Taal"),
            web_page=m.text("web page"),
            web_page_link=m.text("KcowWebPageLink"),
            afterschool1_name=m.text("Naskool1 Name"),
            afterschool1_contact=m.text("Naskool1 Contact"),
            afterschool2_name=m.text("Naskool2 Name"),
            afterschool2_contact=m.text("Naskool2 Contact"),
            safe_notes=m.text("Kluis"),
            circulars_email=m.text("omsendbriewe"),
            print_enabled=m.flag("Print"),
            import_enabled=m.flag("Import"),
        )
        return MappingResult.mapped(school, m.warnings, legacy_id)
