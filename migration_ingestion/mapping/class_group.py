"""Class group mapper: legacy ``Class Group`` rows -> MappedClassGroup."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from migration_config.schema import MappingSettings
from migration_kernel.db.base import LEGACY_ID_LENGTH
from migration_ingestion.domain.aliases import WEEKDAY_ALIASES
from migration_ingestion.domain.mapped import MappedClassGroup, MappingIssue, MappingResult
from migration_ingestion.domain.types import EntityKind, RawRecord
from migration_ingestion.mapping.engine import RecordMapper, parse_bool


class ClassGroupMapper:
    """
    Maps one legacy class-group row.

    Rows flagged ``Import = false`` are SKIPPED (a missing flag imports the
    row).  Rows without a code or a school id are REJECTED.  Bad times fall
    back to the configured defaults; an end time not after the start time
    becomes start + 1 hour.
    """

    kind = EntityKind.CLASS_GROUP

    def __init__(self, settings: MappingSettings) -> None:
        self._settings = settings

    def map(self, record: RawRecord) -> MappingResult[MappedClassGroup]:
        m = RecordMapper(record, self._settings)
        code = m.text("Class Group", max_length=LEGACY_ID_LENGTH)

        if parse_bool(m.raw("Import")) is False:
            return MappingResult.skipped(
                MappingIssue("Import", "Import flag is off.", m.raw("Import")),
                code or "",
            )
        if code is None:
            return MappingResult.rejected(
                MappingIssue("Class Group", "Class Group code is missing."), m.warnings,
            )

        school_id = m.integer("School Id")
        if not school_id:
            return MappingResult.rejected(
                MappingIssue("School Id", "School Id is missing or zero.", m.raw("School Id")),
                m.warnings,
                code,
            )

        start = m.time("Start Time", self._settings.default_class_start)
        end = m.time("End Time", self._settings.default_class_end)
        if end <= start:
            adjusted = (datetime.combine(date.min, start) + timedelta(hours=1)).time()
            if adjusted <= start:
                adjusted = time(23, 59)
            m.warn(
                "End Time",
                f"End Time {end.strftime('%H:%M')} is not after Start Time "
                f"{start.strftime('%H:%M')}. Using {adjusted.strftime('%H:%M')}.",
                original=end.isoformat(),
                mapped=adjusted.isoformat(),
            )
            end = adjusted

        sequence = m.integer("Sequence")
        if sequence is None or sequence < 1:
            sequence = 1

        group = MappedClassGroup(
            legacy_id=code,
            name=m.text("Description") or code,
            school_legacy_id=str(school_id),
            start_time=start,
            end_time=end,
            day_of_week=m.alias("DayId", WEEKDAY_ALIASES).value,
            sequence=sequence,
            truck_day=m.text("DayTruck"),
            description=m.long_text("Description"),
            evaluate=m.flag("Evaluate"),
            notes=m.long_text("Note"),
            group_message=m.text("GroupMessage"),
            send_certificates=m.flag("Send Certificates"),
            money_message=m.text("Money Message"),
            ixl=m.text("IXL"),
        )
        return MappingResult.mapped(group, m.warnings, code)
