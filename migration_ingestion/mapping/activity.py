"""Activity mapper: legacy ``Activity`` rows -> MappedActivity."""

from __future__ import annotations

from migration_config.schema import MappingSettings
from migration_ingestion.domain.mapped import MappedActivity, MappingIssue, MappingResult
from migration_ingestion.domain.types import EntityKind, RawRecord
from migration_ingestion.mapping.engine import RecordMapper

# Base64 prefixes of JPEG and PNG payloads. Anything else is usually an
# OLE-wrapped Access picture.
_IMAGE_SIGNATURES = ("/9j/", "iVBOR")


class ActivityMapper:
    kind = EntityKind.ACTIVITY

    def __init__(self, settings: MappingSettings) -> None:
        self._settings = settings

    def map(self, record: RawRecord) -> MappingResult[MappedActivity]:
        m = RecordMapper(record, self._settings)
        activity_id = m.integer("ActivityID")
        if not activity_id:
            return MappingResult.rejected(
                MappingIssue("ActivityID", "ActivityID is missing or zero.", m.raw("ActivityID")),
                m.warnings,
            )
        legacy_id = str(activity_id)

        icon = m.raw("Icon")
        if icon is not None:
            if len(icon) > self._settings.icon_max_length:
                m.warn("Icon", f"Large icon data detected ({len(icon) // 1024}KB base64).")
            if not icon.startswith(_IMAGE_SIGNATURES):
                m.warn(
                    "Icon",
                    "Icon data may contain an OLE wrapper (no JPEG/PNG signature). Verify rendering.",
                )

        activity = MappedActivity(
            legacy_id=legacy_id,
            code=m.text("Program"),
            name=m.text("ProgramName"),
            description=m.long_text("Educational Focus"),
            folder=m.text("Folder"),
            grade_level=m.text("Grade"),
            icon=icon,
        )
        return MappingResult.mapped(activity, m.warnings, legacy_id)
