"""School promoter: MappedSchool -> School row. Natural key: legacy_id."""

from __future__ import annotations

from migration_kernel.models import School
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.promoters.base import ColumnPromoter


class SchoolPromoter(ColumnPromoter):
    model = School
    entity_type = EntityKind.SCHOOL
