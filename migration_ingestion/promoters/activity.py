"""Activity promoter: MappedActivity -> Activity row. Natural key: legacy_id."""

from __future__ import annotations

from migration_kernel.models import Activity
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.promoters.base import ColumnPromoter


class ActivityPromoter(ColumnPromoter):
    model = Activity
    entity_type = EntityKind.ACTIVITY
