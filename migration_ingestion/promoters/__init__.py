"""
Promoters: write mapped and synthesized entities to the live tables.

``default_promoter_registry()`` returns one promoter per primary kind.
"""

from __future__ import annotations

from migration_ingestion.domain.types import PRIMARY_KINDS, EntityKind
from migration_ingestion.promoters.activity import ActivityPromoter
from migration_ingestion.promoters.base import (
    ColumnPromoter,
    EntityPromoter,
    FieldDiff,
    PromoteResult,
)
from migration_ingestion.promoters.billing import BillingPromoter
from migration_ingestion.promoters.class_group import ClassGroupPromoter
from migration_ingestion.promoters.family import FamilyPromoter
from migration_ingestion.promoters.school import SchoolPromoter
from migration_ingestion.promoters.student import StudentPromoter


def default_promoter_registry() -> dict[EntityKind, EntityPromoter]:
    registry: dict[EntityKind, EntityPromoter] = {
        EntityKind.SCHOOL: SchoolPromoter(),
        EntityKind.CLASS_GROUP: ClassGroupPromoter(),
        EntityKind.ACTIVITY: ActivityPromoter(),
        EntityKind.STUDENT: StudentPromoter(),
    }
    missing = set(PRIMARY_KINDS) - set(registry)
    if missing:
        raise ValueError(f"No promoter registered for: {sorted(k.value for k in missing)}")
    return registry


__all__ = [
    "ActivityPromoter",
    "BillingPromoter",
    "ClassGroupPromoter",
    "ColumnPromoter",
    "EntityPromoter",
    "FamilyPromoter",
    "FieldDiff",
    "PromoteResult",
    "SchoolPromoter",
    "StudentPromoter",
    "default_promoter_registry",
]
