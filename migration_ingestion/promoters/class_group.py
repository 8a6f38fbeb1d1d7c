"""
Class group promoter: MappedClassGroup -> ClassGroup row.

Natural key: legacy_id (the legacy class-group code).  ``school_id`` must
already be resolved; the execution service fails the record otherwise.
"""

from __future__ import annotations

from migration_kernel.models import ClassGroup
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.promoters.base import ColumnPromoter


class ClassGroupPromoter(ColumnPromoter):
    model = ClassGroup
    entity_type = EntityKind.CLASS_GROUP
