"""
Student promoter: MappedStudent -> Student row.

Natural key: legacy_id (the legacy Reference).  ``reference`` mirrors the key
and is never overwritten by an update.
"""

from __future__ import annotations

from migration_kernel.models import Student
from migration_ingestion.domain.types import EntityKind
from migration_ingestion.promoters.base import ColumnPromoter


class StudentPromoter(ColumnPromoter):
    model = Student
    entity_type = EntityKind.STUDENT
    immutable_columns = frozenset({"legacy_id", "reference"})
