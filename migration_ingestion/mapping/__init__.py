"""
Field mappers: raw legacy records -> typed, normalized entities.

``default_mapper_registry()`` returns one mapper per primary entity kind.
"""

from __future__ import annotations

from migration_config.schema import MappingSettings
from migration_ingestion.domain.types import PRIMARY_KINDS, EntityKind
from migration_ingestion.mapping.activity import ActivityMapper
from migration_ingestion.mapping.base import FieldMapper
from migration_ingestion.mapping.class_group import ClassGroupMapper
from migration_ingestion.mapping.school import SchoolMapper
from migration_ingestion.mapping.student import StudentMapper


def default_mapper_registry(settings: MappingSettings) -> dict[EntityKind, FieldMapper]:
    """One mapper per primary kind; raises if a primary kind has no mapper."""
    registry: dict[EntityKind, FieldMapper] = {
        EntityKind.SCHOOL: SchoolMapper(settings),
        EntityKind.CLASS_GROUP: ClassGroupMapper(settings),
        EntityKind.ACTIVITY: ActivityMapper(settings),
        EntityKind.STUDENT: StudentMapper(settings),
    }
    missing = set(PRIMARY_KINDS) - set(registry)
    if missing:
        raise ValueError(f"No mapper registered for: {sorted(k.value for k in missing)}")
    return registry


__all__ = [
    "ActivityMapper",
    "ClassGroupMapper",
    "FieldMapper",
    "SchoolMapper",
    "StudentMapper",
    "default_mapper_registry",
]
