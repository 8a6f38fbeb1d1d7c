"""
Reference resolver: natural keys (names, codes) -> persisted identifiers.

Lookup tables are built once per kind with one query each, after the kind
they describe has been written; every resolution is then a dict lookup.
An unresolved reference never rejects a record: the foreign key stays None
and an ``UnresolvedReference`` is returned.  Whether the entity is still
insertable is the executor's decision.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_kernel.models import ClassGroup, School
from migration_ingestion.domain.mapped import MappedClassGroup, MappedStudent
from migration_ingestion.domain.types import EntityKind

_TARGET_NAMES = {
    EntityKind.SCHOOL: "School",
    EntityKind.CLASS_GROUP: "Class group",
}

@dataclass(frozen=True)
class UnresolvedReference:
    """A natural-key reference with no matching persisted entity."""

    field: str
    target: EntityKind
    natural_key: str

    @property
    def message(self) -> str:
        return f"{_TARGET_NAMES[self.target]} '{self.natural_key}' not found in database."

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class LookupTable:
    """Natural key -> id maps for one kind."""

    kind: EntityKind
    by_legacy_id: dict[str, UUID] = field(default_factory=dict)
    by_name: dict[str, UUID] = field(default_factory=dict)
    default_price: dict[UUID, Decimal] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.by_legacy_id)

    @classmethod
    def for_schools(cls, session: Session) -> LookupTable:
        table = cls(EntityKind.SCHOOL)
        rows = session.execute(
            select(School.id, School.legacy_id, School.name, School.short_name, School.price)
        )
        for school_id, legacy_id, name, short_name, price in rows:
            table.by_legacy_id[legacy_id] = school_id
            # Description wins over short name when both collide.
            if short_name:
                table.by_name.setdefault(short_name, school_id)
            table.by_name[name] = school_id
            if price is not None:
                table.default_price[school_id] = price
        return table

    @classmethod
    def for_class_groups(cls, session: Session) -> LookupTable:
        table = cls(EntityKind.CLASS_GROUP)
        for group_id, legacy_id in session.execute(select(ClassGroup.id, ClassGroup.legacy_id)):
            table.by_legacy_id[legacy_id] = group_id
        return table


class ReferenceResolver:
    """Fills foreign keys on mapped entities from pre-built lookup tables."""

    def __init__(
        self,
        schools: LookupTable | None = None,
        class_groups: LookupTable | None = None,
    ) -> None:
        self.schools = schools or LookupTable(EntityKind.SCHOOL)
        self.class_groups = class_groups or LookupTable(EntityKind.CLASS_GROUP)

    def resolve_class_group(
        self, group: MappedClassGroup,
    ) -> tuple[MappedClassGroup, list[UnresolvedReference]]:
        school_id = self.schools.by_legacy_id.get(group.school_legacy_id)
        if school_id is None:
            return group, [UnresolvedReference("school_id", EntityKind.SCHOOL, group.school_legacy_id)]
        return dataclasses.replace(group, school_id=school_id), []

    def resolve_student(
        self, student: MappedStudent,
    ) -> tuple[MappedStudent, list[UnresolvedReference]]:
        unresolved: list[UnresolvedReference] = []
        school_id = None
        if student.school_name:
            school_id = self.schools.by_name.get(student.school_name)
            if school_id is None:
                unresolved.append(
                    UnresolvedReference("school_id", EntityKind.SCHOOL, student.school_name)
                )
        class_group_id = None
        if student.class_group_code:
            class_group_id = self.class_groups.by_legacy_id.get(student.class_group_code)
            if class_group_id is None:
                unresolved.append(
                    UnresolvedReference("class_group_id", EntityKind.CLASS_GROUP, student.class_group_code)
                )
        resolved = dataclasses.replace(student, school_id=school_id, class_group_id=class_group_id)
        return resolved, unresolved

    def school_default_price(self, school_id: UUID | None) -> Decimal | None:
        if school_id is None:
            return None
        return self.schools.default_price.get(school_id)
