"""
EntityPromoter protocol, PromoteResult and the column-copying promoter used
by the primary kinds.

Promoters write mapped entities to live ORM rows.  They never decide policy:
the execution service looks up the existing row, applies the conflict
policy, and wraps every call in a SAVEPOINT.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_kernel.db.base import TrackedBase
from migration_ingestion.domain.types import EntityKind, RecordOutcome


@dataclass(frozen=True)
class FieldDiff:
    """One column whose value an update changed."""

    field_name: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class PromoteResult:
    """Result of writing a single record."""

    outcome: RecordOutcome
    entity_id: UUID | None = None
    error: str | None = None
    changes: tuple[FieldDiff, ...] = ()

    @property
    def success(self) -> bool:
        return self.outcome is not RecordOutcome.FAILED


class EntityPromoter(Protocol):
    """Protocol for writing one primary kind's mapped entities."""

    @property
    def entity_type(self) -> EntityKind:
        ...

    def find_existing(self, legacy_id: str, session: Session) -> Any | None:
        """Live row with this legacy id, or None."""
        ...

    def create(self, entity: Any, session: Session, actor_id: UUID) -> UUID:
        """Insert a new row and flush. Runs inside a SAVEPOINT."""
        ...

    def update(self, existing: Any, entity: Any, session: Session, actor_id: UUID) -> tuple[FieldDiff, ...]:
        """Overwrite mutable columns in place; return what changed."""
        ...


class ColumnPromoter:
    """
    Promoter for mapped entities whose ``to_columns()`` line up with the
    model's columns and whose natural key is ``legacy_id``.
    """

    model: ClassVar[type[TrackedBase]]
    entity_type: ClassVar[EntityKind]

    # Columns an update never overwrites.
    immutable_columns: ClassVar[frozenset[str]] = frozenset({"legacy_id"})

    def find_existing(self, legacy_id: str, session: Session) -> Any | None:
        stmt = select(self.model).where(self.model.legacy_id == legacy_id)  # type: ignore[attr-defined]
        return session.scalars(stmt).first()

    def create(self, entity: Any, session: Session, actor_id: UUID) -> UUID:
        row = self.model(**entity.to_columns(), created_by_id=actor_id)
        session.add(row)
        session.flush()
        return row.id

    def update(self, existing: Any, entity: Any, session: Session, actor_id: UUID) -> tuple[FieldDiff, ...]:
        changes: list[FieldDiff] = []
        for name, value in entity.to_columns().items():
            if name in self.immutable_columns:
                continue
            current = getattr(existing, name)
            if current == value:
                continue
            changes.append(FieldDiff(name, current, value))
            setattr(existing, name, value)
        if changes:
            existing.updated_by_id = actor_id
            session.flush()
        return tuple(changes)
