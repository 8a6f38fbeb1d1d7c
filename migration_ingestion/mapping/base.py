"""
Field mapper protocol.

A mapper turns one RawRecord of its kind into a MappingResult.  Mappers are
pure: no store access, no reference resolution (see
``migration_ingestion.resolution``).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from migration_ingestion.domain.mapped import MappingResult
from migration_ingestion.domain.types import EntityKind, RawRecord


@runtime_checkable
class FieldMapper(Protocol):
    """Protocol for per-kind field mappers."""

    @property
    def kind(self) -> EntityKind:
        ...

    def map(self, record: RawRecord) -> MappingResult[Any]:
        """Map one raw record. Never raises for bad field values."""
        ...
