"""Reference resolution between entity kinds."""

from migration_ingestion.resolution.resolver import (
    LookupTable,
    ReferenceResolver,
    UnresolvedReference,
)

__all__ = ["LookupTable", "ReferenceResolver", "UnresolvedReference"]
