"""Source adapters: schema-validating readers for legacy export documents."""

from migration_ingestion.adapters.base import ReadResult, SourceAdapter, SourceProbe
from migration_ingestion.adapters.xml_adapter import XmlSchemaSourceAdapter

__all__ = [
    "ReadResult",
    "SourceAdapter",
    "SourceProbe",
    "XmlSchemaSourceAdapter",
]
