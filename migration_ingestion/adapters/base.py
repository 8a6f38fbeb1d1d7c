"""
Source adapter protocol, probe DTO and read result.

Contract:
    SourceAdapter.read() returns a ReadResult whose records are a lazy,
    one-shot sequence of RawRecords and whose errors list grows while the
    records are consumed.
    SourceAdapter.probe() returns a quick snapshot: record count, field
    names, sample records.

Architecture: migration_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Protocol, runtime_checkable

from migration_config.schema import SourceLayout
from migration_kernel.domain.dtos import ValidationError
from migration_ingestion.domain.types import RawRecord


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading one schema-backed document into raw records."""

    def read(self, document_path: Path, schema_path: Path, layout: SourceLayout) -> "ReadResult":
        """Parse and validate; never raises for malformed content."""
        ...

    def probe(
        self, document_path: Path, schema_path: Path, layout: SourceLayout, sample_size: int = 5,
    ) -> "SourceProbe":
        """Quick probe: record count, detected field names, sample records."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a source document (record count, fields, first N records)."""

    record_count: int
    field_names: tuple[str, ...]
    sample_records: tuple[RawRecord, ...]  # First N records; do not mutate
    error_count: int = 0


class ReadResult:
    """
    Lazy records plus the validation errors found so far.

    ``records`` is a generator: iterate it once.  Errors raised by individual
    records (missing required numbers) are appended to ``errors`` as those
    records are produced, so inspect ``errors`` after consuming ``records``.
    """

    def __init__(self, records: Iterator[RawRecord], errors: list[ValidationError]) -> None:
        self.records = records
        self.errors = errors

    @classmethod
    def failed(cls, error: ValidationError) -> ReadResult:
        """Zero records and a single error (structural failure)."""
        return cls(iter(()), [error])

    def drain(self) -> list[RawRecord]:
        return list(self.records)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
