"""
Import service: locate -> read/validate -> map.

Orchestrates the source adapter and the field mappers.  It never writes to
the store: ``parse()`` and ``preview()`` are complete dry runs, and
``ImportExecutionService`` calls ``locate()``, ``read_all()`` and
``map_all()`` between its own state transitions.
Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from migration_config.schema import ImportSettings
from migration_kernel.domain.clock import Clock, SystemClock
from migration_kernel.domain.dtos import ValidationError
from migration_kernel.exceptions import (
    InputDirectoryNotFoundError,
    SchemaDefinitionNotFoundError,
)
from migration_kernel.logging_config import LogContext, get_logger
from migration_kernel.models.audit import ImportRunStatus
from migration_ingestion.adapters.base import SourceAdapter
from migration_ingestion.adapters.xml_adapter import XmlSchemaSourceAdapter
from migration_ingestion.domain.mapped import MappingResult, MappingStatus
from migration_ingestion.domain.types import (
    PRIMARY_KINDS,
    ConflictPolicy,
    EntityImportResult,
    EntityKind,
    ImportException,
    ImportRunResult,
    RawRecord,
)
from migration_ingestion.mapping import default_mapper_registry
from migration_ingestion.mapping.base import FieldMapper

logger = get_logger("ingestion.import_service")


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceDocument:
    """One kind's document and schema under the input directory."""

    kind: EntityKind
    document_path: Path
    schema_path: Path


@dataclass
class KindRead:
    """Reader output for one kind (records already drained)."""

    document: SourceDocument
    records: list[RawRecord]
    errors: list[ValidationError]

    @property
    def kind(self) -> EntityKind:
        return self.document.kind


@dataclass
class KindMapping:
    """Mapper output for one kind, in source order."""

    kind: EntityKind
    results: list[MappingResult[Any]] = field(default_factory=list)

    @property
    def mapped(self) -> list[MappingResult[Any]]:
        return [r for r in self.results if r.status is MappingStatus.MAPPED]

    @property
    def rejected(self) -> list[MappingResult[Any]]:
        return [r for r in self.results if r.status is MappingStatus.REJECTED]

    @property
    def skipped(self) -> list[MappingResult[Any]]:
        return [r for r in self.results if r.status is MappingStatus.SKIPPED]


@dataclass(frozen=True)
class ParseReport:
    """Reader-only report: record counts and validation errors per kind."""

    input_path: Path
    reads: dict[EntityKind, KindRead]
    skipped_kinds: tuple[EntityKind, ...]

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.reads.values())

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputPath": str(self.input_path),
            "kinds": {
                kind.value: {
                    "document": str(read.document.document_path),
                    "recordCount": len(read.records),
                    "errors": [
                        {"message": e.message, "line": e.line, "column": e.column, "code": e.code}
                        for e in read.errors
                    ],
                }
                for kind, read in self.reads.items()
            },
            "skippedKinds": [k.value for k in self.skipped_kinds],
            "errorCount": self.error_count,
        }


@dataclass(frozen=True)
class PreviewReport:
    """Validation + mapping only.  ``result`` never has created/updated rows."""

    result: ImportRunResult
    record_counts: dict[EntityKind, int]
    mapped_counts: dict[EntityKind, int]
    samples: dict[EntityKind, tuple[str, ...]]
    warnings: tuple[str, ...]
    errors: tuple[str, ...]

    @property
    def total_valid(self) -> int:
        return sum(self.mapped_counts.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputPath": self.result.input_path,
            "generatedAt": self.result.completed_at.isoformat() if self.result.completed_at else None,
            "preview": True,
            "kinds": {
                kind.value: {
                    "parsed": self.record_counts[kind],
                    "mapped": self.mapped_counts[kind],
                    "samples": list(self.samples.get(kind, ())),
                }
                for kind in self.record_counts
            },
            "skippedKinds": [k.value for k in self.result.skipped_kinds],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "exceptions": [e.to_dict() for e in self.result.exceptions],
        }


# -----------------------------------------------------------------------------
# Helpers shared with the execution service
# -----------------------------------------------------------------------------


def read_error_exceptions(read: KindRead) -> list[ImportException]:
    """One ImportException per reader error (structural or schema)."""
    return [
        ImportException(
            entity_type=read.kind,
            natural_key="",
            field=error.field or "_schema",
            reason=str(error),
        )
        for error in read.errors
    ]


def mapping_exception(kind: EntityKind, result: MappingResult[Any]) -> ImportException:
    """ImportException for a REJECTED mapping result."""
    issue = result.errors[0]
    return ImportException(
        entity_type=kind,
        natural_key=result.natural_key,
        field=issue.field,
        reason=issue.message,
        original_value=issue.original,
    )


def format_warning(kind: EntityKind, natural_key: str, message: Any) -> str:
    key = f" {natural_key}" if natural_key else ""
    return f"[{kind.label}{key}] {message}"


def describe_entity(kind: EntityKind, entity: Any) -> str:
    """One-line sample description for preview output."""
    if kind is EntityKind.SCHOOL:
        return f"{entity.legacy_id}: {entity.name}"
    if kind is EntityKind.CLASS_GROUP:
        return (
            f"{entity.legacy_id}: {entity.name} (school {entity.school_legacy_id}, "
            f"{entity.day_of_week} {entity.start_time.strftime('%H:%M')}-{entity.end_time.strftime('%H:%M')})"
        )
    if kind is EntityKind.ACTIVITY:
        return f"{entity.legacy_id}: {entity.code or ''} {entity.name or ''}".rstrip()
    if kind is EntityKind.STUDENT:
        name = " ".join(p for p in (entity.first_name, entity.last_name) if p)
        return f"{entity.reference}: {name} ({entity.school_name or 'no school'})"
    raise ValueError(f"No description for derived kind {kind.value!r}")


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


class ImportService:
    """Locates, reads and maps the legacy export documents."""

    def __init__(
        self,
        settings: ImportSettings,
        adapter: SourceAdapter | None = None,
        mappers: dict[EntityKind, FieldMapper] | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings
        self._adapter = adapter or XmlSchemaSourceAdapter()
        self._mappers = mappers or default_mapper_registry(settings.mapping)
        self._clock = clock or SystemClock()

    @property
    def settings(self) -> ImportSettings:
        return self._settings

    def locate(self, input_path: Path) -> tuple[dict[EntityKind, SourceDocument], tuple[EntityKind, ...]]:
        """
        Find each kind's document and schema.

        A missing document skips that kind.  A missing input directory, or a
        document without its schema, is fatal and raises an InputError.
        """
        if not input_path.is_dir():
            raise InputDirectoryNotFoundError(str(input_path))

        documents: dict[EntityKind, SourceDocument] = {}
        skipped: list[EntityKind] = []
        for kind in PRIMARY_KINDS:
            layout = self._settings.layout[kind.value]
            folder = input_path / layout.folder
            document = folder / layout.document
            if not document.is_file() and (input_path / layout.document).is_file():
                folder, document = input_path, input_path / layout.document
            if not document.is_file():
                skipped.append(kind)
                logger.info("kind_skipped", extra={"kind": kind.value, "document": str(document)})
                continue
            schema = folder / layout.schema
            if not schema.is_file():
                raise SchemaDefinitionNotFoundError(str(document), str(schema))
            documents[kind] = SourceDocument(kind, document, schema)
        return documents, tuple(skipped)

    def read_all(self, documents: dict[EntityKind, SourceDocument]) -> dict[EntityKind, KindRead]:
        reads: dict[EntityKind, KindRead] = {}
        for kind, document in documents.items():
            layout = self._settings.layout[kind.value]
            result = self._adapter.read(document.document_path, document.schema_path, layout)
            records = result.drain()
            reads[kind] = KindRead(document, records, list(result.errors))
            logger.info(
                "document_read",
                extra={
                    "kind": kind.value,
                    "document": str(document.document_path),
                    "records": len(records),
                    "errors": len(result.errors),
                },
            )
        return reads

    def map_all(self, reads: dict[EntityKind, KindRead]) -> dict[EntityKind, KindMapping]:
        mappings: dict[EntityKind, KindMapping] = {}
        for kind, read in reads.items():
            mapper = self._mappers[kind]
            mapping = KindMapping(kind)
            for record in read.records:
                mapping.results.append(mapper.map(record))
            mappings[kind] = mapping
            logger.info(
                "kind_mapped",
                extra={
                    "kind": kind.value,
                    "mapped": len(mapping.mapped),
                    "rejected": len(mapping.rejected),
                    "skipped": len(mapping.skipped),
                },
            )
        return mappings

    # -------------------------------------------------------------------------
    # Dry runs
    # -------------------------------------------------------------------------

    def parse(self, input_path: Path) -> ParseReport:
        """Reader only: validate every document and count records."""
        with LogContext.bind(producer="ingestion"):
            documents, skipped = self.locate(input_path)
            reads = self.read_all(documents)
        return ParseReport(input_path, reads, skipped)

    def preview(
        self,
        input_path: Path,
        policy: ConflictPolicy = ConflictPolicy.FAIL_ON_CONFLICT,
        run_by: str | None = None,
    ) -> PreviewReport:
        """Validation + mapping only; nothing is written."""
        started_at: datetime = self._clock.now()
        with LogContext.bind(producer="ingestion"):
            documents, skipped = self.locate(input_path)
            reads = self.read_all(documents)
            mappings = self.map_all(reads)

        sample_size = self._settings.reporting.preview_sample_size
        per_kind: dict[EntityKind, EntityImportResult] = {}
        exceptions: list[ImportException] = []
        warnings: list[str] = []
        errors: list[str] = []
        samples: dict[EntityKind, tuple[str, ...]] = {}
        counts: dict[EntityKind, int] = {}
        mapped_counts: dict[EntityKind, int] = {}

        for kind in PRIMARY_KINDS:
            read = reads.get(kind)
            if read is None:
                continue
            mapping = mappings[kind]
            counts[kind] = len(read.records)
            mapped_counts[kind] = len(mapping.mapped)
            exceptions.extend(read_error_exceptions(read))
            errors.extend(f"[{kind.label}] {e}" for e in read.errors)
            for result in mapping.results:
                warnings.extend(format_warning(kind, result.natural_key, w) for w in result.warnings)
            for result in mapping.rejected:
                exc = mapping_exception(kind, result)
                exceptions.append(exc)
                errors.append(format_warning(kind, result.natural_key, f"{exc.field}: {exc.reason}"))
            samples[kind] = tuple(describe_entity(kind, r.entity) for r in mapping.mapped[:sample_size])
            per_kind[kind] = EntityImportResult(
                skipped=len(mapping.skipped),
                failed=len(mapping.rejected),
            )

        read_errors = sum(len(r.errors) for r in reads.values())
        result = ImportRunResult(
            run_id=None,
            policy=policy,
            input_path=str(input_path),
            started_at=started_at,
            completed_at=self._clock.now(),
            status=(
                ImportRunStatus.COMPLETED_WITH_ERRORS
                if exceptions else ImportRunStatus.COMPLETED
            ),
            per_kind=per_kind,
            exceptions=tuple(exceptions),
            skipped_kinds=skipped,
            warnings=tuple(warnings),
            read_error_count=read_errors,
            run_by=run_by or self._settings.default_actor,
            preview=True,
        )
        logger.info(
            "preview_completed",
            extra={"records": sum(counts.values()), "warnings": len(warnings), "errors": len(errors)},
        )
        return PreviewReport(result, counts, mapped_counts, samples, tuple(warnings), tuple(errors))
