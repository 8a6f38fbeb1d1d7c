"""
XML source adapter for legacy database exports validated against an XSD.

Legacy exports encode characters that are illegal in element names as
``_xHHHH_`` (``School_x0020_Id``); the adapter decodes them so mappers see
logical field names (``School Id``).

Parsing uses lxml with entity resolution and network access disabled.  A
malformed document or schema yields zero records and exactly one error;
schema violations on individual elements are collected and reading carries on.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator

from lxml import etree

from migration_config.schema import SourceLayout
from migration_kernel.domain.dtos import ValidationError
from migration_kernel.logging_config import get_logger
from migration_ingestion.adapters.base import ReadResult, SourceProbe
from migration_ingestion.domain.types import RawRecord

logger = get_logger("ingestion.adapters.xml")

_ENCODED_CHAR = re.compile(r"_x([0-9A-Fa-f]{4})_")

# Value substituted for a missing/unparsable required number so the mapper
# can reject the record explicitly.
REQUIRED_NUMERIC_SENTINEL = "0"


def decode_field_name(name: str) -> str:
    """Decode ``_xHHHH_`` escapes: ``E-mail_x0020_adress`` -> ``E-mail adress``."""
    return _ENCODED_CHAR.sub(lambda m: chr(int(m.group(1), 16)), name)


def normalize_string(value: str | None) -> str | None:
    """Empty or whitespace-only -> None; otherwise trimmed."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _element_text(element: etree._Element) -> str | None:
    return normalize_string("".join(element.itertext()))


def _parse_required_int(value: str | None) -> bool:
    if value is None:
        return False
    try:
        int(value)
    except ValueError:
        return False
    return True


class XmlSchemaSourceAdapter:
    """
    Read one XML document as RawRecords after validating it against its XSD.

    Record elements are the root's children whose local name equals
    ``layout.record_element``; every child element of a record becomes one
    field, keyed by its decoded name.
    """

    def __init__(self) -> None:
        self._parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            remove_pis=True,
        )

    def read(self, document_path: Path, schema_path: Path, layout: SourceLayout) -> ReadResult:
        schema_or_error = self._load_schema(schema_path)
        if isinstance(schema_or_error, ValidationError):
            return ReadResult.failed(schema_or_error)
        schema = schema_or_error

        try:
            tree = etree.parse(str(document_path), self._parser)
        except etree.XMLSyntaxError as exc:
            line, column = exc.position if exc.position else (exc.lineno, exc.offset)
            logger.warning(
                "document_parse_failed",
                extra={"document": str(document_path), "line": line, "column": column},
            )
            return ReadResult.failed(ValidationError(
                code="XML_SYNTAX_ERROR",
                message=exc.msg,
                field="_parse",
                line=line,
                column=column,
            ))
        except OSError as exc:
            return ReadResult.failed(ValidationError(
                code="XML_READ_ERROR",
                message=str(exc),
                field="_parse",
            ))

        errors: list[ValidationError] = []
        if not schema.validate(tree):
            for entry in schema.error_log:
                errors.append(ValidationError(
                    code="XSD_VALIDATION_ERROR",
                    message=entry.message,
                    field="_schema",
                    line=entry.line,
                    column=entry.column,
                ))
            logger.info(
                "document_schema_violations",
                extra={"document": str(document_path), "count": len(errors)},
            )

        return ReadResult(self._iter_records(tree.getroot(), layout, errors), errors)

    def probe(
        self, document_path: Path, schema_path: Path, layout: SourceLayout, sample_size: int = 5,
    ) -> SourceProbe:
        result = self.read(document_path, schema_path, layout)
        records = result.drain()
        names: dict[str, None] = {}
        for record in records:
            for name in record.fields:
                names.setdefault(name, None)
        return SourceProbe(
            record_count=len(records),
            field_names=tuple(names),
            sample_records=tuple(records[:sample_size]),
            error_count=len(result.errors),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load_schema(self, schema_path: Path) -> etree.XMLSchema | ValidationError:
        try:
            return etree.XMLSchema(etree.parse(str(schema_path), self._parser))
        except (etree.XMLSchemaParseError, etree.XMLSyntaxError, OSError) as exc:
            logger.warning("schema_parse_failed", extra={"schema": str(schema_path)})
            return ValidationError(
                code="XSD_PARSE_ERROR",
                message=f"Could not load schema definition {schema_path.name}: {exc}",
                field="_schema",
            )

    def _iter_records(
        self,
        root: etree._Element,
        layout: SourceLayout,
        errors: list[ValidationError],
    ) -> Iterator[RawRecord]:
        for element in root:
            if not isinstance(element.tag, str):
                continue
            if etree.QName(element).localname != layout.record_element:
                continue

            fields: dict[str, str | None] = {}
            for child in element:
                if not isinstance(child.tag, str):
                    continue
                fields[decode_field_name(etree.QName(child).localname)] = _element_text(child)

            for name in layout.required_numeric:
                value = fields.get(name)
                if _parse_required_int(value):
                    continue
                if value is None:
                    code, message = "MISSING_REQUIRED_FIELD", f"{name} is required."
                else:
                    code, message = "INVALID_NUMBER", f"Invalid {name} value: '{value}'."
                errors.append(ValidationError(
                    code=code,
                    message=message,
                    field=name,
                    line=element.sourceline,
                ))
                fields[name] = REQUIRED_NUMERIC_SENTINEL

            yield RawRecord(fields=fields, source_line=element.sourceline)
