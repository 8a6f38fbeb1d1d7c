"""
Settings schema (``migration_config.schema``).

Frozen dataclasses describing the import settings.  Produced only by
``migration_config.loader``; consumed read-only by the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time


@dataclass(frozen=True)
class SourceLayout:
    """Where one entity kind's document and schema live under the input dir."""

    folder: str
    document: str
    schema: str
    record_element: str
    required_numeric: tuple[str, ...] = ()


@dataclass(frozen=True)
class MappingSettings:
    max_string_length: int = 255
    icon_max_length: int = 100_000
    default_class_start: time = time(8, 0)
    default_class_end: time = time(9, 0)
    date_formats: tuple[str, ...] = (
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%d/%m/%Y",
    )
    fallback_date_formats: tuple[str, ...] = ()


@dataclass(frozen=True)
class BillingSettings:
    invoice_due_days: int = 30
    receipt_prefix: str = "RCP-LEGACY"
    starting_receipt_number: int = 1
    currency_symbols: tuple[str, ...] = ("R", "$")
    thousands_separator: str = ","


@dataclass(frozen=True)
class ReportingSettings:
    preview_sample_size: int = 5
    report_item_limit: int = 20
    history_count: int = 10


@dataclass(frozen=True)
class ImportSettings:
    """Complete, validated settings for one pipeline process."""

    database_url: str
    default_actor: str
    layout: dict[str, SourceLayout]
    mapping: MappingSettings = field(default_factory=MappingSettings)
    billing: BillingSettings = field(default_factory=BillingSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    checksum: str = ""
