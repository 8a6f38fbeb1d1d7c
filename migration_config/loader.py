"""
Settings loader (``migration_config.loader``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, deep-merges an optional override file
on top, and parses the result into the frozen ``ImportSettings`` dataclass.

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or wrongly typed values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import time
from pathlib import Path
from typing import Any

import yaml

from migration_config.schema import (
    BillingSettings,
    ImportSettings,
    MappingSettings,
    ReportingSettings,
    SourceLayout,
)
from migration_kernel.exceptions import ConfigurationError

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_TOP_LEVEL_KEYS = frozenset(
    {"database_url", "default_actor", "mapping", "billing", "reporting", "layout"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("top-level YAML value must be a mapping", source=str(path))
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``. Lists are replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the merged settings (for the run log)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_time(value: Any, key: str) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError as exc:
        raise ConfigurationError(f"{key}: cannot parse time from {value!r}") from exc


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"{name}: expected a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ConfigurationError(f"{name}: unknown keys {sorted(unknown)}")
    return section


def parse_layout(data: dict[str, Any]) -> dict[str, SourceLayout]:
    layout: dict[str, SourceLayout] = {}
    for kind, entry in (data.get("layout") or {}).items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"layout.{kind}: expected a mapping")
        try:
            layout[kind] = SourceLayout(
                folder=entry["folder"],
                document=entry["document"],
                schema=entry["schema"],
                record_element=entry["record_element"],
                required_numeric=tuple(entry.get("required_numeric") or ()),
            )
        except KeyError as exc:
            raise ConfigurationError(f"layout.{kind}: missing key {exc.args[0]!r}") from exc
    return layout


def parse_settings(data: dict[str, Any]) -> ImportSettings:
    """Parse a merged settings dict into ``ImportSettings``."""
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigurationError(f"unknown settings keys {sorted(unknown)}")

    m = _section(data, "mapping", {f for f in MappingSettings.__dataclass_fields__})
    mapping = MappingSettings(
        max_string_length=int(m.get("max_string_length", 255)),
        icon_max_length=int(m.get("icon_max_length", 100_000)),
        default_class_start=parse_time(m.get("default_class_start", "08:00"), "mapping.default_class_start"),
        default_class_end=parse_time(m.get("default_class_end", "09:00"), "mapping.default_class_end"),
        date_formats=tuple(m.get("date_formats") or MappingSettings.date_formats),
        fallback_date_formats=tuple(m.get("fallback_date_formats") or ()),
    )

    b = _section(data, "billing", {f for f in BillingSettings.__dataclass_fields__})
    billing = BillingSettings(
        invoice_due_days=int(b.get("invoice_due_days", 30)),
        receipt_prefix=str(b.get("receipt_prefix", "RCP-LEGACY")),
        starting_receipt_number=int(b.get("starting_receipt_number", 1)),
        currency_symbols=tuple(b.get("currency_symbols") or ("R", "$")),
        thousands_separator=str(b.get("thousands_separator", ",")),
    )

    r = _section(data, "reporting", {f for f in ReportingSettings.__dataclass_fields__})
    reporting = ReportingSettings(
        preview_sample_size=int(r.get("preview_sample_size", 5)),
        report_item_limit=int(r.get("report_item_limit", 20)),
        history_count=int(r.get("history_count", 10)),
    )

    if mapping.max_string_length <= 0:
        raise ConfigurationError("mapping.max_string_length must be positive")
    if mapping.default_class_end <= mapping.default_class_start:
        raise ConfigurationError("mapping.default_class_end must be after default_class_start")

    return ImportSettings(
        database_url=str(data.get("database_url", "sqlite:///legacy_import.db")),
        default_actor=str(data.get("default_actor", "system")),
        layout=parse_layout(data),
        mapping=mapping,
        billing=billing,
        reporting=reporting,
        checksum=compute_checksum(data),
    )


def load_settings(override_path: Path | None = None) -> ImportSettings:
    """Load defaults, apply the optional override file, return settings."""
    data = load_yaml_file(DEFAULTS_PATH)
    if override_path is not None:
        data = merge_settings(data, load_yaml_file(override_path))
    return parse_settings(data)
