"""
migration_config -- single entry point for import settings.

``get_import_settings()`` returns the frozen ``ImportSettings`` used by the
pipeline.  YAML parsing lives in ``loader`` and is not called by services.
"""

from __future__ import annotations

from pathlib import Path

from migration_config.loader import load_settings
from migration_config.schema import (
    BillingSettings,
    ImportSettings,
    MappingSettings,
    ReportingSettings,
    SourceLayout,
)
from migration_kernel.logging_config import get_logger

_logger = get_logger("config")


def get_import_settings(override_path: Path | str | None = None) -> ImportSettings:
    """Return settings from the packaged defaults plus an optional override."""
    path = Path(override_path) if override_path is not None else None
    settings = load_settings(path)
    _logger.info(
        "settings_loaded",
        extra={
            "override_path": str(path) if path else None,
            "checksum": settings.checksum,
            "kinds": list(settings.layout),
        },
    )
    return settings


__all__ = [
    "BillingSettings",
    "ImportSettings",
    "MappingSettings",
    "ReportingSettings",
    "SourceLayout",
    "get_import_settings",
]
