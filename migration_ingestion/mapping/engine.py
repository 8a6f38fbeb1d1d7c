"""
Mapping engine: pure coercion helpers shared by the per-kind mappers.

Every parser returns ``None`` on failure instead of raising; the
``RecordMapper`` wrapper turns failures into MappingWarnings so a bad
optional value never rejects a record.  ZERO I/O.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, TypeVar

from migration_config.schema import MappingSettings
from migration_ingestion.domain.aliases import AliasTable
from migration_ingestion.domain.mapped import MappingWarning
from migration_ingestion.domain.types import RawRecord

E = TypeVar("E", bound=Enum)

_TRUE_VALUES = frozenset({"true", "1", "-1", "yes", "y", "ja", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "n", "nee", "off"})

_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p")
# Access stores times as datetimes on 1899-12-30.
_DATETIME_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S")


# -----------------------------------------------------------------------------
# Pure parsers
# -----------------------------------------------------------------------------


def truncate(value: str | None, max_length: int) -> tuple[str | None, int | None]:
    """Return (value cut to max_length, original length if it was cut)."""
    if value is None or len(value) <= max_length:
        return value, None
    return value[:max_length], len(value)


def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        pass
    try:
        d = Decimal(value.strip())
    except InvalidOperation:
        return None
    if d != d.to_integral_value():
        return None
    return int(d)


def parse_decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        d = Decimal(value.strip())
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def parse_amount(
    value: str | None,
    currency_symbols: Iterable[str] = ("R", "$"),
    thousands_separator: str = ",",
) -> Decimal | None:
    """
    Parse a free-text money amount such as ``"R 1,250.00"`` or ``"$85"``.

    Currency symbols and thousands separators are stripped before conversion.
    """
    if value is None:
        return None
    cleaned = value.strip()
    for symbol in currency_symbols:
        cleaned = cleaned.replace(symbol, "")
    if thousands_separator:
        cleaned = cleaned.replace(thousands_separator, "")
    cleaned = cleaned.replace(" ", "")
    if not cleaned:
        return None
    return parse_decimal(cleaned)


def parse_date(
    value: str | None,
    formats: Iterable[str],
    fallback_formats: Iterable[str] = (),
) -> date | None:
    """Try each exact format, then the lenient fallbacks; None if nothing matches."""
    if value is None:
        return None
    s = value.strip()
    for fmt in (*formats, *fallback_formats):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    # ISO datetimes with fractional seconds or an offset
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def parse_time(value: str | None) -> time | None:
    """Parse ``HH:MM[:SS]``, 12-hour clock, or an Access datetime."""
    if value is None:
        return None
    s = value.strip()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    return None


def parse_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    low = value.strip().lower()
    if low in _TRUE_VALUES:
        return True
    if low in _FALSE_VALUES:
        return False
    return None


# -----------------------------------------------------------------------------
# Per-record wrapper
# -----------------------------------------------------------------------------


class RecordMapper:
    """
    Reads fields from one RawRecord, coercing values and collecting warnings.

    One instance per record; mappers read ``warnings`` when building the
    MappingResult.
    """

    def __init__(self, record: RawRecord, settings: MappingSettings) -> None:
        self.record = record
        self.settings = settings
        self.warnings: list[MappingWarning] = []

    def raw(self, name: str) -> str | None:
        return self.record.get(name)

    def warn(self, field: str, message: str, original: str | None = None, mapped: str | None = None) -> None:
        self.warnings.append(MappingWarning(field, message, original, mapped))

    def text(self, name: str, max_length: int | None = None) -> str | None:
        """String field, truncated to max_length (default: settings) with one warning."""
        limit = max_length if max_length is not None else self.settings.max_string_length
        value, original_length = truncate(self.raw(name), limit)
        if original_length is not None:
            self.warn(name, f"{name} truncated from {original_length} to {limit} characters.")
        return value

    def long_text(self, name: str) -> str | None:
        """Untruncated text (notes, descriptions)."""
        return self.raw(name)

    def integer(self, name: str, minimum: int | None = None, maximum: int | None = None) -> int | None:
        raw = self.raw(name)
        value = parse_int(raw)
        if raw is not None and value is None:
            self.warn(name, f"Invalid {name} value: '{raw}'.", original=raw)
            return None
        if value is not None and (
            (minimum is not None and value < minimum) or (maximum is not None and value > maximum)
        ):
            self.warn(name, f"{name} value {value} is out of range.", original=raw)
            return None
        return value

    def decimal(self, name: str) -> Decimal | None:
        raw = self.raw(name)
        value = parse_decimal(raw)
        if raw is not None and value is None:
            self.warn(name, f"Invalid {name} value: '{raw}'.", original=raw)
        return value

    def date(self, name: str) -> date | None:
        raw = self.raw(name)
        value = parse_date(raw, self.settings.date_formats, self.settings.fallback_date_formats)
        if raw is not None and value is None:
            self.warn(name, f"Could not parse {name} date: '{raw}'.", original=raw)
        return value

    def time(self, name: str, default: time) -> time:
        raw = self.raw(name)
        if raw is None:
            return default
        value = parse_time(raw)
        if value is None:
            self.warn(
                name,
                f"Invalid {name} '{raw}'. Defaulting to {default.strftime('%H:%M')}.",
                original=raw,
                mapped=default.isoformat(),
            )
            return default
        return value

    def flag(self, name: str, default: bool = False) -> bool:
        raw = self.raw(name)
        value = parse_bool(raw)
        if value is None:
            if raw is not None:
                self.warn(name, f"Invalid {name} value: '{raw}'. Defaulting to {default}.", original=raw)
            return default
        return value

    def alias(self, name: str, table: AliasTable[E]) -> E:
        raw = self.raw(name)
        variant, message = table.resolve(raw)
        if message is not None:
            self.warn(name, message, original=raw, mapped=variant.value)
        return variant
