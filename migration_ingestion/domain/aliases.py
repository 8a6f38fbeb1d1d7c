"""
Alias tables for enumerated legacy fields.

Each table is a closed alias -> variant map plus a documented default.
Lookup is case-insensitive and whitespace-collapsed, and covers the English
and Afrikaans spellings found in the legacy exports.  An unknown alias maps
to the default and produces a warning message; it never rejects a record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Mapping, TypeVar

from migration_kernel.models.class_group import Weekday
from migration_kernel.models.student import Gender, StudentStatus

E = TypeVar("E", bound=Enum)


def _normalize_alias(raw: str) -> str:
    return " ".join(raw.strip().lower().split())


def _build(variants: Mapping[E, tuple[str, ...]]) -> dict[str, E]:
    table: dict[str, E] = {}
    for variant, aliases in variants.items():
        for alias in aliases:
            key = _normalize_alias(alias)
            if key in table and table[key] is not variant:
                raise ValueError(f"Alias {alias!r} maps to both {table[key]} and {variant}")
            table[key] = variant
    return table


@dataclass(frozen=True)
class AliasTable(Generic[E]):
    """Closed alias -> variant table with a default-on-unknown policy."""

    name: str
    aliases: Mapping[str, E]
    default: E

    def resolve(self, raw: str | None) -> tuple[E, str | None]:
        """Return (variant, warning). Empty input is the default without a warning."""
        if raw is None or not raw.strip():
            return self.default, None
        variant = self.aliases.get(_normalize_alias(raw))
        if variant is None:
            return self.default, (
                f"Unknown {self.name} '{raw}'. Defaulting to {self.default.value}."
            )
        return variant, None


WEEKDAY_ALIASES: AliasTable[Weekday] = AliasTable(
    name="day of week",
    aliases=_build({
        Weekday.MONDAY: ("1", "monday", "mon", "mo", "maandag", "ma"),
        Weekday.TUESDAY: ("2", "tuesday", "tue", "tues", "tu", "dinsdag", "di"),
        Weekday.WEDNESDAY: ("3", "wednesday", "wed", "we", "woensdag", "wo"),
        Weekday.THURSDAY: ("4", "thursday", "thu", "thur", "thurs", "th", "donderdag", "do"),
        Weekday.FRIDAY: ("5", "friday", "fri", "fr", "vrydag", "vrijdag", "vr"),
        Weekday.SATURDAY: ("6", "saturday", "sat", "sa", "saterdag"),
        Weekday.SUNDAY: ("7", "sunday", "sun", "su", "sondag", "so"),
    }),
    default=Weekday.MONDAY,
)

GENDER_ALIASES: AliasTable[Gender] = AliasTable(
    name="gender",
    aliases=_build({
        Gender.MALE: ("m", "male", "boy", "b", "man", "manlik", "seun"),
        Gender.FEMALE: ("f", "female", "girl", "g", "vroulik", "meisie", "dogter", "v"),
    }),
    default=Gender.UNSPECIFIED,
)

STUDENT_STATUS_ALIASES: AliasTable[StudentStatus] = AliasTable(
    name="student status",
    aliases=_build({
        StudentStatus.ACTIVE: (
            "active", "a", "aktief", "current", "enrolled", "1", "yes", "y", "ja", "j",
        ),
        StudentStatus.INACTIVE: (
            "inactive", "i", "onaktief", "left", "verlaat", "cancelled",
            "gekanselleer", "0", "no", "n", "nee",
        ),
        StudentStatus.WAITING_LIST: (
            "waiting", "waiting list", "waiting_list", "waitlist", "wag", "waglys", "w",
        ),
    }),
    default=StudentStatus.ACTIVE,
)
