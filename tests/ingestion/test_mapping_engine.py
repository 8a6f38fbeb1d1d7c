"""Tests for the mapping engine's pure parsers and the RecordMapper wrapper."""

from datetime import date, time
from decimal import Decimal

from hypothesis import given, settings as hyp_settings
from hypothesis import strategies as st

from migration_ingestion.domain.aliases import WEEKDAY_ALIASES
from migration_ingestion.domain.types import RawRecord
from migration_ingestion.mapping.engine import (
    RecordMapper,
    parse_amount,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_int,
    parse_time,
    truncate,
)
from migration_kernel.models.class_group import Weekday

DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y")


class TestTruncate:
    def test_short_value_untouched(self):
        assert truncate("abc", 5) == ("abc", None)

    def test_long_value_cut_with_original_length(self):
        assert truncate("abcdef", 4) == ("abcd", 6)

    def test_none(self):
        assert truncate(None, 4) == (None, None)

    @given(value=st.text(max_size=400), limit=st.integers(min_value=1, max_value=300))
    @hyp_settings(max_examples=200)
    def test_never_exceeds_limit(self, value, limit):
        cut, original = truncate(value, limit)
        assert len(cut) <= limit
        assert (original is None) == (len(value) <= limit)
        assert value.startswith(cut)


class TestParseNumbers:
    def test_int(self):
        assert parse_int("42") == 42
        assert parse_int(" 7 ") == 7
        assert parse_int("3.0") == 3

    def test_int_rejects_fractions_and_text(self):
        assert parse_int("3.5") is None
        assert parse_int("abc") is None
        assert parse_int(None) is None

    def test_decimal(self):
        assert parse_decimal("12.50") == Decimal("12.50")
        assert parse_decimal("NaN") is None
        assert parse_decimal("x") is None

    @given(n=st.integers(min_value=-10**9, max_value=10**9))
    def test_int_round_trips_str(self, n):
        assert parse_int(str(n)) == n


class TestParseAmount:
    def test_strips_currency_and_separators(self):
        assert parse_amount("R 1,250.00") == Decimal("1250.00")
        assert parse_amount("$85") == Decimal("85")
        assert parse_amount("R85.50") == Decimal("85.50")

    def test_unparsable(self):
        assert parse_amount("twelve") is None
        assert parse_amount("R") is None
        assert parse_amount(None) is None

    def test_custom_symbols(self):
        assert parse_amount("EUR 10", currency_symbols=("EUR",)) == Decimal("10")

    @given(amount=st.decimals(
        min_value=Decimal("0.01"), max_value=Decimal("999999.99"), places=2,
        allow_nan=False, allow_infinity=False,
    ))
    @hyp_settings(max_examples=200)
    def test_formatted_amounts_parse_back(self, amount):
        assert parse_amount(f"R {amount:,.2f}") == amount


class TestParseDate:
    def test_iso(self):
        assert parse_date("2024-01-15", DATE_FORMATS) == date(2024, 1, 15)

    def test_access_datetime(self):
        assert parse_date("2015-04-02T00:00:00", DATE_FORMATS) == date(2015, 4, 2)

    def test_fallback_formats(self):
        assert parse_date("15 January 2024", DATE_FORMATS, ("%d %B %Y",)) == date(2024, 1, 15)

    def test_iso_with_fraction(self):
        assert parse_date("2024-01-15T10:20:30.123", DATE_FORMATS) == date(2024, 1, 15)

    def test_garbage(self):
        assert parse_date("not a date", DATE_FORMATS) is None
        assert parse_date(None, DATE_FORMATS) is None

    @given(d=st.dates(min_value=date(1900, 1, 1), max_value=date(2100, 12, 31)))
    def test_iso_dates_parse(self, d):
        assert parse_date(d.isoformat(), DATE_FORMATS) == d


class TestParseTime:
    def test_formats(self):
        assert parse_time("14:30") == time(14, 30)
        assert parse_time("2:30 PM") == time(14, 30)
        assert parse_time("1899-12-30T08:15:00") == time(8, 15)

    def test_invalid(self):
        assert parse_time("25:99") is None
        assert parse_time("noon") is None


class TestParseBool:
    def test_true_spellings(self):
        for v in ("true", "1", "-1", "Yes", "y", "ja", "ON"):
            assert parse_bool(v) is True

    def test_false_spellings(self):
        for v in ("false", "0", "no", "N", "nee", "off"):
            assert parse_bool(v) is False

    def test_unknown(self):
        assert parse_bool("maybe") is None
        assert parse_bool(None) is None


class TestRecordMapper:
    def _mapper(self, settings, **fields):
        return RecordMapper(RawRecord(fields=fields), settings.mapping)

    def test_text_truncation_warns_once(self, settings):
        m = self._mapper(settings, Name="x" * 300)
        assert m.text("Name") == "x" * 255
        assert len(m.warnings) == 1
        assert str(m.warnings[0]) == "Name: Name truncated from 300 to 255 characters."

    def test_integer_range(self, settings):
        m = self._mapper(settings, Trok="300")
        assert m.integer("Trok", minimum=0, maximum=255) is None
        assert m.warnings[0].field == "Trok"

    def test_invalid_integer_warns(self, settings):
        m = self._mapper(settings, Sequence="abc")
        assert m.integer("Sequence") is None
        assert "Invalid Sequence value: 'abc'." in m.warnings[0].message

    def test_missing_values_do_not_warn(self, settings):
        m = self._mapper(settings)
        assert m.text("Name") is None
        assert m.integer("Sequence") is None
        assert m.date("Child birthdate") is None
        assert m.flag("Print") is False
        assert m.warnings == []

    def test_time_default_with_warning(self, settings):
        m = self._mapper(settings, **{"Start Time": "later"})
        assert m.time("Start Time", time(8, 0)) == time(8, 0)
        assert m.warnings[0].mapped == "08:00:00"

    def test_alias_unknown_defaults_with_warning(self, settings):
        m = self._mapper(settings, DayId="Funday")
        assert m.alias("DayId", WEEKDAY_ALIASES) is Weekday.MONDAY
        assert m.warnings[0].original == "Funday"

    def test_alias_known(self, settings):
        m = self._mapper(settings, DayId="Woensdag")
        assert m.alias("DayId", WEEKDAY_ALIASES) is Weekday.WEDNESDAY
        assert m.warnings == []
