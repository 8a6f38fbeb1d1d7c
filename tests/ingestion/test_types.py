"""Tests for run-result counters, success rate and error flags."""

from hypothesis import given, settings as hyp_settings
from hypothesis import strategies as st

from migration_ingestion.domain.types import (
    ConflictPolicy,
    EntityImportResult,
    EntityKind,
    ImportRunResult,
    compute_success_rate,
)
from migration_kernel.models.audit import ImportRunStatus


def _result(clock, **overrides) -> ImportRunResult:
    values = dict(
        run_id=None,
        policy=ConflictPolicy.FAIL_ON_CONFLICT,
        input_path="/data/export",
        started_at=clock.now(),
        completed_at=clock.now(),
        status=ImportRunStatus.COMPLETED,
    )
    values.update(overrides)
    return ImportRunResult(**values)


class TestSuccessRate:
    def test_nothing_processed_is_zero(self):
        assert compute_success_rate(0, 0, 0) == 0.0

    def test_all_created_or_updated_is_hundred(self):
        assert compute_success_rate(8, 2, 10) == 100.0

    def test_rounded_to_one_decimal(self):
        assert compute_success_rate(1, 0, 3) == 33.3
        assert compute_success_rate(2, 0, 3) == 66.7

    @given(
        created=st.integers(min_value=0, max_value=10_000),
        updated=st.integers(min_value=0, max_value=10_000),
        other=st.integers(min_value=0, max_value=10_000),
    )
    @hyp_settings(max_examples=200)
    def test_within_bounds_and_one_decimal(self, created, updated, other):
        rate = compute_success_rate(created, updated, created + updated + other)
        assert 0.0 <= rate <= 100.0
        assert rate == round(rate, 1)

    def test_empty_run_result_is_zero(self, deterministic_clock):
        assert _result(deterministic_clock).success_rate == 0.0

    def test_run_result_uses_totals_across_kinds(self, deterministic_clock):
        result = _result(deterministic_clock, per_kind={
            EntityKind.SCHOOL: EntityImportResult(created=1, skipped=1),
            EntityKind.STUDENT: EntityImportResult(updated=2, failed=1),
        })
        assert result.total_processed == 5
        assert result.success_rate == 60.0


class TestEntityImportResult:
    def test_processed_sums_every_outcome(self):
        assert EntityImportResult(created=1, updated=2, skipped=3, failed=4).processed == 10

    def test_missing_kind_reads_as_zero(self, deterministic_clock):
        assert _result(deterministic_clock).kind(EntityKind.BILLING).processed == 0


class TestHasErrors:
    def test_clean_run(self, deterministic_clock):
        assert not _result(deterministic_clock).has_errors

    def test_failed_record(self, deterministic_clock):
        result = _result(deterministic_clock, per_kind={EntityKind.SCHOOL: EntityImportResult(failed=1)})
        assert result.has_errors

    def test_unwritten_report_is_an_error(self, deterministic_clock):
        assert _result(deterministic_clock, report_failed=True).has_errors
