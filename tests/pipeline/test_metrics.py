"""Metrics aggregator tests — percentiles, accuracy, field rates, error distribution."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from jsongrade.models import FieldFailure, TestResult, ValueDifference
from jsongrade.pipeline.evaluate import evaluate_case
from jsongrade.pipeline.metrics import calculate_metrics, percentile

MakeResult = Callable[..., TestResult]


def _diff(key: str) -> ValueDifference:
    return ValueDifference(key=key, expected=1, actual=2, path=(key,), similarity=0.0)


@pytest.mark.quick
@pytest.mark.pipeline
class TestPercentile:

    def test_nearest_rank_median(self) -> None:
        assert percentile([10, 20, 30, 40], 50) == 20

    def test_unsorted_input(self) -> None:
        assert percentile([40, 10, 30, 20], 50) == 20

    @pytest.mark.parametrize(
        ("p", "expected"),
        [(0, 10), (25, 10), (26, 20), (75, 30), (95, 40), (100, 40)],
    )
    def test_rank_boundaries(self, p: float, expected: float) -> None:
        assert percentile([10, 20, 30, 40], p) == expected

    def test_single_value(self) -> None:
        assert percentile([7.5], 99) == 7.5

    def test_empty(self) -> None:
        assert percentile([], 50) == 0.0


@pytest.mark.quick
@pytest.mark.pipeline
class TestAccuracy:

    def test_degenerate_precision_recall_f1(self, make_result: MakeResult) -> None:
        results = [make_result(success=True)] * 3 + [make_result(success=False)]
        metrics = calculate_metrics(results)
        assert metrics.total_tests == 4
        assert metrics.successful_tests == 3
        assert metrics.failed_tests == 1
        assert metrics.success_rate == 0.75
        assert metrics.precision == 0.75
        assert metrics.recall == 0.75
        assert metrics.f1_score == 0.75

    def test_no_successes(self, make_result: MakeResult) -> None:
        metrics = calculate_metrics([make_result(success=False)] * 2)
        assert metrics.success_rate == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.cost_per_success == 0.0

    def test_unfinished_counts_as_failed(self, make_result: MakeResult) -> None:
        results = [make_result(), TestResult.unfinished("q", {"a": 1})]
        metrics = calculate_metrics(results)
        assert metrics.failed_tests == 1
        assert metrics.unfinished_tests == 1
        assert metrics.success_rate == 0.5


@pytest.mark.quick
@pytest.mark.pipeline
class TestTimingAndCost:

    def test_unfinished_cases_excluded(self, make_result: MakeResult) -> None:
        results = [
            make_result(time_elapsed=t, cost=0.01, success=i < 2)
            for i, t in enumerate([10.0, 20.0, 30.0, 40.0])
        ]
        results.append(TestResult.unfinished("q", {"a": 1}))

        metrics = calculate_metrics(results)
        assert metrics.average_time == 25.0
        assert metrics.min_time == 10.0
        assert metrics.max_time == 40.0
        assert metrics.median_time == 20.0
        assert metrics.p95_time == 40.0
        assert metrics.total_cost == pytest.approx(0.04)
        assert metrics.average_cost == pytest.approx(0.01)
        assert metrics.cost_per_success == pytest.approx(0.02)

    def test_all_unfinished(self) -> None:
        metrics = calculate_metrics([TestResult.unfinished("q", None)] * 3)
        assert metrics.total_tests == 3
        assert metrics.average_time == 0.0
        assert metrics.min_time == 0.0
        assert metrics.median_time == 0.0
        assert metrics.total_cost == 0.0


@pytest.mark.quick
@pytest.mark.pipeline
class TestFieldMetrics:

    def test_field_rate_tracks_case_outcome(self, make_result: MakeResult) -> None:
        results = [
            make_result(success=True, matched=("amount",)),
            make_result(success=False, matched=("amount",)),
        ]
        metrics = calculate_metrics(results)
        assert metrics.field_success_rates == {"amount": 0.5}

    def test_unseen_fields_absent(self, make_result: MakeResult) -> None:
        metrics = calculate_metrics([make_result(matched=("a",))])
        assert "b" not in metrics.field_success_rates
        assert metrics.field_success_rates == {"a": 1.0}

    def test_most_failed_top_five_stable(self, make_result: MakeResult) -> None:
        results = [
            make_result(success=False, matched=("a", "b", "c")),
            make_result(success=True, matched=("b", "c", "d")),
            make_result(success=True, matched=("e", "f", "g")),
        ]
        metrics = calculate_metrics(results)
        assert metrics.most_failed_fields == (
            FieldFailure("a", 1.0),
            FieldFailure("b", 0.5),
            FieldFailure("c", 0.5),
            FieldFailure("d", 0.0),
            FieldFailure("e", 0.0),
        )

    def test_rate_reflects_whole_case_not_field_value(self) -> None:
        """A correct field still scores 0 when the case fails elsewhere."""
        results = [
            evaluate_case(
                {"amount": 10, "label": "abc"},
                {"amount": 10, "label": "xyz"},
                1.0, 0.0, "q",
            ),
            evaluate_case({"amount": 10}, {"amount": 10}, 1.0, 0.0, "q"),
        ]
        metrics = calculate_metrics(results)
        assert metrics.field_success_rates["amount"] == 0.5
        assert metrics.field_success_rates["label"] == 0.0


@pytest.mark.quick
@pytest.mark.pipeline
class TestErrorDistribution:

    def test_counts_leaf_keys_of_failed_cases(self, make_result: MakeResult) -> None:
        results = [
            make_result(success=False, differences=(_diff("name"), _diff("root"))),
            make_result(success=False, differences=(_diff("name"),)),
            make_result(success=True, differences=(_diff("name"),)),
            TestResult.unfinished("q", None),
        ]
        metrics = calculate_metrics(results)
        assert metrics.error_distribution == {"name": 2, "root": 1}

    def test_same_leaf_name_at_different_depths_collides(self) -> None:
        result = evaluate_case(
            {"id": "abc", "owner": {"id": "def"}},
            {"id": "xyz", "owner": {"id": "uvw"}},
            1.0, 0.0, "q",
        )
        # First failing field stops the traversal, so force two failures
        second = evaluate_case({"owner": {"id": "def"}}, {"owner": {"id": "uvw"}}, 1.0, 0.0, "q")
        metrics = calculate_metrics([result, second])
        assert metrics.error_distribution == {"id": 2}


@pytest.mark.quick
@pytest.mark.pipeline
class TestEmptyBatch:

    def test_empty_batch_is_all_zero(self) -> None:
        metrics = calculate_metrics([])
        assert metrics.total_tests == 0
        assert metrics.success_rate == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.average_time == 0.0
        assert metrics.median_time == 0.0
        assert metrics.average_cost == 0.0
        assert metrics.field_success_rates == {}
        assert metrics.most_failed_fields == ()
        assert metrics.error_distribution == {}
