"""Aggregate test results into batch metrics."""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from collections.abc import Sequence

from jsongrade.models import FieldFailure, MetricsResult, TestResult

MOST_FAILED_LIMIT = 5


def calculate_metrics(results: Sequence[TestResult]) -> MetricsResult:
    """Compute counts, timing, cost, accuracy and field-level metrics.

    Timing and cost use finished cases only. An empty batch yields a
    result with every number set to 0 and empty maps.

    Args:
        results: Every test result of the batch, in run order.

    Returns:
        MetricsResult for the whole batch.
    """
    total = len(results)
    successful = sum(1 for r in results if r.is_success)
    finished = [r for r in results if r.is_finished]

    times = [r.time_elapsed for r in finished]
    costs = [r.cost for r in finished]
    total_cost = sum(costs)

    success_rate = successful / total if total > 0 else 0.0
    precision = success_rate
    recall = success_rate
    f1 = (
        2 * precision * recall / (precision + recall)
        if successful > 0
        else 0.0
    )

    field_rates, most_failed = _field_metrics(results)

    return MetricsResult(
        total_tests=total,
        successful_tests=successful,
        failed_tests=total - successful,
        unfinished_tests=total - len(finished),
        average_time=sum(times) / len(times) if times else 0.0,
        min_time=min(times) if times else 0.0,
        max_time=max(times) if times else 0.0,
        median_time=percentile(times, 50),
        p95_time=percentile(times, 95),
        p99_time=percentile(times, 99),
        average_cost=total_cost / len(costs) if costs else 0.0,
        total_cost=total_cost,
        cost_per_success=total_cost / successful if successful > 0 else 0.0,
        success_rate=success_rate,
        precision=precision,
        recall=recall,
        f1_score=f1,
        field_success_rates=field_rates,
        most_failed_fields=most_failed,
        error_distribution=_error_distribution(results),
    )


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile (no interpolation). 0.0 for no values."""
    if not values:
        return 0.0
    sorted_values = sorted(values)
    idx = math.ceil(p / 100 * len(sorted_values)) - 1
    return sorted_values[min(max(idx, 0), len(sorted_values) - 1)]


def _field_metrics(
    results: Sequence[TestResult],
) -> tuple[dict[str, float], tuple[FieldFailure, ...]]:
    """Per-field rate of whole-case success among cases where the field matched."""
    field_success: dict[str, int] = defaultdict(int)
    field_total: dict[str, int] = defaultdict(int)

    for result in results:
        for name in result.matched_fields:
            field_total[name] += 1
            if result.is_success:
                field_success[name] += 1

    rates = {
        name: field_success[name] / total for name, total in field_total.items()
    }

    # sorted() is stable: ties keep first-seen order
    ranked = sorted(
        (FieldFailure(field=name, failure_rate=1 - rate) for name, rate in rates.items()),
        key=lambda f: f.failure_rate,
        reverse=True,
    )
    return rates, tuple(ranked[:MOST_FAILED_LIMIT])


def _error_distribution(results: Sequence[TestResult]) -> dict[str, int]:
    """Count difference keys (leaf names, not full paths) across failed cases."""
    counts: Counter[str] = Counter()
    for result in results:
        if result.is_success:
            continue
        counts.update(d.key for d in result.differences)
    return dict(counts)
