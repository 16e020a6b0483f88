"""Generate markdown + JSON grading report."""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from jsongrade.models import MetricsResult, TestResult, ValueDifference

DEFAULT_MONTHLY_REQUESTS = 150_000  # 1000 users x 5 requests/day x 30 days


def generate_report(
    results: Sequence[TestResult],
    metrics: MetricsResult,
    output_dir: str | Path,
    *,
    monthly_requests: int = DEFAULT_MONTHLY_REQUESTS,
) -> Path:
    """Generate a markdown report with JSON sidecar.

    Args:
        results: Test results in run order.
        metrics: Metrics computed from ``results``.
        output_dir: Directory to write report files.
        monthly_requests: Request volume for the monthly cost projection.

    Returns:
        Path to the generated markdown report.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    md_path = out / "report.md"
    md_path.write_text(
        _build_markdown(results, metrics, monthly_requests), encoding="utf-8"
    )

    json_path = out / "report.json"
    json_path.write_text(
        json.dumps(
            _build_json(results, metrics, monthly_requests), indent=2, default=str
        ),
        encoding="utf-8",
    )

    return md_path


def format_summary(metrics: MetricsResult) -> str:
    """Short plain-text summary for the console."""
    lines = [
        "=" * 60,
        "GRADING RESULTS",
        "=" * 60,
        f"  Total Tests:       {metrics.total_tests}",
        f"  Successful Tests:  {metrics.successful_tests}",
        f"  Failed Tests:      {metrics.failed_tests}",
        f"  Success Rate:      {metrics.success_rate * 100:.1f}%",
        f"  Average Time:      {metrics.average_time / 1000:.2f}s",
        f"  Total Cost:        {metrics.total_cost:.6f}",
        f"  Average Cost:      {metrics.average_cost:.6f}",
        f"  F1 Score:          {metrics.f1_score:.4f}",
        "=" * 60,
    ]
    return "\n".join(lines)


def monthly_projection(metrics: MetricsResult, monthly_requests: int) -> float:
    """Projected monthly spend at the batch's average cost per request."""
    return metrics.average_cost * monthly_requests


def _build_markdown(
    results: Sequence[TestResult],
    metrics: MetricsResult,
    monthly_requests: int,
) -> str:
    lines: list[str] = []
    lines.append("# Structured Output Grading Report")
    lines.append("")
    lines.append(f"Generated: {time.strftime('%Y-%m-%d %H:%M:%S UTC', time.gmtime())}")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Total tests | {metrics.total_tests} |")
    lines.append(f"| Successful | {metrics.successful_tests} |")
    lines.append(f"| Failed | {metrics.failed_tests} |")
    lines.append(f"| Unfinished | {metrics.unfinished_tests} |")
    lines.append(f"| Success rate | {metrics.success_rate * 100:.1f}% |")
    lines.append(f"| F1 score | {metrics.f1_score:.4f} |")
    lines.append(f"| Total cost | ${metrics.total_cost:.6f} |")
    lines.append(f"| Average cost | ${metrics.average_cost:.6f} |")
    lines.append(f"| Cost per success | ${metrics.cost_per_success:.6f} |")
    lines.append("")

    lines.append("### Latency")
    lines.append("")
    lines.append(f"- p50: {metrics.median_time:.0f}ms")
    lines.append(f"- p95: {metrics.p95_time:.0f}ms")
    lines.append(f"- p99: {metrics.p99_time:.0f}ms")
    lines.append(f"- mean: {metrics.average_time:.0f}ms")
    lines.append(f"- min/max: {metrics.min_time:.0f}ms / {metrics.max_time:.0f}ms")
    lines.append("")

    if metrics.field_success_rates:
        lines.append("## Field-level Success Rates")
        lines.append("")
        lines.append("| Field | Success Rate |")
        lines.append("|-------|--------------|")
        for name, rate in metrics.field_success_rates.items():
            lines.append(f"| {name} | {rate * 100:.1f}% |")
        lines.append("")

    if metrics.most_failed_fields:
        lines.append("## Most Failed Fields")
        lines.append("")
        lines.append("| Field | Failure Rate |")
        lines.append("|-------|--------------|")
        for failure in metrics.most_failed_fields:
            lines.append(f"| {failure.field} | {failure.failure_rate * 100:.1f}% |")
        lines.append("")

    if metrics.error_distribution:
        lines.append("## Error Distribution")
        lines.append("")
        lines.append("| Key | Occurrences |")
        lines.append("|-----|-------------|")
        for key, count in sorted(
            metrics.error_distribution.items(), key=lambda kv: kv[1], reverse=True
        ):
            lines.append(f"| {key} | {count} |")
        lines.append("")

    lines.extend(_failed_cases_section(results))

    lines.append("## Monthly Cost Projection")
    lines.append("")
    lines.append(
        f"{monthly_requests:,} requests/month: "
        f"${monthly_projection(metrics, monthly_requests):.6f}"
    )
    lines.append("")

    return "\n".join(lines)


def _failed_cases_section(results: Sequence[TestResult]) -> list[str]:
    failed = [(i, r) for i, r in enumerate(results, start=1) if not r.is_success]
    if not failed:
        return []

    lines = ["## Failed Cases", ""]
    for number, result in failed:
        lines.append(f"### Test case {number}")
        lines.append("")
        lines.append(f"- **Input**: {_cell(result.input)}")
        if not result.is_finished:
            lines.append(f"- **Error**: {_cell(result.error or 'not finished')}")
        lines.append("")
        if result.differences:
            lines.append("| Field | Expected | Actual | Similarity |")
            lines.append("|-------|----------|--------|------------|")
            for diff in result.differences:
                lines.append(_difference_row(diff))
            lines.append("")
    return lines


def _difference_row(diff: ValueDifference) -> str:
    similarity = f"{diff.similarity:.2f}" if diff.similarity is not None else "N/A"
    return (
        f"| {_cell(diff.key)} "
        f"| {_cell(json.dumps(diff.expected, default=str))} "
        f"| {_cell(json.dumps(diff.actual, default=str))} "
        f"| {similarity} |"
    )


def _cell(text: str) -> str:
    """Escape a value for use inside a markdown table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


def _build_json(
    results: Sequence[TestResult],
    metrics: MetricsResult,
    monthly_requests: int,
) -> dict[str, Any]:
    """Build JSON sidecar for programmatic consumption."""
    return {
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "metrics": metrics.to_dict(),
        "cost_projection": {
            "monthly_requests": monthly_requests,
            "monthly_cost": monthly_projection(metrics, monthly_requests),
        },
        "results": [r.to_dict() for r in results],
    }
