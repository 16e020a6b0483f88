"""Evaluate a single (expected, actual) case into a TestResult.

Never raises: unparseable input and internal failures are reported as a
failed comparison carrying a single explanatory difference.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from jsongrade.models import ComparisonResult, TestResult, ValueDifference
from jsongrade.pipeline.compare import compare
from jsongrade.pipeline.fields import flatten_keys

logger = logging.getLogger(__name__)

PARSE_ERROR_KEY = "parse_error"
COMPARISON_ERROR_KEY = "comparison_error"


def compare_responses(expected: Any, actual: Any) -> ComparisonResult:
    """Compare two responses, parsing JSON strings first."""
    try:
        expected_obj = _parse(expected)
        actual_obj = _parse(actual)
    except (ValueError, RecursionError) as exc:
        # ValueError also covers integers past the int-string digit limit
        logger.debug("Response is not valid JSON: %s", exc)
        return _error_result(PARSE_ERROR_KEY, expected, actual)

    try:
        is_match, differences = compare(expected_obj, actual_obj)
        expected_keys = dict.fromkeys(flatten_keys(expected_obj))
        actual_keys = dict.fromkeys(flatten_keys(actual_obj))
    except Exception:
        logger.exception("Comparison failed unexpectedly")
        return _error_result(COMPARISON_ERROR_KEY, expected, actual)

    return ComparisonResult(
        is_match=is_match,
        differences=tuple(differences),
        matched_fields=tuple(k for k in expected_keys if k in actual_keys),
        missing_fields=tuple(k for k in expected_keys if k not in actual_keys),
        extra_fields=tuple(k for k in actual_keys if k not in expected_keys),
    )


def evaluate_case(
    expected: Any,
    actual: Any,
    time_elapsed: float,
    cost: float,
    input: str,
) -> TestResult:
    """Grade one case and package the verdict with its timing and cost.

    Args:
        expected: Expected response (parsed value or JSON string).
        actual: Model response (parsed value or JSON string).
        time_elapsed: Wall time of the model call in milliseconds.
        cost: Estimated cost of the model call in USD.
        input: Prompt text, kept for reporting only.

    Returns:
        A finished TestResult whose is_success is the comparison verdict.
    """
    comparison = compare_responses(expected, actual)
    return TestResult(
        is_finished=True,
        is_success=comparison.is_match,
        input=input,
        expected_response=expected,
        actual_response=actual,
        time_elapsed=time_elapsed,
        cost=cost,
        differences=comparison.differences,
        matched_fields=comparison.matched_fields,
        missing_fields=comparison.missing_fields,
        extra_fields=comparison.extra_fields,
    )


def _parse(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def _error_result(key: str, expected: Any, actual: Any) -> ComparisonResult:
    return ComparisonResult(
        is_match=False,
        differences=(
            ValueDifference(
                key=key,
                expected=expected,
                actual=actual,
                path=("root",),
            ),
        ),
    )
