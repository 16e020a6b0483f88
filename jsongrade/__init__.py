"""Structured-output grading harness.

Compares model-generated JSON against expected values with type-aware
tolerance and folds per-case verdicts into batch quality metrics.

Usage:
    python -m jsongrade.run cases.jsonl                # Grade recorded outputs
    python -m jsongrade.run cases.jsonl --rows 10      # First 10 cases only
    python -m jsongrade.run --fresh cases.jsonl        # Ignore checkpoints
    python -m jsongrade.run --report-only              # Regenerate report
"""

from jsongrade.pipeline.compare import compare, compare_values
from jsongrade.pipeline.evaluate import compare_responses, evaluate_case
from jsongrade.pipeline.fields import flatten_keys
from jsongrade.pipeline.metrics import calculate_metrics

__all__ = [
    "calculate_metrics",
    "compare",
    "compare_responses",
    "compare_values",
    "evaluate_case",
    "flatten_keys",
]
