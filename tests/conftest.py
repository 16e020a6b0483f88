"""Root conftest.py — shared fixtures for all grading tests.

Provides:
    - make_result: Factory fixture building TestResult objects with defaults
    - write_jsonl: Factory fixture writing case lines to a temp JSONL file
    - settings: GradingSettings pointed at a temp results directory
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from hypothesis import HealthCheck
from hypothesis import settings as hypothesis_settings

from jsongrade.config import GradingSettings
from jsongrade.models import TestResult, ValueDifference


# ---------------------------------------------------------------------------
# Hypothesis profiles
# ---------------------------------------------------------------------------

hypothesis_settings.register_profile(
    "dev",
    max_examples=50,
    deadline=500,
)
hypothesis_settings.register_profile(
    "ci",
    max_examples=1000,
    deadline=None,
    derandomize=True,
    print_blob=True,
    suppress_health_check=[HealthCheck.too_slow],
)
hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_result() -> Callable[..., TestResult]:
    """Factory fixture: TestResult with sensible defaults, overridable per field."""

    def _make(
        *,
        success: bool = True,
        finished: bool = True,
        time_elapsed: float = 100.0,
        cost: float = 0.001,
        matched: tuple[str, ...] = (),
        differences: tuple[ValueDifference, ...] = (),
        **overrides: Any,
    ) -> TestResult:
        fields: dict[str, Any] = {
            "is_finished": finished,
            "is_success": success,
            "input": "prompt",
            "expected_response": {},
            "actual_response": {},
            "time_elapsed": time_elapsed,
            "cost": cost,
            "differences": differences,
            "matched_fields": matched,
        }
        fields.update(overrides)
        return TestResult(**fields)

    return _make


@pytest.fixture
def write_jsonl(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: write entries (dicts or raw strings) as JSONL lines."""

    def _write(entries: list[Any], name: str = "cases.jsonl") -> Path:
        path = tmp_path / name
        lines = [e if isinstance(e, str) else json.dumps(e) for e in entries]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> GradingSettings:
    """Settings isolated from the environment, writing under tmp_path."""
    return GradingSettings(
        _env_file=None,
        cases_path=str(tmp_path / "cases.jsonl"),
        results_dir=str(tmp_path / "results"),
        workers=2,
    )
