"""Immutable data models for structured-output grading."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class ValueKind(enum.Enum):
    """Closed set of JSON value kinds the comparator dispatches on."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    OTHER = "other"

    @classmethod
    def of(cls, value: Any) -> ValueKind:
        """Classify a value. bool is checked before int (bool subclasses int)."""
        if value is None:
            return cls.NULL
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, (list, tuple)):
            return cls.ARRAY
        if isinstance(value, dict):
            return cls.OBJECT
        return cls.OTHER


@dataclass(frozen=True)
class GradingCase:
    """One case to grade: a prompt, its expected output, optionally a recorded output."""

    id: str
    input: str  # user message text
    expected: Any
    messages: tuple[dict[str, str], ...] = ()  # conversation sent to the model
    actual: Any = None  # recorded model output, if any
    time_elapsed: float = 0.0  # ms, for recorded outputs
    cost: float = 0.0  # USD, for recorded outputs
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValueDifference:
    """One discrepancy between expected and actual at a specific path."""

    key: str  # last path segment, or "root"
    expected: Any
    actual: Any
    path: tuple[str, ...] = ()
    similarity: float | None = None  # 0.0-1.0, None when not meaningful

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "expected": self.expected,
            "actual": self.actual,
            "path": list(self.path),
            "similarity": self.similarity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValueDifference:
        return cls(
            key=data["key"],
            expected=data.get("expected"),
            actual=data.get("actual"),
            path=tuple(data.get("path", ())),
            similarity=data.get("similarity"),
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing one (expected, actual) pair."""

    is_match: bool
    differences: tuple[ValueDifference, ...] = ()
    matched_fields: tuple[str, ...] = ()  # expected ∩ actual
    missing_fields: tuple[str, ...] = ()  # expected - actual
    extra_fields: tuple[str, ...] = ()  # actual - expected


@dataclass(frozen=True)
class TestResult:
    """Full record of one graded case."""

    __test__ = False  # not a pytest test class

    is_finished: bool
    is_success: bool
    input: str
    expected_response: Any
    actual_response: Any
    time_elapsed: float  # milliseconds
    cost: float  # USD
    differences: tuple[ValueDifference, ...] = ()
    matched_fields: tuple[str, ...] = ()
    missing_fields: tuple[str, ...] = ()
    extra_fields: tuple[str, ...] = ()
    error: str | None = None

    @classmethod
    def unfinished(
        cls,
        input: str,
        expected_response: Any,
        *,
        error: str | None = None,
    ) -> TestResult:
        """Result for a case that failed before it could be compared."""
        return cls(
            is_finished=False,
            is_success=False,
            input=input,
            expected_response=expected_response,
            actual_response=None,
            time_elapsed=0.0,
            cost=0.0,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_finished": self.is_finished,
            "is_success": self.is_success,
            "input": self.input,
            "expected_response": self.expected_response,
            "actual_response": self.actual_response,
            "time_elapsed": self.time_elapsed,
            "cost": self.cost,
            "differences": [d.to_dict() for d in self.differences],
            "matched_fields": list(self.matched_fields),
            "missing_fields": list(self.missing_fields),
            "extra_fields": list(self.extra_fields),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestResult:
        return cls(
            is_finished=data["is_finished"],
            is_success=data["is_success"],
            input=data.get("input", ""),
            expected_response=data.get("expected_response"),
            actual_response=data.get("actual_response"),
            time_elapsed=data.get("time_elapsed", 0.0),
            cost=data.get("cost", 0.0),
            differences=tuple(
                ValueDifference.from_dict(d) for d in data.get("differences", ())
            ),
            matched_fields=tuple(data.get("matched_fields", ())),
            missing_fields=tuple(data.get("missing_fields", ())),
            extra_fields=tuple(data.get("extra_fields", ())),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class FieldFailure:
    """Failure rate of a single field path."""

    field: str
    failure_rate: float


@dataclass(frozen=True)
class MetricsResult:
    """Aggregated metrics for one batch of test results."""

    # Counts
    total_tests: int
    successful_tests: int
    failed_tests: int
    unfinished_tests: int

    # Time (ms, finished cases only)
    average_time: float
    min_time: float
    max_time: float
    median_time: float
    p95_time: float
    p99_time: float

    # Cost (USD, finished cases only)
    average_cost: float
    total_cost: float
    cost_per_success: float

    # Accuracy
    success_rate: float
    precision: float
    recall: float
    f1_score: float

    # Field-level
    field_success_rates: dict[str, float] = field(default_factory=dict)
    most_failed_fields: tuple[FieldFailure, ...] = ()

    # Difference key -> occurrences across failed cases
    error_distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_tests": self.total_tests,
            "successful_tests": self.successful_tests,
            "failed_tests": self.failed_tests,
            "unfinished_tests": self.unfinished_tests,
            "average_time": self.average_time,
            "min_time": self.min_time,
            "max_time": self.max_time,
            "median_time": self.median_time,
            "p95_time": self.p95_time,
            "p99_time": self.p99_time,
            "average_cost": self.average_cost,
            "total_cost": self.total_cost,
            "cost_per_success": self.cost_per_success,
            "success_rate": self.success_rate,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "field_success_rates": dict(self.field_success_rates),
            "most_failed_fields": [
                {"field": f.field, "failure_rate": f.failure_rate}
                for f in self.most_failed_fields
            ],
            "error_distribution": dict(self.error_distribution),
        }
