"""Tolerant recursive comparison of JSON-like values.

Numbers and strings are graded leniently: a value outside tolerance is
recorded as a difference but only fails the comparison when its similarity
drops to zero. Shape mismatches (array length, object key set) are fatal and
stop recursion at that node.
"""

from __future__ import annotations

import math
import sys
from fractions import Fraction
from typing import Any

from rapidfuzz.distance import Levenshtein

from jsongrade.models import ValueDifference, ValueKind

RELATIVE_TOLERANCE = 0.1
ABSOLUTE_TOLERANCE = 0.1

_FLOAT_MAX = sys.float_info.max


def compare(
    expected: Any,
    actual: Any,
    path: tuple[str, ...] = (),
) -> tuple[bool, list[ValueDifference]]:
    """Compare two values and return (is_match, differences).

    Differences are listed in pre-order, depth-first traversal order.
    """
    differences: list[ValueDifference] = []
    is_match = compare_values(expected, actual, path, differences)
    return is_match, differences


def compare_values(
    expected: Any,
    actual: Any,
    path: tuple[str, ...],
    differences: list[ValueDifference],
) -> bool:
    """Recursive comparison step. Appends to ``differences`` in place."""
    e_kind = ValueKind.of(expected)
    a_kind = ValueKind.of(actual)

    if _identical(expected, actual, e_kind, a_kind):
        return True

    if _is_blank(expected, e_kind) or _is_blank(actual, a_kind):
        _record(differences, path, expected, actual, 0.0)
        return False

    if e_kind is not a_kind:
        _record(differences, path, expected, actual, 0.0)
        return False

    if e_kind is ValueKind.BOOLEAN:
        if expected != actual:
            _record(differences, path, expected, actual, 0.0)
            return False
        return True

    if e_kind is ValueKind.NUMBER:
        similarity = number_similarity(expected, actual)
        if not numbers_close(expected, actual):
            _record(differences, path, expected, actual, similarity)
        return similarity > 0

    if e_kind is ValueKind.STRING:
        similarity = string_similarity(expected, actual)
        if similarity < 1:
            _record(differences, path, expected, actual, similarity)
        return similarity > 0

    if e_kind is ValueKind.ARRAY:
        return _compare_arrays(expected, actual, path, differences)

    if e_kind is ValueKind.OBJECT:
        return _compare_objects(expected, actual, path, differences)

    # ValueKind.OTHER and ValueKind.NULL (NULL is always caught above)
    if expected != actual:
        _record(differences, path, expected, actual, 0.0)
        return False
    return True


def numbers_close(a: float, b: float) -> bool:
    """True if within 10% relative or 0.1 absolute, whichever is larger.

    Integers beyond float range are compared exactly.
    """
    if not (_is_finite(a) and _is_finite(b)):
        return False
    if _beyond_float(a, b):
        a, b = Fraction(a), Fraction(b)
        tolerance = max(
            Fraction(ABSOLUTE_TOLERANCE),
            Fraction(RELATIVE_TOLERANCE) * max(abs(a), abs(b)),
        )
    else:
        tolerance = max(ABSOLUTE_TOLERANCE, RELATIVE_TOLERANCE * max(abs(a), abs(b)))
    return abs(a - b) <= tolerance


def number_similarity(a: float, b: float) -> float:
    """1 minus relative distance, clamped to [0, 1]. 0 for non-finite input."""
    if not (_is_finite(a) and _is_finite(b)):
        return 0.0
    if _beyond_float(a, b):
        a, b = Fraction(a), Fraction(b)
    scale = max(abs(a), abs(b))
    if scale == 0:
        return 1.0
    return float(1 - min(abs(a - b) / scale, 1))


def string_similarity(a: str, b: str) -> float:
    """1 minus Levenshtein distance normalised by the longer length."""
    return Levenshtein.normalized_similarity(a, b)


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    return Levenshtein.distance(a, b)


def _is_finite(value: float) -> bool:
    # math.isfinite would convert huge ints to float and overflow
    return isinstance(value, int) or math.isfinite(value)


def _beyond_float(a: float, b: float) -> bool:
    return any(isinstance(x, int) and abs(x) > _FLOAT_MAX for x in (a, b))


def _compare_arrays(
    expected: list[Any] | tuple[Any, ...],
    actual: list[Any] | tuple[Any, ...],
    path: tuple[str, ...],
    differences: list[ValueDifference],
) -> bool:
    if len(expected) != len(actual):
        _record(
            differences,
            path,
            f"Array({len(expected)})",
            f"Array({len(actual)})",
            min(len(expected), len(actual)) / max(len(expected), len(actual)),
        )
        return False

    # all() stops at the first failing element
    return all(
        compare_values(item, actual[index], (*path, str(index)), differences)
        for index, item in enumerate(expected)
    )


def _compare_objects(
    expected: dict[Any, Any],
    actual: dict[Any, Any],
    path: tuple[str, ...],
    differences: list[ValueDifference],
) -> bool:
    expected_keys = list(expected)
    actual_keys = list(actual)
    missing = [k for k in expected_keys if k not in actual]
    extra = [k for k in actual_keys if k not in expected]

    if missing or extra:
        _record(
            differences,
            path,
            f"Object({', '.join(str(k) for k in expected_keys)})",
            f"Object({', '.join(str(k) for k in actual_keys)})",
            (len(expected_keys) - len(missing))
            / max(len(expected_keys), len(actual_keys)),
        )
        return False

    return all(
        compare_values(expected[key], actual[key], (*path, str(key)), differences)
        for key in expected_keys
    )


def _identical(
    expected: Any, actual: Any, e_kind: ValueKind, a_kind: ValueKind
) -> bool:
    """Reference identity, or equal scalars of the same kind."""
    if expected is actual:
        return True
    if e_kind is not a_kind or e_kind in (ValueKind.ARRAY, ValueKind.OBJECT):
        return False
    return expected == actual


def _is_blank(value: Any, kind: ValueKind) -> bool:
    """None, False, zero, NaN or the empty string. Empty containers are not blank."""
    if kind is ValueKind.NULL:
        return True
    if kind is ValueKind.BOOLEAN:
        return not value
    if kind is ValueKind.NUMBER:
        return value == 0 or value != value
    if kind is ValueKind.STRING:
        return value == ""
    return False


def _record(
    differences: list[ValueDifference],
    path: tuple[str, ...],
    expected: Any,
    actual: Any,
    similarity: float | None,
) -> None:
    differences.append(ValueDifference(
        key=(path[-1] if path else "") or "root",
        expected=expected,
        actual=actual,
        path=path,
        similarity=similarity,
    ))
