"""Harness-level exceptions.

The grading core never raises; these cover the surrounding harness
(case files, responders).
"""

from __future__ import annotations


class GradingError(Exception):
    """Base class for harness errors."""


class CaseFormatError(GradingError):
    """A case or prompt file is missing, unreadable or malformed."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ResponderError(GradingError):
    """A responder could not produce an output for a case."""

    def __init__(self, message: str, *, case_id: str | None = None) -> None:
        super().__init__(message)
        self.case_id = case_id
