"""Abstract protocol for case file parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from jsongrade.models import GradingCase


class CaseParser(Protocol):
    """Protocol for grading case parsers."""

    def parse(self, path: Path) -> tuple[list[GradingCase], list[str]]:
        """Parse a case file from disk.

        Returns:
            (cases, errors)
            - cases: GradingCase objects, in file order
            - errors: human-readable messages for lines that were skipped
        """
        ...

    @property
    def name(self) -> str:
        """Short identifier for this format (e.g. 'chat-jsonl')."""
        ...
