"""Per-case result store for resumable grading runs.

Each graded case is written to results/{dataset}/{case_id}.json together
with a fingerprint of everything that decides its verdict (input,
conversation, expected and recorded output). A stored result is reused only
while the fingerprint still matches, so editing a case file, or grading a
different file under the same dataset, re-grades the affected cases.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any

from jsongrade.models import GradingCase, TestResult

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-. ]")
_REPORT_FILES = ("report.json",)


def case_fingerprint(case: GradingCase) -> str:
    """SHA-256 over the parts of a case that determine its verdict."""
    payload = json.dumps(
        [case.input, list(case.messages), case.expected, case.actual],
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class Checkpoint:
    """Finished results of one dataset, stored as one JSON file per case."""

    def __init__(self, results_dir: str | Path, dataset: str = "default") -> None:
        self.dataset = dataset
        self._root = Path(results_dir).resolve()
        self._dir = (self._root / _safe_name(dataset)).resolve()

    def _case_path(self, case_id: str) -> Path:
        path = (self._dir / f"{_safe_name(case_id)}.json").resolve()
        if path.parent != self._dir or not path.is_relative_to(self._root):
            raise ValueError(f"Path traversal detected: {self.dataset}/{case_id}")
        return path

    def lookup(self, case: GradingCase) -> TestResult | None:
        """Stored result for ``case``, or None if missing or stale."""
        entry = self._read(self._case_path(case.id))
        if entry is None:
            return None
        if entry.get("fingerprint") != case_fingerprint(case):
            logger.info("Case %s changed since it was checkpointed, re-grading", case.id)
            return None
        return TestResult.from_dict(entry["result"])

    def record(self, index: int, case: GradingCase, result: TestResult) -> None:
        """Store the result of the case at position ``index`` of the run."""
        path = self._case_path(case.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        entry = {
            "index": index,
            "case_id": case.id,
            "fingerprint": case_fingerprint(case),
            "result": result.to_dict(),
        }
        path.write_text(json.dumps(entry, indent=2, default=str), encoding="utf-8")

    def results(self) -> list[TestResult]:
        """Every stored result, in the order the cases appeared in the run."""
        entries = [e for e in map(self._read, self._files()) if e is not None]
        entries.sort(key=lambda e: e.get("index", 0))
        return [TestResult.from_dict(e["result"]) for e in entries]

    def clear(self) -> int:
        """Remove every stored result of the dataset. Returns count removed."""
        files = self._files()
        for path in files:
            path.unlink()
        return len(files)

    def _files(self) -> list[Path]:
        if not self._dir.is_dir():
            return []
        return sorted(
            p for p in self._dir.glob("*.json") if p.name not in _REPORT_FILES
        )

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable checkpoint %s: %s", path, exc)
            return None
        if not isinstance(entry, dict) or not isinstance(entry.get("result"), dict):
            logger.warning("Ignoring malformed checkpoint %s", path)
            return None
        return entry


def _safe_name(name: str) -> str:
    """Reduce a dataset name or case id to one safe filename component."""
    safe = _UNSAFE_CHARS.sub("_", name).replace("..", "_")
    return "_" if safe in ("", ".") else safe
