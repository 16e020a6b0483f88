"""Chat-style JSONL case parser.

Each line is a JSON object with a "messages" array:

    {"messages": [{"role": "user", "content": "What should I eat?"},
                  {"role": "assistant", "content": "{\\"questionRecognized\\": true}"}]}

The last assistant message is the expected response. Optional keys on a line:
  - id: case identifier (default "case-<line>")
  - actual: recorded model output to grade offline
  - time_elapsed / cost: timing (ms) and cost (USD) of the recorded output
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jsongrade.exceptions import CaseFormatError
from jsongrade.models import GradingCase

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")
NO_USER_INPUT = "No user input found"


class ChatJsonlParser:
    """Parse a chat JSONL file into grading cases."""

    def __init__(
        self,
        *,
        prompt_override: list[dict[str, str]] | None = None,
        skip_validation: bool = False,
    ) -> None:
        self._prompt_override = prompt_override
        self._skip_validation = skip_validation

    @property
    def name(self) -> str:
        return "chat-jsonl"

    def parse(self, path: Path) -> tuple[list[GradingCase], list[str]]:
        """Parse every non-blank line of ``path``.

        Invalid lines are skipped and reported as "Line N: ..." messages.

        Raises:
            CaseFormatError: If the file cannot be read.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise CaseFormatError(
                f"Cannot read case file {path}: {exc}", path=str(path)
            ) from exc

        cases: list[GradingCase] = []
        errors: list[str] = []

        for line_num, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as exc:
                errors.append(f"Line {line_num}: JSON parse error - {exc}")
                continue

            case, error = self._parse_entry(entry, line_num)
            if error:
                errors.append(f"Line {line_num}: {error}")
            else:
                cases.append(case)

        logger.info(
            "Parsed %d cases from %s (%d lines skipped)",
            len(cases),
            path,
            len(errors),
        )
        return cases, errors

    def _parse_entry(
        self, entry: Any, line_num: int
    ) -> tuple[GradingCase | None, str | None]:
        if not isinstance(entry, dict):
            return None, "Line must be a JSON object"

        messages = entry.get("messages")
        if not self._skip_validation:
            error = _validate_messages(messages)
            if error:
                return None, error
        if not isinstance(messages, list):
            messages = []

        assistant = [m for m in messages if _role(m) == "assistant"]
        if not assistant:
            return None, "No assistant message found for expected response"
        expected = assistant[-1].get("content")

        user_message = next((m for m in messages if _role(m) == "user"), None)
        user_input = user_message.get("content", "") if user_message else NO_USER_INPUT

        if self._prompt_override is not None:
            if user_message is None:
                return None, "No user message found in JSONL when using prompt override"
            conversation = [*self._prompt_override, user_message]
        else:
            # Drop the trailing assistant message: that's the expected response
            last = len(messages) - 1
            conversation = [
                m for i, m in enumerate(messages)
                if not (i == last and _role(m) == "assistant")
            ]

        try:
            time_elapsed = float(entry.get("time_elapsed", 0.0))
            cost = float(entry.get("cost", 0.0))
        except (TypeError, ValueError):
            return None, "'time_elapsed' and 'cost' must be numbers"

        return GradingCase(
            id=str(entry.get("id", f"case-{line_num}")),
            input=user_input,
            expected=expected,
            messages=tuple(
                {"role": m.get("role", ""), "content": m.get("content", "")}
                for m in conversation
                if isinstance(m, dict)
            ),
            actual=entry.get("actual"),
            time_elapsed=time_elapsed,
            cost=cost,
            metadata={"line": line_num},
        ), None


def load_prompt(path: str | Path) -> list[dict[str, str]]:
    """Load a prompt override file as a list of messages.

    ``.json`` files must hold an array of messages; ``.md``, ``.txt`` and
    extension-less files become a single system message.

    Raises:
        CaseFormatError: On unsupported extensions or unreadable files.
    """
    prompt_path = Path(path)
    ext = prompt_path.suffix.lower()
    if ext not in (".json", ".md", ".txt", ""):
        raise CaseFormatError(
            f"Unsupported prompt file extension: {ext}. "
            "Supported extensions: .json, .md, .txt, or no extension",
            path=str(prompt_path),
        )

    try:
        content = prompt_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CaseFormatError(
            f"Error loading prompt from {prompt_path}: {exc}", path=str(prompt_path)
        ) from exc

    if ext != ".json":
        return [{"role": "system", "content": content.strip()}]

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise CaseFormatError(
            f"Error loading prompt from {prompt_path}: {exc}", path=str(prompt_path)
        ) from exc
    if not isinstance(parsed, list):
        raise CaseFormatError(
            "JSON prompt file must contain an array of messages",
            path=str(prompt_path),
        )
    return parsed


def _role(message: Any) -> str | None:
    return message.get("role") if isinstance(message, dict) else None


def _validate_messages(messages: Any) -> str | None:
    """Return an error message, or None if the messages array is well formed."""
    if not isinstance(messages, list):
        return "Missing or invalid 'messages' array"
    if not messages:
        return "'messages' array must have at least one message"
    for msg in messages:
        if (
            not isinstance(msg, dict)
            or not msg.get("role")
            or not isinstance(msg.get("content"), str)
            or not msg["content"]
        ):
            return "Invalid message structure - need 'role' and 'content'"
        if msg["role"] not in VALID_ROLES:
            return (
                f"Invalid role '{msg['role']}' - must be 'system', 'user', or 'assistant'"
            )
    return None
