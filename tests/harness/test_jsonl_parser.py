"""Chat JSONL parser tests — case extraction, line errors, prompt overrides."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from jsongrade.datasets.jsonl import ChatJsonlParser, load_prompt
from jsongrade.exceptions import CaseFormatError
from tests.helpers.cases import chat_case

WriteJsonl = Callable[..., Path]


@pytest.mark.quick
@pytest.mark.harness
class TestChatJsonlParser:

    def test_parses_expected_input_and_conversation(self, write_jsonl: WriteJsonl) -> None:
        path = write_jsonl([
            chat_case("What should I eat?", {"food": "pasta"}, system="Be brief."),
        ])
        cases, errors = ChatJsonlParser().parse(path)

        assert errors == []
        assert len(cases) == 1
        case = cases[0]
        assert case.id == "case-1"
        assert case.input == "What should I eat?"
        assert json.loads(case.expected) == {"food": "pasta"}
        assert [m["role"] for m in case.messages] == ["system", "user"]
        assert case.actual is None

    def test_recorded_output_fields(self, write_jsonl: WriteJsonl) -> None:
        path = write_jsonl([
            chat_case(
                "q", {"a": 1},
                actual={"a": 1}, id="first", time_elapsed=250, cost=0.003,
            ),
        ])
        case = ChatJsonlParser().parse(path)[0][0]
        assert case.id == "first"
        assert case.actual == {"a": 1}
        assert case.time_elapsed == 250.0
        assert case.cost == 0.003

    def test_last_assistant_message_is_expected(self, write_jsonl: WriteJsonl) -> None:
        entry = {"messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": '{"turn": 1}'},
            {"role": "user", "content": "again"},
            {"role": "assistant", "content": '{"turn": 2}'},
        ]}
        case = ChatJsonlParser().parse(write_jsonl([entry]))[0][0]
        assert case.expected == '{"turn": 2}'
        assert case.input == "hi"
        assert len(case.messages) == 3

    def test_invalid_lines_are_reported_and_skipped(self, write_jsonl: WriteJsonl) -> None:
        path = write_jsonl([
            chat_case("ok", {"a": 1}),
            "not json",
            "",
            {"messages": []},
            {"messages": [{"role": "tool", "content": "x"}]},
            {"messages": [{"role": "user", "content": "no answer"}]},
            {"messages": [{"role": "user"}]},
            chat_case("ok too", {"b": 2}),
        ])
        cases, errors = ChatJsonlParser().parse(path)

        assert [c.input for c in cases] == ["ok", "ok too"]
        assert cases[1].id == "case-8"
        assert len(errors) == 5
        assert errors[0].startswith("Line 2: JSON parse error")
        assert errors[1] == "Line 4: 'messages' array must have at least one message"
        assert errors[2].startswith("Line 5: Invalid role 'tool'")
        assert errors[3] == "Line 6: No assistant message found for expected response"
        assert errors[4] == "Line 7: Invalid message structure - need 'role' and 'content'"

    def test_skip_validation_still_needs_assistant(self, write_jsonl: WriteJsonl) -> None:
        path = write_jsonl([
            {"messages": [{"role": "tool", "content": "x"},
                          {"role": "assistant", "content": "{}"}]},
            {"other": True},
        ])
        cases, errors = ChatJsonlParser(skip_validation=True).parse(path)
        assert len(cases) == 1
        assert cases[0].input == "No user input found"
        assert errors == ["Line 2: No assistant message found for expected response"]

    def test_prompt_override_replaces_context(self, write_jsonl: WriteJsonl) -> None:
        override = [{"role": "system", "content": "Answer in JSON."}]
        path = write_jsonl([chat_case("q", {"a": 1}, system="Old prompt")])
        case = ChatJsonlParser(prompt_override=override).parse(path)[0][0]
        assert case.messages == (
            {"role": "system", "content": "Answer in JSON."},
            {"role": "user", "content": "q"},
        )

    def test_non_numeric_cost_is_line_error(self, write_jsonl: WriteJsonl) -> None:
        path = write_jsonl([chat_case("q", {"a": 1}, cost="cheap")])
        cases, errors = ChatJsonlParser().parse(path)
        assert cases == []
        assert errors == ["Line 1: 'time_elapsed' and 'cost' must be numbers"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(CaseFormatError, match="Cannot read case file"):
            ChatJsonlParser().parse(tmp_path / "missing.jsonl")


@pytest.mark.quick
@pytest.mark.harness
class TestLoadPrompt:

    @pytest.mark.parametrize("name", ["prompt.md", "prompt.txt", "prompt"])
    def test_text_becomes_system_message(self, tmp_path: Path, name: str) -> None:
        path = tmp_path / name
        path.write_text("  You extract invoices.\n", encoding="utf-8")
        assert load_prompt(path) == [{"role": "system", "content": "You extract invoices."}]

    def test_json_array(self, tmp_path: Path) -> None:
        messages = [{"role": "system", "content": "a"}, {"role": "assistant", "content": "b"}]
        path = tmp_path / "prompt.json"
        path.write_text(json.dumps(messages), encoding="utf-8")
        assert load_prompt(path) == messages

    def test_json_must_be_array(self, tmp_path: Path) -> None:
        path = tmp_path / "prompt.json"
        path.write_text('{"role": "system"}', encoding="utf-8")
        with pytest.raises(CaseFormatError, match="array of messages"):
            load_prompt(path)

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "prompt.yaml"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(CaseFormatError, match="Unsupported prompt file extension"):
            load_prompt(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(CaseFormatError, match="Error loading prompt"):
            load_prompt(tmp_path / "nope.md")
