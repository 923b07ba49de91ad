"""Tests for the interactive session menu with scripted input."""

import subprocess
from typing import List, Optional
from unittest.mock import MagicMock

import psutil
import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput
from rich.console import Console

from tether.cli.picker import (
    ClaudeLauncher,
    MenuChoice,
    SessionPicker,
    count_running_instances,
    parse_choice,
    parse_selection,
    read_key,
)
from tether.config.models import MenuConfig
from tether.session.registry import SessionRegistry
from tether.session.terminal import TerminalStateTracker

from conftest import prompt_event, write_history


class FakeLauncher(ClaudeLauncher):
    """Records launches and optionally appends to the prompt log like claude would."""

    def __init__(self, history_path=None, writes_session: Optional[str] = None):
        super().__init__("claude", ["--dangerously-skip-permissions"])
        self.calls: List[List[str]] = []
        self.history_path = history_path
        self.writes_session = writes_session

    def _run(self, args):
        self.calls.append(args)
        if self.writes_session:
            with open(self.history_path, "a", encoding="utf-8") as f:
                f.write(f'{{"sessionId": "{self.writes_session}", "timestamp": 9999, "display": "hi"}}\n')
        return 0


@pytest.fixture
def history(tmp_path):
    return write_history(
        tmp_path / "history.jsonl",
        [prompt_event("older-session", 100, "first"), prompt_event("newer-session", 200, "second")],
    )


@pytest.fixture
def registry(history, tmp_path):
    return SessionRegistry(history, tmp_path / "projects")


@pytest.fixture
def tracker(tmp_path):
    return TerminalStateTracker(tmp_path / "sessions", terminal_id="pts-0")


def make_picker(registry, tracker, launcher, key=None, line=None, running=0):
    keys_seen = []

    def key_reader(prompt, timeout):
        keys_seen.append(timeout)
        return key

    picker = SessionPicker(
        registry,
        tracker,
        launcher,
        config=MenuConfig(timeout_seconds=5),
        console=Console(record=True, width=100),
        key_reader=key_reader,
        line_reader=lambda prompt: line,
        instance_counter=lambda command: running,
    )
    picker.keys_seen = keys_seen
    return picker


class TestParseChoice:
    @pytest.mark.parametrize(
        "key, expected",
        [
            (None, MenuChoice.CONTINUE_LAST),
            ("", MenuChoice.CONTINUE_LAST),
            ("c", MenuChoice.CONTINUE_LAST),
            ("C", MenuChoice.CONTINUE_LAST),
            ("r", MenuChoice.RESUME_LIST),
            ("R", MenuChoice.RESUME_LIST),
            ("n", MenuChoice.NEW_SESSION),
            ("N", MenuChoice.NEW_SESSION),
            ("s", MenuChoice.SKIP),
            ("S", MenuChoice.SKIP),
            ("x", MenuChoice.UNKNOWN),
            ("7", MenuChoice.UNKNOWN),
        ],
    )
    def test_keys(self, key, expected):
        assert parse_choice(key) == expected


@pytest.fixture
def terminal_input():
    with create_pipe_input() as pipe:
        with create_app_session(input=pipe, output=DummyOutput()):
            yield pipe


class TestReadKey:
    def test_timeout_returns_none(self, terminal_input):
        assert read_key("Choice: ", 0.2) is None

    def test_returns_pressed_key(self, terminal_input):
        terminal_input.send_text("r")

        assert read_key("Choice: ", 5) == "r"

    def test_enter_returns_empty_string(self, terminal_input):
        terminal_input.send_text("\r")

        assert read_key("Choice: ", 5) == ""


class TestParseSelection:
    def test_valid_numbers_are_one_based(self):
        assert parse_selection("1", 3) == 0
        assert parse_selection(" 3 ", 3) == 2

    @pytest.mark.parametrize("answer", [None, "", "q", "Q", "0", "4", "-1", "abc", "1.5"])
    def test_cancel_and_invalid(self, answer):
        assert parse_selection(answer, 3) is None


class TestContinueLast:
    def test_resumes_terminal_session(self, registry, tracker, history):
        tracker.save("older-session")
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key="c")

        result = picker.run()

        assert result.choice == MenuChoice.CONTINUE_LAST
        assert result.invoked
        assert launcher.calls == [["claude", "-r", "older-session", "--dangerously-skip-permissions"]]
        # The prompt log did not change, so the resumed id is kept.
        assert result.session_id == "older-session"
        assert tracker.last_session() == "older-session"

    def test_timeout_counts_as_continue(self, registry, tracker):
        tracker.save("older-session")
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key=None)

        result = picker.run()

        assert result.choice == MenuChoice.CONTINUE_LAST
        assert picker.keys_seen == [5]

    def test_without_previous_session_starts_new(self, registry, tracker):
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key="")

        result = picker.run()

        assert result.choice == MenuChoice.NEW_SESSION
        assert launcher.calls == [["claude", "--dangerously-skip-permissions"]]

    def test_records_session_from_prompt_log(self, registry, tracker, history):
        tracker.save("older-session")
        launcher = FakeLauncher(history, writes_session="forked-session")
        picker = make_picker(registry, tracker, launcher, key="c")

        result = picker.run()

        assert result.session_id == "forked-session"
        assert tracker.last_session() == "forked-session"
        assert tracker.load().flags == "--dangerously-skip-permissions"


class TestResumeList:
    def test_selecting_a_row_resumes_it(self, registry, tracker):
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key="r", line="2")

        result = picker.run()

        assert result.choice == MenuChoice.RESUME_LIST
        assert launcher.calls == [["claude", "-r", "older-session", "--dangerously-skip-permissions"]]
        assert tracker.last_session() == "older-session"

    @pytest.mark.parametrize("line", ["q", "", None, "9", "abc"])
    def test_cancel_or_invalid_invokes_nothing(self, registry, tracker, line):
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key="r", line=line)

        result = picker.run()

        assert result.choice == MenuChoice.RESUME_LIST
        assert not result.invoked
        assert launcher.calls == []
        assert tracker.last_session() is None

    def test_lists_sessions_newest_first(self, registry, tracker):
        picker = make_picker(registry, tracker, FakeLauncher(), key="r", line="q")

        picker.run()

        output = picker.console.export_text()
        assert output.index("newer-session") < output.index("older-session")
        assert 'Latest:   "second"' in output

    def test_empty_registry(self, tmp_path, tracker):
        registry = SessionRegistry(tmp_path / "absent.jsonl", tmp_path)
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key="r", line="1")

        result = picker.run()

        assert not result.invoked
        assert "No sessions found" in picker.console.export_text()


class TestOtherChoices:
    def test_new_session(self, registry, tracker, history):
        launcher = FakeLauncher(history, writes_session="brand-new")
        picker = make_picker(registry, tracker, launcher, key="n")

        result = picker.run()

        assert result.choice == MenuChoice.NEW_SESSION
        assert result.session_id == "brand-new"
        assert launcher.calls == [["claude", "--dangerously-skip-permissions"]]

    def test_new_session_without_prompt_keeps_state(self, registry, tracker):
        tracker.save("older-session")
        picker = make_picker(registry, tracker, FakeLauncher(), key="n")

        result = picker.run()

        assert result.invoked
        assert result.session_id is None
        assert tracker.last_session() == "older-session"

    @pytest.mark.parametrize("key, choice", [("s", MenuChoice.SKIP), ("z", MenuChoice.UNKNOWN)])
    def test_skip_and_unknown_invoke_nothing(self, registry, tracker, key, choice):
        tracker.save("older-session")
        launcher = FakeLauncher()
        picker = make_picker(registry, tracker, launcher, key=key)

        result = picker.run()

        assert result.choice == choice
        assert not result.invoked
        assert launcher.calls == []
        assert tracker.last_session() == "older-session"

    def test_menu_shows_running_instances_and_hint(self, registry, tracker):
        tracker.save("0123456789abcdef")
        picker = make_picker(registry, tracker, FakeLauncher(), key="s", running=2)

        picker.run()

        output = picker.console.export_text()
        assert "2 Claude instance(s) running" in output
        assert "01234567..." in output
        assert "0123456789" not in output


class TestClaudeLauncher:
    def test_resume_arguments(self):
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 3))
        launcher = ClaudeLauncher("claude", ["--flag"], runner=runner)

        assert launcher.resume("abc") == 3
        runner.assert_called_once_with(["claude", "-r", "abc", "--flag"])

    def test_missing_binary_returns_127(self):
        runner = MagicMock(side_effect=FileNotFoundError("claude"))

        assert ClaudeLauncher("claude", runner=runner).start_new() == 127


class TestCountRunningInstances:
    def test_counts_matching_names(self, monkeypatch):
        procs = [
            MagicMock(info={"name": "claude", "pid": 1}),
            MagicMock(info={"name": "bash", "pid": 2}),
            MagicMock(info={"name": "claude", "pid": 3}),
        ]
        monkeypatch.setattr("tether.cli.picker.psutil.process_iter", lambda attrs: iter(procs))

        assert count_running_instances("/usr/local/bin/claude") == 2

    def test_listing_failure_counts_zero(self, monkeypatch):
        def boom(attrs):
            raise psutil.AccessDenied()

        monkeypatch.setattr("tether.cli.picker.psutil.process_iter", boom)

        assert count_running_instances("claude") == 0
