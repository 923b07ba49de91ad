"""Interactive session menu shown when a terminal opens.

Offers continue / resume / new / skip for the claude CLI. The menu reads a
single key with a timeout (timeout counts as "continue"), runs at most one
claude process, and records which session this terminal ended up on.
"""

import asyncio
import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import click
import psutil
from prompt_toolkit import Application
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import Window
from prompt_toolkit.layout.controls import FormattedTextControl
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule

from tether.config.models import MenuConfig
from tether.session.models import SessionRow
from tether.session.registry import SessionRegistry
from tether.session.terminal import TerminalStateTracker
from tether.utils.formatting import short_id
from tether.utils.logging import get_logger

logger = get_logger(__name__)

CANCEL_TOKENS = ("q", "Q")


class MenuChoice(str, Enum):
    CONTINUE_LAST = "continue"
    RESUME_LIST = "resume"
    NEW_SESSION = "new"
    SKIP = "skip"
    UNKNOWN = "unknown"


class PickerResult(NamedTuple):
    """Outcome of one menu run.

    Attributes:
        choice: The branch taken.
        session_id: Session recorded for this terminal, if any.
        invoked: Whether the claude CLI was started.
        exit_code: Exit status of the claude CLI when it was started.
    """

    choice: MenuChoice
    session_id: Optional[str] = None
    invoked: bool = False
    exit_code: Optional[int] = None


def parse_choice(key: Optional[str]) -> MenuChoice:
    """Map the key read at the prompt to a menu branch. None means timeout."""
    if key is None:
        return MenuChoice.CONTINUE_LAST
    key = key.strip()
    if key in ("", "c", "C"):
        return MenuChoice.CONTINUE_LAST
    if key in ("r", "R"):
        return MenuChoice.RESUME_LIST
    if key in ("n", "N"):
        return MenuChoice.NEW_SESSION
    if key in ("s", "S"):
        return MenuChoice.SKIP
    return MenuChoice.UNKNOWN


def parse_selection(answer: Optional[str], count: int) -> Optional[int]:
    """Return the 0-based index for a 1-based answer, or None to cancel."""
    if answer is None:
        return None
    answer = answer.strip()
    if not answer or answer in CANCEL_TOKENS or not answer.isdigit():
        return None
    number = int(answer)
    if 1 <= number <= count:
        return number - 1
    return None


def read_key(prompt: str, timeout: float) -> Optional[str]:
    """Read one key press, returning None if nothing is pressed within timeout.

    Enter returns an empty string; Ctrl-C and Ctrl-D return "s" (skip).
    """
    kb = KeyBindings()

    @kb.add("<any>")
    def _handle_any(event):
        event.app.exit(result=event.data)

    @kb.add("enter")
    def _handle_enter(event):
        event.app.exit(result="")

    @kb.add("c-c")
    @kb.add("c-d")
    def _handle_cancel(event):
        event.app.exit(result="s")

    app: Application = Application(
        layout=Layout(Window(content=FormattedTextControl(text=HTML(prompt)), height=1)),
        key_bindings=kb,
        full_screen=False,
        mouse_support=False,
    )

    def _expire() -> None:
        if app.is_running and app.future is not None and not app.future.done():
            app.exit(result=None)

    def _arm_timer() -> None:
        asyncio.get_running_loop().call_later(timeout, _expire)

    return app.run(pre_run=_arm_timer)


def read_line(prompt: str) -> Optional[str]:
    try:
        return click.prompt(prompt, default="", show_default=False, prompt_suffix="")
    except click.Abort:
        return None


def count_running_instances(command: str) -> int:
    """Count other running processes named like the claude binary. Best effort."""
    name = Path(command).name
    own_pid = os.getpid()
    count = 0
    try:
        for proc in psutil.process_iter(["name", "pid"]):
            if proc.info.get("pid") == own_pid:
                continue
            if proc.info.get("name") == name:
                count += 1
    except (psutil.Error, OSError) as e:
        logger.debug(f"Process listing failed: {e}")
        return 0
    return count


class ClaudeLauncher:
    """Runs the claude CLI in the foreground and waits for it to exit."""

    def __init__(
        self,
        command: str = "claude",
        flags: Sequence[str] = (),
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.command = command
        self.flags = list(flags)
        self.runner = runner

    @property
    def flags_string(self) -> str:
        return " ".join(self.flags)

    def resume(self, session_id: str) -> int:
        return self._run([self.command, "-r", session_id, *self.flags])

    def start_new(self) -> int:
        return self._run([self.command, *self.flags])

    def _run(self, args: List[str]) -> int:
        logger.info(f"Launching {' '.join(args)}")
        try:
            return self.runner(args).returncode
        except KeyboardInterrupt:
            return 130
        except OSError as e:
            logger.warning(f"Could not start {self.command}: {e}")
            return 127


class SessionPicker:
    """The continue / resume / new / skip menu for one terminal."""

    def __init__(
        self,
        registry: SessionRegistry,
        tracker: TerminalStateTracker,
        launcher: ClaudeLauncher,
        config: Optional[MenuConfig] = None,
        console: Optional[Console] = None,
        key_reader: Callable[[str, float], Optional[str]] = read_key,
        line_reader: Callable[[str], Optional[str]] = read_line,
        instance_counter: Callable[[str], int] = count_running_instances,
    ):
        self.registry = registry
        self.tracker = tracker
        self.launcher = launcher
        self.config = config or MenuConfig()
        self.console = console or Console()
        self.key_reader = key_reader
        self.line_reader = line_reader
        self.instance_counter = instance_counter

    def run(self) -> PickerResult:
        last_session = self.tracker.last_session()
        self._render_menu(last_session)

        key = self.key_reader("  Choice [c/r/n/s]: ", self.config.timeout_seconds)
        choice = parse_choice(key)
        self.console.print()
        logger.debug(f"Menu choice {key!r} -> {choice.value}")

        if choice == MenuChoice.CONTINUE_LAST:
            return self.continue_last(last_session)
        if choice == MenuChoice.RESUME_LIST:
            return self.resume_from_list()
        if choice == MenuChoice.NEW_SESSION:
            self.console.print("  Starting new Claude session...")
            return self.new_session()
        if choice == MenuChoice.SKIP:
            self.console.print("  Okay, just a shell. Type [bold]claude[/bold] or [bold]cr[/bold] when you want Claude.")
            return PickerResult(MenuChoice.SKIP)

        self.console.print("  Unknown option. Type [bold]claude[/bold] to start manually, or [bold]tether menu[/bold].")
        return PickerResult(MenuChoice.UNKNOWN)

    def continue_last(self, last_session: Optional[str]) -> PickerResult:
        if last_session is None:
            self.console.print("  No previous session for this terminal, starting new...")
            return self.new_session()
        self.console.print(f"  Resuming session {short_id(last_session)}...")
        return self._launch(MenuChoice.CONTINUE_LAST, last_session)

    def new_session(self) -> PickerResult:
        return self._launch(MenuChoice.NEW_SESSION, None)

    def resume_from_list(self) -> PickerResult:
        rows = self.registry.rows(limit=self.config.recent_limit)
        self.console.print("  [bold]Recent Sessions[/bold]")
        self.render_sessions(rows)
        if not rows:
            return PickerResult(MenuChoice.RESUME_LIST)

        answer = self.line_reader("  Enter number (or 'q' to cancel): ")
        index = parse_selection(answer, len(rows))
        if index is None:
            if answer is None or answer.strip() in ("",) + CANCEL_TOKENS:
                self.console.print("  Cancelled.")
            else:
                self.console.print("  Invalid selection.")
            return PickerResult(MenuChoice.RESUME_LIST)

        session_id = rows[index].session_id
        self.console.print(f"  Resuming session: {session_id}")
        return self._launch(MenuChoice.RESUME_LIST, session_id)

    def render_sessions(self, rows: Sequence[SessionRow]) -> None:
        if not rows:
            self.console.print("  No sessions found.")
            return
        for row in rows:
            self.console.print()
            self.console.print(Rule(style="dim"))
            self.console.print(f"  [bold cyan][{row.rank}][/bold cyan]")
            self.console.print(f"  ID:       {row.session_id}", highlight=False)
            self.console.print(f"  Messages: {row.messages}  |  Size: {row.size}", highlight=False)
            self.console.print(f"  Active:   {row.last_active}", highlight=False)
            self.console.print(f"  Started:  {row.started}", highlight=False)
            if row.first_prompt:
                self.console.print(f'  First:    "{row.first_prompt}"', markup=False, highlight=False)
            if row.last_prompt:
                self.console.print(f'  Latest:   "{row.last_prompt}"', markup=False, highlight=False)
        self.console.print()

    def _render_menu(self, last_session: Optional[str]) -> None:
        self.console.print()
        self.console.print(Panel.fit("  Claude Session Manager  ", border_style="cyan"))

        running = self.instance_counter(self.launcher.command)
        if running > 0:
            self.console.print(f"  [dim]({running} Claude instance(s) running in other terminals)[/dim]")
        self.console.print()

        self.console.print("  [bold]\\[c][/bold] Continue last session for this terminal")
        if last_session:
            self.console.print(f"      └─ {short_id(last_session)}...", highlight=False)
        self.console.print("  [bold]\\[r][/bold] Resume a specific session (pick from list)")
        self.console.print("  [bold]\\[n][/bold] Start new session")
        self.console.print("  [bold]\\[s][/bold] Skip - just give me a shell")
        self.console.print()

    def _log_marker(self) -> Optional[Tuple[int, int]]:
        try:
            stat = self.registry.history_path.stat()
        except OSError:
            return None
        return stat.st_size, stat.st_mtime_ns

    def _launch(self, choice: MenuChoice, session_id: Optional[str]) -> PickerResult:
        before = self._log_marker()
        if session_id is None:
            exit_code = self.launcher.start_new()
        else:
            exit_code = self.launcher.resume(session_id)
        recorded = self._record_active_session(before, session_id)
        return PickerResult(choice, session_id=recorded, invoked=True, exit_code=exit_code)

    def _record_active_session(self, before: Optional[Tuple[int, int]], resumed: Optional[str]) -> Optional[str]:
        """Work out which session the CLI just used and remember it for this terminal.

        The prompt log's newest line names it when the log grew during the run;
        otherwise the explicitly resumed id is kept. Nothing is saved when
        neither is known.
        """
        active = resumed
        if self._log_marker() != before:
            active = self.registry.latest_session_id() or resumed
        if active is None:
            logger.debug("No active session id recovered; terminal state unchanged")
            return None
        try:
            self.tracker.save(active, self.launcher.flags_string)
        except OSError as e:
            logger.warning(f"Could not record session for terminal {self.tracker.terminal_id}: {e}")
            return None
        return active
