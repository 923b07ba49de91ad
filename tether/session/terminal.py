"""Per-terminal record of the last active session."""

import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from tether.session.models import TerminalState
from tether.utils.logging import get_logger

logger = get_logger(__name__)


def detect_terminal_id() -> str:
    """Identify the controlling terminal, e.g. ``pts-3``.

    Falls back to ``shell-<parent pid>`` without a terminal; the parent is the
    shell that invoked tether, so one shell always maps to one id.
    """
    for stream in (sys.stdin, sys.stdout, sys.stderr):
        try:
            device = os.ttyname(stream.fileno())
        except (AttributeError, OSError, ValueError):
            continue
        name = device[len("/dev/"):] if device.startswith("/dev/") else device.lstrip("/")
        if name:
            return name.replace("/", "-")
    return f"shell-{os.getppid()}"


class TerminalStateTracker:
    """Stores one small JSON file per terminal id in a registry directory."""

    def __init__(self, registry_dir: Path, terminal_id: Optional[str] = None):
        self.registry_dir = Path(registry_dir)
        self.terminal_id = terminal_id or detect_terminal_id()

    @property
    def state_path(self) -> Path:
        return self._path_for(self.terminal_id)

    def _path_for(self, terminal_id: str) -> Path:
        return self.registry_dir / f"{terminal_id}.json"

    def save(self, session_id: str, flags: str = "") -> TerminalState:
        """Record session_id as this terminal's last session, replacing any earlier record."""
        state = TerminalState(session_id=session_id, flags=flags, terminal_id=self.terminal_id)
        self.registry_dir.mkdir(parents=True, exist_ok=True)
        path = self.state_path
        tmp_path = path.with_suffix(".tmp")

        try:
            # Write to temp file first
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(by_alias=True, indent=4))

            # Atomic rename
            tmp_path.replace(path)
            logger.debug(f"Saved terminal state {self.terminal_id} -> {session_id}")
        except OSError as e:
            logger.error(f"Failed to save terminal state {path}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        return state

    def _read(self, path: Path) -> Optional[TerminalState]:
        if not path.exists():
            return None
        try:
            return TerminalState.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(f"Corrupted terminal state file {path}: {e}")
            return None
        except OSError as e:
            logger.warning(f"Failed to read terminal state {path}: {e}")
            return None

    def load(self) -> Optional[TerminalState]:
        return self._read(self.state_path)

    def last_session(self) -> Optional[str]:
        state = self.load()
        if state is None or not state.session_id:
            return None
        return state.session_id

    def list_states(self) -> List[TerminalState]:
        """All recorded terminals, newest first."""
        if not self.registry_dir.is_dir():
            return []
        states = []
        for path in self.registry_dir.glob("*.json"):
            state = self._read(path)
            if state is not None:
                states.append(state)
        states.sort(key=lambda s: s.timestamp, reverse=True)
        return states
