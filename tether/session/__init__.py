"""Session registry and per-terminal state for tether."""

from tether.session.models import PromptEvent, SessionRow, SessionSummary, TerminalState
from tether.session.registry import SessionRegistry
from tether.session.terminal import TerminalStateTracker, detect_terminal_id

__all__ = [
    "PromptEvent",
    "SessionRegistry",
    "SessionRow",
    "SessionSummary",
    "TerminalState",
    "TerminalStateTracker",
    "detect_terminal_id",
]
