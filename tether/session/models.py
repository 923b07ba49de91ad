"""Pydantic models for the prompt log, session summaries and terminal state."""

import time
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class PromptEvent(BaseModel):
    """One line of the claude prompt log (``history.jsonl``)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    timestamp: StrictInt
    display: Optional[str] = None
    project: Optional[str] = None


class SessionSummary(BaseModel):
    """A session aggregated from every prompt event sharing its id."""

    session_id: str
    first_seen: int
    last_seen: int
    first_prompt: str = ""
    last_prompt: str = ""
    project: Optional[str] = None
    message_count: Optional[int] = None  # None when no transcript was found
    size_bytes: Optional[int] = None
    transcript_path: Optional[Path] = None

    @classmethod
    def from_event(cls, event: PromptEvent) -> "SessionSummary":
        return cls(
            session_id=event.session_id,
            first_seen=event.timestamp,
            last_seen=event.timestamp,
            first_prompt=event.display or "",
            last_prompt=event.display or "",
            project=event.project,
        )

    def absorb(self, event: PromptEvent) -> None:
        """Widen the seen-range with a later or earlier event."""
        if event.timestamp < self.first_seen:
            self.first_seen = event.timestamp
            self.first_prompt = event.display or self.first_prompt
        if event.timestamp > self.last_seen:
            self.last_seen = event.timestamp
            self.last_prompt = event.display or self.last_prompt


class SessionRow(NamedTuple):
    """Display-ready fields for one ranked session."""

    rank: int
    session_id: str
    messages: str
    size: str
    last_active: str
    started: str
    last_seen: str
    first_prompt: str
    last_prompt: str


class TerminalState(BaseModel):
    """Last session launched from one terminal."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    flags: str = ""
    terminal_id: str = Field(alias="terminalId")
    timestamp: int = Field(default_factory=lambda: int(time.time()))
