"""Recent-session registry built from the claude prompt log."""

import json
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from pydantic import ValidationError

from tether.session.models import PromptEvent, SessionRow, SessionSummary
from tether.utils.formatting import format_utc, human_size, now_ms, prompt_preview, time_ago
from tether.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RECENT_LIMIT = 10


def parse_prompt_event(line: str) -> Optional[PromptEvent]:
    """Parse one log line, returning None for blank or malformed lines."""
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return PromptEvent.model_validate(data)
    except ValidationError:
        return None


class SessionRegistry:
    """Reads the append-only prompt log and per-session transcripts.

    Both files are owned by the claude CLI; this class never writes to them.
    """

    def __init__(self, history_path: Path, transcripts_dir: Path):
        """Initialize the registry.

        Args:
            history_path: The ``history.jsonl`` prompt log.
            transcripts_dir: Directory holding one ``<session id>.jsonl`` per session.
        """
        self.history_path = Path(history_path)
        self.transcripts_dir = Path(transcripts_dir)

    def _iter_events(self) -> Iterator[PromptEvent]:
        try:
            file = open(self.history_path, encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug(f"No prompt log at {self.history_path}")
            return
        except OSError as e:
            logger.warning(f"Cannot read {self.history_path}: {e}")
            return

        with file:
            for lineno, line in enumerate(file, start=1):
                event = parse_prompt_event(line)
                if event is None:
                    if line.strip():
                        logger.debug(f"Skipping malformed line {lineno} of {self.history_path}")
                    continue
                yield event

    def load(self) -> List[SessionSummary]:
        """Aggregate the log by session id, most recently active first.

        Ties on last activity keep the order in which sessions first appear.
        """
        summaries: Dict[str, SessionSummary] = {}
        for event in self._iter_events():
            summary = summaries.get(event.session_id)
            if summary is None:
                summaries[event.session_id] = SessionSummary.from_event(event)
            else:
                summary.absorb(event)

        sessions = list(summaries.values())
        for summary in sessions:
            self._enrich(summary)

        sessions.sort(key=lambda s: s.last_seen, reverse=True)
        return sessions

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[SessionSummary]:
        return self.load()[:limit]

    def transcript_path(self, session_id: str) -> Optional[Path]:
        """Locate the transcript for a session, falling back to the sub-agent file name."""
        candidates = [
            self.transcripts_dir / f"{session_id}.jsonl",
            self.transcripts_dir / f"agent-{session_id[:7]}.jsonl",
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def _enrich(self, summary: SessionSummary) -> None:
        path = self.transcript_path(summary.session_id)
        if path is None:
            return
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.debug(f"Cannot read transcript {path}: {e}")
            return
        summary.transcript_path = path
        summary.size_bytes = len(data)
        summary.message_count = sum(1 for line in data.splitlines() if line.strip())

    def rows(self, limit: int = DEFAULT_RECENT_LIMIT, reference_ms: Optional[int] = None) -> List[SessionRow]:
        """Ranked, display-ready rows for the most recent sessions."""
        reference_ms = now_ms() if reference_ms is None else reference_ms
        return [
            to_row(rank, summary, reference_ms)
            for rank, summary in enumerate(self.recent(limit), start=1)
        ]

    def latest_session_id(self) -> Optional[str]:
        """Session id on the last well-formed line of the prompt log."""
        latest: Optional[str] = None
        for event in self._iter_events():
            latest = event.session_id
        return latest

    def find(self, session_id: str) -> Optional[SessionSummary]:
        """Look up a session by full id or unique prefix."""
        matches = [s for s in self.load() if s.session_id.startswith(session_id)]
        exact = [s for s in matches if s.session_id == session_id]
        if exact:
            return exact[0]
        if len(matches) == 1:
            return matches[0]
        return None


def to_row(rank: int, summary: SessionSummary, reference_ms: int) -> SessionRow:
    return SessionRow(
        rank=rank,
        session_id=summary.session_id,
        messages=str(summary.message_count) if summary.message_count is not None else "?",
        size=human_size(summary.size_bytes),
        last_active=time_ago(summary.last_seen, reference_ms),
        started=format_utc(summary.first_seen),
        last_seen=format_utc(summary.last_seen),
        first_prompt=prompt_preview(summary.first_prompt),
        last_prompt=prompt_preview(summary.last_prompt),
    )
