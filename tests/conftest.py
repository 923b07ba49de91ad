"""
Shared pytest fixtures and helpers for tether tests.

Every fixture builds an isolated workspace under tmp_path and passes an
explicit environment mapping, so the real HOME, ~/.claude and any
CLAUDE_* variables of the machine running the tests are never touched.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

from tether.core.app import TetherApp

# =============================================================================
# Helper Functions
# =============================================================================


def write_history(path: Path, events: Iterable, raw_lines: Iterable[str] = ()) -> Path:
    """Write a prompt log with one JSON object per line.

    Args:
        path: Destination history.jsonl
        events: Dicts serialized as JSON lines, or strings written verbatim
        raw_lines: Extra lines appended verbatim (for malformed input)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [e if isinstance(e, str) else json.dumps(e) for e in events]
    lines.extend(raw_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def prompt_event(session_id: str, timestamp: int, display: Optional[str] = "hello", **extra) -> Dict:
    event = {"sessionId": session_id, "timestamp": timestamp, "display": display}
    event.update(extra)
    return event


def write_credentials(
    path: Path,
    expires_at: Optional[int],
    access_token: str = "old-access",
    refresh_token: Optional[str] = "old-refresh",
    **extra,
) -> Path:
    """Write a claude credential file with an OAuth block."""
    oauth = {"accessToken": access_token, "expiresAt": expires_at, "scopes": ["user:inference"]}
    if refresh_token is not None:
        oauth["refreshToken"] = refresh_token
    if expires_at is None:
        del oauth["expiresAt"]
    data = {"claudeAiOauth": oauth}
    data.update(extra)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def home(tmp_path) -> Path:
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def environ(workspace, home) -> Dict[str, str]:
    return {"TETHER_WORKSPACE": str(workspace), "HOME": str(home)}


@pytest.fixture
def app(environ) -> TetherApp:
    return TetherApp(environ=environ)


@pytest.fixture
def cli_obj(app) -> Dict:
    """Context object that makes CLI commands use the isolated app."""
    return {"app": app, "logging_ready": True}
