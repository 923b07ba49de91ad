from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_WORKSPACE = "/home/runner/workspace"
DEFAULT_TOKEN_ENDPOINT = "https://console.anthropic.com/v1/oauth/token"
DEFAULT_CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"


class PathsConfig(BaseModel):
    """Resolved storage locations. Every path is absolute."""

    model_config = ConfigDict(frozen=True)

    workspace: Path
    home: Path
    claude_dir: Path
    codex_dir: Path
    sessions_dir: Path
    state_dir: Path

    @property
    def credentials_file(self) -> Path:
        return self.claude_dir / ".credentials.json"

    @property
    def history_file(self) -> Path:
        return self.claude_dir / "history.jsonl"

    @property
    def transcripts_dir(self) -> Path:
        """Per-project transcript directory the claude CLI uses for the workspace."""
        slug = str(self.workspace).replace("/", "-")
        return self.claude_dir / "projects" / slug

    @property
    def log_file(self) -> Path:
        return self.state_dir / "logs" / "tether.log"

    @property
    def claude_share_dir(self) -> Path:
        return self.workspace / ".local" / "share" / "claude"

    @property
    def claude_versions_dir(self) -> Path:
        return self.claude_share_dir / "versions"

    @property
    def persistent_home(self) -> Path:
        return self.workspace / ".persistent-home"


class AuthConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    client_id: str = DEFAULT_CLIENT_ID
    refresh_threshold_hours: float = 2
    request_timeout: float = 30.0
    lock_timeout: float = 10.0


class MenuConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    timeout_seconds: float = 30.0
    recent_limit: int = 10
    command: str = "claude"
    flags: List[str] = Field(default_factory=lambda: ["--dangerously-skip-permissions"])


class InstallConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_timeout_seconds: float = 300.0
    claude_install_command: str = "curl -fsSL https://claude.ai/install.sh | bash"
    codex_install_command: str = "npm i -g @openai/codex"
    manage_codex: bool = True


class TetherConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = "1.0"
    paths: PathsConfig
    auth: AuthConfig = Field(default_factory=AuthConfig)
    menu: MenuConfig = Field(default_factory=MenuConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)

    def get_dot_notation(self, key: str, default: Any = None) -> Any:
        """Get value using dot notation from the config model"""
        parts = key.split(".")
        current: Optional[Any] = self
        for part in parts:
            if hasattr(current, part):
                current = getattr(current, part)
            elif isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current
