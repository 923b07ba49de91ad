import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from tether.config.models import (
    DEFAULT_WORKSPACE,
    AuthConfig,
    InstallConfig,
    MenuConfig,
    PathsConfig,
    TetherConfig,
)
from tether.utils.errors import ConfigError
from tether.utils.logging import get_logger

logger = get_logger(__name__)

WORKSPACE_ENV = "TETHER_WORKSPACE"

# First match wins. The CLAUDE_* names are the ones the claude CLI and older
# installs already export.
CLAUDE_DIR_ENV = (
    "TETHER_CLAUDE_DIR",
    "CLAUDE_CONFIG_DIR",
    "CLAUDE_WORKSPACE_DIR",
    "CLAUDE_DATA_DIR",
    "CLAUDE_HOME",
)
CODEX_DIR_ENV = ("TETHER_CODEX_DIR",)
SESSIONS_DIR_ENV = ("TETHER_SESSIONS_DIR",)

# Locations earlier releases stored claude data in, relative to the workspace.
DISCOVERED_CLAUDE_DIRS = (".claude-persistent", ".replit-tools/.claude-persistent")


class ConfigManager:
    """Resolves configuration once from environment, YAML and the filesystem.

    Path precedence: environment override > config.yaml ``paths`` entry >
    existing data discovered in the workspace > built-in default.
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        if environ is None:
            # Load environment variables
            load_dotenv()
            environ = os.environ
        self.environ: Dict[str, str] = dict(environ)

        self.workspace = self._expand(self.environ.get(WORKSPACE_ENV) or DEFAULT_WORKSPACE, Path("/"))
        self.config_dir = self.workspace / ".tether"

        # Determine config file location
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = self.config_dir / "config.yaml"

        # Create default config if doesn't exist
        if not self.config_path.exists() and self.config_path.parent.parent.is_dir():
            self._create_default_config()

        # Load configuration
        self._config_data = self._load_config_file()
        self.config = self._build_config(self._config_data)
        logger.debug(f"Config loaded from {self.config_path}")

    def _create_default_config(self):
        """Create default configuration file"""
        default_config = {
            "version": "1.0",
            "auth": AuthConfig().model_dump(),
            "menu": MenuConfig().model_dump(),
            "install": InstallConfig().model_dump(),
        }

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                yaml.dump(default_config, f, default_flow_style=False)
        except OSError as e:
            logger.warning(f"Could not write default config to {self.config_path}: {e}")
            return
        logger.info(f"Created default config at {self.config_path}")

    def _load_config_file(self) -> Dict:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Invalid YAML in {self.config_path}: {e}",
                hint="Fix the file or delete it to regenerate defaults",
            ) from e
        except OSError as e:
            raise ConfigError(f"Cannot read {self.config_path}: {e}", hint="Check the file permissions") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping")
        return data

    def _build_config(self, data: Dict) -> TetherConfig:
        yaml_paths = data.get("paths") or {}
        sections = {key: data[key] for key in ("version", "auth", "menu", "install") if data.get(key) is not None}
        try:
            return TetherConfig(paths=self._resolve_paths(yaml_paths), **sections)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

    def _resolve_paths(self, yaml_paths: Dict[str, Any]) -> PathsConfig:
        workspace = self.workspace
        home = self._expand(self.environ.get("HOME") or str(Path.home()), workspace)

        claude_dir = self._pick(CLAUDE_DIR_ENV, yaml_paths.get("claude_dir"))
        if claude_dir is None:
            claude_dir = self._discover_claude_dir()

        codex_dir = self._pick(CODEX_DIR_ENV, yaml_paths.get("codex_dir"))
        sessions_dir = self._pick(SESSIONS_DIR_ENV, yaml_paths.get("sessions_dir"))

        return PathsConfig(
            workspace=workspace,
            home=home,
            claude_dir=claude_dir,
            codex_dir=codex_dir or workspace / ".codex-persistent",
            sessions_dir=sessions_dir or workspace / ".claude-sessions",
            state_dir=self.config_dir,
        )

    def _pick(self, env_names: Sequence[str], yaml_value: Optional[str]) -> Optional[Path]:
        for name in env_names:
            value = self.environ.get(name)
            if value:
                logger.debug(f"Using {name}={value}")
                return self._expand(value, self.workspace)
        if yaml_value:
            return self._expand(str(yaml_value), self.workspace)
        return None

    def _discover_claude_dir(self) -> Path:
        for relative in DISCOVERED_CLAUDE_DIRS:
            candidate = self.workspace / relative
            if candidate.is_dir():
                return candidate
        return self.workspace / DISCOVERED_CLAUDE_DIRS[0]

    @staticmethod
    def _expand(value: str, base: Path) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = base / path
        return path

    def get(self, key: str, default=None) -> Any:
        """Get configuration value using dot notation"""
        return self.config.get_dot_notation(key, default)

    def menu_disabled_by_env(self) -> bool:
        """True when TETHER_NO_PROMPT or CLAUDE_NO_PROMPT is set to 'true'."""
        return any(
            self.environ.get(name, "").strip().lower() == "true"
            for name in ("TETHER_NO_PROMPT", "CLAUDE_NO_PROMPT")
        )
