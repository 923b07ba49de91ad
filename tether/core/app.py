from typing import Mapping, Optional

from tether.auth.refresher import TokenRefresher
from tether.auth.store import CredentialStore
from tether.config.config_manager import ConfigManager
from tether.install.installer import Installer
from tether.session.registry import SessionRegistry
from tether.session.terminal import TerminalStateTracker
from tether.utils.logging import get_logger

logger = get_logger(__name__)


class TetherApp:
    """
    Main application class that resolves configuration once and builds every
    component from it.
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        self.config_manager = ConfigManager(config_path, environ=environ)
        self.config = self.config_manager.config
        paths = self.config.paths

        self.credential_store = CredentialStore(paths.credentials_file)
        self.token_refresher = TokenRefresher(self.credential_store, self.config.auth)
        self.session_registry = SessionRegistry(paths.history_file, paths.transcripts_dir)
        self.terminal_tracker = TerminalStateTracker(paths.sessions_dir)
        self.installer = Installer(self.config)
        logger.debug("TetherApp initialized")
