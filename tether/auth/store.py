"""Read and rewrite the claude ``.credentials.json`` file."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from tether.auth.models import Credentials
from tether.utils.errors import CredentialError, FileAccessError
from tether.utils.logging import get_logger

logger = get_logger(__name__)


class CredentialStore:
    """Adapter over a single JSON credential file.

    Writes go through a backup copy: the current file is copied to
    ``<name>.backup`` before the update and moved back if the update fails.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.backup_path = self.path.with_name(self.path.name + ".backup")
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> Optional[str]:
        """Return the raw file contents, or None if the file does not exist."""
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FileAccessError(f"Cannot read {self.path}: {e}") from e

    def load_raw(self) -> Dict[str, Any]:
        """Parse the file as a JSON object.

        Raises:
            CredentialError: If the file is missing, blank or not a JSON object.
        """
        text = self.read_text()
        if text is None:
            raise CredentialError(f"No credentials file at {self.path}", hint="Run 'claude login'")
        if not text.strip():
            raise CredentialError(f"Credentials file {self.path} is empty", hint="Run 'claude login'")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CredentialError(f"Corrupted credentials file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CredentialError(f"Credentials file {self.path} is not a JSON object")
        return data

    def load(self) -> Credentials:
        raw = self.load_raw()
        try:
            return Credentials.model_validate(raw)
        except ValidationError as e:
            raise CredentialError(f"Unexpected credentials format in {self.path}: {e}") from e

    def update_oauth(self, access_token: str, refresh_token: str, expires_at: int) -> None:
        """Replace the OAuth pair and expiry, keeping every other key as is.

        Raises:
            CredentialError: If the current file cannot be parsed.
            FileAccessError: If the write fails. The previous contents are restored.
        """
        raw = self.load_raw()

        oauth = raw.get("claudeAiOauth")
        if not isinstance(oauth, dict):
            oauth = {}
        oauth["accessToken"] = access_token
        oauth["refreshToken"] = refresh_token
        oauth["expiresAt"] = expires_at
        raw["claudeAiOauth"] = oauth

        try:
            shutil.copy2(self.path, self.backup_path)
        except OSError as e:
            raise FileAccessError(f"Cannot back up {self.path}: {e}") from e

        try:
            self._write_atomic(json.dumps(raw))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to update credentials file {self.path}: {e}")
            self._restore_backup()
            raise FileAccessError(f"Failed to update credentials file {self.path}: {e}") from e

        try:
            self.backup_path.unlink()
        except OSError as e:
            logger.debug(f"Could not remove backup {self.backup_path}: {e}")

    def _write_atomic(self, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file if it exists
            tmp_path.unlink(missing_ok=True)
            raise

    def _restore_backup(self) -> None:
        try:
            os.replace(self.backup_path, self.path)
            logger.info(f"Restored {self.path} from backup")
        except OSError as e:
            logger.error(f"Could not restore {self.path} from {self.backup_path}: {e}")
