"""OAuth token expiry checks and refresh for the claude CLI."""

import json
import math
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import ValidationError

from tether.auth.models import (
    AutoRefreshOutcome,
    AutoRefreshReport,
    Credentials,
    RefreshResult,
    TokenState,
    TokenStatus,
)
from tether.auth.store import CredentialStore
from tether.config.models import AuthConfig
from tether.utils.errors import (
    CredentialError,
    FileAccessError,
    LockTimeoutError,
    TokenRefreshError,
)
from tether.utils.formatting import now_ms
from tether.utils.locking import file_lock
from tether.utils.logging import get_logger

logger = get_logger(__name__)

_NO_CREDENTIAL_STATES = (TokenState.NO_FILE, TokenState.EMPTY_FILE, TokenState.NO_EXPIRY)


class TokenRefresher:
    """Keeps the OAuth access token in the credential file from expiring.

    All refreshes hold an exclusive lock on ``<credentials>.lock`` so two
    terminals starting at once do not both spend the same refresh token.
    """

    def __init__(
        self,
        store: CredentialStore,
        config: Optional[AuthConfig] = None,
        http: Optional[requests.Session] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.config = config or AuthConfig()
        self.http = http or requests.Session()
        self.clock = clock

    @property
    def threshold_ms(self) -> int:
        return int(self.config.refresh_threshold_hours * 60 * 60 * 1000)

    def status(self) -> TokenStatus:
        """Classify the credential file by token expiry."""
        try:
            text = self.store.read_text()
        except FileAccessError as e:
            logger.warning(str(e))
            return TokenStatus(state=TokenState.NO_EXPIRY)

        if text is None:
            return TokenStatus(state=TokenState.NO_FILE)
        if not text.strip():
            return TokenStatus(state=TokenState.EMPTY_FILE)

        try:
            credentials = Credentials.model_validate(json.loads(text))
        except json.JSONDecodeError:
            logger.debug(f"Credentials file {self.store.path} is not valid JSON")
            return TokenStatus(state=TokenState.NO_EXPIRY)
        except ValidationError as e:
            logger.debug(f"Unexpected credentials format in {self.store.path}: {e}")
            return TokenStatus(state=TokenState.NO_EXPIRY)

        expires_at = credentials.oauth.expires_at if credentials.oauth else None
        if expires_at is None:
            return TokenStatus(state=TokenState.NO_EXPIRY)

        remaining_ms = expires_at - self.clock()
        if remaining_ms <= 0:
            return TokenStatus(state=TokenState.EXPIRED)
        return TokenStatus(state=TokenState.VALID, remaining_ms=remaining_ms)

    def auth_method(self) -> Optional[str]:
        """'api_key', 'oauth' or None, for the authentication summary."""
        try:
            return self.store.load().auth_method
        except (CredentialError, FileAccessError):
            return None

    def needs_refresh(self, status: TokenStatus) -> bool:
        if status.state == TokenState.EXPIRED:
            return True
        return status.state == TokenState.VALID and status.remaining_ms < self.threshold_ms

    def refresh(self) -> RefreshResult:
        """Exchange the refresh token for a new pair. One attempt, no retry."""
        try:
            with file_lock(self.store.lock_path, timeout=self.config.lock_timeout):
                return self._refresh_locked()
        except LockTimeoutError as e:
            logger.warning(str(e))
            return RefreshResult(success=False, message=str(e))

    def auto_refresh_if_needed(self) -> AutoRefreshReport:
        """Refresh when expired or under the threshold; otherwise do nothing."""
        before = self.status()
        if before.state in _NO_CREDENTIAL_STATES:
            return AutoRefreshReport(
                outcome=AutoRefreshOutcome.NO_CREDENTIALS,
                before=before,
                message=before.describe(),
            )
        if not self.needs_refresh(before):
            return AutoRefreshReport(outcome=AutoRefreshOutcome.NOT_NEEDED, before=before)

        try:
            with file_lock(self.store.lock_path, timeout=self.config.lock_timeout):
                # Another terminal may have refreshed while we waited for the lock
                current = self.status()
                if not self.needs_refresh(current):
                    logger.info("Token already refreshed by another process")
                    return AutoRefreshReport(
                        outcome=AutoRefreshOutcome.NOT_NEEDED,
                        before=before,
                        after=current,
                    )
                result = self._refresh_locked()
        except LockTimeoutError as e:
            logger.warning(str(e))
            result = RefreshResult(success=False, message=str(e))

        after = self.status()
        if result.success:
            outcome = AutoRefreshOutcome.REFRESHED
        elif after.state == TokenState.VALID:
            outcome = AutoRefreshOutcome.FAILED_STILL_VALID
        else:
            outcome = AutoRefreshOutcome.FAILED_EXPIRED
        return AutoRefreshReport(outcome=outcome, before=before, after=after, message=result.message)

    def _refresh_locked(self) -> RefreshResult:
        try:
            credentials = self.store.load()
        except (CredentialError, FileAccessError) as e:
            logger.error(f"Token refresh aborted: {e}")
            return RefreshResult(success=False, message=str(e))

        refresh_token = credentials.oauth.refresh_token if credentials.oauth else None
        if not refresh_token:
            logger.error("No refresh token found")
            return RefreshResult(success=False, message="No refresh token found")

        logger.info("Attempting token refresh...")
        try:
            payload = self._exchange(refresh_token)
        except TokenRefreshError as e:
            logger.error(str(e))
            return RefreshResult(success=False, message=str(e))

        expires_in = int(payload["expires_in"])
        expires_at = self.clock() + expires_in * 1000
        new_refresh_token = payload.get("refresh_token") or refresh_token

        try:
            self.store.update_oauth(payload["access_token"], new_refresh_token, expires_at)
        except (CredentialError, FileAccessError) as e:
            return RefreshResult(success=False, message=str(e))

        message = f"Token refreshed, expires in {expires_in // 3600} hours"
        logger.info(message)
        return RefreshResult(success=True, message=message, expires_at=expires_at, expires_in=expires_in)

    def _exchange(self, refresh_token: str) -> Dict[str, Any]:
        """POST the refresh grant and validate the response.

        Raises:
            TokenRefreshError: On transport failure, an error response, or a
                response without an access token and expiry.
        """
        body = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
        }
        try:
            response = self.http.post(
                self.config.token_endpoint,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise TokenRefreshError(f"No response from OAuth endpoint: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}

        error = payload.get("error")
        if error:
            if isinstance(error, dict):
                error = error.get("message") or error.get("type") or json.dumps(error)
            raise TokenRefreshError(f"OAuth refresh failed: {error}", status_code=response.status_code)
        if not response.ok:
            raise TokenRefreshError(
                f"OAuth endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenRefreshError("No access token in response", status_code=response.status_code)

        expires_in = payload.get("expires_in")
        valid_number = isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool)
        if not valid_number or not math.isfinite(expires_in) or expires_in <= 0:
            raise TokenRefreshError("No valid expires_in in response", status_code=response.status_code)

        return payload
