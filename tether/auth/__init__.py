"""OAuth credential handling for the claude CLI."""

from tether.auth.models import (
    AutoRefreshOutcome,
    AutoRefreshReport,
    Credentials,
    OAuthCredentials,
    RefreshResult,
    TokenState,
    TokenStatus,
)
from tether.auth.refresher import TokenRefresher
from tether.auth.store import CredentialStore

__all__ = [
    "AutoRefreshOutcome",
    "AutoRefreshReport",
    "CredentialStore",
    "Credentials",
    "OAuthCredentials",
    "RefreshResult",
    "TokenRefresher",
    "TokenState",
    "TokenStatus",
]
