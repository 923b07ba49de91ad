"""Pydantic models for the claude credential file and refresh outcomes."""

import math
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OAuthCredentials(BaseModel):
    """The ``claudeAiOauth`` object. Unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    access_token: Optional[str] = Field(default=None, alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_at: Optional[int] = Field(default=None, alias="expiresAt")

    @field_validator("expires_at", mode="before")
    @classmethod
    def validate_expires_at(cls, value):
        """Accept any finite number of milliseconds, truncated to an int."""
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("expiresAt must be a number")
        if not math.isfinite(value):
            raise ValueError("expiresAt must be finite")
        return int(value)


class Credentials(BaseModel):
    """Top-level credential record: a permanent API key or an OAuth pair."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    primary_api_key: Optional[str] = Field(default=None, alias="primaryApiKey")
    oauth: Optional[OAuthCredentials] = Field(default=None, alias="claudeAiOauth")

    @property
    def auth_method(self) -> Optional[Literal["api_key", "oauth"]]:
        if self.primary_api_key:
            return "api_key"
        if self.oauth is not None and (self.oauth.access_token or self.oauth.expires_at):
            return "oauth"
        return None


class TokenState(str, Enum):
    NO_FILE = "no_file"
    EMPTY_FILE = "empty_file"
    NO_EXPIRY = "no_expiry"
    EXPIRED = "expired"
    VALID = "valid"


class TokenStatus(BaseModel):
    """Result of an expiry check. ``remaining_hours`` is set only when valid."""

    state: TokenState
    remaining_ms: Optional[int] = None

    @property
    def remaining_hours(self) -> Optional[int]:
        if self.remaining_ms is None:
            return None
        return self.remaining_ms // 1000 // 60 // 60

    def describe(self) -> str:
        if self.state == TokenState.NO_FILE:
            return "No credentials file found"
        if self.state == TokenState.EMPTY_FILE:
            return "Credentials file is empty"
        if self.state == TokenState.NO_EXPIRY:
            return "No expiry timestamp found"
        if self.state == TokenState.EXPIRED:
            return "Token has expired"
        return f"Token valid ({self.remaining_hours}h remaining)"


class RefreshResult(BaseModel):
    success: bool
    message: str
    expires_at: Optional[int] = None
    expires_in: Optional[int] = None


class AutoRefreshOutcome(str, Enum):
    NO_CREDENTIALS = "no_credentials"
    NOT_NEEDED = "not_needed"
    REFRESHED = "refreshed"
    FAILED_EXPIRED = "failed_expired"
    FAILED_STILL_VALID = "failed_still_valid"


class AutoRefreshReport(BaseModel):
    outcome: AutoRefreshOutcome
    before: TokenStatus
    after: Optional[TokenStatus] = None
    message: str = ""
