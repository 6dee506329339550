"""Data models for the credential lifecycle.

CredentialRecord mirrors the on-disk OAuth credential file:

    {
      "access_token": "...",
      "refresh_token": "...",
      "expiry_date": 1735689599000,
      "scope": "https://www.googleapis.com/auth/drive.readonly ...",
      "token_type": "Bearer"
    }
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Requested on every authentication path, fresh and refreshed
GDRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/spreadsheets",
]

# Stored credentials with less validity left than this are refreshed.
EXPIRY_THRESHOLD_MS = 5 * 60 * 1000

# 9999-12-31T23:59:59.999Z, the last instant datetime can represent
MAX_EXPIRY_DATE_MS = 253402300799999


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class AuthMode(str, Enum):
    """Active authentication strategy."""

    OAUTH = "oauth"
    SERVICE_ACCOUNT = "service_account"


class TokenStatus(str, Enum):
    """Status of the persisted OAuth credential file."""

    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class AuthFailure(str, Enum):
    """Why a quiet or interactive authentication attempt produced nothing."""

    FILE_NOT_FOUND = "file_not_found"
    MALFORMED = "malformed"
    REFRESH_FAILED = "refresh_failed"
    EXPIRED = "expired"
    INTERACTIVE_TIMEOUT = "interactive_timeout"
    INTERACTIVE_ERROR = "interactive_error"


class CredentialRecord(BaseModel):
    """Persisted OAuth user credential."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expiry_date: int | None = Field(default=None, ge=0, le=MAX_EXPIRY_DATE_MS)
    scope: str = ""
    token_type: str = "Bearer"  # nosec B105 - OAuth token type, not a password

    @property
    def scopes(self) -> list[str]:
        """Granted scopes as a list."""
        return self.scope.split()

    @property
    def expires_at(self) -> datetime | None:
        """Expiry as a timezone-aware datetime, if known."""
        if self.expiry_date is None:
            return None
        return datetime.fromtimestamp(self.expiry_date / 1000, tz=timezone.utc)

    def remaining_ms(self, now: int | None = None) -> int | None:
        """Milliseconds of validity left, or None when expiry is unknown."""
        if self.expiry_date is None:
            return None
        return self.expiry_date - (now_ms() if now is None else now)

    def is_expiring(self, threshold_ms: int = EXPIRY_THRESHOLD_MS, now: int | None = None) -> bool:
        """Check whether the record should be refreshed.

        Args:
            threshold_ms: Minimum validity that still counts as fresh.
            now: Override for the current time in epoch milliseconds.

        Returns:
            True if less than threshold_ms remains or expiry is unknown.
        """
        remaining = self.remaining_ms(now)
        if remaining is None:
            return True
        return remaining < threshold_ms

    def is_expired(self, now: int | None = None) -> bool:
        """Check whether the access token is already past its expiry."""
        remaining = self.remaining_ms(now)
        return remaining is not None and remaining <= 0

    def status(self, now: int | None = None) -> TokenStatus:
        """Classify the record for status reporting."""
        if self.is_expired(now):
            return TokenStatus.EXPIRED
        if self.is_expiring(now=now):
            return TokenStatus.EXPIRING
        return TokenStatus.VALID


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an authentication attempt.

    Carries the failure kind for logging; public APIs only expose whether
    credentials were produced.
    """

    credentials: Any | None = None
    failure: AuthFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.credentials is not None

    @classmethod
    def success(cls, credentials: Any) -> "AuthResult":
        return cls(credentials=credentials)

    @classmethod
    def failed(cls, failure: AuthFailure, detail: str | None = None) -> "AuthResult":
        return cls(failure=failure, detail=detail)
