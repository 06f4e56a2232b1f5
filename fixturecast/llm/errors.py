"""Provider error typing.

Failures are classified once, at the HTTP call boundary, so the retry logic
only ever looks at `ProviderErrorKind`.
"""

from enum import Enum
from typing import Optional

import httpx


class ProviderErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    AUTH_FAILURE = "auth_failure"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"

    @property
    def retriable(self) -> bool:
        return self in (ProviderErrorKind.RATE_LIMITED, ProviderErrorKind.UNAVAILABLE)


class ProviderError(Exception):
    """A failed prediction call, tagged with its kind."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        attempts: int = 0,
        rate_limited: bool = False,
    ):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.model = model
        self.attempts = attempts
        # Set when any tier of the chain hit a rate limit for this match
        self.rate_limited = rate_limited or kind == ProviderErrorKind.RATE_LIMITED

    @property
    def retriable(self) -> bool:
        return self.kind.retriable

    def __str__(self) -> str:
        where = f"{self.provider}/{self.model}" if self.provider else "provider"
        return f"{where} {self.kind.value}: {self.args[0]}"


def classify_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status to an error kind."""
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return ProviderErrorKind.AUTH_FAILURE
    if status_code >= 500 or status_code == 408:
        return ProviderErrorKind.UNAVAILABLE
    return ProviderErrorKind.UNKNOWN


def classify_exception(exc: Exception) -> ProviderErrorKind:
    """Map a transport exception to an error kind."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return ProviderErrorKind.UNAVAILABLE
    return ProviderErrorKind.UNKNOWN
