"""
Error taxonomy for snowball searches.

Per-seed and per-chunk errors are recovered locally by the orchestrator.
Only invalid parameters, total seed failure, provider configuration
errors and cancellation abort a request.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ResolutionErrorKind(str, Enum):
    """Why a seed identifier could not be resolved."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    TRANSPORT = "transport"


class ProviderErrorKind(str, Enum):
    """Failure classes for provider requests."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"
    MALFORMED = "malformed"
    CONFIG = "config"  # Rejected credentials; never retried


class SnowballError(Exception):
    """Base class for all snowball search errors."""

    kind = "snowball_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(SnowballError):
    """Request parameters failed validation. No expansion is attempted."""

    kind = "invalid_request"


class ResolutionError(SnowballError):
    """A single seed identifier could not be mapped to a canonical ID."""

    kind = "resolution_error"

    def __init__(
        self,
        raw_id: str,
        reason: ResolutionErrorKind,
        message: Optional[str] = None,
    ):
        super().__init__(message or f"Could not resolve '{raw_id}': {reason.value}")
        self.raw_id = raw_id
        self.reason = reason


class ProviderError(SnowballError):
    """A provider request failed."""

    kind = "provider_error"

    def __init__(
        self,
        reason: ProviderErrorKind,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
        self.retry_after = retry_after
        if retryable is None:
            retryable = reason != ProviderErrorKind.CONFIG
        self.retryable = retryable

    @property
    def recoverable(self) -> bool:
        """Whether the failure can be downgraded to a partial result."""
        return self.reason != ProviderErrorKind.CONFIG


class AllSeedsUnresolvedError(SnowballError):
    """Every seed failed resolution, so there is nothing to expand."""

    kind = "all_seeds_unresolved"

    def __init__(self, failures: list[ResolutionError]):
        ids = ", ".join(f.raw_id for f in failures)
        super().__init__(f"None of the input identifiers could be resolved: {ids}")
        self.failures = failures


class SnowballCancelledError(SnowballError):
    """The request was cancelled or exceeded its time budget."""

    kind = "cancelled"


class InvalidSessionTokenError(SnowballError):
    """An exercise token failed format or checksum validation."""

    kind = "invalid_session_token"
