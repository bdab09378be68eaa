"""
ingestion/rpc/errors.py

Failure taxonomy for chain-data and price calls.
"""
from typing import Optional


class TrackerError(RuntimeError):
    """Base class for tracker failures."""


class RateLimitedError(TrackerError):
    """Provider rejected the call with a rate limit (HTTP 429 / JSON-RPC 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderUnavailableError(TrackerError):
    """Network failure, timeout, 5xx, rejected request or unreadable body. Not retried by the limiter."""


class MalformedTransactionError(TrackerError):
    """Transaction record is missing the balance metadata needed for classification."""


class PriceUnavailableError(TrackerError):
    """Spot price could not be obtained; USD values cannot be computed."""


_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")


def is_rate_limited(exc: BaseException) -> bool:
    """
    Classify an exception as a rate-limit rejection.

    Typed RateLimitedError always qualifies and other TrackerErrors never do.
    Untyped exceptions are matched on their message, the same way the RPC
    layer has always detected 429s.
    """
    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, TrackerError):
        return False
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True
    error_str = str(exc).lower()
    return any(marker in error_str for marker in _RATE_LIMIT_MARKERS)
