"""
ingestion/rpc/rate_limiter.py

RateGate + RateLimitedClient — process-wide request spacing and 429 backoff.

Every network-calling component receives the same RateGate instance, so the
aggregate request rate stays under one ceiling no matter which component
issues the call.
"""
import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from .errors import is_rate_limited

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MIN_INTERVAL_MS = 100.0   # 10 requests/second
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF_MS = 1000.0


class RateGate:
    """
    Single shared scheduler enforcing a minimum interval between calls.

    Features:
    - Explicit `last_call` timestamp (monotonic seconds, None before first call)
    - Lock-protected, so one instance can be shared safely
    - Injectable clock/sleep for deterministic tests
    """

    def __init__(
        self,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval_ms < 0:
            raise ValueError(f"min_interval_ms must be >= 0, got {min_interval_ms}")
        self.min_interval_ms = float(min_interval_ms)
        self.last_call: Optional[float] = None
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the next call is allowed, then claim the slot.

        Returns:
            Seconds spent waiting.
        """
        with self._lock:
            waited = 0.0
            now = self._clock()
            if self.last_call is not None:
                remaining = self.min_interval_ms / 1000.0 - (now - self.last_call)
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
                    now = self._clock()
            self.last_call = now
            return waited


class RateLimitedClient:
    """
    Wraps outbound calls with the shared gate and bounded exponential backoff.

    Only rate-limit failures are retried. Everything else propagates on the
    first attempt, and the last rate-limit error is re-raised unchanged once
    `max_retries` retries have been spent.
    """

    def __init__(
        self,
        gate: RateGate,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_ms: float = DEFAULT_INITIAL_BACKOFF_MS,
        sleep: Callable[[float], None] = time.sleep,
        on_backoff: Optional[Callable[[str], None]] = None,
        on_resume: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            gate: Shared RateGate instance
            max_retries: Max retries for rate-limited calls
            initial_backoff_ms: First backoff delay, doubled on every retry
            sleep: Sleep function used for backoff waits
            on_backoff: Receives an overwritable progress line before each backoff wait
            on_resume: Called after each backoff wait (clears the progress line)
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.gate = gate
        self.max_retries = max_retries
        self.initial_backoff_ms = float(initial_backoff_ms)
        self._sleep = sleep
        self._on_backoff = on_backoff
        self._on_resume = on_resume

        # Metrics
        self.calls = 0
        self.retries = 0

    def backoff_ms(self, retry_index: int) -> float:
        """Delay before retry number `retry_index` (0-based)."""
        return self.initial_backoff_ms * (2 ** retry_index)

    def call(self, operation: Callable[[], T]) -> T:
        """Run `operation` behind the gate, retrying rate-limit failures."""
        attempt = 0
        while True:
            self.gate.wait()
            self.calls += 1
            try:
                return operation()
            except Exception as e:
                if not is_rate_limited(e) or attempt >= self.max_retries:
                    raise
                delay_ms = self.backoff_ms(attempt)
                attempt += 1
                self.retries += 1
                message = (
                    f"Rate limited. Retrying in {delay_ms:.0f}ms... "
                    f"(Attempt {attempt}/{self.max_retries})"
                )
                logger.debug(f"[rpc] {message}")
                if self._on_backoff is not None:
                    self._on_backoff(message)
                self._sleep(delay_ms / 1000.0)
                if self._on_resume is not None:
                    self._on_resume()

    def get_metrics(self) -> dict:
        return {"calls": self.calls, "retries": self.retries}
