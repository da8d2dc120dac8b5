"""
Retry with exponential backoff and a circuit breaker for backend calls.

Only the hosted-backend transport uses this module. The matching core and
the local SQLite store never retry.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional
from datetime import datetime

from .errors import BackendError


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class TransientBackendError(BackendError):
    """A backend failure worth retrying (timeouts, throttling, 5xx)."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (TransientBackendError,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying backend calls with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Multiplier applied to the delay after each attempt
        exceptions: Exception types that trigger a retry; others propagate at once
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=2, base_delay=0.5)
        def run_query(body):
            return session.post(url, json=body)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            attempts = max_retries + 1

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        raise RetryError(
                            f"Failed after {attempts} attempts: {e}", attempts
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Stops calling a backend that keeps failing.

    States:
    - CLOSED: calls pass through
    - OPEN: calls fail fast with BackendError until recovery_timeout elapses
    - HALF_OPEN: one trial call decides whether to close or reopen
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
        expected_exception: Type[Exception] = BackendError,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = self.CLOSED

    def call(self, func: Callable, *args, **kwargs):
        """
        Execute func unless the circuit is open.

        Raises:
            BackendError: If the circuit is OPEN
            Original exception: If func fails
        """
        if self.state == self.OPEN:
            if self._seconds_since_failure() >= self.recovery_timeout:
                self.state = self.HALF_OPEN
            else:
                remaining = max(0, self.recovery_timeout - self._seconds_since_failure())
                raise BackendError(
                    f"Backend unavailable (circuit open). Retry after {remaining:.0f}s"
                )

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _seconds_since_failure(self) -> float:
        if self.last_failure_time is None:
            return float("inf")
        return (datetime.now() - self.last_failure_time).total_seconds()

    def _on_success(self):
        self.failure_count = 0
        self.state = self.CLOSED

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now()
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN

    def reset(self):
        self.failure_count = 0
        self.last_failure_time = None
        self.state = self.CLOSED


RETRYABLE_STATUS_CODES = frozenset({
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})


def should_retry_http_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES
