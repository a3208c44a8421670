"""
Bounded retry with exponential backoff for calls to remote services.

Only transient failures are retried (network errors, timeouts, 5xx and 429
answers). Anything else propagates on the first attempt. When the attempts
run out the fallback decides what to raise; by default the caller gets a
RemoteServiceUnavailable instead of the transport exception.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import httpx

from shared.core import get_logger
from shared.domain.errors import RemoteServiceUnavailable

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    name: str
    max_attempts: int = 3
    initial_backoff: float = 0.5
    multiplier: float = 2.0
    max_backoff: float = 5.0

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.initial_backoff * (self.multiplier ** (attempt - 1)), self.max_backoff)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    fallback: Optional[Callable[[BaseException], T]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{policy.name}: giving up after {attempt} attempts: {exc}",
                    extra={'extra_fields': {'policy': policy.name, 'attempts': attempt}}
                )
                if fallback is not None:
                    return fallback(exc)
                raise RemoteServiceUnavailable(policy.name, cause=exc) from exc
            delay = policy.backoff(attempt)
            logger.warning(
                f"{policy.name}: attempt {attempt}/{policy.max_attempts} failed ({exc}), retrying in {delay:.2f}s"
            )
            sleep(delay)
