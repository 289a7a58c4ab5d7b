from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from parts_orders.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar('T')

Backoff = Callable[[int], float]


def exponential_backoff(base_seconds: float) -> Backoff:
    """Delay before retrying after failed attempt n: base * 2^(n-1)."""
    return lambda attempt: base_seconds * 2 ** (attempt - 1)


def rate_limit_backoff(base_seconds: float) -> Backoff:
    """Longer delay after a rate-limited attempt n: base * 2^n."""
    return lambda attempt: base_seconds * 2**attempt


def with_retry(
    fn: Callable[[], T],
    *,
    operation: str,
    max_attempts: int,
    backoff: Backoff,
    rate_limited_backoff: Backoff | None = None,
    is_rate_limited: Callable[[BaseException], bool] = lambda _exc: False,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds or max_attempts is used up.

    Waits happen only between attempts. Rate-limited failures wait using
    rate_limited_backoff (falls back to backoff). After the last failed
    attempt RetryExhaustedError is raised with the last cause attached.
    """
    if max_attempts < 1:
        raise ValueError('max_attempts must be at least 1')

    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as exc:
            limited = is_rate_limited(exc)
            logger.warning(
                '%s attempt %s/%s failed%s: %s',
                operation,
                attempt,
                max_attempts,
                ' (rate limited)' if limited else '',
                exc,
            )
            if attempt >= max_attempts:
                raise RetryExhaustedError(operation, max_attempts, exc) from exc
            delay_fn = rate_limited_backoff if limited and rate_limited_backoff else backoff
            delay = delay_fn(attempt)
            logger.info('Retrying %s in %.2fs', operation, delay)
            sleep(delay)
        attempt += 1
