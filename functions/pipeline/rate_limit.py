"""
GitHub rate-limit classification and backoff.

Primary limit: quota exhausted, 403 with X-RateLimit-Remaining: 0. Resets
at X-RateLimit-Reset (epoch seconds).
Secondary limit: abuse detection, 403 with Retry-After (seconds).

Every retry path is bounded by MAX_RATE_LIMIT_RETRIES.
"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.constants import MAX_BACKOFF_MS, MAX_RATE_LIMIT_RETRIES
from shared.errors import RateLimitError, UpstreamError
from shared.logging_utils import PipelineTrace

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def sleep(ms: float) -> None:
    await asyncio.sleep(ms / 1000)


def is_rate_limit_error(error: Any) -> bool:
    """Primary rate limit: 403 with a zero remaining-quota header."""
    return (
        isinstance(error, UpstreamError)
        and error.status_code == 403
        and error.headers.get("x-ratelimit-remaining") == "0"
    )


def is_secondary_rate_limit_error(error: Any) -> bool:
    """Secondary rate limit: 403 carrying a Retry-After header."""
    return (
        isinstance(error, UpstreamError)
        and error.status_code == 403
        and error.headers.get("retry-after") is not None
    )


def is_rate_limited(error: Any) -> bool:
    """Any rate-limit signal, including GraphQL RATE_LIMITED errors."""
    return (
        isinstance(error, RateLimitError)
        or is_rate_limit_error(error)
        or is_secondary_rate_limit_error(error)
    )


def get_rate_limit_reset(error: UpstreamError) -> Optional[int]:
    """Reset time in epoch seconds, or None if absent or unparseable."""
    reset = error.headers.get("x-ratelimit-reset")
    if not reset:
        return None
    try:
        return int(float(reset))
    except (ValueError, OverflowError):
        return None


def get_retry_after(error: UpstreamError) -> Optional[float]:
    """Retry-After in milliseconds; zero, negative or garbage gives None."""
    retry_after = error.headers.get("retry-after")
    if not retry_after:
        return None
    try:
        seconds = float(retry_after)
    except ValueError:
        return None
    if seconds != seconds or seconds <= 0:
        return None
    return seconds * 1000


def get_retry_delay(attempt: int, reset_timestamp: Optional[float] = None) -> float:
    """
    Milliseconds to wait before retry `attempt` (0-based).

    Waits until the quota reset when it lies in the future, otherwise
    exponential backoff with up to 1s of jitter. Capped at 60 seconds.
    """
    if reset_timestamp is not None:
        delay_ms = reset_timestamp * 1000 - time.time() * 1000
        if delay_ms > 0:
            return min(delay_ms, MAX_BACKOFF_MS)

    base_ms = 1000 * 2**attempt
    jitter = random.random() * 1000
    return min(base_ms + jitter, MAX_BACKOFF_MS)


def _delay_for(error: UpstreamError, attempt: int) -> float:
    if is_secondary_rate_limit_error(error):
        retry_after = get_retry_after(error)
        if retry_after is not None:
            return min(retry_after, MAX_BACKOFF_MS)
    return get_retry_delay(attempt, get_rate_limit_reset(error))


async def with_rate_limit_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    trace: Optional[PipelineTrace] = None,
    max_retries: int = MAX_RATE_LIMIT_RETRIES,
) -> T:
    """
    Run operation, retrying on rate-limit errors.

    Non-rate-limit errors propagate immediately. After max_retries retries
    the last rate-limit error propagates for the caller to absorb.
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except UpstreamError as e:
            if not is_rate_limited(e) or attempt >= max_retries:
                raise

            delay = _delay_for(e, attempt)
            logger.warning(
                f"{label}: rate limited, retry {attempt + 1}/{max_retries} in {delay:.0f}ms"
            )
            if trace:
                trace.log(f"  {label}", f"rate limited, retry {attempt + 1} in {delay:.0f}ms")
            await sleep(delay)

    raise RuntimeError("Retry loop exited unexpectedly")
