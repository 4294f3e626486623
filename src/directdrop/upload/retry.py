"""Bounded retry with exponential backoff and jitter.

Retry classification and the backoff formula are plain functions so they
can be tested without any network; :func:`call_with_retry` composes them
with tenacity's ``AsyncRetrying``.

Retryable: HTTP 408, 425, 429, any 5xx, and transport-level failures.
Everything else (401, 404, every other 4xx, and all 2xx/3xx) is returned to
the caller untouched on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 425, 429})

DEFAULT_BASE_DELAY = 0.3
DEFAULT_JITTER = 0.12


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for one class of network call.

    Attributes:
        retries: Extra attempts after the first one.
        base_delay: Seconds before the first retry (doubles each time).
        jitter: Upper bound of the random extra delay, in seconds.
    """

    retries: int = 2
    base_delay: float = DEFAULT_BASE_DELAY
    jitter: float = DEFAULT_JITTER

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        if self.base_delay < 0 or self.jitter < 0:
            raise ValueError("base_delay and jitter must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


def is_retryable_status(status_code: int) -> bool:
    """Return True if an HTTP status is worth retrying."""
    return status_code in RETRYABLE_STATUSES or 500 <= status_code <= 599


def backoff_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    jitter: float = DEFAULT_JITTER,
    rand: Callable[[float, float], float] = random.uniform,
) -> float:
    """Delay before retry number *attempt* (1-based).

    ``base_delay * 2 ** (attempt - 1) + rand(0, jitter)``.  The jitter keeps
    concurrently failing workers from retrying in lockstep.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay * 2 ** (attempt - 1) + rand(0.0, jitter)


def _response_is_retryable(response: Any) -> bool:
    return is_retryable_status(response.status_code)


def _return_last_outcome(retry_state: RetryCallState) -> Any:
    # Exhausted: hand back the last response, or re-raise the last
    # transport error.
    return retry_state.outcome.result()


async def call_with_retry(
    operation: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy,
    *,
    label: str = "request",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[float, float], float] = random.uniform,
) -> httpx.Response:
    """Run *operation* under *policy* and return its final response.

    Args:
        operation: Zero-argument coroutine factory performing exactly one
            request.  Called once per attempt.
        policy: Retry budget to apply.
        label: Short description used in log messages.
        sleep: Awaitable sleep, injectable for tests.
        rand: Jitter source, injectable for tests.

    Returns:
        The first non-retryable response, or the last response once the
        budget is exhausted.

    Raises:
        httpx.TransportError: If the final attempt failed at transport level.
    """

    def _wait(retry_state: RetryCallState) -> float:
        return backoff_delay(
            retry_state.attempt_number, policy.base_delay, policy.jitter, rand
        )

    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome.failed:
            reason = repr(outcome.exception())
        else:
            reason = f"HTTP {outcome.result().status_code}"
        logger.warning(
            "%s failed (%s), retry %d/%d in %.2fs",
            label,
            reason,
            retry_state.attempt_number,
            policy.retries,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=_wait,
        retry=(
            retry_if_exception_type(httpx.TransportError)
            | retry_if_result(_response_is_retryable)
        ),
        before_sleep=_log_retry,
        retry_error_callback=_return_last_outcome,
        sleep=sleep,
    )
    return await retrying(operation)
