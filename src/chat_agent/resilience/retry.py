"""Retry controller with exponential backoff and error-class policies."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from time import perf_counter
from typing import TypeVar

from chat_agent.config import STANDARD_POLICY, RetryPolicy
from chat_agent.errors import ErrorClass, NonRetryableError, classify_error
from chat_agent.obs.log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RetryStats:
    """Filled in by :func:`with_retry` when the caller passes one."""

    attempts: int = 0
    total_delay: float = 0.0
    last_error_class: ErrorClass | None = None


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before the retry that follows 0-based ``attempt``.

    ``min(initial * multiplier ** attempt, max)``, replaced by full jitter
    ``uniform(0, delay)`` when the policy enables it.
    """
    delay = min(policy.initial_delay * (policy.multiplier**attempt), policy.max_delay)
    if policy.jitter:
        return random.uniform(0.0, delay)
    return delay


async def with_retry(
    work: Callable[[], Awaitable[T]],
    policy: RetryPolicy = STANDARD_POLICY,
    *,
    operation: str = "operation",
    stats: RetryStats | None = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``work`` until it succeeds, the error is non-retryable, or attempts run out.

    Non-retryable failures raise :class:`NonRetryableError` after exactly one
    attempt. When every attempt fails with a retryable error the last
    original exception propagates; degrading is the caller's decision.
    Cancellation is never retried.
    """
    stats = stats if stats is not None else RetryStats()
    start = perf_counter()

    for attempt in range(policy.max_attempts):
        stats.attempts = attempt + 1
        try:
            result = await work()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error_class = classify_error(exc)
            stats.last_error_class = error_class
            elapsed_ms = (perf_counter() - start) * 1000.0
            logger.warning(
                "%s attempt %d/%d failed (%s) after %.0fms: %s",
                operation,
                attempt + 1,
                policy.max_attempts,
                error_class.value,
                elapsed_ms,
                exc,
            )
            if not error_class.retryable:
                if isinstance(exc, NonRetryableError):
                    raise
                raise NonRetryableError(exc) from exc
            if attempt + 1 >= policy.max_attempts:
                logger.error(
                    "%s exhausted %d attempts in %.0fms",
                    operation,
                    policy.max_attempts,
                    elapsed_ms,
                )
                raise
            delay = backoff_delay(policy, attempt)
            stats.total_delay += delay
            await sleep(delay)
        else:
            logger.info(
                "%s succeeded on attempt %d in %.0fms",
                operation,
                attempt + 1,
                (perf_counter() - start) * 1000.0,
            )
            return result

    raise RuntimeError("unreachable: retry loop ended without result")  # pragma: no cover


def retry_wrapper(
    policy: RetryPolicy, *, operation: str = "operation", sleep: Sleep = asyncio.sleep
) -> Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]:
    """Bind a policy once and reuse it for many calls at the same site."""

    def _run(work: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        return with_retry(work, policy, operation=operation, sleep=sleep)

    return _run
