"""passage_rag.common.retry

Bounded retry loop for asynchronous operations.

Classes
-------
RetryPolicy
    Attempt budget plus a backoff function mapping attempt number to delay.
RetryExhaustedError
    Raised when every attempt of an operation has failed.

Functions
---------
retry_async
    Await an operation until it succeeds or the policy is exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Backoff = Callable[[int], float]
Sleep = Callable[[float], Awaitable[None]]


def fixed_backoff(seconds: float) -> Backoff:
    """Return a backoff that waits ``seconds`` between every attempt."""
    return lambda attempt: seconds


def linear_backoff(seconds: float) -> Backoff:
    """Return a backoff that waits ``seconds * attempt`` after attempt ``attempt``."""
    return lambda attempt: seconds * attempt


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for an operation.

    Attributes
    ----------
    max_attempts : int
        Total number of attempts, including the first one.
    backoff : Callable[[int], float]
        Maps the 1-based number of the attempt that just failed to the delay,
        in seconds, before the next attempt.
    """

    max_attempts: int = 3
    backoff: Backoff = fixed_backoff(1.0)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def fixed(cls, seconds: float, max_attempts: int = 3) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=fixed_backoff(seconds))

    @classmethod
    def linear(cls, seconds: float, max_attempts: int = 3) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=linear_backoff(seconds))


class RetryExhaustedError(Exception):
    """Every attempt of an operation failed.

    Attributes
    ----------
    attempts : int
        Number of attempts made.
    last_error : BaseException
        Error raised by the final attempt.
    """

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException):
        super().__init__(
            f"{operation_name} failed after {attempts} attempt(s): {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        give_up_on: tuple[type[BaseException], ...] = (),
        on_retry: Optional[Callable[[BaseException, int], Awaitable[None]]] = None,
        operation_name: str = "operation",
        sleep: Sleep = asyncio.sleep,
    ) -> T:
    """Await ``operation`` until it succeeds or ``policy`` is exhausted.

    Parameters
    ----------
    operation : Callable[[], Awaitable[T]]
        Zero-argument coroutine function performing one attempt.
    policy : RetryPolicy
        Attempt budget and backoff.
    retry_on : tuple[type[BaseException], ...], optional
        Exception types that count as a failed attempt.
    give_up_on : tuple[type[BaseException], ...], optional
        Exception types re-raised immediately, even if they match ``retry_on``.
    on_retry : Callable[[BaseException, int], Awaitable[None]] or None, optional
        Awaited after a failed attempt and before the backoff sleep, with the
        error and the 1-based attempt number. Not called after the last attempt.
    operation_name : str, optional
        Name used in log messages and in the exhaustion error.
    sleep : Callable[[float], Awaitable[None]], optional
        Sleep coroutine, replaceable in tests.

    Returns
    -------
    T
        Result of the first successful attempt.

    Raises
    ------
    RetryExhaustedError
        If all ``policy.max_attempts`` attempts failed.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation()
        except give_up_on:
            raise
        except retry_on as exc:
            last_error = exc
            logger.warning(
                "%s attempt %d/%d failed: %s",
                operation_name, attempt, policy.max_attempts, exc,
            )
            if attempt >= policy.max_attempts:
                break
            if on_retry is not None:
                await on_retry(exc, attempt)
            delay = policy.backoff(attempt)
            if delay > 0:
                await sleep(delay)
            continue

        if attempt > 1:
            logger.info("%s succeeded after %d attempts", operation_name, attempt)
        return result

    raise RetryExhaustedError(operation_name, policy.max_attempts, last_error)


__all__ = [
    "RetryPolicy",
    "RetryExhaustedError",
    "fixed_backoff",
    "linear_backoff",
    "retry_async",
]
