"""
Bounded exponential backoff for calls that are safe to repeat.

Only idempotent reads go through here (ledger record reads, worker result
and key lookups). Task submission never does.

The n-th retry waits at most ``min(base * 2**(n-1), max_delay)`` seconds,
spread by one of three jitter modes:

    full   -> uniform in [0, cap]
    equal  -> cap/2 plus uniform in [0, cap/2]
    none   -> exactly cap (deterministic; convenient in tests)

Usage:

    result = await aretry_call(rpc_send, payload, retries=3, base=0.25,
                               max_delay=4.0, exceptions=TransportError)
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import (Any, Awaitable, Callable, Dict, Literal, Optional,
                    Sequence, Tuple, Type, TypeVar, Union)

__all__ = [
    "RetryError",
    "backoff_delay",
    "aretry_call",
]

log = logging.getLogger(__name__)

R = TypeVar("R")

JitterMode = Literal["full", "equal", "none"]
ExceptionTypes = Union[Type[BaseException], Sequence[Type[BaseException]]]
RetryHook = Callable[[int, BaseException, float], None]

_JITTER: Dict[str, Callable[[float], float]] = {
    "full": lambda cap: random.uniform(0.0, cap),
    "equal": lambda cap: cap / 2 + random.uniform(0.0, cap / 2),
    "none": lambda cap: cap,
}


class RetryError(RuntimeError):
    """Every attempt failed; `last_exception` is the final failure."""

    def __init__(self, last_exception: BaseException, attempts: int) -> None:
        super().__init__(f"gave up after {attempts} attempt(s): {last_exception!r}")
        self.last_exception = last_exception
        self.attempts = attempts


def backoff_delay(
    attempt: int,
    *,
    base: float,
    max_delay: float,
    jitter: JitterMode = "full",
) -> float:
    """Seconds to wait after the given 1-based failed attempt."""
    try:
        spread = _JITTER[jitter]
    except KeyError:
        raise ValueError(f"unknown jitter mode: {jitter!r}") from None
    cap = min(base * 2 ** (max(attempt, 1) - 1), max_delay)
    return max(0.0, float(spread(cap)))


def _as_tuple(exceptions: ExceptionTypes) -> Tuple[Type[BaseException], ...]:
    return (exceptions,) if isinstance(exceptions, type) else tuple(exceptions)


async def aretry_call(
    fn: Callable[..., Awaitable[R]],
    *args: Any,
    retries: int = 3,
    base: float = 0.2,
    max_delay: float = 3.0,
    jitter: JitterMode = "full",
    exceptions: ExceptionTypes = Exception,
    on_retry: Optional[RetryHook] = None,
    **kwargs: Any,
) -> R:
    """
    Await ``fn(*args, **kwargs)``; on one of `exceptions`, sleep and try
    again, at most `retries` more times. Anything else (including
    cancellation) propagates immediately. When attempts run out, raises
    RetryError chained to the last failure. `on_retry(attempt, exc, delay)`
    is called before each sleep.
    """
    retry_on = _as_tuple(exceptions)
    attempts = retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except retry_on as exc:
            if attempt == attempts:
                raise RetryError(exc, attempts=attempt) from exc
            delay = backoff_delay(attempt, base=base, max_delay=max_delay, jitter=jitter)
            log.warning(
                "%s failed (%r); retry %d/%d in %.3fs",
                getattr(fn, "__name__", "call"),
                exc,
                attempt,
                retries,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
