"""Bounded polling: wait until fetched state satisfies a predicate.

Unlike ``Retrier``, which retries an operation that raises, ``poll_until``
repeatedly fetches a value and tests it. A fetch that returns the "wrong"
value is the normal waiting case, not an error.

Exception policy:
    Exceptions raised by ``fetch`` are treated as infrastructure hiccups: they
    are logged, remembered as ``last_error`` and the poll continues. Exceptions
    raised by ``predicate`` are programming errors and propagate immediately.
    On timeout, ``PollTimeoutError`` reports the last observed value and the
    last fetch error separately so callers can tell a persistent mismatch from
    an unreachable store.
"""

import time
from collections.abc import Callable
from typing import TypeVar

import structlog

from keysmith.exceptions import PollTimeoutError

log = structlog.get_logger(__name__)

T = TypeVar("T")

_UNSET = object()


def poll_until(
    fetch: Callable[[], T],
    predicate: Callable[[T], bool],
    timeout_seconds: float,
    interval_seconds: float,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Fetch until ``predicate(value)`` holds or the budget is spent.

    Elapsed time is tracked as the sum of the sleeps performed, so the number
    of polls is ``timeout_seconds // interval_seconds + 1`` regardless of how
    long each fetch takes.

    Args:
        fetch: Zero-argument callable returning the current state
        predicate: Test applied to each fetched value
        timeout_seconds: Total sleep budget
        interval_seconds: Sleep between polls
        description: Human-readable name of the awaited condition
        sleep: Sleep function, injectable for tests

    Returns:
        The first fetched value satisfying the predicate

    Raises:
        PollTimeoutError: The condition was never observed
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    elapsed = 0.0
    last_value: object = _UNSET
    last_error: Exception | None = None

    while True:
        try:
            value = fetch()
        except Exception as e:
            last_error = e
            log.warning("poll_fetch_failed", condition=description, elapsed=elapsed, error=str(e))
        else:
            if predicate(value):
                return value
            last_value = value
            log.debug("poll_condition_not_met", condition=description, elapsed=elapsed)

        if elapsed + interval_seconds > timeout_seconds:
            break
        sleep(interval_seconds)
        elapsed += interval_seconds

    observed = None if last_value is _UNSET else last_value
    message = f"{description} not reached after {timeout_seconds} seconds"
    if last_error is not None and last_value is _UNSET:
        message = f"{message}: {last_error}"

    error = PollTimeoutError(
        message,
        timeout_seconds=timeout_seconds,
        last_value=observed,
        last_error=last_error,
    )
    if last_error is not None:
        raise error from last_error
    raise error
