"""Retry utilities for handling transient failures.

Provides a duration-bounded retry executor whose behaviour between attempts
is supplied by listeners. The executor itself is policy-agnostic: it retries
every ``Exception`` until its wall-clock budget is spent, then raises
``RetryTimeoutError`` wrapping the most recent failure.

Key Exports:
    Retrier: Executes a zero-argument callable until it succeeds or the
        budget runs out.
    RetrierEventListener: No-op observer base class with lifecycle hooks.
    DelayListener: Fixed pause before each retry.
    ExponentialBackoffListener: Growing (optionally jittered) pause.
    LoggingListener: Structured logging of attempts.

Example:
    >>> retrier = Retrier(timeout_seconds=30).register_listener(DelayListener(1000))
    >>> identity = retrier.execute(lambda: verifier.get_caller_identity(creds))

Hook Order:
    before_execution
    (attempt -> on_failure -> before_retry)* attempt -> on_success
    after_execution

    ``retry`` is 0 for the first attempt, so ``on_success`` receives the
    number of retries that were needed.
"""

import random
import time
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from keysmith.exceptions import RetryTimeoutError

log = structlog.get_logger(__name__)

T = TypeVar("T")


class RetrierEventListener:
    """Observer of a retry loop. Every hook is a no-op by default."""

    def before_execution(self, operation: Callable[[], Any]) -> None:
        pass

    def after_execution(self, operation: Callable[[], Any]) -> None:
        pass

    def before_retry(self, operation: Callable[[], Any], retry: int) -> None:
        pass

    def on_success(self, operation: Callable[[], Any], retry: int) -> None:
        pass

    def on_failure(self, operation: Callable[[], Any], retry: int, error: Exception) -> None:
        pass


class DelayListener(RetrierEventListener):
    """Sleep a fixed number of milliseconds before every retry."""

    def __init__(self, delay_ms: int, sleep: Callable[[float], None] = time.sleep) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        self.delay_ms = delay_ms
        self._sleep = sleep

    def before_retry(self, operation: Callable[[], Any], retry: int) -> None:
        self._sleep(self.delay_ms / 1000)


class ExponentialBackoffListener(RetrierEventListener):
    """Sleep ``base_ms * factor ** (retry - 1)`` before every retry.

    The delay is capped at ``max_ms``. With ``jitter`` the actual pause is a
    random value between zero and the computed delay ("full jitter").
    """

    def __init__(
        self,
        base_ms: int = 500,
        factor: float = 2.0,
        max_ms: int = 10_000,
        jitter: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_ms = base_ms
        self.factor = factor
        self.max_ms = max_ms
        self.jitter = jitter
        self._sleep = sleep

    def delay_for(self, retry: int) -> float:
        """Delay in seconds before the given retry (1-based)."""
        delay_ms = min(self.max_ms, self.base_ms * self.factor ** max(retry - 1, 0))
        if self.jitter:
            delay_ms = random.uniform(0, delay_ms)
        return delay_ms / 1000

    def before_retry(self, operation: Callable[[], Any], retry: int) -> None:
        self._sleep(self.delay_for(retry))


class LoggingListener(RetrierEventListener):
    """Log retry activity for one named operation."""

    def __init__(self, operation_name: str) -> None:
        self.operation_name = operation_name

    def on_failure(self, operation: Callable[[], Any], retry: int, error: Exception) -> None:
        log.warning(
            "retry_attempt_failed",
            operation=self.operation_name,
            retry=retry,
            error=str(error),
        )

    def on_success(self, operation: Callable[[], Any], retry: int) -> None:
        if retry:
            log.info("retry_succeeded", operation=self.operation_name, retries=retry)


class Retrier:
    """Duration-bounded retry executor.

    Args:
        timeout_seconds: Wall-clock budget for the whole loop. Once an attempt
            fails at or after this point, the loop gives up.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, timeout_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if timeout_seconds < 0:
            raise ValueError("timeout_seconds must not be negative")
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._listeners: list[RetrierEventListener] = []

    def register_listener(self, listener: RetrierEventListener) -> "Retrier":
        """Add a listener. Returns self for chaining."""
        self._listeners.append(listener)
        return self

    @property
    def listeners(self) -> tuple[RetrierEventListener, ...]:
        return tuple(self._listeners)

    def execute(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` until it succeeds or the budget is exhausted.

        Raises:
            RetryTimeoutError: The budget ran out. The last failure is the
                ``__cause__`` and ``last_error``.
        """
        for listener in self._listeners:
            listener.before_execution(operation)

        try:
            started = self._clock()
            retry = 0
            while True:
                try:
                    result = operation()
                except Exception as e:
                    for listener in self._listeners:
                        listener.on_failure(operation, retry, e)

                    if self._clock() - started >= self.timeout_seconds:
                        log.error(
                            "retry_exhausted",
                            attempts=retry + 1,
                            timeout_seconds=self.timeout_seconds,
                            error=str(e),
                        )
                        raise RetryTimeoutError(
                            f"Operation did not succeed within {self.timeout_seconds} seconds: {e}",
                            timeout_seconds=self.timeout_seconds,
                            attempts=retry + 1,
                            last_error=e,
                        ) from e

                    retry += 1
                    for listener in self._listeners:
                        listener.before_retry(operation, retry)
                    continue

                for listener in self._listeners:
                    listener.on_success(operation, retry)
                return result
        finally:
            for listener in self._listeners:
                listener.after_execution(operation)
