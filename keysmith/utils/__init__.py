"""Utility modules for keysmith.

- retry: duration-bounded Retrier with listener hooks
- polling: bounded poll-until-predicate helper
- scheduling: shared background scheduler with cancellable task handles
- logging_config: structlog configuration
"""

from keysmith.utils.polling import poll_until
from keysmith.utils.retry import (
    DelayListener,
    ExponentialBackoffListener,
    LoggingListener,
    Retrier,
    RetrierEventListener,
)
from keysmith.utils.scheduling import BackgroundScheduler, TaskHandle, get_default_scheduler

__all__ = [
    "BackgroundScheduler",
    "DelayListener",
    "ExponentialBackoffListener",
    "LoggingListener",
    "Retrier",
    "RetrierEventListener",
    "TaskHandle",
    "get_default_scheduler",
    "poll_until",
]
