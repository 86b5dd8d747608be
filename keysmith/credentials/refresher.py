"""
Background refresh of session credentials.

The refresher owns a ``SessionCredentialsHolder`` and one repeating task on a
shared ``BackgroundScheduler``. Reads are delegated to the holder and never
wait for the network; the task renews the session ahead of expiry.

Scheduling:
    interval = max(min_interval_seconds, refresh_fraction * duration_seconds)

    With the defaults (0.8, 60s) a one-hour session is renewed every 48
    minutes.

Lifecycle:
    The task is acquired in ``__init__`` and released by ``close()``, which
    is idempotent. If construction fails after the task was scheduled, the
    task is cancelled before the error propagates. The refresher is a context
    manager.

Example:
    >>> session = SessionCredentialsHolder(static, StsTokenExchangeService(), 3600)
    >>> with CredentialsRefresher(session) as holder:
    ...     env = credentials_to_env_vars(holder, region="eu-west-1")
"""

from datetime import datetime
from typing import Any

import structlog

from keysmith.credentials.session_holder import SessionCredentialsHolder
from keysmith.models.domain import Credentials
from keysmith.utils.scheduling import BackgroundScheduler, TaskHandle, get_default_scheduler

log = structlog.get_logger(__name__)

DEFAULT_REFRESH_FRACTION = 0.8
DEFAULT_MIN_INTERVAL_SECONDS = 60.0


def compute_refresh_interval(
    duration_seconds: float,
    refresh_fraction: float = DEFAULT_REFRESH_FRACTION,
    min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
) -> float:
    """Seconds between refreshes for a session of ``duration_seconds``."""
    if not 0 < refresh_fraction < 1:
        raise ValueError("refresh_fraction must be between 0 and 1")
    return max(min_interval_seconds, duration_seconds * refresh_fraction)


class CredentialsRefresher:
    """Keeps a session holder fresh from a background task.

    Implements the ``CredentialsHolder`` protocol by delegation.

    Args:
        session_holder: Holder to refresh
        scheduler: Scheduler to run on. Defaults to the process-wide one.
        refresh_fraction: Fraction of the session lifetime after which to refresh
        min_interval_seconds: Floor for the refresh interval
    """

    def __init__(
        self,
        session_holder: SessionCredentialsHolder,
        scheduler: BackgroundScheduler | None = None,
        refresh_fraction: float = DEFAULT_REFRESH_FRACTION,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
    ) -> None:
        self.session_holder = session_holder
        self.interval_seconds = compute_refresh_interval(
            session_holder.duration_seconds,
            refresh_fraction,
            min_interval_seconds,
        )
        self.ticks = 0
        self._task: TaskHandle | None = None

        scheduler = scheduler if scheduler is not None else get_default_scheduler()
        self._task = scheduler.schedule_with_fixed_delay(
            self._tick,
            interval_seconds=self.interval_seconds,
            name="credentials-refresh",
        )
        try:
            log.info(
                "credentials_refresher_started",
                interval_seconds=self.interval_seconds,
                session_key=session_holder.get_credentials().masked_key_id,
            )
        except BaseException:
            self.close()
            raise

    @property
    def closed(self) -> bool:
        return self._task is None or self._task.cancelled

    def _tick(self) -> None:
        """One scheduled refresh. Never raises into the scheduler."""
        self.ticks += 1
        try:
            self.session_holder.refresh()
        except Exception as e:
            log.error("credentials_refresh_tick_failed", tick=self.ticks, error=str(e))
            return

        failure = self.session_holder.last_refresh_failure
        if failure is not None:
            log.warning("credentials_refresh_tick_kept_previous", tick=self.ticks, error=failure.message)

    def get_credentials(self) -> Credentials:
        return self.session_holder.get_credentials()

    def refresh(self) -> None:
        self.session_holder.refresh()

    def get_session_expiration_date(self) -> datetime | None:
        return self.session_holder.get_session_expiration_date()

    def close(self) -> None:
        """Cancel the refresh task. Safe to call more than once."""
        if self._task is not None and self._task.cancel():
            log.info("credentials_refresher_stopped", ticks=self.ticks)

    def __enter__(self) -> "CredentialsRefresher":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
