"""Pytest configuration and shared fixtures."""

import itertools
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from keysmith.config.parameters import (
    ACCESS_KEY_ID_PARAM,
    REGION_NAME_PARAM,
    SECURE_SECRET_ACCESS_KEY_PARAM,
)
from keysmith.config.settings import KeysmithSettings
from keysmith.exceptions import InvalidCredentialsError, NoSuchEntityError
from keysmith.models.domain import AccessKey, CallerIdentity, ConnectionRecord, Credentials, CredentialsSnapshot
from keysmith.persistence.memory import InMemoryConnectionStore
from keysmith.utils.scheduling import TaskHandle

OLD_KEY_ID = "AKIAOLDKEY0000000001"
OLD_SECRET = "old-secret"


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeExchangeService:
    """Token exchange issuing a new session on every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[Credentials, int]] = []
        self.error: Exception | None = None
        self._counter = itertools.count(1)

    def exchange_for_session_token(self, base_credentials, duration_seconds):
        self.calls.append((base_credentials, duration_seconds))
        if self.error is not None:
            raise self.error
        n = next(self._counter)
        return CredentialsSnapshot(
            credentials=Credentials(f"ASIASESSION{n:09d}", f"session-secret-{n}", session_token=f"token-{n}"),
            expires_at=datetime.now(UTC) + timedelta(seconds=duration_seconds),
        )


class FakeIdentityProvider:
    """IAM and STS in one: tracks which access keys exist for a single user.

    ``errors`` maps an operation name to an exception raised by that
    operation. ``verification_failures`` makes the next N get-caller-identity
    calls fail as if the new key had not propagated yet.
    """

    def __init__(self, user_name: str = "deploy-bot") -> None:
        self.user_name = user_name
        self.keys: dict[str, str] = {OLD_KEY_ID: OLD_SECRET}
        self.errors: dict[str, Exception] = {}
        self.verification_failures = 0
        self.calls: list[str] = []
        self._counter = itertools.count(1)

    def _authenticate(self, credentials: Credentials) -> None:
        if self.keys.get(credentials.access_key_id) != credentials.secret_access_key:
            raise InvalidCredentialsError("The security token included in the request is invalid", code="InvalidClientTokenId")

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.errors:
            raise self.errors[operation]

    def get_user_name(self, credentials):
        self._check("get_user_name")
        self._authenticate(credentials)
        return self.user_name

    def create_access_key(self, credentials, user_name):
        self._check("create_access_key")
        self._authenticate(credentials)
        n = next(self._counter)
        key = AccessKey(f"AKIANEWKEY{n:010d}", f"new-secret-{n}", user_name)
        self.keys[key.access_key_id] = key.secret_access_key
        return key

    def delete_access_key(self, credentials, user_name, access_key_id):
        self._check("delete_access_key")
        self._authenticate(credentials)
        if access_key_id not in self.keys:
            raise NoSuchEntityError(f"The Access Key with id {access_key_id} cannot be found", code="NoSuchEntity")
        del self.keys[access_key_id]

    def get_caller_identity(self, credentials):
        self._check("get_caller_identity")
        if self.verification_failures > 0:
            self.verification_failures -= 1
            raise InvalidCredentialsError("The security token included in the request is invalid")
        self._authenticate(credentials)
        return CallerIdentity(user_id="AIDAEXAMPLE", account="123456789012", arn=f"arn:aws:iam::123456789012:user/{self.user_name}")


class FakeScheduler:
    """Scheduler whose repeating tasks run only when ``tick`` is called."""

    def __init__(self) -> None:
        self.tasks: list[tuple[TaskHandle, object, float]] = []

    def schedule_with_fixed_delay(self, task, interval_seconds, initial_delay_seconds=None, name=None):
        handle = TaskHandle(name or "task")
        self.tasks.append((handle, task, interval_seconds))
        return handle

    def tick(self) -> None:
        for handle, task, _ in self.tasks:
            if not handle.cancelled:
                task()
                handle.runs += 1


@pytest.fixture
def settings() -> KeysmithSettings:
    """Default settings."""
    return KeysmithSettings()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def exchange_service() -> FakeExchangeService:
    return FakeExchangeService()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def connection_parameters() -> dict[str, str]:
    """Parameters of a static-key connection."""
    return {
        ACCESS_KEY_ID_PARAM: OLD_KEY_ID,
        SECURE_SECRET_ACCESS_KEY_PARAM: OLD_SECRET,
        REGION_NAME_PARAM: "eu-west-1",
        "awsCredentialsType": "AwsAccessKeys",
    }


@pytest.fixture
def connection_record(connection_parameters) -> ConnectionRecord:
    return ConnectionRecord(id="PROJECT_EXT_1", project_id="root", parameters=dict(connection_parameters))


@pytest.fixture
def memory_store(connection_record) -> InMemoryConnectionStore:
    """In-memory store holding one persisted connection."""
    store = InMemoryConnectionStore()
    store.add(connection_record)
    return store


@pytest.fixture
def temp_store_dir(tmp_path: Path) -> Path:
    """Temporary connection store directory."""
    store_dir = tmp_path / "connections"
    store_dir.mkdir()
    return store_dir
