"""
Key rotation for persisted connections.

The rotator replaces the long-lived access key backing a connection while
keeping the connection authenticatable at every point. Steps run strictly in
order and there is no rollback:

    1. locate-connection   find the record; a missing record is a no-op
    2. capture-old-key     read the current key pair from the record
    3. resolve-user        ask the identity service who owns the old key
    4. create-new-key      issue a second key for that user
    5. verify-new-key      call get-caller-identity with the new key until it
                           works (bounded retry, absorbs propagation delay)
    6. update-record       re-fetch the record, write the new key, request
                           persistence
    7. confirm-record      poll the durable record until it holds the new key
    8. delete-old-key      delete the old key, authenticated with the new one

A failure after step 4 can leave two keys active at the provider. The old key
is only deleted once the record is confirmed durable, so a failure never
locks a connection out. ``KeyRotationError`` reports the failed step, whether
the record changed and which keys may still be live, so an operator can
reconcile by hand.

Rotation blocks the calling thread; with default settings the worst case is
two 30 second budgets plus call latency. Callers must serialize rotations of
the same connection.
"""

import time
from collections.abc import Callable, Mapping
from typing import NoReturn

import structlog

from keysmith.config.parameters import (
    ACCESS_KEY_ID_PARAM,
    SECURE_SECRET_ACCESS_KEY_PARAM,
    mask_key,
)
from keysmith.config.settings import KeysmithSettings
from keysmith.enums import RotationStep
from keysmith.exceptions import (
    ConnectionNotFoundError,
    KeyRotationError,
    PollTimeoutError,
    ProviderError,
    RetryTimeoutError,
)
from keysmith.models.domain import CallerIdentity, ConnectionRecord, Credentials, RotationAttempt
from keysmith.persistence.base import ConnectionStore
from keysmith.providers.base import IdentityManagementService, IdentityVerificationService
from keysmith.utils.polling import poll_until
from keysmith.utils.retry import DelayListener, LoggingListener, Retrier

log = structlog.get_logger(__name__)

VerifierFactory = Callable[[Mapping[str, str]], IdentityVerificationService]


class KeyRotator:
    """Rotate the access key of a persisted connection.

    Args:
        store: Connection store holding the records
        identity_manager: Identity management service (user lookup, key
            creation and deletion)
        verifier_factory: Builds an identity verification service for a
            connection's parameters, so the new key is checked against the
            same STS endpoint the connection uses
        settings: keysmith settings (rotation budgets)
        sleep: Sleep function, injectable for tests
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        store: ConnectionStore,
        identity_manager: IdentityManagementService,
        verifier_factory: VerifierFactory,
        settings: KeysmithSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.identity_manager = identity_manager
        self.verifier_factory = verifier_factory
        self.config = (settings or KeysmithSettings()).rotation
        self._sleep = sleep
        self._clock = clock

    def rotate_connection_keys(self, connection_id: str, project_id: str) -> None:
        """Rotate the key pair of one connection.

        Returns normally if the connection does not exist.

        Raises:
            KeyRotationError: A step failed. See ``step``, ``record_changed``
                and ``live_key_ids`` on the error.
        """
        attempt = RotationAttempt(connection_id=connection_id, project_id=project_id)
        rlog = log.bind(connection_id=connection_id, project_id=project_id)

        try:
            record = self.store.find(project_id, connection_id)
        except Exception as e:
            self._fail(attempt, f"Failed to read the connection: {e}", e)
        if record is None:
            rlog.info("key_rotation_skipped", reason="connection not found")
            return

        self._capture_old_key(attempt, record)
        rlog = rlog.bind(old_key=mask_key(attempt.previous_credentials.access_key_id))
        rlog.info("key_rotation_started")

        self._resolve_user(attempt)
        rlog.info("key_rotation_step", step=attempt.step.value, user=attempt.iam_user_name)

        self._create_new_key(attempt)
        rlog = rlog.bind(new_key=mask_key(attempt.new_credentials.access_key_id))
        rlog.info("key_rotation_step", step=attempt.step.value)

        identity = self._verify_new_key(attempt, record.parameters)
        rlog.info("key_rotation_step", step=attempt.step.value, user_id=identity.user_id)

        self._update_record(attempt)
        rlog.info("key_rotation_step", step=attempt.step.value)

        self._confirm_record(attempt)
        rlog.info("key_rotation_step", step=attempt.step.value)

        self._delete_old_key(attempt)
        rlog.info("key_rotation_completed", step=attempt.step.value)

    def _fail(self, attempt: RotationAttempt, message: str, cause: BaseException | None = None) -> NoReturn:
        error = KeyRotationError(
            message,
            step=attempt.step,
            connection_id=attempt.connection_id,
            record_changed=attempt.record_changed,
            live_key_ids=attempt.live_key_ids,
        )
        log.error(
            "key_rotation_failed",
            connection_id=attempt.connection_id,
            project_id=attempt.project_id,
            step=attempt.step.value,
            record_changed=attempt.record_changed,
            live_keys=[mask_key(key) for key in attempt.live_key_ids],
            error=message,
        )
        if cause is not None:
            raise error from cause
        raise error

    def _capture_old_key(self, attempt: RotationAttempt, record: ConnectionRecord) -> None:
        attempt.step = RotationStep.CAPTURE_OLD_KEY
        if not record.access_key_id or not record.secret_access_key:
            self._fail(attempt, "The connection has no access key to rotate")
        attempt.previous_credentials = Credentials(record.access_key_id, record.secret_access_key)

    def _resolve_user(self, attempt: RotationAttempt) -> None:
        attempt.step = RotationStep.RESOLVE_USER
        try:
            attempt.iam_user_name = self.identity_manager.get_user_name(attempt.previous_credentials)
        except ProviderError as e:
            self._fail(attempt, f"Failed to resolve the IAM user of the current access key: {e.message}", e)

    def _create_new_key(self, attempt: RotationAttempt) -> None:
        attempt.step = RotationStep.CREATE_NEW_KEY
        try:
            access_key = self.identity_manager.create_access_key(
                attempt.previous_credentials,
                attempt.iam_user_name,
            )
        except ProviderError as e:
            self._fail(attempt, f"Failed to create a new access key: {e.message}", e)
        attempt.new_credentials = access_key.to_credentials()

    def _verify_new_key(self, attempt: RotationAttempt, parameters: Mapping[str, str]) -> CallerIdentity:
        attempt.step = RotationStep.VERIFY_NEW_KEY
        try:
            verifier = self.verifier_factory(parameters)
        except Exception as e:
            self._fail(attempt, f"Failed to configure identity verification for the connection: {e}", e)
        retrier = (
            Retrier(self.config.timeout_seconds, clock=self._clock)
            .register_listener(DelayListener(self.config.verification_delay_ms, sleep=self._sleep))
            .register_listener(LoggingListener("verify-new-key"))
        )
        new_credentials = attempt.new_credentials
        try:
            return retrier.execute(lambda: verifier.get_caller_identity(new_credentials))
        except RetryTimeoutError as e:
            self._fail(
                attempt,
                f"Rotated connection is invalid after {self.config.timeout_seconds:g} seconds: {e.last_error}",
                e,
            )

    def _update_record(self, attempt: RotationAttempt) -> None:
        attempt.step = RotationStep.UPDATE_RECORD
        try:
            record = self.store.find(attempt.project_id, attempt.connection_id)
        except Exception as e:
            self._fail(attempt, f"Failed to re-read the connection before updating it: {e}", e)
        if record is None:
            self._fail(attempt, "The connection has been deleted while it was being rotated")

        parameters = dict(record.parameters)
        parameters[ACCESS_KEY_ID_PARAM] = attempt.new_credentials.access_key_id
        parameters[SECURE_SECRET_ACCESS_KEY_PARAM] = attempt.new_credentials.secret_access_key
        try:
            self.store.update(attempt.project_id, attempt.connection_id, parameters)
        except ConnectionNotFoundError as e:
            self._fail(attempt, "The connection has been deleted while it was being rotated", e)
        except Exception as e:
            self._fail(attempt, f"Failed to update the connection with the new access key: {e}", e)

        # the live record holds the new key from here on
        attempt.record_changed = None
        try:
            self.store.schedule_persist(attempt.project_id, reason=f"Rotate keys of connection {attempt.connection_id}")
        except Exception as e:
            self._fail(attempt, f"Failed to persist the connection with the new access key: {e}", e)

    def _confirm_record(self, attempt: RotationAttempt) -> None:
        attempt.step = RotationStep.CONFIRM_RECORD
        new_key_id = attempt.new_credentials.access_key_id
        try:
            poll_until(
                lambda: self.store.read_persisted(attempt.project_id, attempt.connection_id),
                lambda record: record is not None and record.access_key_id == new_key_id,
                timeout_seconds=self.config.timeout_seconds,
                interval_seconds=self.config.persistence_poll_interval_seconds,
                description="persisted connection holds the new access key",
                sleep=self._sleep,
            )
        except PollTimeoutError as e:
            self._fail(attempt, self._mismatch_message(e, new_key_id), e)
        attempt.record_changed = True

    def _mismatch_message(self, error: PollTimeoutError, new_key_id: str) -> str:
        observed = error.last_value
        if observed is not None:
            seen = f"persisted access key is {mask_key(observed.access_key_id)}"
        elif error.last_error is not None:
            seen = f"last read failed: {error.last_error}"
        else:
            seen = "persisted connection not found"
        return (
            f"The connection was not persisted with the new access key {mask_key(new_key_id)} "
            f"after {self.config.timeout_seconds:g} seconds ({seen}); the old key was not deleted"
        )

    def _delete_old_key(self, attempt: RotationAttempt) -> None:
        attempt.step = RotationStep.DELETE_OLD_KEY
        try:
            self.identity_manager.delete_access_key(
                attempt.new_credentials,
                attempt.iam_user_name,
                attempt.previous_credentials.access_key_id,
            )
        except ProviderError as e:
            self._fail(
                attempt,
                f"The connection uses the new key, but deleting the old access key failed: {e.message}",
                e,
            )
