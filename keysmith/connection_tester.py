"""Check that a connection's credentials are accepted by the provider."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import structlog

from keysmith.credentials.builder import CredentialsHolderFactory, InvalidProperty
from keysmith.exceptions import KeysmithError
from keysmith.models.domain import CallerIdentity
from keysmith.providers.base import IdentityVerificationService

log = structlog.get_logger(__name__)


@dataclass
class ConnectionTestResult:
    """Outcome of a connection test.

    ``identity`` is set when the provider accepted the credentials.
    """

    identity: CallerIdentity | None = None
    invalid_properties: list[InvalidProperty] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.identity is not None


class ConnectionTester:
    """Build a holder for a connection and call get-caller-identity with it."""

    def __init__(
        self,
        factory: CredentialsHolderFactory,
        verifier_factory: Callable[[Mapping[str, str]], IdentityVerificationService],
    ) -> None:
        self.factory = factory
        self.verifier_factory = verifier_factory

    def test_connection(self, parameters: Mapping[str, str]) -> ConnectionTestResult:
        invalid = self.factory.validate_properties(parameters)
        if invalid:
            return ConnectionTestResult(invalid_properties=invalid, error="Connection properties are invalid")

        try:
            holder = self.factory.request_credentials(parameters)
        except KeysmithError as e:
            log.info("connection_test_failed", error=str(e))
            return ConnectionTestResult(error=e.message)

        try:
            identity = self.verifier_factory(parameters).get_caller_identity(holder.get_credentials())
        except KeysmithError as e:
            log.info("connection_test_failed", error=str(e))
            return ConnectionTestResult(error=e.message)
        finally:
            holder.close()

        log.info("connection_test_succeeded", user_id=identity.user_id, account=identity.account)
        return ConnectionTestResult(identity=identity)
