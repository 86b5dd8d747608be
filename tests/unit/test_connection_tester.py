"""Tests for keysmith/connection_tester.py."""

from unittest.mock import Mock, patch

import pytest

from keysmith.connection_tester import ConnectionTester
from keysmith.credentials import CredentialsHolderFactory
from keysmith.exceptions import InvalidCredentialsError


@pytest.fixture(autouse=True)
def valid_endpoints():
    with patch("keysmith.credentials.builder.is_valid_sts_endpoint", return_value=True):
        yield


@pytest.fixture
def factory(exchange_service, fake_scheduler):
    return CredentialsHolderFactory(lambda parameters: exchange_service, scheduler=fake_scheduler)


class TestConnectionTester:
    """Tests for ConnectionTester.test_connection."""

    def test_valid_connection(self, factory, connection_parameters):
        """Should report the caller identity."""
        verifier = Mock()
        verifier.get_caller_identity.return_value = Mock(user_id="AIDAEXAMPLE", account="123456789012")
        tester = ConnectionTester(factory, lambda parameters: verifier)

        result = tester.test_connection(connection_parameters)

        assert result.ok
        assert result.identity.user_id == "AIDAEXAMPLE"
        credentials = verifier.get_caller_identity.call_args.args[0]
        assert credentials.is_temporary

    def test_invalid_properties(self, factory):
        """Should not contact the provider when properties are invalid."""
        verifier_factory = Mock()
        tester = ConnectionTester(factory, verifier_factory)

        result = tester.test_connection({})

        assert not result.ok
        assert {prop.name for prop in result.invalid_properties} >= {"awsAccessKeyId", "awsRegionName"}
        verifier_factory.assert_not_called()

    def test_rejected_credentials(self, factory, connection_parameters):
        """Should report the provider's rejection."""
        verifier = Mock()
        verifier.get_caller_identity.side_effect = InvalidCredentialsError("The security token is invalid")
        tester = ConnectionTester(factory, lambda parameters: verifier)

        result = tester.test_connection(connection_parameters)

        assert not result.ok
        assert result.error == "The security token is invalid"

    def test_closes_refresher(self, factory, connection_parameters, fake_scheduler):
        """Should cancel the refresh task of the temporary holder."""
        verifier = Mock()
        tester = ConnectionTester(factory, lambda parameters: verifier)

        tester.test_connection(connection_parameters)

        assert all(handle.cancelled for handle, _, _ in fake_scheduler.tasks)

    def test_closes_holder_when_rejected(self, connection_parameters):
        """Should close the holder even when the provider rejects it."""
        holder = Mock()
        factory = Mock(spec=CredentialsHolderFactory)
        factory.validate_properties.return_value = []
        factory.request_credentials.return_value = holder
        verifier = Mock()
        verifier.get_caller_identity.side_effect = InvalidCredentialsError("The security token is invalid")
        tester = ConnectionTester(factory, lambda parameters: verifier)

        result = tester.test_connection(connection_parameters)

        assert not result.ok
        holder.close.assert_called_once_with()
