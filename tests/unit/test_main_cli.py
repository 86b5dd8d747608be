"""Unit tests for keysmith/main.py and keysmith/cli - command-line interface."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from keysmith.exceptions import LimitExceededError
from keysmith.main import cli
from keysmith.models.domain import ConnectionRecord
from keysmith.persistence import JsonFileConnectionStore


@pytest.fixture
def cli_runner():
    """Create CLI runner for testing Click commands."""
    return CliRunner()


@pytest.fixture
def static_parameters(connection_parameters):
    params = dict(connection_parameters)
    params["awsSessionCredentials"] = "false"
    return params


@pytest.fixture
def config_file(tmp_path, temp_store_dir, static_parameters):
    """Config pointing at a store holding one static-key connection."""
    with JsonFileConnectionStore(temp_store_dir) as store:
        store.add(ConnectionRecord(id="PROJECT_EXT_1", project_id="root", parameters=static_parameters))

    path = tmp_path / "keysmith.yaml"
    path.write_text(
        f"""
rotation:
  timeout_seconds: 2
  verification_delay_ms: 10
  persistence_poll_interval_seconds: 0.05
store:
  directory: {temp_store_dir}
"""
    )
    return path


@pytest.fixture
def fake_services(provider):
    """Route provider calls to the in-memory fake."""
    with (
        patch("keysmith.cli.rotate.IamKeyManager", return_value=provider),
        patch("keysmith.cli.rotate.create_verifier_factory", return_value=lambda parameters: provider),
    ):
        yield provider


class TestCliGroup:
    """Tests for the top-level group."""

    def test_help(self, cli_runner):
        """Should list the commands."""
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "rotate" in result.output
        assert "test-connection" in result.output
        assert "credentials" in result.output

    def test_missing_config_file(self, cli_runner, tmp_path):
        """Should exit with an error for a missing config."""
        result = cli_runner.invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "rotate", "X", "--project", "root"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_invalid_config(self, cli_runner, tmp_path):
        """Should report configuration errors."""
        path = tmp_path / "bad.yaml"
        path.write_text("rotation: [unclosed")

        result = cli_runner.invoke(cli, ["--config", str(path), "rotate", "X", "--project", "root"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestRotateCommand:
    """Tests for keysmith rotate."""

    def test_rotates_connection(self, cli_runner, config_file, temp_store_dir, fake_services):
        """Should rotate and persist the new key."""
        result = cli_runner.invoke(cli, ["--config", str(config_file), "rotate", "PROJECT_EXT_1", "--project", "root"])

        assert result.exit_code == 0, result.output
        assert "Rotated access key" in result.output
        [new_key] = fake_services.keys
        with JsonFileConnectionStore(temp_store_dir) as store:
            assert store.read_persisted("root", "PROJECT_EXT_1").access_key_id == new_key

    def test_reports_failed_step(self, cli_runner, config_file, fake_services):
        """Should print the failed step and leftover state."""
        fake_services.errors["create_access_key"] = LimitExceededError("Cannot exceed quota for AccessKeysPerUser: 2")

        result = cli_runner.invoke(cli, ["--config", str(config_file), "rotate", "PROJECT_EXT_1", "--project", "root"])

        assert result.exit_code == 1
        assert "Failed step: create-new-key" in result.output
        assert "Connection record: unchanged" in result.output

    def test_missing_connection_is_noop(self, cli_runner, config_file, fake_services):
        """Should succeed without provider calls."""
        result = cli_runner.invoke(cli, ["--config", str(config_file), "rotate", "MISSING", "--project", "root"])

        assert result.exit_code == 0
        assert fake_services.calls == []

    def test_rejects_project_path(self, cli_runner, config_file, temp_store_dir, fake_services):
        """Should refuse a project id that points outside the store."""
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "rotate", "PROJECT_EXT_1", "--project", "../outside"]
        )

        assert result.exit_code == 1
        assert "Invalid project id" in result.output
        assert not (temp_store_dir.parent / "outside.json").exists()



class TestTestConnectionCommand:
    """Tests for keysmith test-connection."""

    @pytest.fixture(autouse=True)
    def valid_endpoints(self):
        with patch("keysmith.credentials.builder.is_valid_sts_endpoint", return_value=True):
            yield

    def test_valid(self, cli_runner, config_file, fake_services):
        """Should print the caller identity."""
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "test-connection", "PROJECT_EXT_1", "--project", "root"]
        )

        assert result.exit_code == 0, result.output
        assert "Connection is valid" in result.output
        assert "123456789012" in result.output

    def test_rejected(self, cli_runner, config_file, fake_services):
        """Should fail when the provider rejects the key."""
        fake_services.keys.clear()

        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "test-connection", "PROJECT_EXT_1", "--project", "root"]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_unknown_connection(self, cli_runner, config_file):
        """Should report a missing connection."""
        result = cli_runner.invoke(cli, ["--config", str(config_file), "test-connection", "NOPE", "--project", "root"])

        assert result.exit_code == 1
        assert "Connection not found: NOPE" in result.output


class TestCredentialsCommands:
    """Tests for keysmith credentials."""

    def test_show_masks_key(self, cli_runner, config_file):
        """Should describe the holder without secrets."""
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "credentials", "show", "PROJECT_EXT_1", "--project", "root"]
        )

        assert result.exit_code == 0, result.output
        assert "Static IAM Access Key" in result.output
        assert "AKIA***" in result.output
        assert "Expires: never" in result.output
        assert "old-secret" not in result.output

    def test_env_masks_secrets(self, cli_runner, config_file):
        """Should mask secret values by default."""
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "credentials", "env", "PROJECT_EXT_1", "--project", "root"]
        )

        assert result.exit_code == 0, result.output
        assert "export AWS_DEFAULT_REGION=eu-west-1" in result.output
        assert "export AWS_SECRET_ACCESS_KEY=********" in result.output

    def test_env_show_secrets(self, cli_runner, config_file):
        """Should print secrets on request."""
        result = cli_runner.invoke(
            cli,
            ["--config", str(config_file), "credentials", "env", "PROJECT_EXT_1", "--project", "root", "--show-secrets"],
        )

        assert "export AWS_SECRET_ACCESS_KEY=old-secret" in result.output

    def test_env_profile(self, cli_runner, config_file):
        """Should print a base64 profile."""
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "credentials", "env", "PROJECT_EXT_1", "--project", "root", "--profile"]
        )

        assert result.exit_code == 0
        assert "export" not in result.output
        assert result.output.strip()
