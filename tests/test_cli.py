"""
Tests for the command line interface.
"""

import os
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from connhub.database.manager import ConnectionManager
from connhub.main import app
from connhub.secrets.manager import SecretsManagerService

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path):
    """Run every command without a .env file, real logging setup or ambient variables."""
    with patch.dict(os.environ, {}, clear=True), patch("connhub.main.setup_logging"):
        yield str(tmp_path / "missing.env")


def invoke(env_file, *args):
    return runner.invoke(app, ["--env-file", env_file, *args])


class TestDriversCommand:
    """Test cases for the drivers command."""

    def test_lists_aliases(self, isolated_environment):
        """Test every alias family is listed."""
        result = invoke(isolated_environment, "drivers")

        assert result.exit_code == 0
        for alias in ("pgsql", "pdo_mysql", "sqlsrv", "redis", "dynamodb"):
            assert alias in result.output


class TestConnectionsCommand:
    """Test cases for the test-connections command."""

    @pytest.fixture
    def manager(self, factory):
        manager = ConnectionManager(factory)
        manager.register_local_configuration("books", {"driver": "pgsql"})
        with patch("connhub.main.build_connection_manager", return_value=manager):
            yield manager

    def test_healthy_connection(self, isolated_environment, manager):
        """Test a reachable connection succeeds."""
        result = invoke(isolated_environment, "test-connections", "books")

        assert result.exit_code == 0
        assert "books" in result.output
        assert "healthy" in result.output
        assert manager.get_active_connections() == []

    def test_unknown_connection(self, isolated_environment, manager):
        """Test a failing connection sets the exit code."""
        result = invoke(isolated_environment, "test-connections", "books", "missing")

        assert result.exit_code == 1
        assert "failed" in result.output

    def test_nothing_to_test(self, isolated_environment):
        """Test the command needs at least one connection."""
        result = invoke(isolated_environment, "test-connections")

        assert result.exit_code == 1
        assert "No connections to test" in result.output

    def test_defaults_to_local_connections(self, isolated_environment, factory):
        """Test declared connections are tested when no names are given."""
        os.environ.update({"LOCAL_CONNECTIONS": "books", "BOOKS_DRIVER": "pgsql", "SECRET_CACHE_ENABLED": "false"})

        with patch("connhub.bootstrap.ConnectionFactory", return_value=factory):
            result = invoke(isolated_environment, "test-connections")

        assert result.exit_code == 0
        assert [connector.name for connector in factory.created] == ["books"]


class TestSecretsCommands:
    """Test cases for secret cache maintenance."""

    def test_clear(self, isolated_environment, secret_cache):
        """Test clearing the secret cache."""
        secret_cache.set("books", {"driver": "pgsql"})
        secret_cache.set("users", {"driver": "mysql"})

        with patch("connhub.main.build_secret_cache", return_value=secret_cache):
            result = invoke(isolated_environment, "secrets", "clear")

        assert result.exit_code == 0
        assert "Removed 2" in result.output

    def test_clear_with_cache_disabled(self, isolated_environment):
        """Test clear refuses to run without a cache."""
        os.environ["SECRET_CACHE_ENABLED"] = "false"

        result = invoke(isolated_environment, "secrets", "clear")

        assert result.exit_code == 1

    def test_refresh_masks_password(self, isolated_environment, secret_cache):
        """Test a refreshed secret is shown without its password."""
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": '{"driver": "pgsql", "password": "s3cret"}'}
        service = SecretsManagerService(secret_cache, client, enabled=True)

        with patch("connhub.main.build_secrets_service", return_value=service), \
                patch("connhub.main.build_secret_cache", return_value=secret_cache):
            result = invoke(isolated_environment, "secrets", "refresh", "books")

        assert result.exit_code == 0
        assert "pgsql" in result.output
        assert "s3cret" not in result.output

    def test_refresh_with_secrets_disabled(self, isolated_environment):
        """Test refresh reports a disabled secret store."""
        os.environ["SECRET_CACHE_ENABLED"] = "false"

        result = invoke(isolated_environment, "secrets", "refresh", "books")

        assert result.exit_code == 1
        assert "disabled" in result.output


class TestConfigCommand:
    """Test cases for show-config."""

    def test_show_config(self, isolated_environment):
        """Test the effective configuration is printed."""
        os.environ.update({"LOCAL_CONNECTIONS": "books", "BOOKS_DRIVER": "pgsql", "BOOKS_PASSWORD": "s3cret"})

        result = invoke(isolated_environment, "show-config")

        assert result.exit_code == 0
        assert "books" in result.output
        assert "s3cret" not in result.output

    def test_invalid_configuration(self, isolated_environment):
        """Test invalid settings abort with exit code 2."""
        os.environ["LOG_LEVEL"] = "CHATTY"

        result = invoke(isolated_environment, "drivers")

        assert result.exit_code == 2
