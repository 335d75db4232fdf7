"""
Tests for environment configuration loading.
"""

import os
from unittest.mock import patch

import pytest

from connhub.secrets.config import ValkeyConfig
from connhub.utils import config as config_module
from connhub.utils.config import AppConfig, env_prefix, get_config, load_config, parse_local_connections


@pytest.fixture
def missing_env_file(tmp_path):
    return str(tmp_path / "missing.env")


class TestLocalConnections:
    """Test cases for LOCAL_CONNECTIONS parsing."""

    def test_env_prefix(self):
        """Test name to variable prefix conversion."""
        assert env_prefix("mysql_users") == "MYSQL_USERS"
        assert env_prefix("books-db.v2") == "BOOKS_DB_V2"

    def test_parse(self):
        """Test per-name variables become configuration keys."""
        environ = {
            "LOCAL_CONNECTIONS": "mysql_users, postgres_books",
            "MYSQL_USERS_DRIVER": "mysql",
            "MYSQL_USERS_HOST": "users.internal",
            "MYSQL_USERS_PORT": "3306",
            "MYSQL_USERS_PASSWORD": "true",
            "POSTGRES_BOOKS_DRIVER": "pgsql",
            "POSTGRES_BOOKS_DATABASE": "books",
            "UNRELATED": "x",
        }

        connections = parse_local_connections(environ)

        assert connections == {
            "mysql_users": {"driver": "mysql", "host": "users.internal", "port": 3306, "password": "true"},
            "postgres_books": {"driver": "pgsql", "database": "books"},
        }

    def test_coercion(self):
        """Test integer, float and boolean coercion."""
        environ = {
            "LOCAL_CONNECTIONS": "cache,ledger",
            "CACHE_DRIVER": "redis",
            "CACHE_DATABASE": "3",
            "CACHE_TIMEOUT": "2.5",
            "LEDGER_DRIVER": "sqlsrv",
            "LEDGER_TRUST_SERVER_CERTIFICATE": "True",
        }

        connections = parse_local_connections(environ)

        assert connections["cache"]["database"] == 3
        assert connections["cache"]["timeout"] == 2.5
        assert connections["ledger"]["trust_server_certificate"] is True

    def test_longest_prefix_wins(self):
        """Test overlapping names keep their own variables."""
        environ = {
            "LOCAL_CONNECTIONS": "mysql,mysql_users",
            "MYSQL_DRIVER": "mysql",
            "MYSQL_USERS_DRIVER": "mariadb",
        }

        connections = parse_local_connections(environ)

        assert connections["mysql"] == {"driver": "mysql"}
        assert connections["mysql_users"] == {"driver": "mariadb"}

    def test_no_declarations(self):
        """Test an unset LOCAL_CONNECTIONS yields nothing."""
        assert parse_local_connections({}) == {}


class TestLoadConfig:
    """Test cases for load_config."""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self, missing_env_file):
        """Test defaults without any environment."""
        config = load_config(missing_env_file)

        assert config.use_aws_secrets is False
        assert config.aws_region == "us-east-1"
        assert config.secret_cache_enabled is True
        assert config.secret_cache_ttl == 3600
        assert config.connect_timeout == 10.0
        assert config.log_level == "INFO"
        assert config.local_connections == {}
        assert isinstance(config.valkey, ValkeyConfig)
        assert config.valkey.host == "localhost"

    @patch.dict(os.environ, {
        "USE_AWS_SECRETS": "true",
        "AWS_REGION": "eu-west-1",
        "AWS_ENDPOINT_URL": "http://localhost:4566",
        "AWS_SECRET_PREFIX": "prod/",
        "SECRET_CACHE_TTL": "600",
        "SECRET_CACHE_ENABLED": "false",
        "VALKEY_HOST": "cache.internal",
        "VALKEY_PORT": "6380",
        "LOG_LEVEL": "debug",
        "CONNECT_TIMEOUT": "2.5",
        "LOCAL_CONNECTIONS": "books",
        "BOOKS_DRIVER": "pgsql",
    }, clear=True)
    def test_from_environment(self, missing_env_file):
        """Test values from environment variables."""
        config = load_config(missing_env_file)

        assert config.use_aws_secrets is True
        assert config.aws_region == "eu-west-1"
        assert config.aws_endpoint_url == "http://localhost:4566"
        assert config.secret_prefix == "prod/"
        assert config.secret_cache_ttl == 600
        assert config.secret_cache_enabled is False
        assert config.valkey.host == "cache.internal"
        assert config.valkey.port == 6380
        assert config.log_level == "DEBUG"
        assert config.connect_timeout == 2.5
        assert config.local_connections == {"books": {"driver": "pgsql"}}

    @patch.dict(os.environ, {}, clear=True)
    def test_env_file(self, tmp_path):
        """Test values are read from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("LOCAL_CONNECTIONS=sessions\nSESSIONS_DRIVER=redis\nSESSIONS_PORT=6390\n")

        config = load_config(str(env_file))

        assert config.local_connections == {"sessions": {"driver": "redis", "port": 6390}}

    @patch.dict(os.environ, {"LOG_LEVEL": "CHATTY"}, clear=True)
    def test_invalid_log_level(self, missing_env_file):
        """Test invalid log levels are rejected."""
        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config(missing_env_file)

    @patch.dict(os.environ, {"LOCAL_CONNECTIONS": "books", "BOOKS_HOST": "db"}, clear=True)
    def test_local_connection_without_driver(self, missing_env_file):
        """Test declared connections must name a driver."""
        with pytest.raises(ValueError, match="books"):
            load_config(missing_env_file)

    def test_model_validation(self):
        """Test field constraints."""
        with pytest.raises(ValueError):
            AppConfig(connect_timeout=0)


class TestGetConfig:
    """Test cases for the global configuration instance."""

    def test_cached_instance(self):
        """Test get_config caches until reloaded."""
        with patch.object(config_module, "_config", None), \
                patch.object(config_module, "load_config", side_effect=lambda: AppConfig()) as mock_load:
            first = get_config()
            second = get_config()
            third = get_config(reload=True)

        assert first is second
        assert third is not first
        assert mock_load.call_count == 2
