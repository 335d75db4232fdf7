"""
Tests for the AWS Secrets Manager service.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from connhub.exceptions import SecretRetrievalError, SecretsDisabledError
from connhub.secrets.manager import SecretsManagerService

BOOKS_SECRET = {"driver": "pgsql", "host": "books.internal", "database": "books", "password": "s3cret"}


def secret_response(payload):
    return {"Name": "books", "SecretString": json.dumps(payload)}


def client_error(code="ResourceNotFoundException"):
    return ClientError({"Error": {"Code": code, "Message": "Secrets Manager can't find the specified secret."}}, "GetSecretValue")


@pytest.fixture
def sm_client():
    client = MagicMock()
    client.get_secret_value.return_value = secret_response(BOOKS_SECRET)
    return client


class TestSecretsManagerService:
    """Test cases for SecretsManagerService."""

    def test_disabled_service(self):
        """Test a disabled service refuses remote lookups."""
        service = SecretsManagerService(enabled=False)

        assert not service.is_enabled()
        with pytest.raises(SecretsDisabledError):
            service.get_secret("books")

    def test_cache_is_served_while_disabled(self, secret_cache):
        """Test cached secrets are returned without the remote store."""
        secret_cache.set("books", BOOKS_SECRET)
        service = SecretsManagerService(secret_cache, enabled=False)

        assert service.get_secret("books") == BOOKS_SECRET

    def test_fetch_and_cache(self, secret_cache, sm_client):
        """Test a remote secret is decoded and cached."""
        service = SecretsManagerService(secret_cache, sm_client, enabled=True)

        assert service.get_secret("books") == BOOKS_SECRET
        sm_client.get_secret_value.assert_called_once_with(SecretId="books")
        assert secret_cache.get("books") == BOOKS_SECRET

    def test_cache_hit_skips_remote(self, secret_cache, sm_client):
        """Test the remote store is not contacted on a cache hit."""
        service = SecretsManagerService(secret_cache, sm_client, enabled=True)

        service.get_secret("books")
        service.get_secret("books")

        assert sm_client.get_secret_value.call_count == 1

    def test_cache_ttl(self, secret_cache, sm_client, valkey_client):
        """Test fetched secrets are cached with the configured TTL."""
        service = SecretsManagerService(secret_cache, sm_client, enabled=True, cache_ttl=120)

        service.get_secret("books")

        assert 0 < valkey_client.ttl("secret:books") <= 120

    def test_works_without_cache(self, sm_client):
        """Test the service without a secret cache."""
        service = SecretsManagerService(client=sm_client, enabled=True)

        service.get_secret("books")
        service.get_secret("books")

        assert sm_client.get_secret_value.call_count == 2

    def test_secret_prefix(self, secret_cache, sm_client, valkey_client):
        """Test the prefix applies to the SecretId only."""
        service = SecretsManagerService(secret_cache, sm_client, enabled=True, secret_prefix="prod/db/")

        service.get_secret("books")

        sm_client.get_secret_value.assert_called_once_with(SecretId="prod/db/books")
        assert valkey_client.exists("secret:books") == 1

    def test_secret_binary(self, sm_client):
        """Test binary secrets are decoded as UTF-8 JSON."""
        sm_client.get_secret_value.return_value = {"SecretBinary": json.dumps(BOOKS_SECRET).encode("utf-8")}
        service = SecretsManagerService(client=sm_client, enabled=True)

        assert service.get_secret("books") == BOOKS_SECRET

    def test_client_error(self, sm_client):
        """Test AWS errors are wrapped."""
        error = client_error()
        sm_client.get_secret_value.side_effect = error
        service = SecretsManagerService(client=sm_client, enabled=True)

        with pytest.raises(SecretRetrievalError) as exc_info:
            service.get_secret("books")

        assert exc_info.value.name == "books"
        assert exc_info.value.cause is error

    def test_transport_error(self, sm_client):
        """Test botocore transport errors are wrapped."""
        sm_client.get_secret_value.side_effect = EndpointConnectionError(endpoint_url="https://secretsmanager.local")
        service = SecretsManagerService(client=sm_client, enabled=True)

        with pytest.raises(SecretRetrievalError):
            service.get_secret("books")

    def test_unexpected_client_error(self, sm_client, secret_cache):
        """Test errors outside the botocore hierarchy are wrapped too."""
        error = ConnectionResetError("Connection reset by peer")
        sm_client.get_secret_value.side_effect = error
        service = SecretsManagerService(secret_cache, sm_client, enabled=True)

        with pytest.raises(SecretRetrievalError) as exc_info:
            service.get_secret("books")

        assert exc_info.value.cause is error
        assert secret_cache.get("books") is None

    @pytest.mark.parametrize("response", [
        {"SecretString": "{not json"},
        {"SecretString": "[\"driver\", \"pgsql\"]"},
        {"SecretString": ""},
        {},
    ])
    def test_unusable_payload(self, sm_client, secret_cache, response):
        """Test invalid, non-object and empty payloads are rejected and not cached."""
        sm_client.get_secret_value.return_value = response
        service = SecretsManagerService(secret_cache, sm_client, enabled=True)

        with pytest.raises(SecretRetrievalError):
            service.get_secret("books")
        assert secret_cache.get("books") is None

    def test_refresh_secret(self, secret_cache, sm_client):
        """Test refresh drops the cached copy and fetches again."""
        secret_cache.set("books", {"driver": "pgsql", "host": "stale.internal"})
        service = SecretsManagerService(secret_cache, sm_client, enabled=True)

        assert service.get_secret("books")["host"] == "stale.internal"
        assert service.refresh_secret("books")["host"] == "books.internal"
        assert secret_cache.get("books")["host"] == "books.internal"

    @patch("connhub.secrets.manager.boto3.client")
    def test_builds_client_when_enabled(self, mock_client):
        """Test the boto3 client is created from the settings."""
        service = SecretsManagerService(
            enabled=True,
            region="eu-west-1",
            access_key_id="AKIA...",
            secret_access_key="secret",
            endpoint_url="http://localhost:4566",
        )

        assert service.is_enabled()
        mock_client.assert_called_once_with(
            "secretsmanager",
            region_name="eu-west-1",
            aws_access_key_id="AKIA...",
            aws_secret_access_key="secret",
            endpoint_url="http://localhost:4566",
        )

    @patch("connhub.secrets.manager.boto3.client")
    def test_no_client_when_disabled(self, mock_client):
        """Test nothing is created for a disabled service."""
        SecretsManagerService(enabled=False)
        mock_client.assert_not_called()
