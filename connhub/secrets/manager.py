"""
Connection secrets backed by AWS Secrets Manager.

Secrets are JSON objects describing one connection (driver, host,
credentials...). Lookups go through the Valkey secret cache first and only
reach the remote store on a miss, caching what they fetch.
"""

import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import SecretRetrievalError, SecretsDisabledError
from .cache import DEFAULT_TTL_SECONDS, SecretCache

logger = logging.getLogger(__name__)


class SecretsManagerService:
    """
    Resolve connection configurations by secret name.

    Example:
        service = SecretsManagerService(cache, enabled=True, region="eu-west-1")
        config = service.get_secret("books")
    """

    def __init__(
        self,
        cache: Optional[SecretCache] = None,
        client: Any = None,
        *,
        enabled: bool = False,
        region: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        secret_prefix: Optional[str] = None,
        cache_ttl: int = DEFAULT_TTL_SECONDS,
    ):
        """
        Initialize the service.

        Args:
            cache: Secret cache consulted before the remote store (optional)
            client: Pre-built secretsmanager client, mostly for tests
            enabled: Whether the remote store may be contacted
            region: AWS region of the secret store
            access_key_id: Static AWS credentials, otherwise the default chain
            secret_access_key: Static AWS credentials, otherwise the default chain
            endpoint_url: Custom endpoint (LocalStack...)
            secret_prefix: Prepended to every remote SecretId
            cache_ttl: Seconds a fetched secret stays cached
        """
        self.cache = cache
        self.enabled = enabled
        self.region = region
        self.secret_prefix = secret_prefix or ""
        self.cache_ttl = cache_ttl

        if client is None and enabled:
            client_kwargs: Dict[str, Any] = {"region_name": region}
            if access_key_id and secret_access_key:
                client_kwargs["aws_access_key_id"] = access_key_id
                client_kwargs["aws_secret_access_key"] = secret_access_key
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("secretsmanager", **client_kwargs)
            logger.info(f"AWS Secrets Manager client created (region={region})")

        self.client = client

    def is_enabled(self) -> bool:
        """Whether the remote secret store is configured."""
        return self.enabled and self.client is not None

    def secret_id(self, name: str) -> str:
        """Remote SecretId for a secret name."""
        return f"{self.secret_prefix}{name}"

    def get_secret(self, name: str) -> Dict[str, Any]:
        """
        Get a connection configuration by secret name.

        Args:
            name: Secret name (also the logical connection name)

        Returns:
            Dict[str, Any]: Decoded secret

        Raises:
            SecretsDisabledError: On a cache miss while the remote store is disabled
            SecretRetrievalError: If the remote store fails or returns an unusable payload
        """
        if self.cache is not None:
            cached = self.cache.get(name)
            if cached is not None:
                logger.debug(f"Secret '{name}' served from cache")
                return cached

        if not self.is_enabled():
            raise SecretsDisabledError()

        config = self._fetch(name)

        if self.cache is not None:
            self.cache.set(name, config, self.cache_ttl)

        logger.info(f"Secret '{name}' retrieved from AWS Secrets Manager")
        return config

    def refresh_secret(self, name: str) -> Dict[str, Any]:
        """Drop the cached copy of a secret and fetch it again."""
        if self.cache is not None:
            self.cache.delete(name)
        return self.get_secret(name)

    def _fetch(self, name: str) -> Dict[str, Any]:
        secret_id = self.secret_id(name)
        try:
            response = self.client.get_secret_value(SecretId=secret_id)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"AWS Secrets Manager error for '{secret_id}' ({error_code})")
            raise SecretRetrievalError(name, e) from e
        except BotoCoreError as e:
            logger.error(f"AWS Secrets Manager request for '{secret_id}' failed: {e}")
            raise SecretRetrievalError(name, e) from e
        except Exception as e:
            logger.error(f"AWS Secrets Manager request for '{secret_id}' failed unexpectedly: {type(e).__name__}")
            raise SecretRetrievalError(name, e) from e

        try:
            return self._decode(secret_id, response)
        except ValueError as e:
            logger.error(f"Secret '{secret_id}' has an unusable payload: {e}")
            raise SecretRetrievalError(name, e) from e

    @staticmethod
    def _decode(secret_id: str, response: Dict[str, Any]) -> Dict[str, Any]:
        payload = response.get("SecretString")
        if not payload and response.get("SecretBinary"):
            payload = response["SecretBinary"]
            if isinstance(payload, (bytes, bytearray)):
                payload = payload.decode("utf-8")

        if not payload:
            raise ValueError(f"secret '{secret_id}' is empty")

        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError(f"secret '{secret_id}' is not a JSON object")
        return data


__all__ = ["SecretsManagerService"]
