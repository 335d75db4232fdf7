"""
Wire a ConnectionManager from application configuration.
"""

import logging
from typing import Optional

from .database.factory import ConnectionFactory
from .database.manager import ConnectionManager
from .secrets.cache import SecretCache
from .secrets.manager import SecretsManagerService
from .utils.config import AppConfig, get_config

logger = logging.getLogger(__name__)


def build_secret_cache(config: AppConfig) -> Optional[SecretCache]:
    """Valkey-backed secret cache, or None when caching is disabled."""
    if not config.secret_cache_enabled:
        return None
    return SecretCache(config.valkey.create_client())


def build_secrets_service(config: AppConfig, cache: Optional[SecretCache] = None) -> SecretsManagerService:
    """Secrets Manager service honouring USE_AWS_SECRETS."""
    return SecretsManagerService(
        cache,
        enabled=config.use_aws_secrets,
        region=config.aws_region,
        access_key_id=config.aws_access_key_id,
        secret_access_key=config.aws_secret_access_key,
        endpoint_url=config.aws_endpoint_url,
        secret_prefix=config.secret_prefix,
        cache_ttl=config.secret_cache_ttl,
    )


def build_connection_manager(config: Optional[AppConfig] = None) -> ConnectionManager:
    """
    Create a ConnectionManager with secrets and local connections wired in.

    No backend is contacted here: the cache client connects lazily and
    connectors are only built on the first get_connection().

    Args:
        config: Application configuration (the global one if omitted)

    Returns:
        ConnectionManager: Ready to serve connection requests
    """
    if config is None:
        config = get_config()

    cache = build_secret_cache(config)
    secrets = build_secrets_service(config, cache)
    manager = ConnectionManager(ConnectionFactory(), secrets, default_timeout=config.connect_timeout)

    for name, settings in config.local_connections.items():
        manager.register_local_configuration(name, settings)

    logger.info(
        f"Connection manager ready (secrets={'on' if secrets.is_enabled() else 'off'}, "
        f"cache={'on' if cache is not None else 'off'}, local={len(config.local_connections)})"
    )
    return manager
