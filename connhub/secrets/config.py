"""
Settings for the Valkey server that backs the secret cache.

Every process of a deployment shares one cache server, so its address,
credentials and socket behaviour are read from ``VALKEY_*`` variables.
Unset variables fall back to a local development server.
"""

import os
import logging
from typing import Optional, Dict, Any, Mapping
from dataclasses import dataclass

import valkey

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


def _flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    value = environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUE_VALUES


@dataclass
class ValkeyConfig:
    """
    Where cached secrets live and how the cache client talks to that server.

    ``retry_on_timeout`` and ``health_check_interval`` are passed through to
    the client so a cache server restart is absorbed instead of failing the
    next lookup.
    """

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_connections: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    ssl: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ValkeyConfig":
        """
        Read cache server settings from ``VALKEY_*`` variables.

        Args:
            environ: Variables to read (default: the process environment)
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("VALKEY_HOST") or defaults.host,
            port=int(env.get("VALKEY_PORT") or defaults.port),
            password=env.get("VALKEY_PASSWORD") or None,
            database=int(env.get("VALKEY_DATABASE") or defaults.database),
            max_connections=int(env.get("VALKEY_MAX_CONNECTIONS") or defaults.max_connections),
            socket_timeout=float(env.get("VALKEY_SOCKET_TIMEOUT") or defaults.socket_timeout),
            socket_connect_timeout=float(env.get("VALKEY_SOCKET_CONNECT_TIMEOUT") or defaults.socket_connect_timeout),
            retry_on_timeout=_flag(env, "VALKEY_RETRY_ON_TIMEOUT", defaults.retry_on_timeout),
            health_check_interval=int(env.get("VALKEY_HEALTH_CHECK_INTERVAL") or defaults.health_check_interval),
            ssl=_flag(env, "VALKEY_SSL", defaults.ssl),
        )

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``valkey.Valkey``; replies are decoded to str."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "db": self.database,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "retry_on_timeout": self.retry_on_timeout,
            "health_check_interval": self.health_check_interval,
            "max_connections": self.max_connections,
            "decode_responses": True,
        }

        if self.password:
            kwargs["password"] = self.password
        if self.ssl:
            kwargs["ssl"] = True

        return kwargs

    def create_client(self) -> valkey.Valkey:
        """Build a lazily connecting client; no I/O happens here."""
        logger.debug(f"Creating secret cache client: {self}")
        return valkey.Valkey(**self.to_connection_kwargs())

    def __str__(self) -> str:
        password_display = "***" if self.password else "None"
        return (
            f"ValkeyConfig(host={self.host}, port={self.port}, "
            f"db={self.database}, password={password_display}, ssl={self.ssl})"
        )
