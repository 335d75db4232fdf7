"""
Key-value connector for Redis-protocol servers (Redis, Valkey).

The native handle is a ``valkey.Valkey`` client bound to its own connection
pool. Connecting creates the pool and verifies the server with PING.
"""

import logging
from typing import Any, Dict

import valkey
from valkey.connection import ConnectionPool, SSLConnection
from valkey.exceptions import ConnectionError as ValkeyConnectionError

from .base import BackendKind, BaseConnector

logger = logging.getLogger(__name__)

TLS_SCHEMES = ("tls", "rediss", "valkeys")


class RedisConnector(BaseConnector[valkey.Valkey]):
    """
    Redis/Valkey connector.

    Configuration keys (defaults in brackets):
    - scheme ["tcp"]; "tls"/"rediss" enables TLS
    - host ["127.0.0.1"], port [6379]
    - password, database [0]
    - timeout: socket and connect timeout in seconds [5.0]
    - max_connections [10]
    """

    kind = BackendKind.REDIS

    def connection_kwargs(self) -> Dict[str, Any]:
        """
        Convert the connection configuration to connection pool parameters.

        Returns:
            Dict[str, Any]: Keyword arguments for ConnectionPool
        """
        timeout = float(self._get("timeout", default=5.0))
        kwargs: Dict[str, Any] = {
            "host": self._get("host", default="127.0.0.1"),
            "port": int(self._get("port", default=6379)),
            "db": int(self._get("database", "db", default=0)),
            "socket_timeout": timeout,
            "socket_connect_timeout": timeout,
            "decode_responses": True,
            "max_connections": int(self._get("max_connections", default=10)),
        }

        password = self._get("password")
        if password:
            kwargs["password"] = password

        username = self._get("username", "user")
        if username:
            kwargs["username"] = username

        if str(self._get("scheme", default="tcp")).lower() in TLS_SCHEMES:
            kwargs["connection_class"] = SSLConnection

        return kwargs

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        client = self._handle
        if client is not None:
            try:
                server_info = client.info()
                info.update({
                    "server_version": server_info.get("redis_version", "unknown"),
                    "connected_clients": server_info.get("connected_clients", 0),
                    "used_memory": server_info.get("used_memory_human", "unknown"),
                })
            except Exception as e:
                logger.warning(f"Failed to get server info for '{self.name}': {e}")
                info["server_info_error"] = str(e)
        return info

    def _open(self) -> valkey.Valkey:
        pool = ConnectionPool(**self.connection_kwargs())
        client = valkey.Valkey(connection_pool=pool)
        try:
            self._probe(client)
        except Exception:
            pool.disconnect()
            raise
        return client

    def _probe(self, handle: valkey.Valkey) -> None:
        if not handle.ping():
            raise ValkeyConnectionError("PING returned a falsy reply")

    def _close(self, handle: valkey.Valkey) -> None:
        handle.connection_pool.disconnect()
        handle.close()


__all__ = ["RedisConnector"]
