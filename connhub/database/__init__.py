"""
Database connection layer.

Connectors for every supported backend, the factory selecting them from a
driver alias, and the manager pooling live connectors by logical name.
"""

from .connectors import (
    BackendKind,
    BaseConnector,
    DynamoDBConnector,
    MySQLConnector,
    PostgreSQLConnector,
    RedisConnector,
    RelationalConnector,
    SQLServerConnector,
)
from .factory import ConnectionFactory, DRIVER_ALIASES
from .manager import ConnectionManager

__all__ = [
    # Connectors
    "BackendKind",
    "BaseConnector",
    "RelationalConnector",
    "MySQLConnector",
    "PostgreSQLConnector",
    "SQLServerConnector",
    "RedisConnector",
    "DynamoDBConnector",

    # Resolution
    "ConnectionFactory",
    "DRIVER_ALIASES",
    "ConnectionManager",
]
