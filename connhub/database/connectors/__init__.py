"""
Backend connectors.

One connector class per backend technology, all sharing the BaseConnector
lifecycle: construct, connect(), is_healthy(), disconnect().
"""

from .base import BackendKind, BaseConnector, mask_config
from .dynamodb import DynamoDBConnector
from .keyvalue import RedisConnector
from .relational import (
    MySQLConnector,
    PostgreSQLConnector,
    RelationalConnector,
    SQLServerConnector,
)

__all__ = [
    "BackendKind",
    "BaseConnector",
    "mask_config",
    "RelationalConnector",
    "MySQLConnector",
    "PostgreSQLConnector",
    "SQLServerConnector",
    "RedisConnector",
    "DynamoDBConnector",
]
