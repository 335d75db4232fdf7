"""
Connection factory: maps a driver alias to a connector class.
"""

from typing import Any, Dict, List, Mapping, Type

from ..exceptions import UnsupportedDatabaseError
from .connectors import (
    BackendKind,
    BaseConnector,
    DynamoDBConnector,
    MySQLConnector,
    PostgreSQLConnector,
    RedisConnector,
    SQLServerConnector,
)

DRIVER_ALIASES: Dict[str, BackendKind] = {
    "mysql": BackendKind.MYSQL,
    "pdo_mysql": BackendKind.MYSQL,
    "mariadb": BackendKind.MYSQL,
    "postgres": BackendKind.POSTGRESQL,
    "postgresql": BackendKind.POSTGRESQL,
    "pgsql": BackendKind.POSTGRESQL,
    "pdo_pgsql": BackendKind.POSTGRESQL,
    "sqlserver": BackendKind.SQLSERVER,
    "mssql": BackendKind.SQLSERVER,
    "sqlsrv": BackendKind.SQLSERVER,
    "pdo_sqlsrv": BackendKind.SQLSERVER,
    "redis": BackendKind.REDIS,
    "valkey": BackendKind.REDIS,
    "dynamodb": BackendKind.DYNAMODB,
}

CONNECTOR_CLASSES: Dict[BackendKind, Type[BaseConnector]] = {
    BackendKind.MYSQL: MySQLConnector,
    BackendKind.POSTGRESQL: PostgreSQLConnector,
    BackendKind.SQLSERVER: SQLServerConnector,
    BackendKind.REDIS: RedisConnector,
    BackendKind.DYNAMODB: DynamoDBConnector,
}


class ConnectionFactory:
    """
    Creates unconnected connectors from a driver alias and a configuration.

    Stateless: every call returns a new connector and performs no I/O.
    """

    def resolve_kind(self, driver: str) -> BackendKind:
        """
        Map a driver alias to its backend, case-insensitively.

        Raises:
            UnsupportedDatabaseError: If the alias is unknown
        """
        kind = DRIVER_ALIASES.get(str(driver).strip().lower())
        if kind is None:
            raise UnsupportedDatabaseError(driver)
        return kind

    def create(self, driver: str, config: Mapping[str, Any], name: str) -> BaseConnector:
        """
        Create a connector for the given driver.

        Args:
            driver: Driver alias (mysql, pgsql, redis, dynamodb...)
            config: Connection configuration
            name: Logical connection name

        Returns:
            BaseConnector: New, unconnected connector

        Raises:
            UnsupportedDatabaseError: If the driver is not supported
        """
        connector_class = CONNECTOR_CLASSES[self.resolve_kind(driver)]
        return connector_class(config, name)

    @staticmethod
    def supported_drivers() -> List[str]:
        """All accepted driver aliases."""
        return list(DRIVER_ALIASES)


__all__ = ["ConnectionFactory", "DRIVER_ALIASES", "CONNECTOR_CLASSES"]
