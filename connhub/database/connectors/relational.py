"""
Relational connectors backed by SQLAlchemy engines.

Supports:
- MySQL/MariaDB via PyMySQL
- PostgreSQL via psycopg2
- SQL Server via pyodbc

The native handle is a pooled SQLAlchemy Engine. Connection parameters are
read from the connection configuration with per-engine defaults; a complete
``url`` entry takes precedence over the individual fields.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, URL, make_url
from sqlalchemy.pool import QueuePool

from .base import BackendKind, BaseConnector

logger = logging.getLogger(__name__)


class RelationalConnector(BaseConnector[Engine]):
    """
    Shared behaviour of SQL connectors.

    Subclasses only declare their SQLAlchemy dialect and defaults.
    """

    drivername: str
    default_port: int
    default_user: str
    health_query = "SELECT 1"

    # QueuePool defaults
    default_pool_size = 10
    default_max_overflow = 20
    default_pool_timeout = 30
    default_pool_recycle = 3600
    default_connect_timeout = 30

    def build_url(self) -> URL:
        """
        Build the SQLAlchemy URL for this connection.

        Returns:
            URL built from ``url`` if present, otherwise from host/port/user fields
        """
        url = self._get("url", "dsn")
        if url:
            return make_url(url)

        return URL.create(
            self.drivername,
            username=self._get("user", "username", default=self.default_user),
            password=self._get("password") or None,
            host=self._get("host", default="localhost"),
            port=int(self._get("port", default=self.default_port)),
            database=self._get("database", "dbname") or None,
            query=self._url_query(),
        )

    def engine_kwargs(self) -> Dict[str, Any]:
        """
        Engine configuration for this backend.

        Returns:
            Dictionary of create_engine() keyword arguments
        """
        return {
            "echo": bool(self._get("echo", default=False)),
            "future": True,
            "poolclass": QueuePool,
            "pool_size": int(self._get("pool_size", default=self.default_pool_size)),
            "max_overflow": int(self._get("max_overflow", default=self.default_max_overflow)),
            "pool_timeout": int(self._get("pool_timeout", default=self.default_pool_timeout)),
            "pool_recycle": int(self._get("pool_recycle", default=self.default_pool_recycle)),
            "pool_pre_ping": True,
            "connect_args": self._connect_args(),
        }

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """
        Borrow a pooled SQLAlchemy connection for direct queries.

        Usage:
            with connector.connection() as conn:
                conn.execute(text("SELECT 1"))
        """
        with self.handle.connect() as conn:
            yield conn

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        engine = self._handle
        if engine is not None:
            info["url"] = engine.url.render_as_string(hide_password=True)
            pool = engine.pool
            if hasattr(pool, "size"):
                info.update({
                    "pool_size": pool.size(),
                    "checked_in": pool.checkedin(),
                    "checked_out": pool.checkedout(),
                })
        return info

    def _open(self) -> Engine:
        engine = create_engine(self.build_url(), **self.engine_kwargs())
        try:
            self._probe(engine)
        except Exception:
            engine.dispose()
            raise
        logger.debug(f"Engine ready for '{self.name}': {engine.url.render_as_string(hide_password=True)}")
        return engine

    def _probe(self, handle: Engine) -> None:
        with handle.connect() as conn:
            conn.execute(text(self.health_query))

    def _close(self, handle: Engine) -> None:
        handle.dispose()

    def _url_query(self) -> Dict[str, str]:
        return {}

    def _connect_args(self) -> Dict[str, Any]:
        return {}

    def _connect_timeout(self) -> int:
        return int(self._get("timeout", "connect_timeout", default=self.default_connect_timeout))


class MySQLConnector(RelationalConnector):
    """MySQL/MariaDB connector using the PyMySQL driver."""

    kind = BackendKind.MYSQL
    drivername = "mysql+pymysql"
    default_port = 3306
    default_user = "root"

    def _url_query(self) -> Dict[str, str]:
        return {"charset": str(self._get("charset", default="utf8mb4"))}

    def _connect_args(self) -> Dict[str, Any]:
        return {"connect_timeout": self._connect_timeout()}


class PostgreSQLConnector(RelationalConnector):
    """PostgreSQL connector using psycopg2."""

    kind = BackendKind.POSTGRESQL
    drivername = "postgresql+psycopg2"
    default_port = 5432
    default_user = "postgres"

    def _connect_args(self) -> Dict[str, Any]:
        args: Dict[str, Any] = {"connect_timeout": self._connect_timeout()}
        sslmode = self._get("sslmode")
        if sslmode:
            args["sslmode"] = sslmode
        return args


class SQLServerConnector(RelationalConnector):
    """SQL Server connector using pyodbc and the Microsoft ODBC driver."""

    kind = BackendKind.SQLSERVER
    drivername = "mssql+pyodbc"
    default_port = 1433
    default_user = "sa"
    default_odbc_driver = "ODBC Driver 18 for SQL Server"

    def _url_query(self) -> Dict[str, str]:
        query = {"driver": str(self._get("odbc_driver", default=self.default_odbc_driver))}
        if _as_bool(self._get("trust_server_certificate", default=False)):
            query["TrustServerCertificate"] = "yes"
        return query

    def _connect_args(self) -> Dict[str, Any]:
        return {"timeout": self._connect_timeout()}


def _as_bool(value: Optional[Any]) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


__all__ = [
    "RelationalConnector",
    "MySQLConnector",
    "PostgreSQLConnector",
    "SQLServerConnector",
]
