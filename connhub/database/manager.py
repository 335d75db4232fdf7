"""
Connection manager: the registry callers go through to obtain connectors.

For a logical connection name the manager resolves a configuration (secret
cache, then AWS Secrets Manager, then locally registered configurations),
asks the factory for the matching connector, connects it and keeps it pooled.
Pooled connectors are health-checked on every access; an unhealthy one is
disconnected, evicted and rebuilt from a freshly resolved configuration.
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import ConnectionNotFoundError, OperationTimeoutError
from ..secrets.manager import SecretsManagerService
from ..utils.blocking import Deadline, acquire_lock, check_cancelled
from .connectors import BaseConnector
from .factory import ConnectionFactory

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Resolve, connect and pool connectors by logical name.

    At most one connector is pooled per name. Concurrent requests for the
    same name are serialized so only one connector gets built; requests for
    different names proceed in parallel.

    Example:
        with ConnectionManager(secrets=service) as manager:
            manager.register_local_configuration("books", {"driver": "pgsql", "database": "books"})
            engine = manager.get_connection("books").handle
    """

    def __init__(
        self,
        factory: Optional[ConnectionFactory] = None,
        secrets: Optional[SecretsManagerService] = None,
        *,
        default_timeout: Optional[float] = None,
    ):
        """
        Args:
            factory: Connector factory (a default one is created if omitted)
            secrets: Secret resolver consulted before local configurations
            default_timeout: Deadline in seconds applied when a call passes none
        """
        self.factory = factory or ConnectionFactory()
        self.secrets = secrets
        self.default_timeout = default_timeout

        self._pool: Dict[str, BaseConnector] = {}
        self._local_configs: Dict[str, Dict[str, Any]] = {}
        self._build_locks: Dict[str, threading.Lock] = {}
        self._build_waiters: Dict[str, int] = {}
        self._lock = threading.RLock()

    def register_local_configuration(self, name: str, config: Mapping[str, Any]) -> None:
        """
        Declare a fallback configuration for a logical name.

        Replaces any previous registration. Already pooled connectors are
        left untouched until they are evicted or refreshed.
        """
        with self._lock:
            self._local_configs[name] = dict(config)
        logger.debug(f"Local configuration registered for '{name}' (driver={config.get('driver')})")

    def get_connection(
        self,
        name: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BaseConnector:
        """
        Return a connected connector for ``name``, building it if needed.

        Args:
            name: Logical connection name
            timeout: Deadline in seconds for the whole call
            cancel: Event that abandons the call when set

        Returns:
            BaseConnector: Connected connector, owned by the manager

        Raises:
            ConnectionNotFoundError: If no tier yields a configuration with a driver
            UnsupportedDatabaseError: If the configured driver is unknown
            ConnectError: If the backend cannot be reached
            OperationTimeoutError: If the deadline passes
            OperationCancelledError: If ``cancel`` is set
        """
        if timeout is None:
            timeout = self.default_timeout
        deadline = Deadline(timeout)

        build_lock = self._claim_build_lock(name)
        try:
            acquire_lock(build_lock, deadline=deadline, cancel=cancel, operation=f"waiting for connection '{name}'")
            try:
                return self._get_or_build(name, deadline, cancel)
            finally:
                build_lock.release()
        finally:
            self._release_build_lock(name)

    def _get_or_build(self, name: str, deadline: Deadline, cancel: Optional[threading.Event]) -> BaseConnector:
        connector = self._pooled(name)
        if connector is not None:
            self._check_deadline(deadline, name)
            if connector.is_healthy(timeout=deadline.remaining(), cancel=cancel):
                return connector

            # Cancelled or expired probes leave the pooled connector in place
            check_cancelled(cancel, f"health check of '{name}'")
            self._check_deadline(deadline, name)
            logger.warning(f"Connection '{name}' is unhealthy, reconnecting")
            self._evict(name, connector)

        check_cancelled(cancel, f"connection '{name}'")
        config = self._resolve_configuration(name)

        driver = config.get("driver")
        if not driver or not str(driver).strip():
            raise ConnectionNotFoundError(name, "driver not specified")

        connector = self.factory.create(str(driver), config, name)
        self._check_deadline(deadline, name)
        connector.connect(timeout=deadline.remaining(), cancel=cancel)

        with self._lock:
            self._pool[name] = connector
        logger.info(f"Connection '{name}' established ({connector.kind.value})")
        return connector

    def refresh_connection(
        self,
        name: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BaseConnector:
        """Disconnect ``name`` and build a new connector for it."""
        self.disconnect(name)
        return self.get_connection(name, timeout=timeout, cancel=cancel)

    def disconnect(self, name: str) -> None:
        """Disconnect and evict one connection. Unknown names are ignored."""
        with self._lock:
            connector = self._pool.pop(name, None)
            if name not in self._build_waiters:
                self._build_locks.pop(name, None)
        if connector is not None:
            connector.disconnect()
            logger.info(f"Connection '{name}' closed")

    def disconnect_all(self) -> None:
        """Disconnect and evict every pooled connection."""
        with self._lock:
            connectors = list(self._pool.values())
            self._pool.clear()
            for name in set(self._build_locks) - set(self._build_waiters):
                del self._build_locks[name]

        for connector in connectors:
            connector.disconnect()

        if connectors:
            logger.info(f"Closed {len(connectors)} connections")

    def has_connection(self, name: str) -> bool:
        """Whether a connector is currently pooled for ``name``."""
        with self._lock:
            return name in self._pool

    def get_active_connections(self) -> List[str]:
        """Names of the pooled connectors."""
        with self._lock:
            return list(self._pool)

    def health_report(self, *, timeout: Optional[float] = None) -> Dict[str, bool]:
        """
        Probe every pooled connector without evicting anything.

        Returns:
            Dict[str, bool]: Health status keyed by connection name
        """
        with self._lock:
            pooled = list(self._pool.items())

        if timeout is None:
            timeout = self.default_timeout
        return {name: connector.is_healthy(timeout=timeout) for name, connector in pooled}

    def _resolve_configuration(self, name: str) -> Dict[str, Any]:
        config: Optional[Dict[str, Any]] = None

        if self.secrets is not None and self.secrets.is_enabled():
            try:
                config = self.secrets.get_secret(name)
            except Exception as e:
                logger.warning(f"Secret lookup for '{name}' failed, falling back to local configuration: {e}")

        if config is None:
            with self._lock:
                local = self._local_configs.get(name)
            if local is None:
                raise ConnectionNotFoundError(name)
            config = dict(local)
            logger.debug(f"Using local configuration for '{name}'")

        return config

    def _pooled(self, name: str) -> Optional[BaseConnector]:
        with self._lock:
            return self._pool.get(name)

    def _evict(self, name: str, connector: BaseConnector) -> None:
        with self._lock:
            if self._pool.get(name) is connector:
                del self._pool[name]
        connector.disconnect()

    def _claim_build_lock(self, name: str) -> threading.Lock:
        with self._lock:
            lock = self._build_locks.get(name)
            if lock is None:
                lock = self._build_locks[name] = threading.Lock()
            self._build_waiters[name] = self._build_waiters.get(name, 0) + 1
            return lock

    def _release_build_lock(self, name: str) -> None:
        with self._lock:
            waiters = self._build_waiters[name] - 1
            if waiters:
                self._build_waiters[name] = waiters
                return
            del self._build_waiters[name]
            if name not in self._pool:
                del self._build_locks[name]

    @staticmethod
    def _check_deadline(deadline: Deadline, name: str) -> None:
        if deadline.expired:
            raise OperationTimeoutError(f"connection '{name}' timed out after {deadline.timeout:.2f}s")

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect_all()

    def __repr__(self) -> str:
        return f"<ConnectionManager active={self.get_active_connections()}>"


__all__ = ["ConnectionManager"]
