"""
Connector contract shared by every backend.

A connector binds one logical connection name to one backend technology and
owns exactly one native client. Its lifecycle is explicit and two-phase:
a freshly constructed connector is unconnected, ``connect()`` creates and
verifies the native client, ``disconnect()`` releases it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar

from ...exceptions import (
    ConnectError,
    ConnectorNotConnectedError,
    OperationCancelledError,
    OperationTimeoutError,
)
from ...utils.blocking import run_blocking

logger = logging.getLogger(__name__)

HandleT = TypeVar("HandleT")


class BackendKind(str, Enum):
    """Closed set of backend technologies a connector can bind to."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"
    REDIS = "redis"
    DYNAMODB = "dynamodb"

    @property
    def is_relational(self) -> bool:
        return self in (BackendKind.MYSQL, BackendKind.POSTGRESQL, BackendKind.SQLSERVER)


SENSITIVE_KEYS = frozenset({"password", "secret", "aws_secret_access_key", "url"})


def mask_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``config`` safe to log or display."""
    return {key: ("***" if key in SENSITIVE_KEYS and value else value) for key, value in config.items()}


class BaseConnector(ABC, Generic[HandleT]):
    """
    Uniform lifecycle over one backend's native client.

    Subclasses implement ``_open`` (build and verify a native client),
    ``_probe`` (cheap liveness check) and ``_close`` (release a client).
    The base class takes care of state, idempotency, error classification,
    deadlines and cancellation.
    """

    kind: BackendKind

    def __init__(self, config: Mapping[str, Any], name: str):
        """
        Args:
            config: Connection configuration (driver, host, credentials...)
            name: Logical connection name this connector serves
        """
        self._config: Dict[str, Any] = dict(config)
        self._name = name
        self._handle: Optional[HandleT] = None
        self._state_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> Dict[str, Any]:
        return dict(self._config)

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> HandleT:
        """
        Borrow the native client.

        Ownership stays with the connector: callers must not close the
        returned object.

        Raises:
            ConnectorNotConnectedError: If connect() has not succeeded yet
        """
        handle = self._handle
        if handle is None:
            raise ConnectorNotConnectedError(self._name)
        return handle

    def connect(self, *, timeout: Optional[float] = None, cancel: Optional[threading.Event] = None) -> None:
        """
        Create and verify the native client. No-op when already connected.

        Raises:
            ConnectError: If the backend cannot be reached or rejects the client
            OperationTimeoutError: If ``timeout`` elapses before completion
            OperationCancelledError: If ``cancel`` is set before completion
        """
        with self._state_lock:
            if self._handle is not None:
                return

            logger.info(f"Connecting {self.kind.value} connector '{self._name}'")
            try:
                handle = run_blocking(
                    self._open,
                    timeout=timeout,
                    cancel=cancel,
                    operation=f"connect to '{self._name}'",
                    on_abandon=self._close_quietly,
                )
            except (OperationCancelledError, OperationTimeoutError):
                raise
            except Exception as e:
                logger.error(f"Connection '{self._name}' ({self.kind.value}) failed: {e}")
                raise ConnectError(self.kind.value, e, name=self._name) from e

            self._handle = handle
            logger.info(f"Connector '{self._name}' connected ({self.kind.value})")

    def is_healthy(self, *, timeout: Optional[float] = None, cancel: Optional[threading.Event] = None) -> bool:
        """
        Probe the backend. Never raises.

        Returns:
            True if the connector is connected and the probe succeeded
        """
        handle = self._handle
        if handle is None:
            return False

        try:
            run_blocking(
                lambda: self._probe(handle),
                timeout=timeout,
                cancel=cancel,
                operation=f"health check of '{self._name}'",
            )
            return True
        except Exception as e:
            logger.warning(f"Health check failed for '{self._name}' ({self.kind.value}): {e}")
            return False

    def disconnect(self) -> None:
        """Release the native client. Safe to call when unconnected."""
        with self._state_lock:
            handle, self._handle = self._handle, None

        if handle is None:
            return

        try:
            self._close(handle)
            logger.info(f"Connector '{self._name}' disconnected")
        except Exception as e:
            logger.warning(f"Error while disconnecting '{self._name}': {e}")

    def describe(self) -> Dict[str, Any]:
        """Connection details for diagnostics, with credentials masked."""
        return {
            "name": self._name,
            "kind": self.kind.value,
            "connected": self.is_connected,
            "config": mask_config(self._config),
        }

    def _close_quietly(self, handle: HandleT) -> None:
        try:
            self._close(handle)
        except Exception as e:
            logger.debug(f"Ignoring close error for abandoned handle of '{self._name}': {e}")

    @abstractmethod
    def _open(self) -> HandleT:
        """Build the native client and verify it can talk to the backend."""

    @abstractmethod
    def _probe(self, handle: HandleT) -> None:
        """Raise if the backend does not answer a cheap request."""

    @abstractmethod
    def _close(self, handle: HandleT) -> None:
        """Release the native client."""

    def _get(self, *keys: str, default: Any = None) -> Any:
        """First non-empty value among ``keys`` in the configuration."""
        for key in keys:
            value = self._config.get(key)
            if value is not None and value != "":
                return value
        return default

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "unconnected"
        return f"<{type(self).__name__} name={self._name!r} {state}>"
