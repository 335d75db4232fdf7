"""
Error taxonomy for connection resolution, connectors and secret retrieval.

Every error raised by this package derives from ConnectionHubError so callers
can catch the whole family in one place.
"""

from typing import Optional


class ConnectionHubError(Exception):
    """Base class for all connection registry failures."""


class UnsupportedDatabaseError(ConnectionHubError):
    """Raised when a driver alias does not map to any known backend."""

    def __init__(self, driver: str):
        self.driver = driver
        super().__init__(f'Database driver "{driver}" is not supported')


class ConnectionNotFoundError(ConnectionHubError):
    """Raised when no usable configuration exists for a logical name."""

    def __init__(self, name: str, reason: Optional[str] = None):
        self.name = name
        self.reason = reason or "no configuration found"
        super().__init__(f'Connection "{name}": {self.reason}')


class ConnectError(ConnectionHubError):
    """Raised when a connector cannot establish its native client."""

    def __init__(self, backend: str, cause: BaseException, name: Optional[str] = None):
        self.backend = backend
        self.cause = cause
        self.name = name
        target = f' for connection "{name}"' if name else ""
        super().__init__(f"Failed to connect to {backend}{target}: {cause}")


class ConnectorNotConnectedError(ConnectionHubError):
    """Raised when a native handle is requested before connect()."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Connector "{name}" is not connected. Call connect() first.')


class OperationCancelledError(ConnectionHubError):
    """Raised when a blocking operation is abandoned through its cancel event."""


class OperationTimeoutError(ConnectionHubError, TimeoutError):
    """Raised when a blocking operation outlives its deadline."""


class SecretsError(ConnectionHubError):
    """Base class for secret resolution failures."""


class SecretsDisabledError(SecretsError):
    """Raised when the remote secret store is not configured."""

    def __init__(self, message: str = "AWS Secrets Manager is disabled. Set USE_AWS_SECRETS=true to enable."):
        super().__init__(message)


class SecretRetrievalError(SecretsError):
    """Raised when the remote secret store fails to return a usable secret."""

    def __init__(self, name: str, cause: BaseException):
        self.name = name
        self.cause = cause
        super().__init__(f'Failed to retrieve secret "{name}": {cause}')


__all__ = [
    "ConnectionHubError",
    "UnsupportedDatabaseError",
    "ConnectionNotFoundError",
    "ConnectError",
    "ConnectorNotConnectedError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "SecretsError",
    "SecretsDisabledError",
    "SecretRetrievalError",
]
