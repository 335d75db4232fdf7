"""
Shared fixtures: an in-memory Valkey server and a connector that needs no backend.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from connhub.database.connectors import BackendKind, BaseConnector
from connhub.database.factory import ConnectionFactory
from connhub.secrets.cache import SecretCache


class FakeConnector(BaseConnector):
    """Connector whose native handle is a MagicMock."""

    kind = BackendKind.POSTGRESQL

    def __init__(self, config, name, open_delay=0.0):
        super().__init__(config, name)
        self.open_delay = open_delay
        self.health_delay = 0.0
        self.healthy = True
        self.open_calls = 0
        self.closed = []

    def _open(self):
        self.open_calls += 1
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.config.get("fail"):
            raise RuntimeError("connection refused")
        return MagicMock(name=f"handle-{self.name}")

    def _probe(self, handle):
        if self.health_delay:
            time.sleep(self.health_delay)
        if not self.healthy:
            raise RuntimeError("server has gone away")

    def _close(self, handle):
        self.closed.append(handle)


class RecordingFactory(ConnectionFactory):
    """Factory validating driver aliases but always building FakeConnectors."""

    def __init__(self, open_delay=0.0):
        self.open_delay = open_delay
        self.created = []
        self._lock = threading.Lock()

    def create(self, driver, config, name):
        self.resolve_kind(driver)
        connector = FakeConnector(config, name, open_delay=self.open_delay)
        with self._lock:
            self.created.append(connector)
        return connector


@pytest.fixture
def valkey_client():
    """Isolated in-memory Valkey-compatible client."""
    fakeredis = pytest.importorskip("fakeredis")
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def secret_cache(valkey_client):
    return SecretCache(valkey_client)


@pytest.fixture
def factory():
    return RecordingFactory()
