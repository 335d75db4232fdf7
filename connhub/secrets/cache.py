"""
Valkey-backed cache of resolved connection secrets.

The cache is a soft layer in front of the remote secret store: every
operation is best-effort. Backing-store failures and undecodable payloads are
logged and reported as a miss, never raised. Entries expire through the
server's native key TTL.

After repeated consecutive failures a circuit breaker skips the backing
store for a while, so an unreachable cache does not add a socket timeout to
every secret lookup.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import valkey

logger = logging.getLogger(__name__)

CACHE_PREFIX = "secret:"
DEFAULT_TTL_SECONDS = 3600


@dataclass
class SecretCacheStats:
    """Secret cache operation statistics."""

    hit_count: int = 0
    miss_count: int = 0
    set_count: int = 0
    delete_count: int = 0
    error_count: int = 0
    decode_errors: int = 0
    skipped_operations: int = 0
    start_time: datetime = field(default_factory=datetime.now)

    @property
    def hit_ratio(self) -> float:
        """Calculate cache hit ratio."""
        total_reads = self.hit_count + self.miss_count
        return self.hit_count / total_reads if total_reads > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "set_count": self.set_count,
            "delete_count": self.delete_count,
            "error_count": self.error_count,
            "decode_errors": self.decode_errors,
            "skipped_operations": self.skipped_operations,
            "hit_ratio": self.hit_ratio,
            "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
        }


class SecretCache:
    """
    TTL cache of connection configurations keyed by secret name.

    Values are stored as JSON objects under ``secret:<name>``.
    """

    def __init__(
        self,
        client: valkey.Valkey,
        prefix: str = CACHE_PREFIX,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_timeout: int = 60,
    ):
        """
        Initialize the secret cache.

        Args:
            client: Valkey (or API-compatible Redis) client
            prefix: Namespace prepended to every secret name
            circuit_breaker_threshold: Consecutive failures before the store is skipped
            circuit_breaker_timeout: Seconds to skip the store once the circuit opens
        """
        self.client = client
        self.prefix = prefix
        self.stats = SecretCacheStats()

        self.circuit_breaker_threshold = circuit_breaker_threshold
        self.circuit_breaker_timeout = circuit_breaker_timeout
        self.consecutive_failures = 0
        self.circuit_open_time: Optional[datetime] = None
        self._lock = threading.Lock()

    def key_for(self, name: str) -> str:
        """Cache key for a secret name."""
        return f"{self.prefix}{name}"

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Get a cached secret.

        Args:
            name: Secret name

        Returns:
            The cached configuration, or None on miss, expiry, decode error or store failure
        """
        raw = self._execute("get", name, lambda: self.client.get(self.key_for(name)))
        if raw is None:
            with self._lock:
                self.stats.miss_count += 1
            return None

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to decode cached secret '{name}': {e}")
            data = None

        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Cached secret '{name}' is not a JSON object, ignoring it")
            with self._lock:
                self.stats.decode_errors += 1
                self.stats.miss_count += 1
            return None

        with self._lock:
            self.stats.hit_count += 1
        return data

    def set(self, name: str, config: Dict[str, Any], ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        """
        Store a secret with a TTL.

        Args:
            name: Secret name
            config: Configuration to cache
            ttl_seconds: Time to live in seconds (default: 1 hour)

        Returns:
            True if the value was written, False otherwise
        """
        try:
            payload = json.dumps(config)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to encode secret '{name}' for caching: {e}")
            with self._lock:
                self.stats.error_count += 1
            return False

        written = self._execute("set", name, lambda: self.client.setex(self.key_for(name), int(ttl_seconds), payload))
        if written is None:
            return False

        with self._lock:
            self.stats.set_count += 1
        logger.debug(f"Secret '{name}' cached (ttl={ttl_seconds}s)")
        return True

    def delete(self, name: str) -> bool:
        """
        Delete a cached secret.

        Returns:
            True if a key was removed
        """
        deleted = self._execute("delete", name, lambda: self.client.delete(self.key_for(name)))
        if not deleted:
            return False

        with self._lock:
            self.stats.delete_count += 1
        logger.debug(f"Secret '{name}' removed from cache")
        return True

    def clear(self) -> int:
        """
        Delete every cached secret under the namespace.

        Returns:
            Number of keys removed
        """
        def _clear() -> int:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*", count=500))
            if not keys:
                return 0
            return int(self.client.delete(*keys))

        removed = self._execute("clear", "*", _clear) or 0
        if removed:
            with self._lock:
                self.stats.delete_count += removed
            logger.info(f"Cleared {removed} secrets from cache")
        return removed

    @property
    def is_circuit_open(self) -> bool:
        """Check if the backing store is currently being skipped."""
        with self._lock:
            if self.circuit_open_time is None:
                return False
            elapsed = (datetime.now() - self.circuit_open_time).total_seconds()
            if elapsed >= self.circuit_breaker_timeout:
                logger.info("Secret cache circuit breaker timeout expired, allowing retry")
                self.circuit_open_time = None
                self.consecutive_failures = 0
                return False
            return True

    def _execute(self, operation: str, name: str, func: Callable[[], Any]) -> Any:
        """Run one backing-store call, turning every failure into None."""
        if self.is_circuit_open:
            with self._lock:
                self.stats.skipped_operations += 1
            logger.debug(f"Secret cache circuit open, skipping {operation} for '{name}'")
            return None

        try:
            result = func()
        except Exception as e:
            logger.error(f"Secret cache {operation} error for '{name}': {e}")
            self._record_error()
            return None

        with self._lock:
            self.consecutive_failures = 0
        return result

    def _record_error(self) -> None:
        with self._lock:
            self.stats.error_count += 1
            self.consecutive_failures += 1
            if self.consecutive_failures >= self.circuit_breaker_threshold and self.circuit_open_time is None:
                self.circuit_open_time = datetime.now()
                logger.warning(
                    f"Secret cache circuit breaker opened after {self.consecutive_failures} consecutive failures"
                )
