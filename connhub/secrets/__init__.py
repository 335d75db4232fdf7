"""
Connection secret resolution.

Valkey-backed secret cache in front of AWS Secrets Manager.
"""

from .cache import CACHE_PREFIX, SecretCache, SecretCacheStats
from .config import ValkeyConfig
from .manager import SecretsManagerService

__all__ = [
    "CACHE_PREFIX",
    "SecretCache",
    "SecretCacheStats",
    "SecretsManagerService",
    "ValkeyConfig",
]
