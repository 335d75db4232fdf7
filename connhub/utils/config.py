"""
Environment configuration loader with validation.

Settings come from the process environment, optionally seeded from a .env
file. Connections can be declared locally with LOCAL_CONNECTIONS, a comma
separated list of logical names; each name's settings are read from the
variables prefixed with its upper-cased name:

    LOCAL_CONNECTIONS=mysql_users,postgres_books
    MYSQL_USERS_DRIVER=mysql
    MYSQL_USERS_HOST=db.internal
    MYSQL_USERS_PORT=3306
    POSTGRES_BOOKS_DRIVER=pgsql
"""

import os
import re
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ..secrets.config import TRUE_VALUES, ValkeyConfig

INT_KEYS = frozenset({"port", "database", "db", "max_connections", "read_capacity", "write_capacity"})
FLOAT_KEYS = frozenset({"timeout", "connect_timeout"})
VERBATIM_KEYS = frozenset({"password", "secret", "key", "user", "username", "url"})


class AppConfig(BaseModel):
    """Configuration model for the connection registry with validation."""

    # AWS Secrets Manager
    use_aws_secrets: bool = Field(default=False, description="Resolve connections from AWS Secrets Manager")
    aws_region: str = Field(default="us-east-1", description="AWS region of the secret store")
    aws_access_key_id: Optional[str] = Field(default=None, description="Static AWS access key")
    aws_secret_access_key: Optional[str] = Field(default=None, description="Static AWS secret key")
    aws_endpoint_url: Optional[str] = Field(default=None, description="Custom Secrets Manager endpoint")
    secret_prefix: Optional[str] = Field(default=None, description="Prefix prepended to every SecretId")

    # Secret cache
    secret_cache_enabled: bool = Field(default=True, description="Cache secrets in Valkey")
    secret_cache_ttl: int = Field(default=3600, ge=1, description="Secret cache TTL in seconds")
    valkey: ValkeyConfig = Field(default_factory=ValkeyConfig, description="Secret cache server")

    # Runtime
    log_level: str = Field(default="INFO", description="Logging level")
    connect_timeout: float = Field(default=10.0, gt=0, description="Deadline for one connection request")

    # Locally declared connections
    local_connections: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("local_connections")
    @classmethod
    def validate_local_connections(cls, v: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Every declared connection must name its driver."""
        missing = [name for name, settings in v.items() if not settings.get("driver")]
        if missing:
            raise ValueError(f"Local connections without a driver: {', '.join(missing)}")
        return v


def env_prefix(name: str) -> str:
    """Environment variable prefix for a logical connection name."""
    return re.sub(r"[^A-Za-z0-9]", "_", name).upper()


def _coerce(key: str, value: str) -> Any:
    if key in VERBATIM_KEYS:
        return value
    if key in INT_KEYS and value.strip().isdigit():
        return int(value)
    if key in FLOAT_KEYS:
        try:
            return float(value)
        except ValueError:
            return value
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def parse_local_connections(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Dict[str, Any]]:
    """
    Build connection configurations from LOCAL_CONNECTIONS.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Dict[str, Dict[str, Any]]: Configuration per logical name
    """
    if environ is None:
        environ = os.environ

    names = [name.strip() for name in environ.get("LOCAL_CONNECTIONS", "").split(",") if name.strip()]
    prefixes = {name: env_prefix(name) + "_" for name in names}
    connections: Dict[str, Dict[str, Any]] = {name: {} for name in names}

    for variable, value in environ.items():
        # Longest prefix wins, so MYSQL_USERS_HOST is not read as "users_host" of "mysql"
        owner = None
        for name, prefix in prefixes.items():
            if variable.startswith(prefix) and (owner is None or len(prefix) > len(prefixes[owner])):
                owner = name
        if owner is None:
            continue

        key = variable[len(prefixes[owner]):].lower()
        if key:
            connections[owner][key] = _coerce(key, value)

    return connections


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        AppConfig: Validated configuration object

    Raises:
        ValueError: If the configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    try:
        config_data: Dict[str, Any] = {
            "use_aws_secrets": os.getenv("USE_AWS_SECRETS", "false").lower() in TRUE_VALUES,
            "aws_region": os.getenv("AWS_REGION", "us-east-1"),
            "aws_access_key_id": os.getenv("AWS_ACCESS_KEY_ID") or None,
            "aws_secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY") or None,
            "aws_endpoint_url": os.getenv("AWS_ENDPOINT_URL") or None,
            "secret_prefix": os.getenv("AWS_SECRET_PREFIX") or None,
            "secret_cache_enabled": os.getenv("SECRET_CACHE_ENABLED", "true").lower() in TRUE_VALUES,
            "secret_cache_ttl": int(os.getenv("SECRET_CACHE_TTL", "3600")),
            "valkey": ValkeyConfig.from_env(),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "connect_timeout": float(os.getenv("CONNECT_TIMEOUT", "10")),
            "local_connections": parse_local_connections(),
        }
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def describe_config(config: AppConfig) -> List[str]:
    """Human readable summary lines, without credentials."""
    lines = [
        f"AWS Secrets Manager: {'enabled' if config.use_aws_secrets else 'disabled'} (region={config.aws_region})",
        f"Secret cache: {'enabled' if config.secret_cache_enabled else 'disabled'} ({config.valkey}, ttl={config.secret_cache_ttl}s)",
        f"Connect timeout: {config.connect_timeout}s",
    ]
    for name, settings in config.local_connections.items():
        lines.append(f"Local connection '{name}': driver={settings.get('driver')} host={settings.get('host', '-')}")
    return lines


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config(reload: bool = False) -> AppConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Args:
        reload: Discard the cached instance and read the environment again

    Returns:
        AppConfig: The global configuration object
    """
    global _config
    if _config is None or reload:
        _config = load_config()
    return _config
