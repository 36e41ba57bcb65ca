"""
Centralized configuration for the card sync server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.REDIS_URL)
    print(config.RECONCILIATION_STRATEGY)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Redis backs both the room record and the broadcast channel
    REDIS_URL: str = "redis://localhost:6379/0"

    # Channel / record naming
    CHANNEL_PREFIX: str = "cards:"
    ROOM_RECORD_TTL_HOURS: int = 24

    # "last_broadcast_wins" or "reject_stale"
    RECONCILIATION_STRATEGY: str = "last_broadcast_wins"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379/0"),
            CHANNEL_PREFIX=get_env("CHANNEL_PREFIX", "cards:"),
            ROOM_RECORD_TTL_HOURS=get_env_int("ROOM_RECORD_TTL_HOURS", 24),
            RECONCILIATION_STRATEGY=get_env("RECONCILIATION_STRATEGY", "last_broadcast_wins"),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
