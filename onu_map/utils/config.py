"""
OnuStatusMap - Configuration Management

This module handles loading and validating configuration from environment variables
and .env files.
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Value shipped in .env.example; treated as "not configured"
PLACEHOLDER_API_KEY = "your_api_key_here"


@dataclass
class SmartOltConfig:
    """Configuration for SmartOLT API connection."""
    base_url: str
    api_key: Optional[str] = None
    timeout: float = 30.0

    @property
    def is_api_key_configured(self) -> bool:
        """True when a real API key (not the placeholder) is set."""
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    def masked_api_key(self) -> str:
        """Return the first characters of the API key for diagnostics."""
        if not self.api_key:
            return "NOT SET"
        return f"{self.api_key[:10]}..."


@dataclass
class RateLimitConfig:
    """
    Configuration for upstream call budgets.

    api_delay_ms is the minimum spacing between any two outgoing calls.
    The hourly limits apply to the restricted endpoint classes only.
    """
    api_delay_ms: int = 8000
    gps_limit: int = 3
    details_limit: int = 3

    @property
    def api_delay_seconds(self) -> float:
        """Minimum call spacing in seconds."""
        return self.api_delay_ms / 1000.0


@dataclass
class CacheConfig:
    """Cache TTLs (seconds) per data class and optional Redis backend."""
    onu_details_ttl: int = 3600
    onu_status_ttl: int = 60
    gps_ttl: int = 3600
    # How long the last seen status of each ONU is remembered for transition tracking
    status_memory_ttl: int = 7200
    redis_url: Optional[str] = None


@dataclass
class ServerConfig:
    """Configuration for the dashboard web server."""
    host: str = "127.0.0.1"
    port: int = 8050
    debug: bool = False


@dataclass
class Config:
    """
    Main configuration class that aggregates all configuration sections.

    Loads configuration from environment variables with .env file support.
    """
    smartolt: SmartOltConfig = field(default_factory=lambda: None)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Paths
    log_dir: Path = field(default_factory=lambda: Path("data/logs"))

    def __post_init__(self):
        """Load configuration from environment after initialization."""
        # Load .env file if it exists
        env_file = Path(".env")
        if env_file.exists():
            load_dotenv(env_file)

        self.smartolt = SmartOltConfig(
            base_url=self._get_required_env("API_BASE_URL"),
            api_key=os.getenv("API_KEY"),
            timeout=float(os.getenv("API_TIMEOUT", "30"))
        )

        self.rate_limit = RateLimitConfig(
            api_delay_ms=self._get_int_env("API_DELAY", 8000),
            gps_limit=self._get_int_env("GPS_API_LIMIT_PER_HOUR", 3),
            details_limit=self._get_int_env("DETAILS_API_LIMIT_PER_HOUR", 3)
        )

        self.cache = CacheConfig(
            onu_details_ttl=self._get_int_env("CACHE_TTL_ONU_DETAILS", 3600),
            onu_status_ttl=self._get_int_env("CACHE_TTL_ONU_STATUS", 60),
            gps_ttl=self._get_int_env("CACHE_TTL_GPS", 3600),
            status_memory_ttl=self._get_int_env("CACHE_TTL_STATUS_MEMORY", 7200),
            redis_url=os.getenv("REDIS_URL") or None
        )

        self.server = ServerConfig(
            host=os.getenv("DASH_HOST", "127.0.0.1"),
            port=self._get_int_env("DASH_PORT", 8050),
            debug=os.getenv("DASH_DEBUG", "false").lower() in ("1", "true", "yes")
        )

    def _get_required_env(self, key: str) -> str:
        """
        Get a required environment variable.

        Args:
            key: Environment variable name

        Returns:
            Environment variable value

        Raises:
            ValueError: If the environment variable is not set
        """
        value = os.getenv(key)
        if value is None:
            raise ValueError(f"Required environment variable {key} is not set")
        return value

    def _get_int_env(self, key: str, default: int) -> int:
        """
        Get an integer environment variable.

        Empty, zero or non-numeric values fall back to the default.
        """
        raw = os.getenv(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            value = int(raw)
        except ValueError:
            return default
        return value or default

    def diagnostics(self) -> dict:
        """
        Configuration summary safe to expose over HTTP.

        The API key is reported by length and masked prefix only; the Redis
        URL (which may hold a password) only as enabled or not.
        """
        api_key = self.smartolt.api_key or ""
        return {
            "api_base_url": self.smartolt.base_url,
            "api_key_configured": self.smartolt.is_api_key_configured,
            "api_key_length": len(api_key),
            "api_key_prefix": self.smartolt.masked_api_key(),
            "api_timeout": self.smartolt.timeout,
            "port": self.server.port,
            "rate_limit": asdict(self.rate_limit),
            "cache": {
                "onu_details_ttl": self.cache.onu_details_ttl,
                "onu_status_ttl": self.cache.onu_status_ttl,
                "gps_ttl": self.cache.gps_ttl,
                "status_memory_ttl": self.cache.status_memory_ttl,
                "redis_enabled": bool(self.cache.redis_url)
            }
        }
