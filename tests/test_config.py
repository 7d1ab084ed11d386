"""
Tests for Config environment loading
"""

import pytest

from onu_map.utils.config import Config, PLACEHOLDER_API_KEY


ENV_KEYS = [
    "API_BASE_URL", "API_KEY", "API_TIMEOUT", "API_DELAY",
    "GPS_API_LIMIT_PER_HOUR", "DETAILS_API_LIMIT_PER_HOUR",
    "CACHE_TTL_ONU_DETAILS", "CACHE_TTL_ONU_STATUS", "CACHE_TTL_GPS", "CACHE_TTL_STATUS_MEMORY",
    "REDIS_URL", "DASH_HOST", "DASH_PORT", "DASH_DEBUG"
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Empty environment and a working directory without .env."""
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("API_BASE_URL", "isp.smartolt.com/api")
    return monkeypatch


class TestConfig:

    def test_defaults(self, clean_env):
        config = Config()

        assert config.rate_limit.api_delay_ms == 8000
        assert config.rate_limit.gps_limit == 3
        assert config.rate_limit.details_limit == 3
        assert config.cache.onu_details_ttl == 3600
        assert config.cache.onu_status_ttl == 60
        assert config.cache.gps_ttl == 3600
        assert config.cache.status_memory_ttl == 7200
        assert config.cache.redis_url is None
        assert config.server.port == 8050

    def test_missing_base_url_raises(self, clean_env):
        clean_env.delenv("API_BASE_URL")
        with pytest.raises(ValueError):
            Config()

    def test_overrides(self, clean_env):
        clean_env.setenv("API_DELAY", "2000")
        clean_env.setenv("GPS_API_LIMIT_PER_HOUR", "5")
        clean_env.setenv("DASH_DEBUG", "true")

        config = Config()

        assert config.rate_limit.api_delay_seconds == 2.0
        assert config.rate_limit.gps_limit == 5
        assert config.server.debug is True

    def test_invalid_or_zero_numbers_use_defaults(self, clean_env):
        clean_env.setenv("API_DELAY", "fast")
        clean_env.setenv("DETAILS_API_LIMIT_PER_HOUR", "0")

        config = Config()

        assert config.rate_limit.api_delay_ms == 8000
        assert config.rate_limit.details_limit == 3

    def test_placeholder_key_is_not_configured(self, clean_env):
        clean_env.setenv("API_KEY", PLACEHOLDER_API_KEY)
        assert not Config().smartolt.is_api_key_configured

        clean_env.setenv("API_KEY", "a1b2c3d4e5f6g7")
        config = Config()
        assert config.smartolt.is_api_key_configured
        assert config.smartolt.masked_api_key() == "a1b2c3d4e5..."

    def test_diagnostics_hide_secrets(self, clean_env):
        clean_env.setenv("API_KEY", "a1b2c3d4e5f6g7h8i9j0")
        clean_env.setenv("REDIS_URL", "redis://:s3cret@cache:6379/0")

        diagnostics = Config().diagnostics()

        assert diagnostics["api_key_configured"] is True
        assert diagnostics["api_key_length"] == 20
        assert diagnostics["api_key_prefix"] == "a1b2c3d4e5..."
        assert diagnostics["cache"]["redis_enabled"] is True
        assert diagnostics["rate_limit"] == {"api_delay_ms": 8000, "gps_limit": 3, "details_limit": 3}
        assert "a1b2c3d4e5f6g7h8i9j0" not in str(diagnostics)
        assert "s3cret" not in str(diagnostics)
