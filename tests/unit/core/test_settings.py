"""Unit tests for the settings module."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from micrawl.core.config import Settings, get_settings


class TestSettingsDefaults:
    def test_defaults_without_environment(self) -> None:
        """Every field has a default so the scraper runs with no environment."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.default_timeout_ms == 45_000
        assert settings.text_only_default is True
        assert settings.max_urls_per_request == 5
        assert settings.default_locale == "en-US"
        assert settings.default_timezone == "America/New_York"
        assert settings.default_viewport_width == 1920
        assert settings.default_viewport_height == 1080
        assert settings.default_user_agent is None
        assert settings.default_driver == "playwright"
        assert settings.chromium_binary is None
        assert settings.docs_dir == Path("./docs")
        assert settings.log_level == "INFO"


class TestSettingsFromEnvironment:
    def test_loads_prefixed_variables(self) -> None:
        env_vars = {
            "SCRAPER_DEFAULT_TIMEOUT_MS": "30000",
            "SCRAPER_TEXT_ONLY_DEFAULT": "false",
            "SCRAPER_MAX_URLS_PER_REQUEST": "10",
            "SCRAPER_DEFAULT_DRIVER": "auto",
            "SCRAPER_LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.default_timeout_ms == 30_000
        assert settings.text_only_default is False
        assert settings.max_urls_per_request == 10
        assert settings.default_driver == "auto"
        assert settings.log_level == "DEBUG"

    def test_unprefixed_legacy_names(self) -> None:
        env_vars = {"CHROMIUM_BINARY": "/usr/bin/chromium", "MICRAWL_DOCS_DIR": "/tmp/docs"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.chromium_binary == "/usr/bin/chromium"
        assert settings.docs_dir == Path("/tmp/docs")

    def test_blank_user_agent_is_unset(self) -> None:
        with patch.dict(os.environ, {"SCRAPER_DEFAULT_USER_AGENT": "   "}, clear=True):
            settings = Settings(_env_file=None)
        assert settings.default_user_agent is None


class TestSettingsValidation:
    @pytest.mark.parametrize("timeout", [999, 120_001])
    def test_rejects_out_of_range_timeout(self, timeout: int) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_timeout_ms=timeout)

    @pytest.mark.parametrize("limit", [0, 21])
    def test_rejects_out_of_range_batch_limit(self, limit: int) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_urls_per_request=limit)

    def test_rejects_tiny_viewport(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_viewport_width=100)

    def test_rejects_unknown_driver(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_driver="selenium")

    def test_rejects_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="LOUD")


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
