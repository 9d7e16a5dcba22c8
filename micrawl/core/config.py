"""Configuration module for the micrawl scraping service.

Provides Pydantic-based configuration management with environment variable support
and field validation. Every field has a default so the scraper runs with no
environment at all.

Example:
    >>> from micrawl.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.default_timeout_ms)
    45000
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DriverChoice = Literal["playwright", "http", "auto"]


class Settings(BaseSettings):
    """Scraper runtime configuration.

    Values are read from ``SCRAPER_*`` environment variables (or a ``.env``
    file). ``CHROMIUM_BINARY`` and ``MICRAWL_DOCS_DIR`` keep their historical
    unprefixed names.

    Attributes:
        default_timeout_ms: Per-job timeout budget when the caller sets none
        text_only_default: Capture visible text instead of full HTML by default
        max_urls_per_request: Maximum number of URLs accepted in one batch
        default_locale: Browser locale used when a job does not override it
        default_timezone: Browser timezone used when a job does not override it
        default_viewport_width: Browser viewport width in pixels
        default_viewport_height: Browser viewport height in pixels
        default_user_agent: Fixed user agent; a desktop UA is generated if unset
        default_driver: Driver used when a job does not name one
        healthcheck_url: Page loaded by driver health probes
        chromium_binary: Explicit Chromium executable, bypassing discovery
        docs_dir: Default output directory for saved markdown
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Raises:
        ValidationError: If a supplied value is out of range

    Example:
        >>> settings = Settings(default_driver="auto", max_urls_per_request=10)
        >>> settings.default_locale
        'en-US'
    """

    default_timeout_ms: int = 45_000
    text_only_default: bool = True
    max_urls_per_request: int = 5

    # Browser context defaults
    default_locale: str = "en-US"
    default_timezone: str = "America/New_York"
    default_viewport_width: int = 1920
    default_viewport_height: int = 1080
    default_user_agent: str | None = None

    default_driver: DriverChoice = "playwright"
    healthcheck_url: str = "https://example.com/"
    chromium_binary: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "CHROMIUM_BINARY", "SCRAPER_CHROMIUM_BINARY", "chromium_binary"
        ),
    )
    docs_dir: Path = Field(
        default=Path("./docs"),
        validation_alias=AliasChoices("MICRAWL_DOCS_DIR", "docs_dir"),
    )

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SCRAPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
    )

    @field_validator("default_timeout_ms")
    @classmethod
    def validate_default_timeout(cls: type["Settings"], v: int) -> int:
        """Validate the default timeout lies between 1 and 120 seconds.

        Args:
            cls: The Settings class (provided by Pydantic)
            v: Timeout in milliseconds

        Returns:
            Validated timeout

        Raises:
            ValueError: If the timeout is outside [1000, 120000]
        """
        if v < 1_000 or v > 120_000:
            raise ValueError("default_timeout_ms must be between 1000 and 120000")
        return v

    @field_validator("max_urls_per_request")
    @classmethod
    def validate_max_urls(cls: type["Settings"], v: int) -> int:
        """Validate the batch size limit is between 1 and 20."""
        if v < 1 or v > 20:
            raise ValueError("max_urls_per_request must be between 1 and 20")
        return v

    @field_validator("default_viewport_width", "default_viewport_height")
    @classmethod
    def validate_viewport(cls: type["Settings"], v: int) -> int:
        """Validate viewport dimensions are between 320 and 4096 pixels."""
        if v < 320 or v > 4096:
            raise ValueError("viewport dimensions must be between 320 and 4096")
        return v

    @field_validator("default_locale")
    @classmethod
    def validate_locale(cls: type["Settings"], v: str) -> str:
        """Validate the locale tag has at least two characters."""
        v = v.strip()
        if len(v) < 2:
            raise ValueError("default_locale must be at least 2 characters")
        return v

    @field_validator("default_user_agent", "chromium_binary")
    @classmethod
    def blank_to_none(cls: type["Settings"], v: str | None) -> str | None:
        """Treat blank optional strings as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls: type["Settings"], v: str) -> str:
        """Validate log level is a standard logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, resolved once on first use."""
    return Settings()
