"""Request models for API endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from micrawl.services.models import (
    BasicAuthCredentials,
    ContentFormat,
    Viewport,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )


class ViewportModel(_CamelModel):
    """Browser viewport override in pixels."""

    width: int = Field(ge=320, le=4096)
    height: int = Field(ge=320, le=4096)


class BasicAuthModel(_CamelModel):
    """HTTP Basic credentials for the target site."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ScrapeRequest(_CamelModel):
    """Body of ``POST /scrape``.

    Field names are camelCase on the wire (``captureTextOnly``,
    ``waitForSelector``, ``timeoutMs`` ...). Unknown fields are rejected.
    Omitted options fall back to configured defaults.

    Example:
        >>> ScrapeRequest.model_validate({"urls": ["https://example.com"]}).mode
        'sync'
    """

    urls: list[str] = Field(min_length=1)
    mode: Literal["sync", "async"] = "sync"
    capture_text_only: bool | None = None
    wait_for_selector: str | None = Field(default=None, min_length=1)
    timeout_ms: int | None = Field(default=None, ge=1_000, le=120_000)
    basic_auth: BasicAuthModel | None = None
    locale: str | None = Field(default=None, min_length=2)
    timezone_id: str | None = Field(default=None, min_length=1)
    viewport: ViewportModel | None = None
    user_agent: str | None = Field(default=None, min_length=1)
    proxy_url: str | None = Field(default=None, pattern=r"^(http|https|socks5)://")
    headers: dict[str, str] | None = None
    output_formats: list[ContentFormat] | None = None
    driver: Literal["playwright", "http", "auto"] | None = None
    readability: bool | None = None

    @field_validator("headers")
    @classmethod
    def lowercase_header_names(
        cls: type["ScrapeRequest"], v: dict[str, str] | None
    ) -> dict[str, str] | None:
        """Lower-case header names and treat an empty mapping as unset."""
        if not v:
            return None
        return {key.strip().lower(): value.strip() for key, value in v.items()}

    def job_options(self) -> dict[str, Any]:
        """Shared ScrapeJob fields for every URL in the batch."""
        return {
            "capture_text_only": self.capture_text_only,
            "timeout_ms": self.timeout_ms,
            "wait_for_selector": self.wait_for_selector,
            "viewport": Viewport(self.viewport.width, self.viewport.height)
            if self.viewport
            else None,
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "user_agent": self.user_agent,
            "outbound_proxy_url": self.proxy_url,
            "header_overrides": self.headers,
            "basic_auth_credentials": BasicAuthCredentials(
                self.basic_auth.username, self.basic_auth.password
            )
            if self.basic_auth
            else None,
            "output_formats": tuple(dict.fromkeys(self.output_formats))
            if self.output_formats
            else None,
            "driver": self.driver,
            "readability": self.readability,
        }
