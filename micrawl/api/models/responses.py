"""Response models for API endpoints.

Pydantic models defining the structure of API responses.

Example:
    from micrawl.api.models.responses import HealthResponse

    response = HealthResponse(status="healthy")
"""

from typing import Any, Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status ('healthy' or 'unhealthy')
        error: Reason the driver probe failed, when unhealthy

    Example:
        >>> response = HealthResponse(status="healthy")
        >>> response.model_dump(exclude_none=True)
        {'status': 'healthy'}
    """

    status: Literal["healthy", "unhealthy"]
    error: str | None = None


class ErrorResponse(BaseModel):
    """Error body returned for rejected requests.

    Attributes:
        ok: Always False
        error: Human-readable reason
        issue: Machine-readable URL issue (invalid_url, unsupported_protocol,
            duplicate_url), when the batch was rejected for a URL
        detail: Offending URL, scheme, or canonical form
        details: Field-level validation errors
    """

    ok: Literal[False] = False
    error: str
    issue: str | None = None
    detail: str | None = None
    details: list[dict[str, Any]] | None = None
