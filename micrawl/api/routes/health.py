"""Health check endpoint for API monitoring.

Runs the full-render driver's probe: launch (or reuse) Chromium and load the
configured healthcheck page.

Example:
    GET /health
    Response: {"status": "healthy"}
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from micrawl.api.dependencies import get_registry
from micrawl.api.models.responses import HealthResponse
from micrawl.drivers.dispatcher import DriverRegistry
from micrawl.services.models import DriverName

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check(
    registry: DriverRegistry = Depends(get_registry),
) -> HealthResponse | JSONResponse:
    """Return API health status.

    Returns:
        ``{"status": "healthy"}`` when the browser probe succeeds, otherwise
        a 503 with ``{"status": "unhealthy", "error": ...}``.

    Example:
        >>> response = client.get("/health")
        >>> response.json()
        {"status": "healthy"}
    """
    try:
        await registry.get(DriverName.PLAYWRIGHT.value).verify()
    except Exception as exc:  # noqa: BLE001
        message = str(exc) or type(exc).__name__
        logger.error("Health check failed", extra={"error": message})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthResponse(status="unhealthy", error=message).model_dump(
                exclude_none=True
            ),
        )
    return HealthResponse(status="healthy")
