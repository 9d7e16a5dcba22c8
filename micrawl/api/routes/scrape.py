"""Batch scrape endpoint streaming newline-delimited JSON.

Example:
    POST /scrape {"urls": ["https://example.com"]}
    Response (application/x-ndjson):
        {"status": "progress", "phase": "queued", ...}
        {"status": "success", "phase": "completed", ...}
        {"status": "success", "summary": {...}, ...}
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, StreamingResponse

from micrawl.api.dependencies import get_registry
from micrawl.api.models.requests import ScrapeRequest
from micrawl.api.models.responses import ErrorResponse
from micrawl.core.config import Settings, get_settings
from micrawl.core.url_validation import UrlNormalizationError
from micrawl.drivers.dispatcher import DriverRegistry
from micrawl.services.batch import (
    BatchExecutor,
    BatchValidationError,
    build_scrape_jobs,
    encode_record,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scrape"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True)
    )


@router.post(
    "/scrape",
    response_model=None,
    responses={
        400: {"model": ErrorResponse},
        501: {"model": ErrorResponse},
    },
)
async def scrape(
    payload: ScrapeRequest,
    registry: DriverRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse | JSONResponse:
    """Scrape a batch of URLs and stream progress, results, and a summary.

    Args:
        payload: Validated batch request
        registry: Drivers used to run the batch
        settings: Defaults and batch size limit

    Returns:
        NDJSON stream; 400 for a rejected batch; 501 for async mode
    """
    if payload.mode == "async":
        return _error(
            status.HTTP_501_NOT_IMPLEMENTED,
            ErrorResponse(
                error='Async mode is not yet available. Submit with mode="sync".'
            ),
        )

    try:
        jobs = build_scrape_jobs(payload.urls, settings, **payload.job_options())
    except UrlNormalizationError as exc:
        logger.info(
            "Rejected scrape batch",
            extra={"issue": exc.issue, "detail": exc.detail},
        )
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(error=str(exc), issue=exc.issue, detail=exc.detail),
        )
    except BatchValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, ErrorResponse(error=str(exc)))

    executor = BatchExecutor(registry)

    async def ndjson() -> AsyncIterator[str]:
        async for record in executor.stream(jobs):
            yield encode_record(record)

    return StreamingResponse(ndjson(), media_type=NDJSON_MEDIA_TYPE)
