"""Batch execution and the NDJSON streaming protocol.

A batch is an ordered list of jobs sharing one identifier. Jobs run strictly
one at a time in input order. Every job yields a ``queued`` progress record,
any ``navigating``/``capturing`` records its driver reports, then exactly one
terminal record (``success``, ``fail`` or ``error``). A summary record with
``index = total + 1`` always closes the stream.

Example:
    >>> jobs = build_scrape_jobs(["https://example.com"])
    >>> async for record in BatchExecutor(registry).stream(jobs):
    ...     print(encode_record(record), end="")
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections import Counter
from collections.abc import AsyncIterator, Sequence
from dataclasses import replace
from typing import Any

from micrawl.core.config import Settings, get_settings
from micrawl.core.interfaces import ScrapeDriver
from micrawl.core.url_validation import canonicalize_url_list
from micrawl.drivers.dispatcher import DriverRegistry
from micrawl.drivers.shared import error_text
from micrawl.services.models import (
    ProgressCounters,
    RecordStatus,
    ScrapeDriverPosition,
    ScrapeErrorDetail,
    ScrapeJob,
    ScrapePhase,
    ScrapeSuccess,
)

logger = logging.getLogger(__name__)

StreamRecord = dict[str, Any]


class BatchValidationError(ValueError):
    """Raised when a batch is rejected before any job runs."""


def build_scrape_jobs(
    urls: Sequence[str],
    settings: Settings | None = None,
    **job_options: Any,
) -> list[ScrapeJob]:
    """Canonicalize a batch of URLs and build one job per URL.

    Args:
        urls: Raw target URLs in caller order
        settings: Source of defaults and the batch size limit
        **job_options: Shared ScrapeJob fields applied to every job. Unset
            ``capture_text_only`` and ``timeout_ms`` fall back to settings.

    Returns:
        Jobs in input order, each targeting a canonical URL

    Raises:
        BatchValidationError: If the batch is empty or exceeds the size limit
        UrlNormalizationError: If any URL is invalid, unsupported, or a duplicate
    """
    settings = settings or get_settings()

    if not urls:
        raise BatchValidationError("Provide at least one URL to scrape.")
    if len(urls) > settings.max_urls_per_request:
        raise BatchValidationError(
            f"Batch limited to {settings.max_urls_per_request} URLs per request."
        )

    canonical_urls = canonicalize_url_list(urls)

    options = {key: value for key, value in job_options.items() if value is not None}
    options.setdefault("capture_text_only", settings.text_only_default)
    options.setdefault("timeout_ms", settings.default_timeout_ms)

    return [ScrapeJob(target_url=url, **options) for url in canonical_urls]


def encode_record(record: StreamRecord) -> str:
    """Serialize one stream record as a newline-terminated JSON line."""
    return json.dumps(record, ensure_ascii=False) + "\n"


class BatchExecutor:
    """Runs batches through a driver registry and streams their records.

    Args:
        registry: Registry used to resolve and run each job
    """

    def __init__(self, registry: DriverRegistry) -> None:
        self._registry = registry

    async def stream(
        self, jobs: Sequence[ScrapeJob], batch_id: str | None = None
    ) -> AsyncIterator[StreamRecord]:
        """Execute jobs in order, yielding records as they happen.

        Args:
            jobs: Canonicalized jobs in input order
            batch_id: Identifier shared by every record; generated if omitted

        Yields:
            Progress, terminal, and summary records as camelCase dicts
        """
        batch_id = batch_id or str(uuid.uuid4())
        total = len(jobs)
        counters = ProgressCounters(total=total)
        failures: list[dict[str, Any]] = []
        driver_counts: Counter[str] = Counter()

        logger.info(
            "Accepted scrape batch",
            extra={"job_id": batch_id, "total_jobs": total},
        )

        for index, job in enumerate(jobs, start=1):
            position = ScrapeDriverPosition(
                index=index, total=total, target_url=job.target_url
            )
            pre_job = counters.snapshot()
            driver: ScrapeDriver | None = None

            def progress(phase: ScrapePhase) -> StreamRecord:
                record = {
                    "status": RecordStatus.PROGRESS.value,
                    "jobId": batch_id,
                    "index": position.index,
                    "total": position.total,
                    "targetUrl": position.target_url,
                    "phase": phase.value,
                    "progress": pre_job,
                }
                if driver is not None:
                    record["driver"] = driver.name
                return record

            def unexpected(exc: Exception) -> StreamRecord:
                message = error_text(exc)
                counters.record_failure()
                failures.append(
                    ScrapeErrorDetail(
                        target_url=job.target_url,
                        message=message,
                        raw_message=message,
                    ).to_dict()
                )
                logger.error(
                    "Unexpected error while scraping target",
                    extra={
                        "job_id": batch_id,
                        "target_url": job.target_url,
                        "error": message,
                    },
                )
                record = {
                    "status": RecordStatus.ERROR.value,
                    "jobId": batch_id,
                    "index": position.index,
                    "total": position.total,
                    "targetUrl": position.target_url,
                    "phase": ScrapePhase.COMPLETED.value,
                    "message": message,
                    "progress": counters.snapshot(),
                }
                if driver is not None:
                    record["driver"] = driver.name
                return record

            try:
                driver = self._registry.resolve(job)
            except Exception as exc:  # noqa: BLE001
                yield progress(ScrapePhase.QUEUED)
                yield unexpected(exc)
                continue

            driver_counts[driver.name] += 1
            yield progress(ScrapePhase.QUEUED)

            phases: asyncio.Queue[ScrapePhase] = asyncio.Queue()
            task = asyncio.create_task(
                self._registry.run_job(
                    job, batch_id, position, phases.put_nowait, driver=driver
                )
            )
            try:
                async for phase in _drain_phases(phases, task):
                    yield progress(phase)

                try:
                    result = task.result()
                except Exception as exc:  # noqa: BLE001
                    yield unexpected(exc)
                    continue

                result = replace(result, job_id=batch_id)
                if isinstance(result, ScrapeSuccess):
                    counters.record_success()
                else:
                    counters.record_failure()
                    failures.extend(error.to_dict() for error in result.errors)

                yield {**result.to_dict(), "progress": counters.snapshot()}
            finally:
                if not task.done():
                    task.cancel()

        logger.info(
            "Completed scrape batch",
            extra={
                "job_id": batch_id,
                "total_jobs": total,
                "jobs_succeeded": counters.succeeded,
                "jobs_failed": counters.failed,
            },
        )

        yield {
            "status": RecordStatus.SUCCESS.value,
            "jobId": batch_id,
            "index": total + 1,
            "total": total,
            "phase": ScrapePhase.COMPLETED.value,
            "progress": counters.snapshot(),
            "summary": {
                "succeeded": counters.succeeded,
                "failed": counters.failed,
                "failures": failures,
                "drivers": dict(driver_counts),
            },
        }


async def _drain_phases(
    phases: asyncio.Queue[ScrapePhase], task: asyncio.Task[Any]
) -> AsyncIterator[ScrapePhase]:
    """Yield phases reported while ``task`` runs, then any still queued."""
    while not task.done():
        getter = asyncio.ensure_future(phases.get())
        done, _ = await asyncio.wait(
            {getter, task}, return_when=asyncio.FIRST_COMPLETED
        )
        if getter in done:
            yield getter.result()
            continue
        getter.cancel()

    while not phases.empty():
        yield phases.get_nowait()

