"""Core protocol definitions for micrawl components.

This module provides the capability contract shared by every retrieval
driver, used for type checking and for injecting fake drivers in tests.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from micrawl.services.models import (
    ScrapeDriverPosition,
    ScrapeDriverResult,
    ScrapeJob,
    ScrapePhase,
)

PhaseEmitter = Callable[[ScrapePhase], Awaitable[None] | None]


class ScrapeDriver(Protocol):
    """Protocol defining the interface every retrieval driver implements.

    Implemented by PlaywrightDriver (full render) and HttpDriver (single
    request). The batch executor only talks to drivers through this protocol.

    Methods required:
    - run: Execute one job and return a success or handled failure
    - verify: Health probe; raises when the driver is unusable
    - close: Release any shared resources the driver holds
    """

    name: str

    async def run(
        self,
        job: ScrapeJob,
        job_id: str,
        position: ScrapeDriverPosition,
        emit_phase: PhaseEmitter | None = None,
    ) -> ScrapeDriverResult:
        """Run a single job through the driver's lifecycle.

        Args:
            job: Job to execute
            job_id: Batch identifier shared by every record in the batch
            position: Job coordinates within the batch
            emit_phase: Optional hook notified on navigating/capturing

        Returns:
            ScrapeSuccess or ScrapeFailure. Expected scraping problems are
            returned as failures, never raised.
        """
        ...

    async def verify(self) -> None:
        """Raise if the driver cannot currently serve jobs."""
        ...

    async def close(self) -> None:
        """Release shared resources. Safe to call more than once."""
        ...
