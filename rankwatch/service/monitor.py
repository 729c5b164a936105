import asyncio
from enum import Enum
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from rankwatch.delivery.channel import OperatorReporter
from rankwatch.dispatch.dispatcher import DispatchReport, NotificationDispatcher
from rankwatch.scrapers.base_scraper import (
    AuthenticationError,
    BaseScraper,
    ScraperError,
)
from rankwatch.storage.json_store import PersistenceError
from rankwatch.storage.snapshot_store import SnapshotStore, SnapshotValidationError


class CycleStatus(str, Enum):
    DISPATCHED = "dispatched"
    FETCH_FAILED = "fetch_failed"
    REJECTED = "rejected"


class CycleOutcome(BaseModel):
    status: CycleStatus
    error: Optional[str] = None
    dispatch: Optional[DispatchReport] = None


class Monitor:
    """Runs the refresh -> replace -> dispatch cycle on a timer."""

    def __init__(
        self,
        scraper: BaseScraper,
        store: SnapshotStore,
        dispatcher: NotificationDispatcher,
        reporter: OperatorReporter,
    ):
        self.scraper = scraper
        self.store = store
        self.dispatcher = dispatcher
        self.reporter = reporter

    async def run_cycle(self) -> CycleOutcome:
        """Runs one diff cycle.

        Fetch and validation failures leave the stored snapshot untouched and
        produce a single operator report; the next tick is the retry.
        """
        logger.info("Starting refresh cycle...")
        try:
            fresh = await self.scraper.fetch_snapshot_set()
        except AuthenticationError as e:
            logger.critical(f"Authentication error: {e} - Check the session cookie!")
            await self.reporter.report(e)
            return CycleOutcome(status=CycleStatus.FETCH_FAILED, error=str(e))
        except ScraperError as e:
            logger.error(f"Fetch failed: {e}")
            await self.reporter.report(e)
            return CycleOutcome(status=CycleStatus.FETCH_FAILED, error=str(e))

        try:
            # Replacement happens-before dispatch: a crash from here on can
            # lose this cycle's notifications but never repeat them
            previous = self.store.replace(fresh)
        except (SnapshotValidationError, PersistenceError) as e:
            logger.error(f"Snapshot rejected: {e}")
            await self.reporter.report(e)
            return CycleOutcome(status=CycleStatus.REJECTED, error=str(e))

        report = await self.dispatcher.dispatch_cycle(previous, fresh)
        logger.success("Refresh cycle finished.")
        return CycleOutcome(status=CycleStatus.DISPATCHED, dispatch=report)

    async def run_forever(self, interval: float) -> None:
        logger.info(f"Polling every {interval}s")
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Uncaught exception in refresh cycle: {e}")
                await self.reporter.report(e)
            await asyncio.sleep(interval)
