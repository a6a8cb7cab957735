import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from ingestion.service import ETLService

logger = logging.getLogger(__name__)


class ETLScheduler:
    """Runs every pipeline (extractors first) on a fixed interval"""

    def __init__(self, service: ETLService, interval_minutes: Optional[int] = None):
        self.service = service
        self.interval_minutes = interval_minutes or settings.ETL_SCHEDULE_MINUTES
        self.scheduler = AsyncIOScheduler()
        self._lock = asyncio.Lock()

    async def run_etl_job(self):
        """Job to run ETL pipeline"""
        if self.service.shutdown.requested:
            logger.info("Scheduler: Shutdown requested, job skipped")
            return
        if self._lock.locked():
            logger.warning("Scheduler: Previous ETL job still running, skipping this run")
            return

        async with self._lock:
            logger.info("Scheduler: Starting ETL job")
            try:
                summary = await self.service.run_all()
                logger.info(
                    f"Scheduler: ETL job finished - files={summary.total_files} "
                    f"failed={summary.failed_files}"
                )
            except Exception as e:
                logger.error(f"Scheduler: ETL job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="etl_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("ETL Scheduler stopped")
