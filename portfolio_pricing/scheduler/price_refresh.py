"""
Hourly Price Refresh

Keeps cached prices warm by force-refreshing a set of symbols once an hour.
The symbol source is a callable so the job does not depend on where
holdings live; by default it uses the service's recently requested symbols.
"""
from datetime import datetime, timezone
from typing import Optional, Callable, Iterable, Awaitable, Union
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from loguru import logger

from portfolio_pricing.services.price_service import PriceResolutionService


PRICE_REFRESH_JOB_ID = "price_refresh"

SymbolSource = Callable[[], Union[Iterable[str], Awaitable[Iterable[str]]]]


class PriceRefreshScheduler:
    """
    Price refresh scheduler.

    Runs refresh_prices() at a fixed minute past every hour. Failures are
    logged and the job stays scheduled.
    """

    def __init__(
        self,
        service: PriceResolutionService,
        symbol_source: Optional[SymbolSource] = None,
        minute: int = 0,
        currency: str = "USD",
        timezone_name: str = "UTC",
    ):
        self.service = service
        self.symbol_source = symbol_source or (lambda: service.tracked_symbols)
        self.minute = minute
        self.currency = currency
        self.timezone_name = timezone_name
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False
        self.last_run: Optional[datetime] = None
        self.last_result: dict = {}

    def initialize(self) -> None:
        """Initialize the scheduler with job stores and executors."""
        self.scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 60 * 5,
            },
            timezone=self.timezone_name,
        )
        self.scheduler.add_job(
            self.run_refresh,
            trigger=CronTrigger(minute=self.minute, timezone=self.timezone_name),
            id=PRICE_REFRESH_JOB_ID,
            name="Hourly price refresh",
            replace_existing=True,
        )
        logger.info(f"Price refresh scheduled at minute {self.minute:02d} of every hour")

    def start(self) -> None:
        """Start the scheduler."""
        if not self.scheduler:
            self.initialize()

        if not self._is_running:
            self.scheduler.start()
            self._is_running = True
            logger.info("Price refresh scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler and self._is_running:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Price refresh scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    def get_next_run_time(self) -> Optional[datetime]:
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(PRICE_REFRESH_JOB_ID)
        # Pending jobs (scheduler not started yet) have no next_run_time
        return getattr(job, "next_run_time", None) if job else None

    async def _symbols(self) -> list[str]:
        symbols = self.symbol_source()
        if hasattr(symbols, "__await__"):
            symbols = await symbols
        return list(symbols or [])

    async def run_refresh(self) -> dict:
        """One refresh pass. Returns a summary; never raises."""
        started = datetime.now(timezone.utc)
        try:
            symbols = await self._symbols()
            prices = await self.service.refresh_prices(symbols, currency=self.currency)
        except Exception as e:
            logger.error(f"Price refresh failed: {e}")
            summary = {"status": "error", "error": str(e), "started_at": started.isoformat()}
        else:
            summary = {
                "status": "ok",
                "requested": len(symbols),
                "refreshed": len(prices),
                "started_at": started.isoformat(),
            }
            logger.info(f"Price refresh done: {len(prices)}/{len(symbols)} symbols")

        self.last_run = started
        self.last_result = summary
        return summary
