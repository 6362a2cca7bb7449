"""
SCHEDULER BOOTSTRAP

Initializes and manages the APScheduler instance.
Scheduler is orchestration-only and contains no business logic.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fund_valuation.config import settings
from fund_valuation.scheduler.jobs import run_valuation_poll_job
from fund_valuation.services.valuation_poller import ValuationPoller
from fund_valuation.utils.time import PROVIDER_TZ, now_provider

_logger = logging.getLogger(__name__)

_SCHEDULER: AsyncIOScheduler | None = None


def start_scheduler(poller: ValuationPoller) -> AsyncIOScheduler:
    """
    Start the scheduler on the running event loop and register all jobs.
    """
    global _SCHEDULER

    if _SCHEDULER is not None:
        return _SCHEDULER

    scheduler = AsyncIOScheduler(timezone=PROVIDER_TZ)

    # ------------------------------------------------------------
    # VALUATION POLL JOB
    # Every POLL_INTERVAL_SECONDS, first run immediately.
    # Overlapping runs are allowed; the poller drops stale results.
    # ------------------------------------------------------------
    scheduler.add_job(
        run_valuation_poll_job,
        trigger=IntervalTrigger(seconds=settings.POLL_INTERVAL_SECONDS, timezone=PROVIDER_TZ),
        kwargs={"poller": poller},
        id="valuation_poll_job",
        next_run_time=now_provider(),
        max_instances=2,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.start()
    _SCHEDULER = scheduler

    _logger.info(f"✅ Scheduler started (poll every {settings.POLL_INTERVAL_SECONDS}s)")
    return scheduler


def shutdown_scheduler():
    """
    Shutdown the scheduler safely.
    """
    global _SCHEDULER

    if _SCHEDULER:
        _SCHEDULER.shutdown(wait=False)
        _SCHEDULER = None
        _logger.info("🛑 Scheduler shut down")
