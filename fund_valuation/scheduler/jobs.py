"""
SCHEDULER JOB DEFINITIONS

Jobs are thin wrappers that:
- Log execution
- Call existing services

NO business logic is allowed here.
"""

import logging

from fund_valuation.services.valuation_poller import ValuationPoller

_logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# VALUATION POLL JOB
# -------------------------------------------------------------------

async def run_valuation_poll_job(poller: ValuationPoller):
    """
    Refresh estimates for the whole watchlist.
    The poller never raises; a failed cycle waits for the next tick.
    """
    _logger.debug("⏱️ Running valuation poll job")
    applied = await poller.poll_once()
    if not applied and poller.last_error:
        _logger.warning(f"Valuation poll skipped safely: {poller.last_error}")
