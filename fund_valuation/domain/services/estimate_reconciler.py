"""
ESTIMATE RECONCILER
Merge the live intraday estimate with the confirmed NAV feed

RESPONSIBILITIES:
- Detect whether today's NAV has already been posted
- Prefer the confirmed NAV over the live estimate once it is posted
- Fall back field by field when one feed is missing
- Never raise: nothing usable -> EmptyEstimate

RULES (LOCKED):
✅ "Today" is the provider's calendar day (Asia/Shanghai)
✅ Confirmed NAV wins over the estimate after posting
✅ Batch keeps input order and length
❌ No caching across polls
"""

import asyncio
import logging
from datetime import date
from typing import Callable, List, Optional, Sequence

from fund_valuation.domain.models import (
    EmptyEstimate,
    EstimateResult,
    NavRecord,
    QuoteSnapshot,
    RawEstimate,
)
from fund_valuation.infrastructure.market_data.types import QuoteProvider
from fund_valuation.utils.time import provider_today

logger = logging.getLogger(__name__)


def reconcile_feeds(
    code: str,
    raw: Optional[RawEstimate],
    navs: Sequence[NavRecord],
    today: date,
) -> EstimateResult:
    """
    Combine one live estimate and the most recent NAV records (newest first).
    """
    latest = navs[0] if len(navs) > 0 else None
    yesterday = navs[1] if len(navs) > 1 else None

    # An envelope without a single usable number counts as no live feed
    raw_usable = raw is not None and (raw.estimate_nav > 0 or raw.last_nav > 0)
    if not raw_usable and latest is None:
        return EmptyEstimate(code)

    nav_updated_today = latest is not None and latest.date == today
    fallback_nav = raw.last_nav if raw is not None else 0.0

    if nav_updated_today:
        estimate_nav = latest.nav
        change_percent = latest.change_percent
        last_change_percent = yesterday.change_percent if yesterday else 0.0
    else:
        estimate_nav = raw.estimate_nav if raw is not None else 0.0
        change_percent = raw.estimate_change_percent if raw is not None else 0.0
        last_change_percent = latest.change_percent if latest else 0.0

    last_nav = latest.nav if latest else fallback_nav
    prev_nav = yesterday.nav if yesterday else fallback_nav

    if latest is not None:
        last_nav_date = latest.date.isoformat()
    else:
        last_nav_date = raw.last_nav_date if raw is not None else ""

    estimate_usable = raw is not None and raw.estimate_nav > 0
    estimate_time = raw.estimate_time if estimate_usable else ""

    name = raw.name if raw is not None and raw.name else code

    return QuoteSnapshot(
        code=code,
        name=name,
        estimate_nav=estimate_nav,
        last_nav=last_nav,
        prev_nav=prev_nav,
        change_percent=change_percent,
        last_change_percent=last_change_percent,
        last_nav_date=last_nav_date,
        estimate_time=estimate_time,
        nav_updated_today=nav_updated_today,
    )


class EstimateReconciler:
    """
    Estimate Reconciler
    Fetches both feeds per code and reconciles them into one snapshot
    """

    def __init__(
        self,
        provider: QuoteProvider,
        today_fn: Callable[[], date] = provider_today,
    ):
        """
        Args:
            provider: Upstream quote client
            today_fn: Provider-local "today" (injectable for tests)
        """
        self.provider = provider
        self.today_fn = today_fn

    async def reconcile(self, code: str) -> EstimateResult:
        """Reconcile one fund code."""
        raw, navs = await asyncio.gather(
            self.provider.fetch_estimate(code),
            self.provider.fetch_recent_navs(code, 2),
        )
        result = reconcile_feeds(code, raw, navs or [], self.today_fn())
        if result.is_empty:
            logger.info(f"ℹ️  No usable data for {code}")
        return result

    async def reconcile_many(self, codes: Sequence[str]) -> List[EstimateResult]:
        """
        Reconcile a batch concurrently. Output matches the input order;
        a failure for one code never aborts the rest.
        """
        if not codes:
            return []

        results = await asyncio.gather(
            *(self.reconcile(code) for code in codes),
            return_exceptions=True,
        )

        reconciled: List[EstimateResult] = []
        for code, result in zip(codes, results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Reconcile failed for {code}: {result}")
                reconciled.append(EmptyEstimate(code))
            else:
                reconciled.append(result)
        return reconciled
