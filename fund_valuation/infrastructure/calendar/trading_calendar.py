"""
Fund Trading Calendar
Trading days derived from a reference fund's confirmed NAV postings

A day is a trading day exactly when the reference fund posted a NAV for it,
so exchange holidays need no separate table.
"""

import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

from fund_valuation.config import settings
from fund_valuation.infrastructure.market_data.types import QuoteProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradingCalendar:
    """Strictly ascending, duplicate-free trading days within [start, end]."""
    start: date
    end: date
    days: Tuple[date, ...]

    @classmethod
    def from_dates(cls, start: date, end: date, dates: Iterable[date]) -> "TradingCalendar":
        if start > end:
            return cls(start=start, end=end, days=())
        days = tuple(sorted({d for d in dates if start <= d <= end}))
        return cls(start=start, end=end, days=days)

    def slice(self, start: date, end: date) -> List[date]:
        """Trading days within [start, end] inclusive."""
        if start > end:
            return []
        lo = bisect_left(self.days, start)
        hi = bisect_right(self.days, end)
        return list(self.days[lo:hi])

    def is_trading_day(self, d: date) -> bool:
        i = bisect_left(self.days, d)
        return i < len(self.days) and self.days[i] == d

    def __len__(self) -> int:
        return len(self.days)


class FundTradingCalendar:
    """
    Builds trading calendars from the reference fund's NAV history
    """

    def __init__(self, provider: QuoteProvider, reference_code: Optional[str] = None):
        self.provider = provider
        self.reference_code = reference_code or settings.TRADING_CALENDAR_REFERENCE_CODE

    async def get_trading_days(self, start: date, end: date) -> TradingCalendar:
        """
        Trading calendar for [start, end]. An upstream failure yields an
        empty calendar.
        """
        if start > end:
            return TradingCalendar.from_dates(start, end, ())

        records = await self.provider.fetch_nav_history(self.reference_code, start, end)
        calendar = TradingCalendar.from_dates(start, end, (r.date for r in records))

        if not calendar.days:
            logger.warning(
                f"⚠️  Empty trading calendar for {start}..{end} "
                f"(reference fund {self.reference_code})"
            )
        else:
            logger.debug(f"Trading calendar {start}..{end}: {len(calendar)} days")
        return calendar
