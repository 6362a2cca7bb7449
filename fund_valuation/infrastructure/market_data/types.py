"""
Quote provider protocol for type hints.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from fund_valuation.domain.models import FundInfo, NavRecord, RawEstimate


class QuoteProvider(Protocol):
    async def fetch_estimate(self, code: str) -> Optional[RawEstimate]:
        ...

    async def fetch_recent_navs(self, code: str, count: int = 2) -> List[NavRecord]:
        ...

    async def fetch_nav_history(self, code: str, start_date: date, end_date: date) -> List[NavRecord]:
        ...

    async def fetch_history_by_period(self, code: str, period: str = "1m") -> List[NavRecord]:
        ...

    async def search_funds(self, query: str) -> List[FundInfo]:
        ...
