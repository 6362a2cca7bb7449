from datetime import date
from typing import AsyncGenerator, Dict, Iterable, List, Optional

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from fund_valuation.api.routes import dca, funds, health, portfolio
from fund_valuation.domain.models import FundInfo, NavRecord, RawEstimate
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.infrastructure.store.kv_store import MemoryStore
from fund_valuation.services.dca_service import DcaService
from fund_valuation.services.valuation_poller import ValuationPoller

# Wednesday
TODAY = date(2024, 6, 12)


def make_raw(code: str = "000001", estimate_nav: float = 1.05, last_nav: float = 1.0, **overrides) -> RawEstimate:
    fields = dict(
        code=code,
        name=f"Fund {code}",
        last_nav=last_nav,
        last_nav_date="2024-06-11",
        estimate_nav=estimate_nav,
        estimate_change_percent=5.0,
        estimate_time="2024-06-12 14:30",
    )
    fields.update(overrides)
    return RawEstimate(**fields)


def make_nav(d: date, nav: float, change_percent: float = 0.0) -> NavRecord:
    return NavRecord(date=d, nav=nav, accumulated_nav=nav, change_percent=change_percent)


class FakeProvider:
    """In-memory stand-in for the upstream quote client."""

    def __init__(
        self,
        estimates: Optional[Dict[str, RawEstimate]] = None,
        navs: Optional[Dict[str, List[NavRecord]]] = None,
        history: Iterable[NavRecord] = (),
        search_results: Iterable[FundInfo] = (),
        failing: Iterable[str] = (),
    ):
        self.estimates = estimates or {}
        self.navs = navs or {}
        self.history = list(history)
        self.search_results = list(search_results)
        self.failing = set(failing)
        self.calls = []

    async def fetch_estimate(self, code):
        self.calls.append(("estimate", code))
        if code in self.failing:
            raise RuntimeError(f"upstream exploded for {code}")
        return self.estimates.get(code)

    async def fetch_recent_navs(self, code, count=2):
        self.calls.append(("navs", code))
        return list(self.navs.get(code, []))[:count]

    async def fetch_nav_history(self, code, start_date, end_date):
        self.calls.append(("history", code, start_date, end_date))
        return [r for r in self.history if start_date <= r.date <= end_date]

    async def fetch_history_by_period(self, code, period="1m"):
        self.calls.append(("period", code, period))
        return list(self.history)

    async def search_funds(self, query):
        self.calls.append(("search", query))
        return list(self.search_results)


@pytest.fixture()
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
async def fund_store() -> FundStore:
    store = FundStore(MemoryStore())
    await store.load()
    return store


@pytest.fixture()
def app(fake_provider, fund_store) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(funds.router, prefix="/api/v1/funds", tags=["Funds"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.include_router(dca.router, prefix="/api/v1/dca", tags=["DCA"])

    reconciler = EstimateReconciler(fake_provider, today_fn=lambda: TODAY)
    trading_calendar = FundTradingCalendar(fake_provider, reference_code="110020")

    app.state.provider = fake_provider
    app.state.reconciler = reconciler
    app.state.fund_store = fund_store
    app.state.poller = ValuationPoller(fund_store, reconciler)
    app.state.trading_calendar = trading_calendar
    app.state.dca_service = DcaService(trading_calendar, today_fn=lambda: TODAY)
    app.state.scheduler = None
    return app


@pytest.fixture()
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
