"""
Request dependencies: services live on app.state, wired by the lifespan.
"""

from fastapi import HTTPException, Request

from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar
from fund_valuation.infrastructure.market_data.types import QuoteProvider
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.services.dca_service import DcaService
from fund_valuation.services.valuation_poller import ValuationPoller


def _state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return service


def get_provider(request: Request) -> QuoteProvider:
    return _state(request, "provider")


def get_reconciler(request: Request) -> EstimateReconciler:
    return _state(request, "reconciler")


def get_fund_store(request: Request) -> FundStore:
    return _state(request, "fund_store")


def get_poller(request: Request) -> ValuationPoller:
    return _state(request, "poller")


def get_trading_calendar(request: Request) -> FundTradingCalendar:
    return _state(request, "trading_calendar")


def get_dca_service(request: Request) -> DcaService:
    return _state(request, "dca_service")
