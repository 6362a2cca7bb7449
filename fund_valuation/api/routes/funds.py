"""
Fund routes - search, live estimates, NAV history, trading days.
"""

from dataclasses import asdict
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from fund_valuation.api.deps import get_provider, get_reconciler, get_trading_calendar
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar
from fund_valuation.infrastructure.market_data.eastmoney_provider import PERIOD_DAYS
from fund_valuation.infrastructure.market_data.types import QuoteProvider

router = APIRouter()


class BatchEstimateRequest(BaseModel):
    codes: List[str] = Field(default_factory=list, max_length=200)


@router.get("/search")
async def search_funds(
    query: str = Query("", max_length=50),
    provider: QuoteProvider = Depends(get_provider),
):
    """Search funds by code or name."""
    funds = await provider.search_funds(query) if query.strip() else []
    return {"funds": [asdict(f) for f in funds], "total": len(funds)}


@router.get("/estimate/{code}")
async def get_estimate(code: str, reconciler: EstimateReconciler = Depends(get_reconciler)):
    """Reconciled estimate for one fund."""
    estimate = await reconciler.reconcile(code)
    if estimate.is_empty:
        raise HTTPException(status_code=404, detail=f"No estimate data for {code}")
    return estimate.to_dict()


@router.post("/estimates")
async def get_estimates(payload: BatchEstimateRequest, reconciler: EstimateReconciler = Depends(get_reconciler)):
    """
    Reconciled estimates in request order. Funds without data come back
    as empty entries instead of failing the batch.
    """
    estimates = await reconciler.reconcile_many(payload.codes)
    return {"estimates": [e.to_dict() for e in estimates]}


@router.get("/history/{code}")
async def get_history(
    code: str,
    period: str = "1m",
    provider: QuoteProvider = Depends(get_provider),
):
    """Confirmed NAV history for a chart period."""
    validated = period if period in PERIOD_DAYS else "1m"
    records = await provider.fetch_history_by_period(code, validated)
    return {"code": code, "period": validated, "history": [r.to_dict() for r in records]}


@router.get("/trading-days")
async def get_trading_days(
    start_date: date,
    end_date: date,
    calendar: FundTradingCalendar = Depends(get_trading_calendar),
):
    """Trading days in [start_date, end_date]."""
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    trading_calendar = await calendar.get_trading_days(start_date, end_date)
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "days": [d.isoformat() for d in trading_calendar.days],
        "total": len(trading_calendar),
    }
