"""
DCA routes - calculation and saved plan configuration.
"""

from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from fund_valuation.api.deps import get_dca_service, get_fund_store
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.services.dca_service import DcaService, parse_dca_config

router = APIRouter()


class PlanRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = ""
    amount: float = Field(..., gt=0)
    cycle: Literal["day", "week", "month"] = "month"
    week_day: int = Field(1, ge=1, le=5)
    month_day: int = Field(1, ge=1, le=28)
    start_date: date
    end_date: Optional[date] = None


class DcaRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    plans: List[PlanRequest] = Field(default_factory=list)


@router.post("/calculate")
async def calculate(payload: DcaRequest, service: DcaService = Depends(get_dca_service)):
    """Total amount and count had each plan been followed."""
    try:
        plans, global_start, global_end = parse_dca_config(payload.model_dump(mode="json"))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    result = await service.calculate(plans, global_start, global_end)
    return result.to_dict()


@router.get("/config")
async def get_config(store: FundStore = Depends(get_fund_store)):
    return store.load_dca_config() or DcaRequest().model_dump(mode="json")


@router.put("/config")
async def save_config(payload: DcaRequest, store: FundStore = Depends(get_fund_store)):
    config = payload.model_dump(mode="json")
    try:
        parse_dca_config(config)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    await store.save_dca_config(config)
    return config
