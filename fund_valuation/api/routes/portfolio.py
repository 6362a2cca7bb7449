"""
Portfolio API Routes
Groups, watchlist membership, positions, valuation and export/import
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from fund_valuation.api.deps import get_fund_store, get_poller, get_reconciler
from fund_valuation.domain.models import DEFAULT_GROUP_ID
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.services.valuation_poller import ValuationPoller

logger = logging.getLogger(__name__)
router = APIRouter()


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class GroupOrder(BaseModel):
    group_ids: List[str]


class FundAdd(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)


class HoldingUpdate(BaseModel):
    shares: float = Field(..., ge=0)


class CostUpdate(BaseModel):
    cost_nav: float = Field(..., ge=0)


class CostFromProfit(BaseModel):
    target_profit: float


def _require_group(store: FundStore, group_id: str):
    group = store.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return group


def _position_payload(group_id: str, code: str, position) -> Dict[str, Any]:
    return {
        "group_id": group_id,
        "code": code,
        "position": position.to_dict() if position else None,
    }


# ------------------------------------------------------------------
# GROUPS
# ------------------------------------------------------------------

@router.get("/groups")
async def list_groups(store: FundStore = Depends(get_fund_store)):
    return {"groups": [g.to_dict() for g in store.groups]}


@router.post("/groups", status_code=201)
async def create_group(payload: GroupCreate, store: FundStore = Depends(get_fund_store)):
    try:
        group_id = await store.add_group(payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return store.get_group(group_id).to_dict()


@router.put("/groups/order")
async def reorder_groups(payload: GroupOrder, store: FundStore = Depends(get_fund_store)):
    groups = await store.reorder_groups(payload.group_ids)
    return {"groups": [g.to_dict() for g in groups]}


@router.patch("/groups/{group_id}")
async def rename_group(group_id: str, payload: GroupCreate, store: FundStore = Depends(get_fund_store)):
    try:
        renamed = await store.rename_group(group_id, payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if not renamed:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return store.get_group(group_id).to_dict()


@router.delete("/groups/{group_id}")
async def delete_group(group_id: str, store: FundStore = Depends(get_fund_store)):
    if group_id == DEFAULT_GROUP_ID:
        raise HTTPException(status_code=400, detail="The default group cannot be removed")
    if not await store.remove_group(group_id):
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    return {"removed": group_id}


# ------------------------------------------------------------------
# WATCHLIST MEMBERSHIP
# ------------------------------------------------------------------

@router.get("/watchlist")
async def get_watchlist(store: FundStore = Depends(get_fund_store)):
    return {"watchlist": store.watchlist}


@router.get("/groups/{group_id}/funds")
async def get_group_funds(group_id: str, store: FundStore = Depends(get_fund_store)):
    _require_group(store, group_id)
    return {"group_id": group_id, "funds": store.get_group_funds(group_id)}


@router.post("/groups/{group_id}/funds", status_code=201)
async def add_fund(group_id: str, payload: FundAdd, store: FundStore = Depends(get_fund_store)):
    _require_group(store, group_id)
    if not await store.add_to_watchlist(payload.code, group_id):
        raise HTTPException(status_code=409, detail=f"{payload.code} is already in group {group_id}")
    return {"group_id": group_id, "funds": store.get_group_funds(group_id)}


@router.delete("/groups/{group_id}/funds/{code}")
async def remove_fund(group_id: str, code: str, store: FundStore = Depends(get_fund_store)):
    _require_group(store, group_id)
    if not await store.remove_from_watchlist(code, group_id):
        raise HTTPException(status_code=404, detail=f"{code} is not in group {group_id}")
    return {"group_id": group_id, "funds": store.get_group_funds(group_id)}


# ------------------------------------------------------------------
# POSITIONS
# ------------------------------------------------------------------

@router.get("/groups/{group_id}/holdings/{code}")
async def get_holding(group_id: str, code: str, store: FundStore = Depends(get_fund_store)):
    _require_group(store, group_id)
    return _position_payload(group_id, code, store.get_holding(group_id, code))


@router.put("/groups/{group_id}/holdings/{code}")
async def set_holding(
    group_id: str,
    code: str,
    payload: HoldingUpdate,
    store: FundStore = Depends(get_fund_store),
):
    """Set shares; 0 deletes the position."""
    _require_group(store, group_id)
    position = await store.set_holding(group_id, code, payload.shares)
    return _position_payload(group_id, code, position)


@router.put("/groups/{group_id}/holdings/{code}/cost")
async def set_cost_nav(
    group_id: str,
    code: str,
    payload: CostUpdate,
    store: FundStore = Depends(get_fund_store),
):
    _require_group(store, group_id)
    position = await store.set_cost_nav(group_id, code, payload.cost_nav)
    if position is None:
        raise HTTPException(status_code=404, detail=f"No position for {code} in group {group_id}")
    return _position_payload(group_id, code, position)


@router.put("/groups/{group_id}/holdings/{code}/cost-from-profit")
async def set_cost_from_profit(
    group_id: str,
    code: str,
    payload: CostFromProfit,
    store: FundStore = Depends(get_fund_store),
    poller: ValuationPoller = Depends(get_poller),
    reconciler: EstimateReconciler = Depends(get_reconciler),
):
    """Back-solve the cost NAV from a target cumulative profit."""
    _require_group(store, group_id)
    if store.get_holding(group_id, code) is None:
        raise HTTPException(status_code=404, detail=f"No position for {code} in group {group_id}")

    estimate = poller.get_estimate(code)
    if estimate.last_nav <= 0:
        estimate = await reconciler.reconcile(code)
    if estimate.last_nav <= 0:
        raise HTTPException(status_code=503, detail=f"No confirmed NAV available for {code}")

    position = await store.set_cost_from_profit(group_id, code, payload.target_profit, estimate.last_nav)
    if position is None:
        raise HTTPException(status_code=422, detail="Target profit implies a non-positive cost NAV")
    return _position_payload(group_id, code, position)


# ------------------------------------------------------------------
# VALUATION
# ------------------------------------------------------------------

@router.get("/groups/{group_id}/valuation")
async def group_valuation(
    group_id: str,
    store: FundStore = Depends(get_fund_store),
    poller: ValuationPoller = Depends(get_poller),
):
    _require_group(store, group_id)
    summary = poller.summarize(group_id).to_dict()
    summary["last_updated"] = poller.last_updated.isoformat() if poller.last_updated else None
    return summary


@router.post("/refresh")
async def refresh_estimates(poller: ValuationPoller = Depends(get_poller)):
    """Run one valuation poll now."""
    applied = await poller.poll_once()
    return {
        "applied": applied,
        "generation": poller.applied_generation,
        "funds": len(poller.estimates),
        "last_error": poller.last_error,
    }


# ------------------------------------------------------------------
# EXPORT / IMPORT
# ------------------------------------------------------------------

@router.get("/export")
async def export_data(store: FundStore = Depends(get_fund_store)):
    return store.export_data()


@router.post("/import")
async def import_data(
    payload: Optional[Dict[str, Any]] = Body(None),
    store: FundStore = Depends(get_fund_store),
):
    if not payload or not await store.import_data(payload):
        raise HTTPException(status_code=400, detail="Unrecognized import payload")
    return {
        "imported": True,
        "funds": len(store.watchlist),
        "groups": len(store.groups),
    }
