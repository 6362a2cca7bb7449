"""
HOLDINGS VALUATION
Pure profit and cost-basis math over a reconciled estimate and a position

Missing or non-positive inputs mean "no data" and yield 0, never an error.
"""

from typing import Dict, Iterable, List, Optional

from fund_valuation.domain.models import (
    EstimateResult,
    GroupValuation,
    Position,
    PositionValuation,
)


def intraday_profit(
    shares: float,
    estimate_nav: float,
    last_nav: float,
    prev_nav: float,
    nav_updated_today: bool,
) -> float:
    if shares <= 0:
        return 0.0
    if nav_updated_today:
        if last_nav <= 0 or prev_nav <= 0:
            return 0.0
        return shares * (last_nav - prev_nav)
    if estimate_nav <= 0 or last_nav <= 0:
        return 0.0
    return shares * (estimate_nav - last_nav)


def prior_day_profit(
    shares: float,
    last_nav: float,
    prev_nav: float,
    last_change_percent: float,
    nav_updated_today: bool,
) -> float:
    if shares <= 0 or prev_nav <= 0:
        return 0.0
    if nav_updated_today:
        divisor = 1 + last_change_percent / 100
        if divisor <= 0:
            return 0.0
        prior_nav = prev_nav / divisor
        return shares * (prev_nav - prior_nav)
    if last_nav <= 0:
        return 0.0
    return shares * (last_nav - prev_nav)


def holding_amount(shares: float, last_nav: float) -> float:
    if shares <= 0 or last_nav <= 0:
        return 0.0
    return shares * last_nav


def total_profit(shares: float, last_nav: float, cost_nav: float) -> Optional[float]:
    """Unrealized profit; None while the cost basis is unset."""
    if cost_nav <= 0:
        return None
    if shares <= 0 or last_nav <= 0:
        return 0.0
    return shares * (last_nav - cost_nav)


def cost_nav_from_profit(target_profit: float, shares: float, last_nav: float) -> Optional[float]:
    """
    Back-solve the cost NAV that produces target_profit at last_nav.
    None when inputs are unusable or the result is not positive.
    """
    if shares <= 0 or last_nav <= 0:
        return None
    cost_nav = round(last_nav - target_profit / shares, 10)
    if cost_nav <= 0:
        return None
    return cost_nav


def value_position(estimate: EstimateResult, position: Optional[Position]) -> PositionValuation:
    """One display row. Empty estimates and missing positions contribute zeros."""
    shares = position.shares if position else 0.0
    cost_nav = position.cost_nav if position else 0.0

    if estimate.is_empty:
        return PositionValuation(
            estimate=estimate,
            position=position,
            intraday_profit=0.0,
            prior_day_profit=0.0,
            holding_amount=0.0,
            total_profit=None if cost_nav <= 0 else 0.0,
        )

    return PositionValuation(
        estimate=estimate,
        position=position,
        intraday_profit=intraday_profit(
            shares,
            estimate.estimate_nav,
            estimate.last_nav,
            estimate.prev_nav,
            estimate.nav_updated_today,
        ),
        prior_day_profit=prior_day_profit(
            shares,
            estimate.last_nav,
            estimate.prev_nav,
            estimate.last_change_percent,
            estimate.nav_updated_today,
        ),
        holding_amount=holding_amount(shares, estimate.last_nav),
        total_profit=total_profit(shares, estimate.last_nav, cost_nav),
    )


def summarize_group(
    group_id: str,
    estimates: Iterable[EstimateResult],
    positions: Dict[str, Position],
) -> GroupValuation:
    """
    Value every estimate of a group.

    Args:
        group_id: Group being valued
        estimates: One estimate per fund, in display order
        positions: Positions of this group keyed by fund code
    """
    rows: List[PositionValuation] = [
        value_position(estimate, positions.get(estimate.code)) for estimate in estimates
    ]
    return GroupValuation(group_id=group_id, rows=rows)
