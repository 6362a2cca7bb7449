"""
DCA SCHEDULER
Derive investment days from a trading calendar under a periodic policy

RESPONSIBILITIES:
- Restrict each plan to its effective date range
- Pick investment days per cycle (day / week / month)
- Aggregate amount and count across plans

RULES (LOCKED):
✅ day: every trading day
✅ week/month: one day per bucket, first trading day on/after the target
✅ No target day in the bucket -> first trading day of the bucket
❌ A day before the target never replaces one on/after it
❌ No incremental updates: recomputed wholesale
"""

import logging
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from fund_valuation.domain.models import CycleType, DcaResult, InvestmentPlan, PlanResult
from fund_valuation.infrastructure.calendar.trading_calendar import TradingCalendar
from fund_valuation.utils.time import provider_today

logger = logging.getLogger(__name__)

DateRange = Tuple[date, date]


def _week_bucket(d: date) -> Tuple[int, int]:
    iso = d.isocalendar()
    return iso[0], iso[1]


def _month_bucket(d: date) -> Tuple[int, int]:
    return d.year, d.month


def _iso_weekday(d: date) -> int:
    return d.isoweekday()


def _day_of_month(d: date) -> int:
    return d.day


def _select_per_bucket(
    trading_days: Iterable[date],
    bucket_of: Callable[[date], Tuple[int, int]],
    position_of: Callable[[date], int],
    target: int,
) -> List[date]:
    chosen: Dict[Tuple[int, int], date] = {}

    for day in sorted(trading_days):
        key = bucket_of(day)
        current = chosen.get(key)

        # First day of a bucket is held as a placeholder
        if current is None:
            chosen[key] = day
            continue

        position = position_of(day)
        if position < target:
            continue

        current_position = position_of(current)
        if current_position < target or position < current_position:
            chosen[key] = day

    return sorted(chosen.values())


def calculate_investment_days(
    trading_days: Sequence[date],
    cycle: CycleType,
    week_day: int = 1,
    month_day: int = 1,
) -> List[date]:
    """
    Investment days selected from an ascending trading-day sequence.

    Args:
        trading_days: Trading days of the effective range
        cycle: day / week / month
        week_day: ISO weekday target for weekly plans (Mon=1..Fri=5)
        month_day: Day-of-month target for monthly plans (1..28)
    """
    cycle = CycleType(cycle)

    if cycle is CycleType.DAY:
        return sorted(set(trading_days))
    if cycle is CycleType.WEEK:
        return _select_per_bucket(trading_days, _week_bucket, _iso_weekday, week_day)
    return _select_per_bucket(trading_days, _month_bucket, _day_of_month, month_day)


def effective_range(
    plan: InvestmentPlan,
    global_start: Optional[date] = None,
    global_end: Optional[date] = None,
    today: Optional[date] = None,
) -> Optional[DateRange]:
    """
    Intersection of the plan's dates and the global range.
    Open ends default to today. None when the intersection is empty.
    """
    today = today or provider_today()
    plan_end = plan.end_date or today
    range_end = global_end or today

    start = max(plan.start_date, global_start) if global_start else plan.start_date
    end = min(plan_end, range_end)

    if start > end:
        return None
    return start, end


def union_range(ranges: Iterable[Optional[DateRange]]) -> Optional[DateRange]:
    """Smallest range covering every non-empty range."""
    present = [r for r in ranges if r is not None]
    if not present:
        return None
    return min(r[0] for r in present), max(r[1] for r in present)


def calculate_plan(
    plan: InvestmentPlan,
    calendar: TradingCalendar,
    window: Optional[DateRange],
) -> PlanResult:
    """Result of one plan over the calendar sliced to its window."""
    if window is None:
        return PlanResult(plan=plan, investment_amount=0.0, investment_count=0, trading_day_count=0)

    trading_days = calendar.slice(*window)
    investment_days = calculate_investment_days(trading_days, plan.cycle, plan.week_day, plan.month_day)
    count = len(investment_days)

    return PlanResult(
        plan=plan,
        investment_amount=count * plan.amount,
        investment_count=count,
        trading_day_count=len(trading_days),
        investment_days=investment_days,
    )


def calculate_dca(
    plans: Sequence[InvestmentPlan],
    calendar: TradingCalendar,
    global_start: Optional[date] = None,
    global_end: Optional[date] = None,
    today: Optional[date] = None,
) -> DcaResult:
    """
    Aggregate DCA result. The calendar must cover the union of all
    effective ranges.
    """
    today = today or provider_today()
    details = [
        calculate_plan(plan, calendar, effective_range(plan, global_start, global_end, today))
        for plan in plans
    ]

    result = DcaResult(
        total_investment=sum(d.investment_amount for d in details),
        investment_count=sum(d.investment_count for d in details),
        details=details,
    )
    logger.info(
        "DCA_CALCULATED | plans=%s count=%s total=%.2f",
        len(plans),
        result.investment_count,
        result.total_investment,
    )
    return result
