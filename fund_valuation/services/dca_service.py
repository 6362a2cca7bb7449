"""
DCA service: loads the trading calendar once for all plans, then runs the
scheduler over it.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from fund_valuation.domain.models import DcaResult, InvestmentPlan
from fund_valuation.domain.services.dca_scheduler import calculate_dca, effective_range, union_range
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar, TradingCalendar
from fund_valuation.utils.time import parse_iso_date, provider_today

logger = logging.getLogger(__name__)


def _required_date(value: Any, field_name: str) -> date:
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValueError(f"{field_name} must be a YYYY-MM-DD date, got {value!r}")
    return parsed


def _optional_date(value: Any, field_name: str) -> Optional[date]:
    if value in (None, ""):
        return None
    return _required_date(value, field_name)


def plan_from_dict(data: Dict[str, Any]) -> InvestmentPlan:
    """Build a plan from its config / request form. Raises ValueError."""
    try:
        return InvestmentPlan(
            code=str(data["code"]).strip(),
            name=str(data.get("name") or ""),
            amount=float(data["amount"]),
            cycle=data.get("cycle", "month"),
            week_day=int(data.get("week_day", 1)),
            month_day=int(data.get("month_day", 1)),
            start_date=_required_date(data.get("start_date"), "start_date"),
            end_date=_optional_date(data.get("end_date"), "end_date"),
        )
    except KeyError as exc:
        raise ValueError(f"Plan is missing {exc.args[0]!r}") from exc
    except TypeError as exc:
        raise ValueError(f"Invalid plan: {exc}") from exc


def parse_dca_config(data: Dict[str, Any]) -> Tuple[List[InvestmentPlan], Optional[date], Optional[date]]:
    """
    Parse {start_date, end_date, plans: [...]} into plans and the global range.
    """
    plans_data = data.get("plans") or []
    if not isinstance(plans_data, list):
        raise ValueError("plans must be a list")
    plans = [plan_from_dict(item) for item in plans_data]
    return (
        plans,
        _optional_date(data.get("start_date"), "start_date"),
        _optional_date(data.get("end_date"), "end_date"),
    )


class DcaService:
    """
    DCA calculation over the reference trading calendar
    """

    def __init__(
        self,
        calendar: FundTradingCalendar,
        today_fn: Callable[[], date] = provider_today,
    ):
        self.calendar = calendar
        self.today_fn = today_fn

    async def calculate(
        self,
        plans: Sequence[InvestmentPlan],
        global_start: Optional[date] = None,
        global_end: Optional[date] = None,
    ) -> DcaResult:
        today = self.today_fn()
        span = union_range(effective_range(p, global_start, global_end, today) for p in plans)

        if span is None:
            trading_calendar = TradingCalendar.from_dates(today, today, ())
        else:
            trading_calendar = await self.calendar.get_trading_days(*span)

        return calculate_dca(plans, trading_calendar, global_start, global_end, today)
