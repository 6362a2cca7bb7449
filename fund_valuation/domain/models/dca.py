"""
Domain Models - Dollar-Cost Averaging
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional


class CycleType(str, Enum):
    """Investment cadence"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class InvestmentPlan:
    """
    One fund's DCA policy.

    week_day is an ISO weekday (Mon=1..Fri=5); month_day is 1..28.
    end_date None means "up to today".
    """
    code: str
    amount: float
    cycle: CycleType
    start_date: date
    end_date: Optional[date] = None
    week_day: int = 1
    month_day: int = 1
    name: str = ""

    def __post_init__(self):
        if not self.code:
            raise ValueError("Plan fund code cannot be empty")
        if self.amount <= 0:
            raise ValueError("Plan amount must be positive")
        if not isinstance(self.cycle, CycleType):
            object.__setattr__(self, "cycle", CycleType(self.cycle))
        if not 1 <= self.week_day <= 5:
            raise ValueError("week_day must be between 1 (Mon) and 5 (Fri)")
        if not 1 <= self.month_day <= 28:
            raise ValueError("month_day must be between 1 and 28")

    def to_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "name": self.name,
            "amount": self.amount,
            "cycle": self.cycle.value,
            "week_day": self.week_day,
            "month_day": self.month_day,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class PlanResult:
    plan: InvestmentPlan
    investment_amount: float
    investment_count: int
    trading_day_count: int
    investment_days: List[date] = field(default_factory=list)


@dataclass(frozen=True)
class DcaResult:
    total_investment: float
    investment_count: int
    details: List[PlanResult]

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_investment": self.total_investment,
            "investment_count": self.investment_count,
            "details": [
                {
                    "plan": d.plan.to_dict(),
                    "investment_amount": d.investment_amount,
                    "investment_count": d.investment_count,
                    "trading_day_count": d.trading_day_count,
                    "investment_days": [day.isoformat() for day in d.investment_days],
                }
                for d in self.details
            ],
        }
