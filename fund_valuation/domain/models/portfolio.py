"""
DOMAIN MODELS - PORTFOLIO VALUATION

Immutable structures representing valued positions and group summaries.
No storage access. No market data fetching.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .estimate import EstimateResult
from .holding import Position


@dataclass(frozen=True)
class PositionValuation:
    """
    One fund row: reconciled quote, the position and derived figures.
    """
    estimate: EstimateResult
    position: Optional[Position]
    intraday_profit: float
    prior_day_profit: float
    holding_amount: float
    total_profit: Optional[float]

    @property
    def code(self) -> str:
        return self.estimate.code

    @property
    def failed(self) -> bool:
        return self.estimate.is_empty

    def to_dict(self) -> Dict[str, object]:
        return {
            "estimate": self.estimate.to_dict(),
            "position": self.position.to_dict() if self.position else None,
            "intraday_profit": self.intraday_profit,
            "prior_day_profit": self.prior_day_profit,
            "holding_amount": self.holding_amount,
            "total_profit": self.total_profit,
            "failed": self.failed,
        }


@dataclass(frozen=True)
class GroupValuation:
    """
    Valuation of every fund in one group at a point in time.
    """
    group_id: str
    rows: List[PositionValuation]

    @property
    def total_intraday_profit(self) -> float:
        return sum(r.intraday_profit for r in self.rows)

    @property
    def total_prior_day_profit(self) -> float:
        return sum(r.prior_day_profit for r in self.rows)

    @property
    def total_amount(self) -> float:
        return sum(r.holding_amount for r in self.rows)

    @property
    def total_profit(self) -> float:
        return sum(r.total_profit for r in self.rows if r.total_profit is not None)

    @property
    def up_count(self) -> int:
        return sum(1 for r in self.rows if not r.failed and r.estimate.change_percent > 0)

    @property
    def down_count(self) -> int:
        return sum(1 for r in self.rows if not r.failed and r.estimate.change_percent < 0)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.rows if r.failed)

    def to_dict(self) -> Dict[str, object]:
        return {
            "group_id": self.group_id,
            "rows": [r.to_dict() for r in self.rows],
            "totals": {
                "intraday_profit": self.total_intraday_profit,
                "prior_day_profit": self.total_prior_day_profit,
                "holding_amount": self.total_amount,
                "total_profit": self.total_profit,
            },
            "stats": {
                "up": self.up_count,
                "down": self.down_count,
                "failed": self.failed_count,
            },
        }
