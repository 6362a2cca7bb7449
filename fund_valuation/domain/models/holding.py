"""
Domain Models - Groups & Positions
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

DEFAULT_GROUP_ID = "default"
DEFAULT_GROUP_NAME = "默认"


@dataclass(frozen=True)
class Position:
    """Shares held in one fund inside one group. cost_nav == 0 means unset."""
    shares: float
    cost_nav: float = 0.0

    def __post_init__(self):
        if self.shares < 0:
            raise ValueError("shares cannot be negative")
        if self.cost_nav < 0:
            raise ValueError("cost_nav cannot be negative")

    def with_cost(self, cost_nav: float) -> "Position":
        return replace(self, cost_nav=cost_nav)

    def to_dict(self) -> Dict[str, float]:
        return {"shares": self.shares, "costNav": self.cost_nav}


@dataclass(frozen=True)
class FundGroup:
    """Named, ordered bucket of fund codes."""
    id: str
    name: str
    funds: Tuple[str, ...] = field(default_factory=tuple)
    order: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "name": self.name, "funds": list(self.funds), "order": self.order}

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "FundGroup":
        funds = data.get("funds") or []
        return FundGroup(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            funds=tuple(str(code) for code in funds if isinstance(code, str) and code),
            order=int(data.get("order") or 0),
        )


def default_group(funds: Optional[List[str]] = None) -> FundGroup:
    return FundGroup(id=DEFAULT_GROUP_ID, name=DEFAULT_GROUP_NAME, funds=tuple(funds or ()), order=0)


def make_holding_key(group_id: str, code: str) -> str:
    return f"{group_id}:{code}"


def parse_holding_key(key: str) -> Optional[Tuple[str, str]]:
    parts = key.split(":")
    if len(parts) == 2:
        return parts[0], parts[1]
    return None
