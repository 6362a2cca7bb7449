"""
Domain Models - Quotes & Estimates
Pure value objects produced by the upstream client and the reconciler
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Union

EMPTY_NAME = "--"


@dataclass(frozen=True)
class FundInfo:
    """Search hit from the fund directory"""
    code: str
    name: str
    type: str


@dataclass(frozen=True)
class RawEstimate:
    """Live intraday estimate exactly as the estimate feed reported it"""
    code: str
    name: str
    last_nav: float
    last_nav_date: str
    estimate_nav: float
    estimate_change_percent: float
    estimate_time: str


@dataclass(frozen=True)
class NavRecord:
    """One confirmed NAV posting"""
    date: date
    nav: float
    accumulated_nav: float
    change_percent: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "nav": self.nav,
            "accumulated_nav": self.accumulated_nav,
            "change_percent": self.change_percent,
        }


@dataclass(frozen=True)
class QuoteSnapshot:
    """
    Reconciled view of one fund for a single poll.

    When nav_updated_today is set, estimate_nav and change_percent carry the
    confirmed NAV of the day rather than the live estimate.
    """
    code: str
    name: str
    estimate_nav: float
    last_nav: float
    prev_nav: float
    change_percent: float
    last_change_percent: float
    last_nav_date: str
    estimate_time: str
    nav_updated_today: bool

    is_empty = False

    @property
    def has_estimate(self) -> bool:
        return self.estimate_nav > 0 and bool(self.estimate_time)

    def to_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "name": self.name,
            "estimate_nav": self.estimate_nav,
            "last_nav": self.last_nav,
            "prev_nav": self.prev_nav,
            "change_percent": self.change_percent,
            "last_change_percent": self.last_change_percent,
            "last_nav_date": self.last_nav_date,
            "estimate_time": self.estimate_time,
            "nav_updated_today": self.nav_updated_today,
            "is_empty": False,
        }


@dataclass(frozen=True)
class EmptyEstimate:
    """Nothing usable was retrieved for this code."""
    code: str

    is_empty = True
    name = EMPTY_NAME
    estimate_nav = 0.0
    last_nav = 0.0
    prev_nav = 0.0
    change_percent = 0.0
    last_change_percent = 0.0
    last_nav_date = ""
    estimate_time = ""
    nav_updated_today = False
    has_estimate = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "name": self.name,
            "estimate_nav": 0.0,
            "last_nav": 0.0,
            "prev_nav": 0.0,
            "change_percent": 0.0,
            "last_change_percent": 0.0,
            "last_nav_date": "",
            "estimate_time": "",
            "nav_updated_today": False,
            "is_empty": True,
        }


EstimateResult = Union[QuoteSnapshot, EmptyEstimate]
