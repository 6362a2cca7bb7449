"""
Domain Models Package
Export all domain entities
"""

from .estimate import (
    EMPTY_NAME,
    EmptyEstimate,
    EstimateResult,
    FundInfo,
    NavRecord,
    QuoteSnapshot,
    RawEstimate,
)
from .holding import (
    DEFAULT_GROUP_ID,
    DEFAULT_GROUP_NAME,
    FundGroup,
    Position,
    default_group,
    make_holding_key,
    parse_holding_key,
)
from .dca import (
    CycleType,
    DcaResult,
    InvestmentPlan,
    PlanResult,
)
from .portfolio import GroupValuation, PositionValuation

__all__ = [
    # Quotes
    "EMPTY_NAME",
    "EmptyEstimate",
    "EstimateResult",
    "FundInfo",
    "NavRecord",
    "QuoteSnapshot",
    "RawEstimate",

    # Groups & positions
    "DEFAULT_GROUP_ID",
    "DEFAULT_GROUP_NAME",
    "FundGroup",
    "Position",
    "default_group",
    "make_holding_key",
    "parse_holding_key",

    # DCA
    "CycleType",
    "DcaResult",
    "InvestmentPlan",
    "PlanResult",

    # Valuation
    "GroupValuation",
    "PositionValuation",
]
