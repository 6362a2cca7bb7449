#!/usr/bin/env python3
"""
DCA Calculator
Compute total investment and count for the plans in a YAML file
"""

import argparse
import asyncio
from pathlib import Path

import yaml

from fund_valuation.config import settings
from fund_valuation.core.logging import get_logger, setup_logging
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar
from fund_valuation.infrastructure.market_data.eastmoney_provider import EastmoneyProvider
from fund_valuation.services.dca_service import DcaService, parse_dca_config

logger = get_logger(__name__)

DEFAULT_PLAN_FILE = Path(__file__).resolve().parents[1] / "config" / "dca_plans.yaml"


def load_plan_file(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping with a 'plans' list")
    return data


async def main(path: Path) -> int:
    try:
        plans, global_start, global_end = parse_dca_config(load_plan_file(path))
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"❌ Invalid plan file {path}: {e}")
        return 1

    if not plans:
        logger.warning(f"No plans in {path}")
        return 0

    provider = EastmoneyProvider()
    try:
        service = DcaService(FundTradingCalendar(provider))
        result = await service.calculate(plans, global_start, global_end)
    finally:
        await provider.close()

    for detail in result.details:
        plan = detail.plan
        logger.info(
            f"{plan.code} {plan.name or ''} [{plan.cycle.value}] "
            f"{detail.investment_count} investments / {detail.trading_day_count} trading days "
            f"= {detail.investment_amount:.2f}"
        )
    logger.info(f"Total: {result.investment_count} investments, {result.total_investment:.2f}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Calculate DCA totals from a YAML plan file")
    parser.add_argument("--plans", type=Path, default=DEFAULT_PLAN_FILE, help="Path to the plan file")
    parser.add_argument("--log-level", type=str, default=settings.LOG_LEVEL, help="Logging level")

    args = parser.parse_args()
    setup_logging(args.log_level)

    raise SystemExit(asyncio.run(main(args.plans)))
