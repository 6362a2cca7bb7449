#!/usr/bin/env python3
"""
One-shot valuation poll
Reconcile every watched fund and print the valuation of each group
"""

import argparse
import asyncio

from fund_valuation.config import settings
from fund_valuation.core.logging import get_logger, setup_logging
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.market_data.eastmoney_provider import EastmoneyProvider
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.infrastructure.store.kv_store import JsonFileStore
from fund_valuation.services.valuation_poller import ValuationPoller

logger = get_logger(__name__)


async def main(store_path: str, extra_codes: list[str]) -> int:
    store = FundStore(JsonFileStore(store_path))
    await store.load()

    provider = EastmoneyProvider()
    try:
        poller = ValuationPoller(store, EstimateReconciler(provider))
        codes = list(dict.fromkeys(store.watchlist + extra_codes))
        if not codes:
            logger.warning("Nothing to poll: watchlist is empty")
            return 0
        await poller.poll_once(codes)
    finally:
        await provider.close()

    for code in extra_codes:
        estimate = poller.get_estimate(code)
        if estimate.is_empty:
            logger.warning(f"{code}: no data")
            continue
        source = "confirmed" if estimate.nav_updated_today else "estimate"
        logger.info(
            f"{code} {estimate.name}: {estimate.estimate_nav:.4f} "
            f"({estimate.change_percent:+.2f}%, {source})"
        )

    for group in store.groups:
        summary = poller.summarize(group.id)
        logger.info(
            f"[{group.name}] funds={len(summary.rows)} amount={summary.total_amount:.2f} "
            f"today={summary.total_intraday_profit:+.2f} "
            f"prior={summary.total_prior_day_profit:+.2f} "
            f"up={summary.up_count} down={summary.down_count} failed={summary.failed_count}"
        )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Poll fund estimates once")
    parser.add_argument("--store", type=str, default=settings.STORE_PATH, help="Path to the store file")
    parser.add_argument("--codes", type=str, default=None, help="Comma-separated fund codes to poll as well")

    args = parser.parse_args()
    setup_logging(settings.LOG_LEVEL)

    codes = [c.strip() for c in args.codes.split(",") if c.strip()] if args.codes else []
    raise SystemExit(asyncio.run(main(args.store, codes)))
