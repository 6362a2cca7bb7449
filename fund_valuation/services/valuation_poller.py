"""
VALUATION POLLER

Periodically reconciles every watched fund and swaps the estimate map.

Each poll takes a monotonic generation number. A poll that finishes after
a newer one has been applied is discarded, so a slow response can never
overwrite fresher data. Polls are never cancelled.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from fund_valuation.domain.models import EmptyEstimate, EstimateResult, GroupValuation
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.domain.services.holdings_valuation import summarize_group
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.utils.time import now_provider

logger = logging.getLogger(__name__)


class ValuationPoller:
    """
    Owns the current estimate map. Readers get whole snapshots only.
    """

    def __init__(self, store: FundStore, reconciler: EstimateReconciler):
        self.store = store
        self.reconciler = reconciler
        self._estimates: Dict[str, EstimateResult] = {}
        self._issued_generation = 0
        self._applied_generation = 0
        self.last_updated: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def estimates(self) -> Dict[str, EstimateResult]:
        return dict(self._estimates)

    @property
    def applied_generation(self) -> int:
        return self._applied_generation

    def get_estimate(self, code: str) -> EstimateResult:
        return self._estimates.get(code) or EmptyEstimate(code)

    def _apply(self, generation: int, results: List[EstimateResult]) -> bool:
        if generation < self._applied_generation:
            logger.info(
                "POLL_STALE_DISCARDED | generation=%s applied=%s",
                generation,
                self._applied_generation,
            )
            return False

        self._estimates = {r.code: r for r in results}
        self._applied_generation = generation
        self.last_updated = now_provider()
        self.last_error = None
        return True

    async def poll_once(self, codes: Optional[Sequence[str]] = None) -> bool:
        """
        Reconcile `codes` (default: the whole watchlist) and apply the result
        unless a newer poll already landed. Never raises.
        """
        self._issued_generation += 1
        generation = self._issued_generation
        codes = list(codes) if codes is not None else self.store.watchlist

        try:
            results = await self.reconciler.reconcile_many(codes)
        except Exception as exc:
            self.last_error = str(exc)
            logger.exception(f"❌ Valuation poll {generation} failed")
            return False

        applied = self._apply(generation, results)
        if applied:
            failed = sum(1 for r in results if r.is_empty)
            logger.info("POLL_APPLIED | generation=%s funds=%s failed=%s", generation, len(results), failed)
        return applied

    def summarize(self, group_id: str) -> GroupValuation:
        """Valuation of one group from the current estimate map."""
        codes = self.store.get_group_funds(group_id)
        estimates = [self.get_estimate(code) for code in codes]
        return summarize_group(group_id, estimates, self.store.group_positions(group_id))
