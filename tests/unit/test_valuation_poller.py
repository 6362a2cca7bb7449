import asyncio
from datetime import date

import pytest

from conftest import TODAY, FakeProvider, make_nav, make_raw
from fund_valuation.domain.models import DEFAULT_GROUP_ID, EmptyEstimate
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.scheduler.jobs import run_valuation_poll_job
from fund_valuation.services.valuation_poller import ValuationPoller


class ControlledReconciler:
    """Each call blocks until its gate is released."""

    def __init__(self):
        self.gates = []

    async def reconcile_many(self, codes):
        gate = asyncio.Event()
        marker = f"call-{len(self.gates)}"
        self.gates.append(gate)
        await gate.wait()
        return [EmptyEstimate(f"{marker}:{code}") for code in codes]


class ExplodingReconciler:
    async def reconcile_many(self, codes):
        raise RuntimeError("reconciler crashed")


@pytest.mark.asyncio
async def test_poll_applies_whole_map(fund_store):
    await fund_store.add_to_watchlist("A")
    await fund_store.add_to_watchlist("B")
    provider = FakeProvider(estimates={"A": make_raw("A")}, navs={"A": [make_nav(date(2024, 6, 11), 1.0)]})
    poller = ValuationPoller(fund_store, EstimateReconciler(provider, today_fn=lambda: TODAY))

    assert await poller.poll_once()

    assert set(poller.estimates) == {"A", "B"}
    assert not poller.get_estimate("A").is_empty
    assert poller.get_estimate("B").is_empty
    assert poller.applied_generation == 1
    assert poller.last_updated is not None


@pytest.mark.asyncio
async def test_stale_poll_result_is_discarded(fund_store):
    reconciler = ControlledReconciler()
    poller = ValuationPoller(fund_store, reconciler)

    slow = asyncio.create_task(poller.poll_once(["X"]))
    await asyncio.sleep(0)
    fast = asyncio.create_task(poller.poll_once(["X"]))
    await asyncio.sleep(0)

    # Newer poll lands first
    reconciler.gates[1].set()
    assert await fast is True
    reconciler.gates[0].set()
    assert await slow is False

    assert list(poller.estimates) == ["call-1:X"]
    assert poller.applied_generation == 2


@pytest.mark.asyncio
async def test_in_order_polls_both_apply(fund_store):
    reconciler = ControlledReconciler()
    poller = ValuationPoller(fund_store, reconciler)

    first = asyncio.create_task(poller.poll_once(["X"]))
    await asyncio.sleep(0)
    reconciler.gates[0].set()
    assert await first is True

    second = asyncio.create_task(poller.poll_once(["X"]))
    await asyncio.sleep(0)
    reconciler.gates[1].set()
    assert await second is True
    assert list(poller.estimates) == ["call-1:X"]


@pytest.mark.asyncio
async def test_poll_failure_is_logged_not_raised(fund_store):
    poller = ValuationPoller(fund_store, ExplodingReconciler())

    assert await poller.poll_once(["A"]) is False
    assert poller.last_error == "reconciler crashed"
    assert poller.estimates == {}

    # Job wrapper stays quiet as well
    await run_valuation_poll_job(poller)


@pytest.mark.asyncio
async def test_summarize_uses_current_estimates(fund_store):
    await fund_store.add_to_watchlist("A")
    await fund_store.set_holding(DEFAULT_GROUP_ID, "A", 100)
    provider = FakeProvider(
        estimates={"A": make_raw("A", estimate_nav=1.05, last_nav=1.0)},
        navs={"A": [make_nav(date(2024, 6, 11), 1.0), make_nav(date(2024, 6, 7), 0.98)]},
    )
    poller = ValuationPoller(fund_store, EstimateReconciler(provider, today_fn=lambda: TODAY))

    before = poller.summarize(DEFAULT_GROUP_ID)
    assert before.failed_count == 1

    await poller.poll_once()
    summary = poller.summarize(DEFAULT_GROUP_ID)

    assert summary.failed_count == 0
    assert summary.total_intraday_profit == pytest.approx(5.0)
    assert summary.total_prior_day_profit == pytest.approx(2.0)
    assert summary.total_amount == pytest.approx(100.0)
