import pytest

from fund_valuation.domain.models import EmptyEstimate, Position, QuoteSnapshot
from fund_valuation.domain.services.holdings_valuation import (
    cost_nav_from_profit,
    holding_amount,
    intraday_profit,
    prior_day_profit,
    summarize_group,
    total_profit,
    value_position,
)


def _snapshot(code="000001", **overrides) -> QuoteSnapshot:
    fields = dict(
        code=code,
        name="Fund",
        estimate_nav=1.05,
        last_nav=1.0,
        prev_nav=0.98,
        change_percent=5.0,
        last_change_percent=2.0,
        last_nav_date="2024-06-11",
        estimate_time="2024-06-12 14:30",
        nav_updated_today=False,
    )
    fields.update(overrides)
    return QuoteSnapshot(**fields)


@pytest.mark.unit
def test_intraday_profit_uses_estimate_before_posting():
    assert intraday_profit(100, 1.05, 1.0, 0.98, False) == pytest.approx(5.0)


@pytest.mark.unit
def test_intraday_profit_uses_confirmed_move_after_posting():
    assert intraday_profit(100, 1.05, 1.0, 0.98, True) == pytest.approx(2.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "shares, estimate_nav, last_nav, prev_nav, updated",
    [
        (0, 1.05, 1.0, 0.98, False),
        (100, 0, 1.0, 0.98, False),
        (100, 1.05, 0, 0.98, False),
        (100, 1.05, 1.0, 0, True),
        (-5, 1.05, 1.0, 0.98, True),
    ],
)
def test_intraday_profit_zero_without_data(shares, estimate_nav, last_nav, prev_nav, updated):
    assert intraday_profit(shares, estimate_nav, last_nav, prev_nav, updated) == 0.0


@pytest.mark.unit
def test_prior_day_profit_before_posting():
    assert prior_day_profit(100, 1.0, 0.98, 2.0, False) == pytest.approx(2.0)


@pytest.mark.unit
def test_prior_day_profit_reconstructs_prior_nav_after_posting():
    # prev 1.02 after a +2% day -> prior 1.0
    assert prior_day_profit(100, 1.05, 1.02, 2.0, True) == pytest.approx(2.0)


@pytest.mark.unit
def test_prior_day_profit_zero_without_data():
    assert prior_day_profit(0, 1.0, 0.98, 2.0, False) == 0.0
    assert prior_day_profit(100, 1.0, 0, 2.0, True) == 0.0
    assert prior_day_profit(100, 0, 0.98, 2.0, False) == 0.0


@pytest.mark.unit
@pytest.mark.parametrize("shares", [-100.0, -1.0, 0.0, 0.5, 100.0])
@pytest.mark.parametrize("last_nav", [-2.0, 0.0, 1.234])
def test_holding_amount_never_negative(shares, last_nav):
    amount = holding_amount(shares, last_nav)
    assert amount >= 0
    if shares <= 0 or last_nav <= 0:
        assert amount == 0.0
    else:
        assert amount == pytest.approx(shares * last_nav)


@pytest.mark.unit
def test_total_profit_requires_cost_basis():
    assert total_profit(100, 1.5, 0) is None
    assert total_profit(100, 1.5, 1.2) == pytest.approx(30.0)
    assert total_profit(0, 1.5, 1.2) == 0.0


@pytest.mark.unit
def test_cost_basis_back_solve_round_trip():
    cost_nav = cost_nav_from_profit(50, 100, 1.5)
    assert cost_nav == 1.0
    assert total_profit(100, 1.5, cost_nav) == pytest.approx(50.0)


@pytest.mark.unit
def test_cost_basis_back_solve_rejects_non_positive_cost():
    assert cost_nav_from_profit(150, 100, 1.5) is None
    assert cost_nav_from_profit(10, 0, 1.5) is None
    assert cost_nav_from_profit(10, 100, 0) is None


@pytest.mark.unit
def test_value_position_and_group_summary():
    up = _snapshot("A")
    down = _snapshot("B", estimate_nav=0.9, change_percent=-10.0)
    missing = EmptyEstimate("C")

    positions = {
        "A": Position(shares=100, cost_nav=0.8),
        "B": Position(shares=10),
        "C": Position(shares=50, cost_nav=1.0),
    }

    summary = summarize_group("default", [up, down, missing], positions)

    assert [r.code for r in summary.rows] == ["A", "B", "C"]
    assert summary.rows[0].total_profit == pytest.approx(20.0)
    assert summary.rows[1].total_profit is None
    assert summary.rows[2].failed
    assert summary.rows[2].holding_amount == 0.0

    assert summary.total_intraday_profit == pytest.approx(5.0 - 1.0)
    assert summary.total_amount == pytest.approx(110.0)
    assert summary.total_profit == pytest.approx(20.0)
    assert (summary.up_count, summary.down_count, summary.failed_count) == (1, 1, 1)


@pytest.mark.unit
def test_value_position_without_position_is_all_zero():
    row = value_position(_snapshot(), None)
    assert row.intraday_profit == 0.0
    assert row.prior_day_profit == 0.0
    assert row.holding_amount == 0.0
    assert row.total_profit is None
