"""
Portfolio aggregation: per-item yield, cost amortization and totals.
Run with: python3 -m pytest tests/test_portfolio.py -v
"""

import pytest

from helpers import item, make_booster, make_subscriptions, make_tariff

from plan_builder_app.services.portfolio import compute_portfolio_state


def _compute(portfolio, tariffs, boosters=(), selected=(), subscription_id="basic", user_level=1):
    return compute_portfolio_state(
        portfolio,
        tariffs,
        list(boosters),
        list(selected),
        make_subscriptions(),
        subscription_id,
        user_level,
    )


def _row(state, item_id):
    return next(r for r in state["rows"] if r["id"] == item_id)


# ── Test 1: single deposit, single booster ────────────────────────────────────

def test_single_deposit_with_booster():
    """100 at 1%/day for 10 days, fee 20%, +100% for 24h at price 0.5."""
    tariffs = [make_tariff()]
    booster = make_booster(price=0.5)
    state = _compute([item("i1", "t10", 100)], tariffs, [booster], ["b100"])
    r = _row(state, "i1")

    assert r["multiplier"] == pytest.approx(1.1)
    assert r["gross"] == pytest.approx(11.0)
    assert r["fee"] == pytest.approx(2.2)
    assert r["net_before_cost"] == pytest.approx(8.8)
    assert r["net_no_boost"] == pytest.approx(8.0)
    assert r["booster_alloc"] == pytest.approx(0.5)
    assert r["net_after_boosters"] == pytest.approx(8.3)
    assert r["net_final"] == pytest.approx(8.3)
    assert r["booster_lift"] == pytest.approx(0.3)
    assert r["net_per_day_final"] == pytest.approx(0.83)

    detail = r["booster_details"]["b100"]
    assert detail["net_gain"] == pytest.approx(0.8)
    assert detail["payback_hours"] == pytest.approx(15.0)

    summary = state["booster_summary"]
    assert summary["spend"] == pytest.approx(0.5)
    assert summary["roi"] == pytest.approx(0.6)
    assert summary["coverage_share"] == pytest.approx(0.1)


def test_no_booster_row():
    state = _compute([item("i1", "t10", 100)], [make_tariff()])
    r = _row(state, "i1")
    assert r["multiplier"] == 1.0
    assert r["net_final"] == pytest.approx(8.0)
    assert state["booster_summary"]["roi"] is None


# ── Test 2: amortization by capital-days ──────────────────────────────────────

def _three_items():
    tariffs = [
        make_tariff("A", days=10),
        make_tariff("B", days=20),
        make_tariff("C", days=5),
    ]
    portfolio = [item("a", "A", 100), item("b", "B", 200), item("c", "C", 100)]
    return tariffs, portfolio


def test_booster_cost_split_by_capital_days():
    """Capital-days 1000 / 4000 / blocked: price 10 splits 2 / 8 / 0."""
    tariffs, portfolio = _three_items()
    booster = make_booster(price=10.0, blocked_tariff_ids=["C"])
    state = _compute(portfolio, tariffs, [booster], ["b100"])

    allocs = {r["id"]: r["booster_alloc"] for r in state["rows"]}
    assert allocs["a"] == pytest.approx(2.0)
    assert allocs["b"] == pytest.approx(8.0)
    assert allocs["c"] == 0.0
    assert sum(allocs.values()) == pytest.approx(10.0)
    assert _row(state, "c")["multiplier"] == 1.0


def test_subscription_cost_split_over_all_items():
    tariffs, portfolio = _three_items()
    state = _compute(portfolio, tariffs, subscription_id="plus")

    allocs = {r["id"]: r["sub_alloc"] for r in state["rows"]}
    assert allocs["a"] == pytest.approx(9.0 * 1000 / 5500)
    assert allocs["b"] == pytest.approx(9.0 * 4000 / 5500)
    assert allocs["c"] == pytest.approx(9.0 * 500 / 5500)
    assert sum(allocs.values()) == pytest.approx(9.0)


def test_revenue_equals_fees_plus_costs():
    tariffs, portfolio = _three_items()
    booster = make_booster(price=10.0, blocked_tariff_ids=["C"])
    state = _compute(portfolio, tariffs, [booster], ["b100"], subscription_id="plus")
    totals = state["totals"]
    assert totals["project_revenue"] == pytest.approx(
        totals["fee_total"] + totals["booster_cost"] + totals["sub_cost"] + totals["program_fees"]
    )
    assert totals["booster_cost"] == pytest.approx(10.0)
    assert totals["sub_cost"] == pytest.approx(9.0)


def test_inapplicable_booster_costs_nothing():
    tariffs = [make_tariff("only")]
    booster = make_booster(price=10.0, blocked_tariff_ids=["only"])
    state = _compute([item("i1", "only", 100)], tariffs, [booster], ["b100"])
    assert state["applied_booster_ids"] == []
    assert state["totals"]["booster_cost"] == 0.0
    assert _row(state, "i1")["booster_alloc"] == 0.0


# ── Test 3: missing references ────────────────────────────────────────────────

def test_unknown_tariff_and_booster_are_skipped():
    tariffs = [make_tariff()]
    portfolio = [item("i1", "t10", 100), item("ghost", "missing", 500)]
    state = _compute(portfolio, tariffs, [make_booster()], ["nope"])
    assert [r["id"] for r in state["rows"]] == ["i1"]
    assert state["applied_booster_ids"] == []
    assert state["totals"]["capital"] == pytest.approx(100.0)


def test_empty_portfolio():
    state = _compute([], [make_tariff()])
    assert state["rows"] == []
    assert state["totals"]["investor_net"] == 0.0
    assert state["booster_summary"]["coverage_share"] == 0.0


# ── Test 4: programs and payout modes ─────────────────────────────────────────

def _program(**overrides):
    fields = dict(category="program", access_mode="open", entry_fee=4.0)
    fields.update(overrides)
    return make_tariff("prog", **fields)


def test_zero_amount_program_still_charges_entry_fee():
    state = _compute([item("p", "prog", 0)], [_program()])
    r = _row(state, "p")
    assert r["program_fee"] == pytest.approx(4.0)
    assert r["net_final"] == pytest.approx(-4.0)


def test_breakeven_deposit_nets_zero():
    """base return 0.08 per unit, entry fee 4 -> breakeven 50."""
    state = _compute([item("p", "prog", 50)], [_program()])
    r = _row(state, "p")
    assert r["breakeven_amount"] == pytest.approx(50.0)
    assert r["net_final"] == pytest.approx(0.0, abs=1e-9)


def test_plan_entry_fee_ignored():
    state = _compute([item("i1", "t10", 100)], [make_tariff(entry_fee=5.0)])
    r = _row(state, "i1")
    assert r["program_fee"] == 0.0
    assert r["breakeven_amount"] is None
    assert r["net_final"] == pytest.approx(8.0)


def test_locked_payout_paid_at_maturity():
    state = _compute([item("i1", "t10", 100)], [make_tariff(payout_mode="locked")])
    r = _row(state, "i1")
    assert r["payout_per_day"] == 0.0
    assert r["locked_net"] == pytest.approx(8.0)
    assert state["totals"]["locked_net_total"] == pytest.approx(8.0)
    assert state["totals"]["unlocked_net_total"] == pytest.approx(0.0)


def test_rate_band_edges():
    tariffs = [make_tariff(daily_rate_min=0.008, daily_rate_max=0.012)]
    state = _compute([item("i1", "t10", 100)], tariffs)
    r = _row(state, "i1")
    assert r["net_final_min"] == pytest.approx(6.4)
    assert r["net_final_max"] == pytest.approx(9.6)


def test_optimism_moves_rate_inside_band():
    tariffs = [make_tariff(daily_rate_min=0.008, daily_rate_max=0.012)]
    state = compute_portfolio_state(
        [item("i1", "t10", 100)], tariffs, [], [], make_subscriptions(), "basic", 1, optimism=1.0
    )
    assert _row(state, "i1")["net_final"] == pytest.approx(9.6)


# ── Test 5: projections ───────────────────────────────────────────────────────

def test_projection_included_in_state():
    booster = make_booster(price=0.5)
    state = _compute([item("i1", "t10", 100)], [make_tariff()], [booster], ["b100"])
    current = state["projection30"]["with_current"]
    assert current["no_reinvest"] == pytest.approx(8.3)
    assert current["auto_roll"] == pytest.approx(25.9)


def test_malformed_amounts_coerced_to_zero():
    for raw in (10 ** 400, "1e400", "abc", -5, None):
        assert item("i", "t10", raw).amount == 0.0, f"raw={raw!r}"


def test_duplicate_selection_charged_once():
    booster = make_booster(price=0.5)
    state = _compute([item("i1", "t10", 100)], [make_tariff()], [booster], ["b100", "b100"])
    assert state["applied_booster_ids"] == ["b100"]
    assert state["totals"]["booster_cost"] == pytest.approx(0.5)
    assert _row(state, "i1")["multiplier"] == pytest.approx(1.1)
