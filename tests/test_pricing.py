"""
Dynamic booster pricing: baseline capture, whale surcharge, ROI floor cap.
Run with: python3 -m pytest tests/test_pricing.py -v

Hand catalog: four 10-day 1%/day tariffs with base_min 100/200/300/1000,
fee 20%, booster +100% for 24h (lift 0.1). Gain per deposit = amount * 0.008.
Baseline = the three smallest minimums = 600 * 0.008 = 4.8; base price 3.12.
"""

import pytest

from helpers import item, make_booster, make_subscriptions, make_tariff

from plan_builder_app.schemas import PricingControls
from plan_builder_app.services.pricing import (
    baseline_net_gain,
    dynamic_price,
    price_boosters_dynamically,
)


def _catalog():
    tariffs = [
        make_tariff("t_a", base_min=100),
        make_tariff("t_b", base_min=200),
        make_tariff("t_c", base_min=300),
        make_tariff("t_d", base_min=1000),
    ]
    return make_subscriptions(), tariffs


def _price(portfolio, booster=None, controls=None, user_level=1):
    subs, tariffs = _catalog()
    booster = booster or make_booster()
    priced = price_boosters_dynamically(
        [booster], tariffs, subs[0], user_level, portfolio, controls, subs
    )
    return priced[0].price


# ── Formula ───────────────────────────────────────────────────────────────────

def test_dynamic_price_whale_capped_by_roi_floor():
    """baseline 10, portfolio 100: 6.5 + 0.9*90 = 87.5, capped at 100/1.2."""
    assert dynamic_price(10, 100, PricingControls()) == pytest.approx(83.33)


def test_dynamic_price_small_portfolio_keeps_base_price():
    assert dynamic_price(10, 10, PricingControls()) == pytest.approx(6.5)


def test_dynamic_price_clamped_to_bounds():
    controls = PricingControls(min_price=1.0, max_price=5.0)
    assert dynamic_price(0, 0, controls) == 1.0
    assert dynamic_price(1000, 1000, controls) == 5.0


def test_price_never_leaves_investor_below_floor():
    """With min_price 0, price * (1 + floor) never exceeds the portfolio gain."""
    controls = PricingControls(min_price=0.0)
    for baseline in (0.5, 5, 50):
        for gain in (0.1, 1, 10, 100, 1000):
            price = dynamic_price(baseline, gain, controls)
            assert price * 1.2 <= gain + 0.01, f"baseline={baseline} gain={gain} price={price}"
            assert 0.0 <= price <= controls.max_price


# ── Against a catalog ─────────────────────────────────────────────────────────

def test_baseline_gain_uses_minimum_deposits():
    _, tariffs = _catalog()
    assert baseline_net_gain(make_booster(), tariffs[:3], 0.2) == pytest.approx(4.8)


def test_empty_portfolio_pays_base_price():
    assert _price([]) == pytest.approx(3.12)


def test_large_portfolio_pays_whale_price_capped():
    """gain 80: 3.12 + 0.9 * 75.2 = 70.80, capped at 80/1.2 = 66.67."""
    assert _price([item("i1", "t_a", 10_000)]) == pytest.approx(66.67)


def test_small_portfolio_capped_then_clamped_to_min():
    """gain 0.8 < baseline: cap 0.667 wins over 3.12, stays above min 0.5."""
    assert _price([item("i1", "t_a", 100)]) == pytest.approx(0.67)


def test_blocked_portfolio_pays_base_price():
    booster = make_booster(blocked_tariff_ids=["t_d"])
    assert _price([item("i1", "t_d", 10_000)], booster) == pytest.approx(3.12)


def test_higher_roi_floor_lowers_whale_price():
    controls = PricingControls(investor_roi_floor_pct=100)
    assert _price([item("i1", "t_a", 10_000)], controls=controls) == pytest.approx(40.0)


def test_tariff_scope_booster_keeps_price():
    booster = make_booster(scope="tariff", price=7.0)
    assert _price([item("i1", "t_a", 10_000)], booster) == 7.0


def test_no_eligible_tariff_keeps_prices():
    subs = make_subscriptions()
    tariffs = [make_tariff("gated", min_level=9)]
    booster = make_booster(price=4.2)
    priced = price_boosters_dynamically([booster], tariffs, subs[0], 1, [], None, subs)
    assert priced[0].price == 4.2


def test_input_boosters_untouched():
    subs, tariffs = _catalog()
    booster = make_booster(price=99.0)
    price_boosters_dynamically([booster], tariffs, subs[0], 1, [], None, subs)
    assert booster.price == 99.0


# ── Monotonicity ──────────────────────────────────────────────────────────────

def test_price_non_decreasing_in_deposit():
    """Holds for any non-empty gain; an empty portfolio is never capped and pays the base price."""
    prices = [_price([item("i1", "t_a", amount)]) for amount in (100, 500, 1000, 5000, 20_000, 100_000)]
    assert prices == sorted(prices), prices


def test_blocking_dominant_tariff_lowers_price():
    portfolio = [item("i1", "t_d", 10_000)]
    open_price = _price(portfolio)
    blocked_price = _price(portfolio, make_booster(blocked_tariff_ids=["t_d"]))
    assert blocked_price < open_price, f"blocked={blocked_price} open={open_price}"


def test_raising_roi_floor_never_raises_price():
    portfolio = [item("i1", "t_a", 3000)]
    prices = [
        _price(portfolio, controls=PricingControls(investor_roi_floor_pct=floor))
        for floor in (0, 10, 20, 50, 100, 400)
    ]
    assert all(b <= a for a, b in zip(prices, prices[1:])), prices
