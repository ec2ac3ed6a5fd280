"""
Booster coverage and multiplicative stacking.
Run with: python3 -m pytest tests/test_boosts.py -v
"""

import itertools

import pytest

from helpers import make_booster, make_tariff

from plan_builder_app.services.boosts import (
    booster_multiplier,
    booster_net_gain,
    coverage_fraction,
    coverage_multiplier,
    stacked_multiplier,
    tariff_rate,
)


# ── Coverage multiplier ───────────────────────────────────────────────────────

def test_zero_or_negative_coverage_is_neutral():
    for cov in (0.0, -0.5, -10):
        assert coverage_multiplier(0.5, cov) == 1.0


def test_full_coverage_and_clamp():
    assert coverage_multiplier(0.5, 1.0) == pytest.approx(1.5)
    assert coverage_multiplier(0.5, 2.0) == pytest.approx(1.5), "coverage above 1 clamps to 1"


def test_multiplier_monotonic_in_coverage():
    values = [coverage_multiplier(0.8, c / 20) for c in range(0, 21)]
    assert all(b >= a for a, b in zip(values, values[1:])), values
    assert min(values) >= 1.0


def test_one_day_booster_on_ten_day_plan():
    """+100% for 24h over a 240h plan -> x1.1."""
    t = make_tariff(days=10)
    b = make_booster(value=1.0, hours=24)
    assert coverage_fraction(24, 10) == pytest.approx(0.1)
    assert booster_multiplier(b, t) == pytest.approx(1.1)


def test_booster_longer_than_plan_is_capped():
    t = make_tariff(days=1)
    b = make_booster(value=0.3, hours=72)
    assert coverage_fraction(72, 1) == 1.0
    assert booster_multiplier(b, t) == pytest.approx(1.3)


# ── Stacking ──────────────────────────────────────────────────────────────────

def test_stacking_is_order_independent():
    t = make_tariff(days=7)
    boosters = [
        make_booster("a", value=0.05, hours=24),
        make_booster("b", value=2.0, hours=48),
        make_booster("c", value=0.3, hours=12),
    ]
    results = {round(stacked_multiplier(p, t), 12) for p in itertools.permutations(boosters)}
    assert len(results) == 1, f"stacking depends on order: {results}"
    expected = (1 + 0.05 / 7) * (1 + 2.0 * 2 / 7) * (1 + 0.3 / 14)
    assert results.pop() == pytest.approx(expected)


def test_blocked_booster_not_stacked():
    t = make_tariff("t_blocked", days=10)
    boosters = [make_booster("a", value=1.0), make_booster("b", value=1.0, blocked_tariff_ids=["t_blocked"])]
    assert stacked_multiplier(boosters, t) == pytest.approx(1.1)


# ── Net gain ──────────────────────────────────────────────────────────────────

def test_booster_net_gain_matches_formula():
    t = make_tariff(days=10, rate=0.01)
    b = make_booster(value=1.0, hours=24)
    assert booster_net_gain(b, t, 100, 0.2) == pytest.approx(0.8)


def test_booster_net_gain_zero_when_blocked_or_empty():
    t = make_tariff("x", days=10)
    assert booster_net_gain(make_booster(blocked_tariff_ids=["x"]), t, 100, 0.2) == 0.0
    assert booster_net_gain(make_booster(value=0.0), t, 100, 0.2) == 0.0


def test_tariff_rate_band_interpolation():
    t = make_tariff(rate=0.01, daily_rate_min=0.008, daily_rate_max=0.012)
    assert tariff_rate(t) == 0.01
    assert tariff_rate(t, 0.0) == pytest.approx(0.008)
    assert tariff_rate(t, 1.0) == pytest.approx(0.012)
    assert tariff_rate(t, 0.5) == pytest.approx(0.010)
