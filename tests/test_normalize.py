"""
Normalization of untrusted catalog records.
Run with: python3 -m pytest tests/test_normalize.py -v
"""

import pytest

from plan_builder_app.catalog import BOOSTERS, TARIFFS
from plan_builder_app.normalize import (
    dump_persisted_state,
    load_persisted_state,
    normalize_booster,
    normalize_pricing,
    normalize_subscription,
    normalize_tariff,
)


# ── Tariffs ───────────────────────────────────────────────────────────────────

def test_tariff_defaults_from_empty_record():
    t = normalize_tariff({}, "t-0")
    assert t.id == "t-0"
    assert t.duration_days == 7.0
    assert t.daily_rate == pytest.approx(0.005)
    assert t.daily_rate_min == pytest.approx(0.0047)
    assert t.daily_rate_max == pytest.approx(0.0053)
    assert (t.base_min, t.base_max) == (50.0, 3000.0)
    assert t.category == "plan" and t.access_mode == "level"


def test_tariff_accepts_camel_case():
    t = normalize_tariff({
        "id": "x",
        "durationDays": "14",
        "dailyRateTarget": 0.01,
        "minLevel": 3,
        "baseMin": 100,
        "baseMax": 50,
        "reqSub": "gold",
        "isLimited": "true",
        "capSlots": 12,
        "category": "program",
        "entryFee": 25,
        "access": "open",
        "payoutMode": "locked",
    })
    assert t.duration_days == 14.0
    assert t.min_level == 3
    assert t.base_max == 100.0, "base_max never below base_min"
    assert t.required_subscription == "gold"
    assert t.limited and t.capacity_slots == 12
    assert t.category == "program" and t.entry_fee == 25.0
    assert t.access_mode == "open" and t.payout_mode == "locked"


def test_tariff_garbage_falls_back():
    t = normalize_tariff({"durationDays": -3, "dailyRate": "nan", "baseMin": "x", "category": "Program"})
    assert t.duration_days == 7.0
    assert t.daily_rate == pytest.approx(0.005)
    assert t.base_min == 50.0
    assert t.category == "plan", "only the exact value 'program' marks a program"


def test_plan_entry_fee_dropped():
    assert normalize_tariff({"entryFee": 30}).entry_fee == 0.0


def test_non_dict_record():
    t = normalize_tariff("garbage", "t-9")
    assert t.id == "t-9"


# ── Boosters and tiers ────────────────────────────────────────────────────────

def test_booster_normalization():
    b = normalize_booster({
        "id": "b",
        "effect": {"type": "mult", "value": "-1"},
        "durationHours": 0,
        "price": -2,
        "blockedTariffs": "t1, t2",
        "scope": "weird",
    })
    assert b.effect_value == 0.0
    assert b.duration_hours == 24.0
    assert b.price == 0.0
    assert b.blocked_tariff_ids == ["t1", "t2"]
    assert b.scope == "account"


def test_subscription_fee_clamped():
    s = normalize_subscription({"id": "s", "fee": 1.5, "price": -1})
    assert s.fee_rate == 1.0 and s.price == 0.0


def test_pricing_clamped():
    p = normalize_pricing({"baseCapturePct": 150, "minPrice": 10, "maxPrice": 2})
    assert p.base_capture_pct == 100.0
    assert p.max_price == 10.0
    assert p.whale_capture_pct == 90.0


# ── Persisted state ───────────────────────────────────────────────────────────

def test_empty_state_uses_catalog():
    state = load_persisted_state({})
    assert [t.id for t in state.tariffs] == [t.id for t in TARIFFS]
    assert [b.id for b in state.boosters] == [b.id for b in BOOSTERS]


def test_duplicate_ids_dropped():
    state = load_persisted_state({"tariffs": [{"id": "a"}, {"id": "a", "durationDays": 9}, {"id": "b"}]})
    assert [t.id for t in state.tariffs] == ["a", "b"]
    assert state.tariffs[0].duration_days == 7.0


def test_dump_then_load_keeps_records():
    state = load_persisted_state({"tariffs": [{"id": "a", "durationDays": 3, "dailyRate": 0.01}]})
    again = load_persisted_state(dump_persisted_state(state))
    assert again.tariffs == state.tariffs
    assert again.pricing == state.pricing


def test_oversized_integers_fall_back_to_defaults():
    """JSON integers too large for a float degrade like any other malformed number."""
    t = normalize_tariff({"durationDays": 10 ** 400, "dailyRate": 10 ** 400, "capSlots": 10 ** 400})
    assert t.duration_days == 7.0
    assert t.daily_rate == pytest.approx(0.005)
    assert t.capacity_slots is None

    state = load_persisted_state({"tariffs": [{"id": "x", "baseMin": 10 ** 400}]})
    assert state.tariffs[0].base_min == 50.0

    b = normalize_booster({"price": 10 ** 400, "durationHours": 10 ** 400})
    assert b.price == 0.0 and b.duration_hours == 24.0
