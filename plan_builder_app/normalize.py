"""
Normalization of untrusted catalog records (persisted or user-edited).

Raw records may use the storage's camelCase keys or the snake_case keys that
``dump_persisted_state`` writes. Every field is coerced with a documented
default; malformed input degrades to defaults and never raises.
"""

import logging
import math
import uuid
from typing import Any, Iterable, List, Optional

from plan_builder_app.catalog import BOOSTERS, DEFAULT_RATE_SPREAD, TARIFFS
from plan_builder_app.schemas import (
    Booster,
    BoosterEffect,
    PersistedState,
    PricingControls,
    ProgramDesignControls,
    Subscription,
    Tariff,
)

logger = logging.getLogger(__name__)

TARIFF_DEFAULTS = {
    "name": "Tariff",
    "duration_days": 7.0,
    "daily_rate": 0.005,
    "min_level": 1,
    "base_min": 50.0,
    "base_max": 3000.0,
}
BOOSTER_DEFAULTS = {
    "name": "Booster",
    "effect_value": 0.0,
    "duration_hours": 24.0,
    "price": 0.0,
    "min_level": 1,
    "per_portfolio_limit": 1,
}


def _pick(raw: dict, *keys, default=None):
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _num(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        out = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(out) or math.isinf(out):
        return default
    return out


def _int(value: Any, default: int) -> int:
    return int(_num(value, default))


def _optional_num(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    out = _num(value, float("nan"))
    return None if math.isnan(out) else out


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value else None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_dict(raw: Any) -> dict:
    return raw if isinstance(raw, dict) else {}


def normalize_tariff(raw: Any, fallback_id: Optional[str] = None) -> Tariff:
    raw = _as_dict(raw)
    d = TARIFF_DEFAULTS

    duration = _num(_pick(raw, "duration_days", "durationDays"), d["duration_days"])
    if duration <= 0:
        duration = d["duration_days"]
    target = max(0.0, _num(
        _pick(raw, "daily_rate", "dailyRateTarget", "dailyRate", "rate"), d["daily_rate"]
    ))
    rate_min = max(0.0, _num(
        _pick(raw, "daily_rate_min", "dailyRateMin", "rateMin", "minRate"),
        target * (1 - DEFAULT_RATE_SPREAD),
    ))
    rate_max = max(rate_min, _num(
        _pick(raw, "daily_rate_max", "dailyRateMax", "rateMax", "maxRate"),
        target * (1 + DEFAULT_RATE_SPREAD),
    ))
    base_min = max(0.0, _num(_pick(raw, "base_min", "baseMin"), d["base_min"]))
    base_max = max(base_min, _num(_pick(raw, "base_max", "baseMax"), d["base_max"]))
    category = "program" if _pick(raw, "category") == "program" else "plan"

    capacity = _optional_num(_pick(raw, "capacity_slots", "capSlots"))
    principal = _optional_num(_pick(raw, "recommended_principal", "recommendedPrincipal"))

    return Tariff(
        id=str(_pick(raw, "id", default=fallback_id or f"t-{uuid.uuid4().hex[:6]}")),
        name=str(_pick(raw, "name", default=d["name"])),
        duration_days=duration,
        daily_rate=min(max(target, rate_min), rate_max),
        daily_rate_min=rate_min,
        daily_rate_max=rate_max,
        min_level=_int(_pick(raw, "min_level", "minLevel"), d["min_level"]),
        base_min=base_min,
        base_max=base_max,
        required_subscription=_optional_str(_pick(raw, "required_subscription", "reqSub")),
        access_mode="open" if _pick(raw, "access_mode", "access") == "open" else "level",
        limited=_flag(_pick(raw, "limited", "isLimited", default=False)),
        capacity_slots=None if capacity is None else max(0, int(capacity)),
        category=category,
        entry_fee=max(0.0, _num(_pick(raw, "entry_fee", "entryFee"), 0.0)) if category == "program" else 0.0,
        recommended_principal=None if principal is None else max(0.0, principal),
        payout_mode="locked" if _pick(raw, "payout_mode", "payoutMode") == "locked" else "stream",
    )


def normalize_booster(raw: Any, fallback_id: Optional[str] = None) -> Booster:
    raw = _as_dict(raw)
    d = BOOSTER_DEFAULTS

    effect_raw = _pick(raw, "effect", default={})
    if isinstance(effect_raw, dict):
        effect_value = _num(effect_raw.get("value"), d["effect_value"])
    else:
        effect_value = _num(_pick(raw, "effect_value"), d["effect_value"])
    hours = _num(_pick(raw, "duration_hours", "durationHours"), d["duration_hours"])
    if hours <= 0:
        hours = d["duration_hours"]
    blocked = _pick(raw, "blocked_tariff_ids", "blockedTariffs", default=[])
    if isinstance(blocked, str):
        blocked = [part.strip() for part in blocked.split(",")]
    if not isinstance(blocked, (list, tuple, set)):
        blocked = []

    return Booster(
        id=str(_pick(raw, "id", default=fallback_id or f"b-{uuid.uuid4().hex[:6]}")),
        name=str(_pick(raw, "name", default=d["name"])),
        scope="tariff" if _pick(raw, "scope") == "tariff" else "account",
        # only the multiplicative effect kind exists so far
        effect=BoosterEffect(type="mult", value=max(0.0, effect_value)),
        duration_hours=hours,
        price=max(0.0, _num(_pick(raw, "price"), d["price"])),
        min_level=_int(_pick(raw, "min_level", "minLevel"), d["min_level"]),
        required_subscription=_optional_str(_pick(raw, "required_subscription", "reqSub")),
        blocked_tariff_ids=[str(x) for x in blocked if x],
        per_portfolio_limit=max(0, _int(_pick(raw, "per_portfolio_limit", "limitPerPortfolio"), d["per_portfolio_limit"])),
    )


def normalize_subscription(raw: Any, fallback_id: Optional[str] = None) -> Subscription:
    raw = _as_dict(raw)
    fee = _num(_pick(raw, "fee_rate", "fee"), 0.0)
    return Subscription(
        id=str(_pick(raw, "id", default=fallback_id or f"s-{uuid.uuid4().hex[:6]}")),
        name=str(_pick(raw, "name", default="")),
        fee_rate=min(1.0, max(0.0, fee)),
        price=max(0.0, _num(_pick(raw, "price"), 0.0)),
        min_level=_int(_pick(raw, "min_level", "minLevel"), 1),
    )


def normalize_pricing(raw: Any) -> PricingControls:
    """Merge a raw record over the default pricing controls."""
    raw = _as_dict(raw)
    d = PricingControls()

    def pct(value, default):
        return min(100.0, max(0.0, _num(value, default)))

    min_price = max(0.0, _num(_pick(raw, "min_price", "minPrice"), d.min_price))
    return PricingControls(
        base_capture_pct=pct(_pick(raw, "base_capture_pct", "baseCapturePct"), d.base_capture_pct),
        whale_capture_pct=pct(_pick(raw, "whale_capture_pct", "whaleCapturePct"), d.whale_capture_pct),
        investor_roi_floor_pct=max(0.0, _num(
            _pick(raw, "investor_roi_floor_pct", "investorRoiFloorPct"), d.investor_roi_floor_pct
        )),
        min_price=min_price,
        max_price=max(min_price, _num(_pick(raw, "max_price", "maxPrice"), d.max_price)),
    )


def normalize_program_controls(raw: Any) -> ProgramDesignControls:
    raw = _as_dict(raw)
    d = ProgramDesignControls()
    return ProgramDesignControls(
        relative_premium_pct=max(0.0, _num(
            _pick(raw, "relative_premium_pct", "relativePremiumPct"), d.relative_premium_pct
        )),
        absolute_premium_pct=max(0.0, _num(
            _pick(raw, "absolute_premium_pct", "absolutePremiumPct"), d.absolute_premium_pct
        )),
        buffer_multiple=max(1.0, _num(_pick(raw, "buffer_multiple", "bufferMultiple"), d.buffer_multiple)),
    )


def _records(raw: Any) -> List[Any]:
    return list(raw) if isinstance(raw, (list, tuple)) else []


def _dedupe(items: Iterable, kind: str) -> list:
    seen, out = set(), []
    for item in items:
        if item.id in seen:
            logger.warning("Dropping duplicate %s id '%s'", kind, item.id)
            continue
        seen.add(item.id)
        out.append(item)
    return out


def load_persisted_state(raw: Any) -> PersistedState:
    """Rebuild a persisted record; missing or empty sections fall back to the built-in catalog."""
    raw = _as_dict(raw)
    tariffs_raw = _records(_pick(raw, "tariffs"))
    boosters_raw = _records(_pick(raw, "boosters"))

    tariffs = (
        _dedupe((normalize_tariff(t, f"t-{i}") for i, t in enumerate(tariffs_raw)), "tariff")
        if tariffs_raw else list(TARIFFS)
    )
    boosters = (
        _dedupe((normalize_booster(b, f"b-{i}") for i, b in enumerate(boosters_raw)), "booster")
        if boosters_raw else list(BOOSTERS)
    )
    return PersistedState(
        tariffs=tariffs,
        boosters=boosters,
        pricing=normalize_pricing(_pick(raw, "pricing", "pricing_controls")),
        program_controls=normalize_program_controls(_pick(raw, "program_controls", "programDesign")),
    )


def dump_persisted_state(state: PersistedState) -> dict:
    return state.model_dump()
