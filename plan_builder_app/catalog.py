"""
Built-in catalog: subscription tiers, tariffs, boosters and default controls.

Subscription order is significant: list position is the tier rank used by
eligibility checks (a higher position satisfies any lower requirement).
"""

from typing import Dict, List, Optional, Tuple

from plan_builder_app.schemas import (
    Booster,
    BoosterEffect,
    PricingControls,
    ProgramDesignControls,
    Subscription,
    Tariff,
)

# ── Rate band construction ──
# Seed ranges are wide marketing ranges; the payout band is compressed around
# the target rate and never wider than RATE_BAND_MAX_DELTA.
DEFAULT_RATE_SPREAD = 0.06
DEFAULT_RATE_COMPRESSION = 0.1
RATE_BAND_MAX_DELTA = 0.0005


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def rate_band(
    rate: float,
    rate_range: Optional[Tuple[float, float]] = None,
    tightness: float = DEFAULT_RATE_COMPRESSION,
) -> Tuple[float, float]:
    """Compress a seed rate range into a narrow payout band around ``rate``."""
    if rate_range is None:
        rate_range = (rate * (1 - DEFAULT_RATE_SPREAD), rate * (1 + DEFAULT_RATE_SPREAD))
    lo, hi = min(rate_range), max(rate_range)
    tighten = _clamp(tightness, 0.05, 1.0)
    raw_width = (hi - lo) * tighten
    width = min(raw_width, RATE_BAND_MAX_DELTA) if raw_width > 0 else 0.0
    centre = _clamp(rate, lo, hi)
    band_min = _clamp(centre - width / 2, lo, centre)
    band_max = _clamp(centre + width / 2, centre, hi)
    return band_min, band_max


def _tariff(tid, name, days, rate, rate_range, min_level, base_min, base_max, **extra) -> Tariff:
    band_min, band_max = rate_band(rate, rate_range)
    return Tariff(
        id=tid,
        name=name,
        duration_days=days,
        daily_rate=_clamp(rate, band_min, band_max),
        daily_rate_min=band_min,
        daily_rate_max=band_max,
        min_level=min_level,
        base_min=base_min,
        base_max=base_max,
        **extra,
    )


def _program(tid, name, days, rate, rate_range, base_min, base_max, entry_fee, principal, **extra) -> Tariff:
    return _tariff(
        tid, name, days, rate, rate_range, 1, base_min, base_max,
        category="program",
        access_mode="open",
        entry_fee=entry_fee,
        recommended_principal=principal,
        **extra,
    )


def _booster(bid, name, value, hours, price, min_level, req=None, blocked=(), limit=1) -> Booster:
    return Booster(
        id=bid,
        name=name,
        effect=BoosterEffect(type="mult", value=value),
        duration_hours=hours,
        price=price,
        min_level=min_level,
        required_subscription=req,
        blocked_tariff_ids=list(blocked),
        per_portfolio_limit=limit,
    )


SUBSCRIPTIONS: List[Subscription] = [
    Subscription(id="free", name="Free", fee_rate=0.20, price=0, min_level=1),
    Subscription(id="bronze", name="Bronze", fee_rate=0.18, price=9, min_level=1),
    Subscription(id="silver", name="Silver", fee_rate=0.16, price=19, min_level=2),
    Subscription(id="gold", name="Gold", fee_rate=0.14, price=29, min_level=3),
    Subscription(id="platinum", name="Platinum", fee_rate=0.12, price=49, min_level=5),
    Subscription(id="pro", name="PRO", fee_rate=0.10, price=79, min_level=7),
    Subscription(id="elite", name="Elite", fee_rate=0.08, price=109, min_level=10),
    Subscription(id="ultra", name="Ultra", fee_rate=0.06, price=149, min_level=12),
    Subscription(id="infinity", name="Infinity", fee_rate=0.05, price=179, min_level=15),
]

TARIFFS: List[Tariff] = [
    # id, name, days, rate, seed range, min level, base min, base max
    _tariff("t_start", "Start Day", 1, 0.003, (0.0015, 0.0042), 1, 20, 500),
    _tariff("t_weekly_a", "Weekly A", 7, 0.004, (0.0028, 0.0055), 1, 50, 1500),
    _tariff("t_weekly_b", "Weekly B", 7, 0.005, (0.0035, 0.0068), 3, 100, 2500),
    _tariff("t_flex14", "Flex 14", 14, 0.006, (0.0042, 0.0084), 4, 150, 4000),
    _tariff("t_month_std", "Month Std", 30, 0.0065, (0.0045, 0.009), 5, 200, 6000),
    _tariff("t_month_plus", "Month Plus", 30, 0.0075, (0.005, 0.0105), 7, 300, 8000,
            required_subscription="gold"),
    _tariff("t_quarter", "Quarter 90", 90, 0.008, (0.0052, 0.011), 10, 500, 15000,
            required_subscription="platinum", payout_mode="locked"),
    _tariff("t_liq_pool", "Liquidity Pool", 21, 0.0068, (0.004, 0.0094), 6, 500, 10000,
            limited=True, capacity_slots=80, payout_mode="locked"),
    _tariff("t_express3", "Express 3d", 3, 0.007, (0.0045, 0.0105), 2, 50, 1200,
            limited=True, capacity_slots=200),
    _tariff("t_mm30", "Market Making 30", 30, 0.0092, (0.006, 0.0125), 12, 1000, 20000,
            required_subscription="pro", limited=True, capacity_slots=40, payout_mode="locked"),
    _tariff("t_global60", "Global 60", 60, 0.0098, (0.0065, 0.0135), 14, 2000, 30000,
            required_subscription="elite", limited=True, capacity_slots=30, payout_mode="locked"),
    _tariff("t_prime45", "Prime 45", 45, 0.0102, (0.007, 0.014), 16, 2500, 35000,
            required_subscription="ultra", limited=True, capacity_slots=24),
    _tariff("t_flash7", "Flash Seven", 7, 0.0115, (0.007, 0.016), 8, 400, 4500,
            required_subscription="gold", limited=True, capacity_slots=60),
    _tariff("t_dual21", "Dual 21", 21, 0.0074, (0.0048, 0.0104), 9, 600, 9000,
            required_subscription="platinum"),
    _tariff("t_swing28", "Swing 28", 28, 0.0085, (0.0055, 0.0115), 11, 800, 12000),
    _tariff("t_spot18", "Spot 18", 18, 0.008, (0.005, 0.011), 6, 350, 5500),
    _tariff("t_meta60", "Meta 60", 60, 0.0108, (0.0068, 0.0148), 18, 5000, 42000,
            required_subscription="infinity", limited=True, capacity_slots=20, payout_mode="locked"),
    _tariff("t_spread10", "Spread 10", 10, 0.0069, (0.0045, 0.0098), 4, 200, 3800,
            limited=True, capacity_slots=110),
    _tariff("t_quant90", "Quant 90", 90, 0.0101, (0.0065, 0.0142), 17, 3200, 38000,
            required_subscription="elite", limited=True, capacity_slots=28, payout_mode="locked"),
    _tariff("t_event5", "Event 5", 5, 0.0125, (0.007, 0.0185), 7, 500, 5000,
            limited=True, capacity_slots=20),
    _tariff("t_ai45", "AI 45", 45, 0.0115, (0.0072, 0.0158), 15, 2500, 28000,
            required_subscription="pro", limited=True, capacity_slots=32, payout_mode="locked"),
    _tariff("t_yield75", "Yield 75", 75, 0.0091, (0.006, 0.0124), 13, 1800, 25000,
            required_subscription="elite"),
    # Programs: open access, one-time entry fee
    _program("p_premium28", "Premium Access 28", 28, 0.0095, (0.006, 0.0132), 400, 6000, 180, 1800,
             limited=True, capacity_slots=75, payout_mode="locked"),
    _program("p_quant_elite30", "Quant Elite 30", 30, 0.012, (0.008, 0.0175), 600, 9000, 260, 2500,
             required_subscription="silver", limited=True, capacity_slots=60, payout_mode="locked"),
    _program("p_launch_vip14", "Launch VIP 14", 14, 0.0135, (0.0085, 0.0195), 450, 6500, 140, 1500),
    _program("p_titan45", "Titan 45", 45, 0.0118, (0.0075, 0.0168), 900, 14000, 360, 3600,
             required_subscription="gold", limited=True, capacity_slots=45, payout_mode="locked"),
    _program("p_zen60", "Zenith 60", 60, 0.0108, (0.007, 0.0152), 1200, 20000, 520, 5200,
             required_subscription="gold", limited=True, capacity_slots=40, payout_mode="locked"),
    _program("p_founders90", "Founders 90", 90, 0.0125, (0.008, 0.0185), 2000, 26000, 900, 10000,
             required_subscription="elite", limited=True, capacity_slots=24, payout_mode="locked"),
]

_EARLY = ["t_start", "t_express3", "t_weekly_a", "t_weekly_b", "t_liq_pool"]

BOOSTERS: List[Booster] = [
    _booster("b5_24h", "+5% x24h", 0.05, 24, 1.2, 1, limit=5),
    _booster("b10_24h", "+10% x24h", 0.10, 24, 2.5, 2, limit=5),
    _booster("b15_24h", "+15% x24h", 0.15, 24, 4, 3, limit=4),
    _booster("b8_12h", "+8% x12h", 0.08, 12, 1, 1, limit=6),
    _booster("b100_24h", "+100% x24h", 1.0, 24, 0.9, 3),
    _booster("b200_24h", "+200% x24h", 2.0, 24, 1.8, 5, "silver", _EARLY[:1]),
    _booster("b300_24h", "+300% x24h", 3.0, 24, 3, 7, "gold", _EARLY[:2]),
    _booster("b400_48h", "+400% x48h", 4.0, 48, 6, 10, "platinum", _EARLY[:3]),
    _booster("b30_24h", "+30% x24h", 0.30, 24, 35, 14, "elite", _EARLY[:4]),
    _booster("b40_24h", "+40% x24h", 0.40, 24, 55, 16, "ultra", _EARLY[:5]),
    _booster("b5_10h", "+5% x10h", 0.05, 10, 3.5, 4, "silver"),
    _booster("b8_24h", "+8% x24h", 0.08, 24, 8, 7, "gold"),
    _booster("b12_24h", "+12% x24h", 0.12, 24, 12, 12, "pro"),
]

DEFAULT_PRICING = PricingControls()
DEFAULT_PROGRAM_CONTROLS = ProgramDesignControls()


def subscription_ranks(subscriptions: List[Subscription]) -> Dict[str, int]:
    return {s.id: i for i, s in enumerate(subscriptions)}


def resolve_subscription(subscriptions: List[Subscription], subscription_id: str) -> Subscription:
    """Active tier lookup; unknown ids fall back to the lowest tier."""
    for sub in subscriptions:
        if sub.id == subscription_id:
            return sub
    if subscriptions:
        return subscriptions[0]
    return Subscription(id="none", name="None", fee_rate=0.0, price=0.0, min_level=0)


def catalog_snapshot() -> dict:
    return {
        "subscriptions": [s.model_dump() for s in SUBSCRIPTIONS],
        "tariffs": [t.model_dump() for t in TARIFFS],
        "boosters": [b.model_dump() for b in BOOSTERS],
        "pricing": DEFAULT_PRICING.model_dump(),
        "program_controls": DEFAULT_PROGRAM_CONTROLS.model_dump(),
    }
