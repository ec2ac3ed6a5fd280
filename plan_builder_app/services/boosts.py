from typing import Callable, Dict, Iterable, Optional

from plan_builder_app.schemas import Booster, BoosterEffect, Tariff


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def coverage_fraction(duration_hours: float, tariff_days: float) -> float:
    """Share of a tariff's lifetime during which a booster is active, in [0, 1]."""
    hours = tariff_days * 24.0
    if hours <= 0:
        return 0.0
    return _clamp(min(duration_hours, hours) / hours, 0.0, 1.0)


def _mult_multiplier(value: float, coverage: float) -> float:
    return 1.0 + max(0.0, value) * _clamp(coverage, 0.0, 1.0)


# Effect kind -> multiplier(value, coverage). New effect kinds register here.
EFFECT_MULTIPLIERS: Dict[str, Callable[[float, float], float]] = {
    "mult": _mult_multiplier,
}


def effect_multiplier(effect: BoosterEffect, coverage: float) -> float:
    fn = EFFECT_MULTIPLIERS.get(effect.type)
    if fn is None:
        return 1.0
    return fn(effect.value, coverage)


def coverage_multiplier(value: float, coverage: float) -> float:
    """Multiplier of a ``mult`` booster with the given coverage (clamped to [0, 1])."""
    return _mult_multiplier(value, coverage)


def booster_multiplier(booster: Booster, tariff: Tariff) -> float:
    cov = coverage_fraction(booster.duration_hours, tariff.duration_days)
    return effect_multiplier(booster.effect, cov)


def applicable_boosters(boosters: Iterable[Booster], tariff: Tariff):
    return [b for b in boosters if not b.blocks(tariff.id)]


def stacked_multiplier(boosters: Iterable[Booster], tariff: Tariff) -> float:
    """Product of per-booster multipliers for every booster not blocking ``tariff``."""
    mult = 1.0
    for b in applicable_boosters(boosters, tariff):
        mult *= booster_multiplier(b, tariff)
    return mult


def tariff_rate(tariff: Tariff, optimism: Optional[float] = None) -> float:
    """Daily rate; with ``optimism`` the rate is interpolated inside the payout band."""
    if optimism is None:
        return tariff.daily_rate
    lo, hi = tariff.rate_band
    return lo + (hi - lo) * _clamp(optimism, 0.0, 1.0)


def booster_net_gain(
    booster: Booster,
    tariff: Tariff,
    amount: float,
    fee_rate: float,
    optimism: Optional[float] = None,
) -> float:
    """
    Net (after platform fee) extra yield a booster adds on one deposit.

    Blocked tariffs, zero effect and zero coverage contribute nothing.
    """
    if booster.blocks(tariff.id):
        return 0.0
    cov = coverage_fraction(booster.duration_hours, tariff.duration_days)
    if booster.effect_value <= 0 or cov <= 0:
        return 0.0
    lift = effect_multiplier(booster.effect, cov) - 1.0
    gross_gain = max(0.0, amount) * tariff_rate(tariff, optimism) * tariff.duration_days * lift
    return gross_gain * (1.0 - fee_rate)
