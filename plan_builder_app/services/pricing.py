import logging
from typing import Dict, List, Sequence

from plan_builder_app.schemas import Booster, PortfolioItem, PricingControls, Subscription, Tariff
from plan_builder_app.services.boosts import booster_net_gain
from plan_builder_app.services.eligibility import is_accessible

logger = logging.getLogger(__name__)

# Baseline investor: minimum deposit in each of the N cheapest eligible tariffs
BASELINE_TARIFF_COUNT = 3


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def baseline_net_gain(booster: Booster, baseline_tariffs: Sequence[Tariff], fee_rate: float) -> float:
    return sum(booster_net_gain(booster, t, t.base_min, fee_rate) for t in baseline_tariffs)


def portfolio_net_gain(
    booster: Booster,
    portfolio: Sequence[PortfolioItem],
    tariffs_by_id: Dict[str, Tariff],
    fee_rate: float,
) -> float:
    """Booster gain over every item of the portfolio; unknown tariffs are skipped."""
    total = 0.0
    for item in portfolio:
        tariff = tariffs_by_id.get(item.tariff_id)
        if tariff is None:
            continue
        total += booster_net_gain(booster, tariff, item.amount, fee_rate)
    return total


def dynamic_price(baseline_gain: float, portfolio_gain: float, controls: PricingControls) -> float:
    """
    Price a booster from the gain it produces.

    1. capture a share of the baseline investor's gain, bounded by [min, max];
    2. add a share of whatever the actual portfolio earns beyond the baseline;
    3. cap so the investor keeps at least the ROI floor relative to price;
    4. clamp to [min, max] again and round to cents.
    """
    base_capture = _clamp(controls.base_capture_pct / 100.0, 0.0, 1.0)
    whale_capture = _clamp(controls.whale_capture_pct / 100.0, 0.0, 1.0)
    roi_floor = max(0.0, controls.investor_roi_floor_pct / 100.0)
    min_price = max(0.0, controls.min_price)
    max_price = max(min_price, controls.max_price)

    baseline_gain = max(0.0, baseline_gain)
    portfolio_gain = max(0.0, portfolio_gain)

    base_price = _clamp(baseline_gain * base_capture, min_price, max_price)
    price = base_price
    if portfolio_gain > baseline_gain:
        price = base_price + whale_capture * (portfolio_gain - baseline_gain)
    if portfolio_gain > 0 and roi_floor > 0:
        price = min(price, portfolio_gain / (1.0 + roi_floor))
    price = _clamp(price, min_price, max_price)
    return round(price, 2)


def price_boosters_dynamically(
    boosters: Sequence[Booster],
    tariffs: Sequence[Tariff],
    subscription: Subscription,
    user_level: int,
    portfolio: Sequence[PortfolioItem],
    controls: PricingControls = None,
    subscriptions: Sequence[Subscription] = None,
) -> List[Booster]:
    """Return boosters with prices derived from projected investor gain."""
    controls = controls or PricingControls()
    eligible = [t for t in tariffs if is_accessible(t, user_level, subscription.id, subscriptions)]
    if not eligible:
        logger.debug("No eligible tariffs for level=%s sub=%s; prices unchanged", user_level, subscription.id)
        return list(boosters)

    baseline_tariffs = sorted(eligible, key=lambda t: t.base_min)[:BASELINE_TARIFF_COUNT]
    tariffs_by_id = {t.id: t for t in tariffs}
    fee_rate = subscription.fee_rate

    priced = []
    for b in boosters:
        if b.scope != "account":
            priced.append(b)
            continue
        base_gain = baseline_net_gain(b, baseline_tariffs, fee_rate)
        port_gain = portfolio_net_gain(b, portfolio, tariffs_by_id, fee_rate)
        price = dynamic_price(base_gain, port_gain, controls)
        priced.append(b.model_copy(update={"price": price}))

    logger.debug("Priced %d boosters against %d portfolio items", len(priced), len(portfolio))
    return priced
