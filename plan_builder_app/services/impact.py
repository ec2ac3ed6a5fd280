from typing import List, Sequence

from plan_builder_app.schemas import Booster, PortfolioItem, Subscription, Tariff
from plan_builder_app.services.boosts import booster_net_gain


def evaluate_booster_impact(
    booster: Booster,
    portfolio: Sequence[PortfolioItem],
    tariffs: Sequence[Tariff],
    subscription: Subscription,
) -> dict:
    """ROI and payback of one booster against the current portfolio, selected or not."""
    tariffs_by_id = {t.id: t for t in tariffs}
    total_capital = sum(max(0.0, item.amount) for item in portfolio)

    net_gain = 0.0
    covered_capital = 0.0
    affected = set()
    for item in portfolio:
        tariff = tariffs_by_id.get(item.tariff_id)
        if tariff is None:
            continue
        gain = booster_net_gain(booster, tariff, item.amount, subscription.fee_rate)
        if gain <= 0:
            continue
        net_gain += gain
        covered_capital += max(0.0, item.amount)
        affected.add(tariff.id)

    price = booster.price
    hours = booster.duration_hours
    net_after_cost = net_gain - price
    net_per_hour = net_gain / hours if hours > 0 else 0.0

    return {
        "booster_id": booster.id,
        "price": price,
        "net_gain": net_gain,
        "net_after_cost": net_after_cost,
        "roi": net_after_cost / price if price > 0 else None,
        "net_per_active_hour": net_per_hour,
        "net_after_cost_per_hour": net_after_cost / hours if hours > 0 else 0.0,
        "payback_hours": price / net_per_hour if net_per_hour > 0 else None,
        "coverage_deposits": covered_capital,
        "coverage_share": covered_capital / total_capital if total_capital > 0 else 0.0,
        "affected_tariffs": len(affected),
    }


def evaluate_boosters(
    boosters: Sequence[Booster],
    portfolio: Sequence[PortfolioItem],
    tariffs: Sequence[Tariff],
    subscription: Subscription,
) -> List[dict]:
    return [evaluate_booster_impact(b, portfolio, tariffs, subscription) for b in boosters]
