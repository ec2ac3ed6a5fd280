"""Shared builders for engine tests: a tiny hand-checkable catalog."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from plan_builder_app.schemas import Booster, BoosterEffect, PortfolioItem, Subscription, Tariff


def make_subscriptions():
    return [
        Subscription(id="basic", name="Basic", fee_rate=0.20, price=0.0, min_level=1),
        Subscription(id="plus", name="Plus", fee_rate=0.10, price=9.0, min_level=2),
        Subscription(id="max", name="Max", fee_rate=0.05, price=30.0, min_level=5),
    ]


def make_tariff(tid="t10", days=10, rate=0.01, **overrides) -> Tariff:
    fields = dict(
        id=tid,
        name=tid,
        duration_days=days,
        daily_rate=rate,
        min_level=1,
        base_min=0,
        base_max=100_000,
    )
    fields.update(overrides)
    return Tariff(**fields)


def make_booster(bid="b100", value=1.0, hours=24, price=0.0, **overrides) -> Booster:
    fields = dict(
        id=bid,
        name=bid,
        effect=BoosterEffect(type="mult", value=value),
        duration_hours=hours,
        price=price,
    )
    fields.update(overrides)
    return Booster(**fields)


def item(item_id, tariff_id, amount) -> PortfolioItem:
    return PortfolioItem(id=item_id, tariff_id=tariff_id, amount=amount)
