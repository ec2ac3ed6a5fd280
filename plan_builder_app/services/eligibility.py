from typing import List, Optional, Sequence, Union

from plan_builder_app.catalog import SUBSCRIPTIONS, subscription_ranks
from plan_builder_app.schemas import Booster, Subscription, Tariff


def within_level(user_level: int, min_level: int) -> bool:
    return user_level >= min_level


def subscription_rank(subscription_id: Optional[str], subscriptions: Sequence[Subscription] = None) -> int:
    """Catalog position of a tier; unknown ids rank -1."""
    ranks = subscription_ranks(list(SUBSCRIPTIONS if subscriptions is None else subscriptions))
    return ranks.get(subscription_id, -1)


def subscription_meets(
    required_id: Optional[str],
    active_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> bool:
    """An unknown active tier fails every requirement."""
    if not required_id:
        return True
    ranks = subscription_ranks(list(SUBSCRIPTIONS if subscriptions is None else subscriptions))
    if active_id not in ranks:
        return False
    return ranks[active_id] >= ranks.get(required_id, -1)


def is_accessible(
    item: Union[Tariff, Booster],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> bool:
    """
    Level gate (skipped for open-access tariffs) AND subscription-rank gate.

    Boosters have no access mode and are always level-gated.
    """
    open_access = getattr(item, "access_mode", "level") == "open"
    level_ok = open_access or within_level(user_level, item.min_level)
    return level_ok and subscription_meets(item.required_subscription, subscription_id, subscriptions)


def tariff_sort_key(t: Tariff):
    # plans before programs, level-gated before open, then level and rate
    return (
        0 if t.category == "plan" else 1,
        0 if t.access_mode == "level" else 1,
        t.min_level,
        t.daily_rate,
    )


def sort_tariffs(tariffs: Sequence[Tariff]) -> List[Tariff]:
    return sorted(tariffs, key=tariff_sort_key)


def eligible_tariffs(
    tariffs: Sequence[Tariff],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> List[Tariff]:
    return [t for t in sort_tariffs(tariffs) if is_accessible(t, user_level, subscription_id, subscriptions)]


def available_boosters(
    boosters: Sequence[Booster],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> List[Booster]:
    return [
        b for b in boosters
        if b.scope == "account" and is_accessible(b, user_level, subscription_id, subscriptions)
    ]


def accessibility_report(
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> dict:
    return {
        "tariffs": {t.id: is_accessible(t, user_level, subscription_id, subscriptions) for t in tariffs},
        "boosters": {b.id: is_accessible(b, user_level, subscription_id, subscriptions) for b in boosters},
        "eligible_tariff_ids": [
            t.id for t in eligible_tariffs(tariffs, user_level, subscription_id, subscriptions)
        ],
        "available_booster_ids": [
            b.id for b in available_boosters(boosters, user_level, subscription_id, subscriptions)
        ],
    }
