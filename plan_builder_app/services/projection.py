from typing import List, Sequence

from plan_builder_app.schemas import Subscription
from plan_builder_app.services.eligibility import within_level

PROJECTION_DAYS = 30
PROJECTION_MODES = ("no-reinvest", "auto-roll")


def project_thirty_days(rows: Sequence[dict], subscription: Subscription, mode: str, booster_cost: float) -> float:
    """
    Net investor result over the next 30 days under ``subscription``.

    ``rows`` are aggregator rows (amount, rate, multiplier, duration_days,
    program_fee). ``no-reinvest`` stops each deposit at maturity; ``auto-roll``
    keeps it earning for the whole window. One-time costs (booster allocation,
    entry fees, one subscription cycle) are charged once.
    """
    if mode not in PROJECTION_MODES:
        raise ValueError(f"mode must be one of: {', '.join(PROJECTION_MODES)}")

    total = 0.0
    entry_fees = 0.0
    for r in rows:
        daily_gross = r["amount"] * r["rate"] * r["multiplier"]
        daily_net = daily_gross - daily_gross * subscription.fee_rate
        days = PROJECTION_DAYS if mode == "auto-roll" else min(PROJECTION_DAYS, r["duration_days"])
        total += daily_net * days
        entry_fees += r["program_fee"]

    return total - booster_cost - entry_fees - subscription.price


def compare_subscriptions(
    rows: Sequence[dict],
    subscriptions: Sequence[Subscription],
    current: Subscription,
    user_level: int,
    booster_cost: float,
) -> dict:
    """30-day outcomes for the active tier and every tier the user's level allows."""
    compare: List[dict] = []
    for sub in subscriptions:
        if not within_level(user_level, sub.min_level):
            continue
        compare.append({
            "id": sub.id,
            "name": sub.name,
            "fee_rate": sub.fee_rate,
            "price": sub.price,
            "no_reinvest": project_thirty_days(rows, sub, "no-reinvest", booster_cost),
            "auto_roll": project_thirty_days(rows, sub, "auto-roll", booster_cost),
        })

    return {
        "with_current": {
            "id": current.id,
            "no_reinvest": project_thirty_days(rows, current, "no-reinvest", booster_cost),
            "auto_roll": project_thirty_days(rows, current, "auto-roll", booster_cost),
        },
        "compare": compare,
    }
