"""
Caller-side portfolio editing.

The computation core never enforces capacity or eligibility; these helpers
are where a caller rejects an edit before recomputing. Every helper returns a
new list and leaves its input untouched.
"""

import logging
import uuid
from collections import Counter
from typing import List, Optional, Sequence

from plan_builder_app.schemas import PortfolioItem, Subscription, Tariff
from plan_builder_app.services.eligibility import is_accessible

logger = logging.getLogger(__name__)


class PortfolioRejection(ValueError):
    """An edit the caller must refuse; ``reason`` is machine-readable."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


def slots_used(portfolio: Sequence[PortfolioItem]) -> Counter:
    return Counter(item.tariff_id for item in portfolio)


def check_add_tariff(
    tariff: Optional[Tariff],
    portfolio: Sequence[PortfolioItem],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> Optional[str]:
    """Return None when the tariff may be added, else a rejection reason."""
    if tariff is None:
        return "unknown_tariff"
    if not is_accessible(tariff, user_level, subscription_id, subscriptions):
        return "not_accessible"
    if tariff.limited and tariff.capacity_slots is not None:
        if slots_used(portfolio)[tariff.id] >= tariff.capacity_slots:
            return "capacity_reached"
    return None


_MESSAGES = {
    "unknown_tariff": "Tariff does not exist",
    "not_accessible": "Tariff is not available at the current level or subscription",
    "capacity_reached": "Tariff slot limit reached",
}


def add_deposit(
    portfolio: Sequence[PortfolioItem],
    tariff: Optional[Tariff],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
    amount: Optional[float] = None,
    item_id: Optional[str] = None,
) -> List[PortfolioItem]:
    reason = check_add_tariff(tariff, portfolio, user_level, subscription_id, subscriptions)
    if reason is not None:
        logger.warning("Rejected deposit into %s: %s", getattr(tariff, "id", None), reason)
        raise PortfolioRejection(reason, _MESSAGES[reason])

    requested = tariff.base_min if amount is None else amount
    deposit = max(tariff.base_min, min(tariff.base_max, requested))
    new_id = item_id or f"{tariff.id}-{uuid.uuid4().hex[:6]}"
    if any(item.id == new_id for item in portfolio):
        raise PortfolioRejection("duplicate_item", f"Portfolio item '{new_id}' already exists")
    return [*portfolio, PortfolioItem(id=new_id, tariff_id=tariff.id, amount=deposit)]


def remove_deposit(portfolio: Sequence[PortfolioItem], item_id: str) -> List[PortfolioItem]:
    return [item for item in portfolio if item.id != item_id]


def update_deposit(portfolio: Sequence[PortfolioItem], item_id: str, amount) -> List[PortfolioItem]:
    # PortfolioItem coerces malformed or negative amounts to 0
    return [
        PortfolioItem(id=item.id, tariff_id=item.tariff_id, amount=amount) if item.id == item_id else item
        for item in portfolio
    ]
