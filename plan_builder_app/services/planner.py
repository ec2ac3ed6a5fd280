import logging

from plan_builder_app.catalog import resolve_subscription
from plan_builder_app.schemas import PlannerState
from plan_builder_app.services.eligibility import available_boosters, eligible_tariffs
from plan_builder_app.services.impact import evaluate_boosters
from plan_builder_app.services.portfolio import compute_portfolio_state
from plan_builder_app.services.pricing import price_boosters_dynamically

logger = logging.getLogger(__name__)


def compute_planner(state: PlannerState) -> dict:
    """
    One full recomputation pass for a planner state.

    Prices boosters (when dynamic pricing is on), keeps only the selected
    boosters the user may buy, aggregates the portfolio and evaluates every
    available booster against it. Nothing is cached between calls.
    """
    sub = resolve_subscription(state.subscriptions, state.subscription_id)
    if state.dynamic_pricing:
        boosters = price_boosters_dynamically(
            state.boosters,
            state.tariffs,
            sub,
            state.user_level,
            state.portfolio,
            state.pricing,
            state.subscriptions,
        )
    else:
        boosters = list(state.boosters)

    available = available_boosters(boosters, state.user_level, sub.id, state.subscriptions)
    allowed = {b.id for b in available}
    selected = [bid for bid in state.selected_booster_ids if bid in allowed]
    dropped = [bid for bid in state.selected_booster_ids if bid not in allowed]
    if dropped:
        logger.debug("Ignoring unavailable boosters: %s", dropped)

    portfolio_state = compute_portfolio_state(
        state.portfolio,
        state.tariffs,
        boosters,
        selected,
        state.subscriptions,
        sub.id,
        state.user_level,
        state.program_controls,
        state.optimism,
    )

    return {
        **portfolio_state,
        "boosters": [b.model_dump() for b in boosters],
        "available_booster_ids": [b.id for b in available],
        "eligible_tariff_ids": [
            t.id for t in eligible_tariffs(state.tariffs, state.user_level, sub.id, state.subscriptions)
        ],
        "booster_impacts": evaluate_boosters(available, state.portfolio, state.tariffs, sub),
    }
