"""
Reserve survival ("MMM") model.

Stress assumption: no new deposits. The project holds every segment's
deposits minus its own take and has to fund all promised daily payouts and
principal returns from that pool. The walk stops on the first day the pool
is exhausted.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from plan_builder_app.catalog import resolve_subscription
from plan_builder_app.schemas import (
    Booster,
    InvestorSegment,
    PricingControls,
    ProgramDesignControls,
    Subscription,
    Tariff,
)
from plan_builder_app.services.eligibility import available_boosters
from plan_builder_app.services.portfolio import compute_portfolio_state
from plan_builder_app.services.pricing import price_boosters_dynamically

logger = logging.getLogger(__name__)

# Days simulated past the longest plan
RESERVE_TAIL_DAYS = 30


def compute_segment_state(
    segment: InvestorSegment,
    subscriptions: Sequence[Subscription],
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    pricing: PricingControls = None,
    program_controls: ProgramDesignControls = None,
    dynamic_pricing: bool = True,
    optimism: Optional[float] = None,
) -> dict:
    """Aggregate one investor's portfolio for a segment (prices and boosters as that investor sees them)."""
    sub = resolve_subscription(list(subscriptions), segment.subscription_id)
    priced = (
        price_boosters_dynamically(
            boosters, tariffs, sub, segment.user_level, segment.portfolio, pricing, subscriptions
        )
        if dynamic_pricing
        else list(boosters)
    )
    allowed = {b.id for b in available_boosters(priced, segment.user_level, sub.id, subscriptions)}
    chosen = [bid for bid in segment.booster_ids if bid in allowed]
    return compute_portfolio_state(
        segment.portfolio,
        tariffs,
        priced,
        chosen,
        subscriptions,
        sub.id,
        segment.user_level,
        program_controls,
        optimism,
    )


def compute_segment_states(
    segments: Sequence[InvestorSegment],
    subscriptions: Sequence[Subscription],
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    pricing: PricingControls = None,
    program_controls: ProgramDesignControls = None,
    dynamic_pricing: bool = True,
    optimism: Optional[float] = None,
) -> List[tuple]:
    return [
        (
            seg,
            compute_segment_state(
                seg, subscriptions, tariffs, boosters, pricing, program_controls, dynamic_pricing, optimism
            ),
        )
        for seg in segments
    ]


def segment_summary(segment: InvestorSegment, state: dict) -> dict:
    totals = state["totals"]
    return {
        "segment_id": segment.id,
        "name": segment.name,
        "investors_count": segment.investors_count,
        "subscription_id": state["subscription_id"],
        "applied_booster_ids": state["applied_booster_ids"],
        "deposit_per_investor": totals["capital"],
        "project_revenue_per_investor": totals["project_revenue"],
        "investor_net_per_investor": totals["investor_net"],
    }


def _plan_arrays(segment_states: Sequence[tuple]):
    durations, principals, payouts, maturity = [], [], [], []
    for segment, state in segment_states:
        n = segment.investors_count
        for row in state["rows"]:
            durations.append(row["duration_days"])
            principals.append(row["amount"] * n)
            payouts.append(max(0.0, row["payout_per_day"]) * n)
            maturity.append(max(0.0, row["locked_net"]) * n)
    return (
        np.array(durations, dtype=float),
        np.array(principals, dtype=float),
        np.array(payouts, dtype=float),
        np.array(maturity, dtype=float),
    )


# (cohort key, source section, source key); each summed over investors
_COHORT_FIELDS = [
    ("deposit_total", "totals", "capital"),
    ("gross_total", "totals", "gross_total"),
    ("fee_total", "totals", "fee_total"),
    ("investor_net_total", "totals", "investor_net"),
    ("investor_net_per_day_total", "totals", "investor_net_per_day"),
    ("investor_net_min_total", "totals", "investor_net_min"),
    ("investor_net_max_total", "totals", "investor_net_max"),
    ("investor_net_per_day_min_total", "totals", "investor_net_per_day_min"),
    ("investor_net_per_day_max_total", "totals", "investor_net_per_day_max"),
    ("investor_net_per_day_before_sub_total", "totals", "investor_net_per_day_before_sub"),
    ("project_revenue_total", "totals", "project_revenue"),
    ("project_revenue_per_day_total", "totals", "project_revenue_per_day"),
    ("booster_spend_total", "totals", "booster_cost"),
    ("subscription_revenue_total", "totals", "sub_cost"),
    ("program_fee_total", "totals", "program_fees"),
    ("program_fee_per_day_total", "totals", "program_fees_per_day"),
    ("locked_net_total", "totals", "locked_net_total"),
    ("unlocked_net_total", "totals", "unlocked_net_total"),
    ("booster_lift_total", "booster_summary", "lift_net"),
    ("booster_lift_per_plan_day_total", "booster_summary", "lift_per_plan_day"),
    ("booster_lift_per_active_hour_total", "booster_summary", "lift_per_active_hour"),
    ("booster_active_hours_total", "booster_summary", "active_hours"),
    ("booster_net_before_cost_total", "booster_summary", "net_before_cost"),
]


def cohort_totals(segment_states: Sequence[tuple]) -> dict:
    """Per-investor results scaled by segment size and summed across segments."""
    out = {key: 0.0 for key, _, _ in _COHORT_FIELDS}
    out["investors_total"] = 0
    out["top_up_per_day_total"] = 0.0
    for segment, state in segment_states:
        n = segment.investors_count
        out["investors_total"] += n
        out["top_up_per_day_total"] += segment.daily_top_up_per_investor * n
        for key, section, source in _COHORT_FIELDS:
            out[key] += state[section][source] * n

    spend = out["booster_spend_total"]
    hours = out["booster_active_hours_total"]
    net_per_hour = out["booster_net_before_cost_total"] / hours if hours > 0 else 0.0
    out["booster_roi"] = out["booster_lift_total"] / spend if spend > 0 else None
    out["booster_payback_hours"] = spend / net_per_hour if net_per_hour > 0 else None
    return out


def run_reserve_walk(
    reserve_after_fees: float,
    durations: np.ndarray,
    principals: np.ndarray,
    daily_payouts: np.ndarray,
    maturity_payouts: np.ndarray = None,
) -> dict:
    """
    Day-by-day depletion of a reserve.

    Each day every plan still inside its term pays its daily payout; plans
    reaching their term that day also return principal (plus any locked
    payout). Stops at the first day the reserve is <= 0.
    """
    if maturity_payouts is None:
        maturity_payouts = np.zeros_like(principals)

    if durations.size == 0:
        horizon = RESERVE_TAIL_DAYS
        return {
            "horizon": horizon,
            "collapse_day": None,
            "timeline": [
                {"day": 0, "reserve": reserve_after_fees, "outflow": 0.0},
                {"day": horizon, "reserve": reserve_after_fees, "outflow": 0.0},
            ],
            "min_reserve": reserve_after_fees,
            "total_payouts": 0.0,
            "total_principal_returned": 0.0,
        }

    horizon = int(np.ceil(durations.max())) + RESERVE_TAIL_DAYS
    reserve = reserve_after_fees
    timeline = [{"day": 0, "reserve": reserve, "outflow": 0.0}]
    collapse_day = None
    total_payouts = 0.0
    total_principal = 0.0

    for day in range(1, horizon + 1):
        active = durations >= day
        maturing = (durations > day - 1) & (durations <= day)
        payout = float(daily_payouts[active].sum())
        returned = float(principals[maturing].sum() + maturity_payouts[maturing].sum())

        reserve -= payout + returned
        total_payouts += payout
        total_principal += float(principals[maturing].sum())
        timeline.append({"day": day, "reserve": reserve, "outflow": payout + returned})

        if reserve <= 0:
            collapse_day = day
            break

    return {
        "horizon": horizon,
        "collapse_day": collapse_day,
        "timeline": timeline,
        "min_reserve": min(pt["reserve"] for pt in timeline),
        "total_payouts": total_payouts,
        "total_principal_returned": total_principal,
    }


def simulate_reserve_survival(
    segments: Sequence[InvestorSegment],
    subscriptions: Sequence[Subscription],
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    pricing: PricingControls = None,
    program_controls: ProgramDesignControls = None,
    dynamic_pricing: bool = True,
) -> dict:
    segment_states = compute_segment_states(
        segments, subscriptions, tariffs, boosters, pricing, program_controls, dynamic_pricing
    )

    start_reserve = 0.0
    project_take = 0.0
    summaries: List[dict] = []
    for seg, state in segment_states:
        totals = state["totals"]
        start_reserve += seg.investors_count * totals["capital"]
        project_take += seg.investors_count * totals["project_revenue"]
        summaries.append(segment_summary(seg, state))

    reserve_after_fees = max(0.0, start_reserve - project_take)
    walk = run_reserve_walk(reserve_after_fees, *_plan_arrays(segment_states))

    logger.debug(
        "Reserve walk: start=%.2f after_fees=%.2f horizon=%d collapse_day=%s",
        start_reserve, reserve_after_fees, walk["horizon"], walk["collapse_day"],
    )
    return {
        "start_reserve": start_reserve,
        "project_take": project_take,
        "reserve_after_fees": reserve_after_fees,
        "survived": walk["collapse_day"] is None,
        "segments": summaries,
        "cohort": cohort_totals(segment_states),
        **walk,
    }
