"""
Growth scenario model for the reserve.

Unlike the stress walk in reserve.py, investors keep arriving here. Each
segment onboards its investors over ``ramp_days``, the active base tops up
daily, churns, refers new investors and reinvests part of what matures.
The project takes its per-day revenue and pays marketing for every new
investor. The reserve starts empty and the walk stops on the first day it
is exhausted, or when the plan queue grows past its guards.

A scenario bias in [0, 100] blends the crisis and aggressive-growth
profiles; every profile field is interpolated linearly.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from plan_builder_app.schemas import (
    Booster,
    InvestorSegment,
    PricingControls,
    ProgramDesignControls,
    ScenarioProfile,
    Subscription,
    Tariff,
)
from plan_builder_app.services.reserve import cohort_totals, compute_segment_states, segment_summary

logger = logging.getLogger(__name__)

# ── Guards ──
GROWTH_MAX_DAYS = 180
GROWTH_MAX_QUEUE = 8000
GROWTH_MAX_DAILY_PROCESSED = 3000
GROWTH_MIN_DAYS = 60
GROWTH_TAIL_DAYS = 120

SCENARIO_WORST = ScenarioProfile(
    label="Crisis",
    optimism=0.0,
    acquisition_multiplier=0.45,
    expansion_rate=0.01,
    top_up_growth=-0.35,
    churn_probability=0.08,
    reinvest_share=0.12,
    marketing_cost_per_investor=38.0,
    ramp_compression=1.15,
    acquisition_floor=0.32,
    daily_ad_budget_growth=0.015,
    seasonality_amplitude=0.12,
    momentum_midpoint=65.0,
    momentum_slope=0.07,
    retention_boost=-0.18,
)

SCENARIO_BEST = ScenarioProfile(
    label="Aggressive growth",
    optimism=1.0,
    acquisition_multiplier=1.6,
    expansion_rate=0.18,
    top_up_growth=0.85,
    churn_probability=0.012,
    reinvest_share=0.6,
    marketing_cost_per_investor=14.0,
    ramp_compression=0.65,
    acquisition_floor=0.95,
    daily_ad_budget_growth=0.12,
    seasonality_amplitude=0.38,
    momentum_midpoint=32.0,
    momentum_slope=0.16,
    retention_boost=0.28,
)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def blend_scenario(bias: float) -> ScenarioProfile:
    t = max(0.0, min(100.0, bias)) / 100.0
    if t < 0.33:
        label = SCENARIO_WORST.label
    elif t > 0.66:
        label = SCENARIO_BEST.label
    else:
        label = "Balanced"
    worst = SCENARIO_WORST.model_dump(exclude={"label"})
    best = SCENARIO_BEST.model_dump(exclude={"label"})
    blended = {key: worst[key] + (best[key] - worst[key]) * t for key in worst}
    return ScenarioProfile(label=label, **blended)


def compute_momentum(day: int, horizon: int, profile: ScenarioProfile) -> float:
    """Acquisition momentum: logistic adoption x monthly seasonality x warm-up ramp, floored."""
    logistic = 1.0 / (1.0 + math.exp(-profile.momentum_slope * (day - profile.momentum_midpoint)))
    seasonal = 1.0
    if profile.seasonality_amplitude > 0:
        seasonal = 1.0 + profile.seasonality_amplitude * math.sin(day / 30.0 * 2.0 * math.pi)
    ramp = min(1.0, day / max(30.0, horizon * 0.4))
    return max(profile.acquisition_floor, logistic * seasonal * ramp)


def _ramp_days(segment: InvestorSegment, profile: ScenarioProfile) -> int:
    return max(1, _round_half_up(max(1, segment.ramp_days) * profile.ramp_compression))


class _SegmentFlow:
    """Onboarding state of one segment during the walk."""

    def __init__(self, segment: InvestorSegment, state: dict, profile: ScenarioProfile):
        self.segment = segment
        self.state = state
        self.deposit_per_investor = state["totals"]["capital"]
        self.revenue_per_day = state["totals"]["project_revenue_per_day"]
        self.ramp_days = _ramp_days(segment, profile)
        self.investors_per_day = segment.investors_count / self.ramp_days
        self.onboarded = 0.0
        self.active = 0.0

    def new_plans(self, investor_equivalent: float) -> List[dict]:
        if not math.isfinite(investor_equivalent) or investor_equivalent <= 0:
            return []
        plans = []
        for row in self.state["rows"]:
            locked = row["payout_mode"] == "locked"
            plans.append({
                "segment_id": self.segment.id,
                "days_remaining": row["duration_days"],
                "principal": row["amount"] * investor_equivalent,
                "daily_payout": 0.0 if locked else row["net_per_day_final"] * investor_equivalent,
                "maturity_payout": row["net_final"] * investor_equivalent if locked else 0.0,
            })
        return plans


def _arrivals(flow: _SegmentFlow, day: int, momentum: float, profile: ScenarioProfile) -> float:
    remaining = max(0.0, flow.segment.investors_count - flow.onboarded)
    arrivals = 0.0
    if remaining > 0:
        if day <= flow.ramp_days:
            planned = max(
                flow.investors_per_day * profile.acquisition_floor,
                flow.investors_per_day * profile.acquisition_multiplier * momentum,
            )
            # the last ramp day onboards everyone still waiting
            arrivals = remaining if day == flow.ramp_days else min(remaining, planned)
        else:
            arrivals = min(remaining, flow.investors_per_day * max(momentum, profile.acquisition_floor))

    base = max(flow.active, flow.onboarded)
    if base > 0 and profile.expansion_rate > 0:
        arrivals += base * profile.expansion_rate * momentum
    return arrivals


def run_growth_walk(segment_states: Sequence[tuple], profile: ScenarioProfile) -> dict:
    flows = [_SegmentFlow(seg, state, profile) for seg, state in segment_states]
    flows_by_id: Dict[str, _SegmentFlow] = {f.segment.id: f for f in flows}

    max_duration = max((r["duration_days"] for f in flows for r in f.state["rows"]), default=0.0)
    max_ramp = max((f.ramp_days for f in flows), default=0)
    horizon = min(GROWTH_MAX_DAYS, max(GROWTH_MIN_DAYS, _round_half_up(max_duration + max_ramp + GROWTH_TAIL_DAYS)))

    queue: List[dict] = []
    timeline = [{"day": 0, "reserve": 0.0, "inflow": 0.0, "outflow": 0.0, "momentum": 0.0}]
    reserve = 0.0
    peak_reserve = 0.0
    collapse_day: Optional[int] = None
    abort_reason: Optional[str] = None
    momentum_sum = 0.0
    daily_outflow_first = 0.0
    totals = {
        "total_deposits": 0.0,
        "total_top_ups": 0.0,
        "project_take": 0.0,
        "marketing_spend": 0.0,
        "new_investor_deposits": 0.0,
        "reinvest_deposits": 0.0,
        "new_investors_total": 0.0,
        "total_payouts": 0.0,
        "total_matured": 0.0,
    }

    for day in range(1, horizon + 1):
        momentum = compute_momentum(day, horizon, profile)
        marketing_scale = 1.0 + profile.daily_ad_budget_growth * math.log1p(day)
        churn_rate = max(0.0, profile.churn_probability * max(0.0, 1.0 - profile.retention_boost * momentum))
        momentum_sum += momentum

        day_inflow = 0.0
        day_take = 0.0
        day_marketing = 0.0

        for flow in flows:
            arrivals = _arrivals(flow, day, momentum, profile)
            if arrivals > 0:
                flow.onboarded += arrivals
                flow.active += arrivals
                totals["new_investors_total"] += arrivals
                day_marketing += arrivals * profile.marketing_cost_per_investor * marketing_scale
                queue.extend(flow.new_plans(arrivals))
                deposit = flow.deposit_per_investor * arrivals
                day_inflow += deposit
                totals["total_deposits"] += deposit
                totals["new_investor_deposits"] += deposit

            if flow.active > 0:
                top_up = flow.segment.daily_top_up_per_investor * flow.active * max(
                    0.0, 1.0 + profile.top_up_growth * momentum
                )
                day_inflow += top_up
                totals["total_top_ups"] += top_up
                day_take += max(0.0, flow.revenue_per_day * flow.active)

            if flow.active > 0 and churn_rate > 0:
                churned = flow.active * churn_rate
                flow.active = max(0.0, flow.active - churned)
                # churned investors stop topping up; the project loses that share of its take
                day_take -= churned * flow.segment.daily_top_up_per_investor

        if len(queue) > GROWTH_MAX_QUEUE:
            abort_reason = "queue"
            collapse_day = day
            timeline.append({
                "day": day, "reserve": reserve, "inflow": day_inflow,
                "outflow": day_take + day_marketing, "momentum": momentum,
            })
            break

        reserve += day_inflow
        if day_take > 0:
            reserve -= day_take
            totals["project_take"] += day_take
        reserve -= day_marketing
        totals["marketing_spend"] += day_marketing

        day_payout = 0.0
        matured = 0.0
        still_running = []
        for processed, plan in enumerate(queue, start=1):
            if processed > GROWTH_MAX_DAILY_PROCESSED:
                abort_reason = "processing"
                break
            day_payout += max(0.0, plan["daily_payout"])
            plan["days_remaining"] -= 1
            if plan["days_remaining"] > 0:
                still_running.append(plan)
                continue
            matured_total = plan["principal"] + plan["maturity_payout"]
            matured += matured_total
            reinvest = matured_total * profile.reinvest_share * momentum
            owner = flows_by_id.get(plan["segment_id"])
            if reinvest > 0 and owner is not None and owner.deposit_per_investor > 0:
                # reinvested money never leaves the reserve
                still_running.extend(owner.new_plans(reinvest / owner.deposit_per_investor))
                day_inflow += reinvest
                reserve += reinvest
                totals["total_deposits"] += reinvest
                totals["reinvest_deposits"] += reinvest

        if abort_reason is not None:
            collapse_day = day
            timeline.append({
                "day": day, "reserve": reserve, "inflow": day_inflow,
                "outflow": day_payout + matured + day_take + day_marketing, "momentum": momentum,
            })
            break

        queue = still_running
        reserve -= day_payout + matured
        totals["total_payouts"] += day_payout
        totals["total_matured"] += matured

        day_cost = day_payout + matured + day_take + day_marketing
        if day == 1:
            daily_outflow_first = day_cost
        peak_reserve = max(peak_reserve, reserve)
        timeline.append({
            "day": day, "reserve": reserve, "inflow": day_inflow,
            "outflow": day_cost, "momentum": momentum,
        })

        if reserve <= 0:
            collapse_day = day
            break

    peak_reserve = max(peak_reserve, reserve)
    if collapse_day is None and timeline[-1]["day"] < horizon:
        timeline.append({
            "day": horizon, "reserve": reserve, "inflow": 0.0, "outflow": 0.0,
            "momentum": compute_momentum(horizon, horizon, profile),
        })

    days_simulated = timeline[-1]["day"]
    if abort_reason is None and horizon >= GROWTH_MAX_DAYS:
        abort_reason = "horizon"

    return {
        "horizon": horizon,
        "collapse_day": collapse_day,
        "timeline": timeline,
        "reserve_after_fees": max(0.0, reserve),
        "start_reserve": totals["new_investor_deposits"],
        "net_project_take": max(0.0, totals["project_take"] - totals["marketing_spend"]),
        "peak_reserve": peak_reserve,
        "daily_outflow_first": daily_outflow_first,
        "avg_daily_new_investors": totals["new_investors_total"] / days_simulated if days_simulated > 0 else 0.0,
        "avg_momentum": momentum_sum / days_simulated if days_simulated > 0 else 0.0,
        "truncated": abort_reason is not None,
        "abort_reason": abort_reason,
        **totals,
    }


def simulate_growth(
    segments: Sequence[InvestorSegment],
    subscriptions: Sequence[Subscription],
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    pricing: PricingControls = None,
    program_controls: ProgramDesignControls = None,
    dynamic_pricing: bool = True,
    scenario_bias: float = 55.0,
    profile: ScenarioProfile = None,
) -> dict:
    profile = profile or blend_scenario(scenario_bias)
    segment_states = compute_segment_states(
        segments, subscriptions, tariffs, boosters, pricing, program_controls, dynamic_pricing,
        profile.optimism,
    )
    walk = run_growth_walk(segment_states, profile)

    logger.debug(
        "Growth walk (%s): horizon=%d collapse_day=%s abort=%s",
        profile.label, walk["horizon"], walk["collapse_day"], walk["abort_reason"],
    )
    return {
        "scenario": profile.model_dump(),
        "survived": walk["collapse_day"] is None,
        "segments": [segment_summary(seg, state) for seg, state in segment_states],
        "cohort": cohort_totals(segment_states),
        **walk,
    }
