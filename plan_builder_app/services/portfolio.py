"""
Portfolio aggregation: per-deposit yield rows, shared-cost amortization and totals.

Shared costs are spread by capital-days (amount x duration_days):
  - each selected booster's price over the items it applies to;
  - the active subscription's price over every item.
A zero denominator yields a zero allocation.
"""

import logging
from typing import Dict, List, Optional, Sequence

from plan_builder_app.catalog import resolve_subscription
from plan_builder_app.schemas import (
    Booster,
    PortfolioItem,
    ProgramDesignControls,
    Subscription,
    Tariff,
)
from plan_builder_app.services.boosts import (
    applicable_boosters,
    booster_multiplier,
    booster_net_gain,
    coverage_fraction,
    tariff_rate,
)
from plan_builder_app.services.program import breakeven_amount, build_program_insights, summarize_programs
from plan_builder_app.services.projection import compare_subscriptions

logger = logging.getLogger(__name__)


def _per_day(value: float, days: float) -> float:
    return value / days if days > 0 else value


def _base_row(
    item: PortfolioItem,
    tariff: Tariff,
    chosen: Sequence[Booster],
    fee_rate: float,
    optimism: Optional[float],
) -> dict:
    amount = max(0.0, item.amount)
    days = tariff.duration_days
    rate = tariff_rate(tariff, optimism)
    applicable = applicable_boosters(chosen, tariff)

    multiplier = 1.0
    booster_gain: Dict[str, float] = {}
    for b in applicable:
        multiplier *= booster_multiplier(b, tariff)
        booster_gain[b.id] = booster_net_gain(b, tariff, amount, fee_rate, optimism)

    program_fee = tariff.entry_fee if tariff.category == "program" else 0.0
    daily_gross = amount * rate * multiplier
    gross = daily_gross * days
    net_no_boost = amount * rate * days * (1.0 - fee_rate) - program_fee

    return {
        "id": item.id,
        "tariff_id": tariff.id,
        "tariff": tariff,
        "amount": amount,
        "rate": rate,
        "duration_days": days,
        "capital_days": amount * days,
        "multiplier": multiplier,
        "applicable": applicable,
        "applicable_ids": {b.id for b in applicable},
        "booster_gain": booster_gain,
        "daily_gross": daily_gross,
        "fee_per_day": daily_gross * fee_rate,
        "gross": gross,
        "fee": gross * fee_rate,
        "program_fee": program_fee,
        "net_no_boost": net_no_boost,
    }


def _booster_denominators(rows: Sequence[dict], chosen: Sequence[Booster]) -> Dict[str, float]:
    denom = {}
    for b in chosen:
        denom[b.id] = sum(r["capital_days"] for r in rows if b.id in r["applicable_ids"])
    return denom


def _finish_row(
    r: dict,
    denom_by_booster: Dict[str, float],
    capital_days_all: float,
    subscription: Subscription,
    fee_rate: float,
) -> dict:
    tariff: Tariff = r["tariff"]
    days = r["duration_days"]

    booster_alloc = 0.0
    details = {}
    for b in r["applicable"]:
        denom = denom_by_booster.get(b.id, 0.0)
        share = r["capital_days"] / denom if denom else 0.0
        price_share = b.price * share
        booster_alloc += price_share

        active_hours = min(b.duration_hours, tariff.duration_hours)
        net_gain = r["booster_gain"].get(b.id, 0.0)
        net_per_hour = net_gain / active_hours if active_hours > 0 else 0.0
        details[b.id] = {
            "net_gain": net_gain,
            "price_share": price_share,
            "payback_hours": price_share / net_per_hour if net_per_hour > 0 and price_share > 0 else None,
            "coverage": coverage_fraction(b.duration_hours, days),
        }

    sub_share = r["capital_days"] / capital_days_all if capital_days_all else 0.0
    sub_alloc = subscription.price * sub_share

    program_fee = r["program_fee"]
    net_before_cost = r["gross"] - r["fee"] - program_fee
    net_after_boosters = net_before_cost - booster_alloc
    net_final = net_after_boosters - sub_alloc

    # Payout band: same multiplier and costs at the band edges
    lo, hi = tariff.rate_band
    band = {}
    for label, rate in (("min", lo), ("max", hi)):
        gross_edge = r["amount"] * rate * r["multiplier"] * days
        band[label] = gross_edge * (1.0 - fee_rate) - program_fee - booster_alloc - sub_alloc

    locked = tariff.payout_mode == "locked"
    net_per_day_final = _per_day(net_final, days)

    return {
        "id": r["id"],
        "tariff_id": r["tariff_id"],
        "category": tariff.category,
        "payout_mode": tariff.payout_mode,
        "amount": r["amount"],
        "duration_days": days,
        "rate": r["rate"],
        "capital_days": r["capital_days"],
        "multiplier": r["multiplier"],
        "applicable_booster_ids": [b.id for b in r["applicable"]],
        "daily_gross": r["daily_gross"],
        "fee_per_day": r["fee_per_day"],
        "gross": r["gross"],
        "fee": r["fee"],
        "booster_alloc": booster_alloc,
        "booster_alloc_per_day": _per_day(booster_alloc, days),
        "sub_alloc": sub_alloc,
        "sub_alloc_per_day": _per_day(sub_alloc, days),
        "program_fee": program_fee,
        "program_fee_per_day": _per_day(program_fee, days),
        "net_no_boost": r["net_no_boost"],
        "net_no_boost_per_day": _per_day(r["net_no_boost"], days),
        "net_before_cost": net_before_cost,
        "net_after_boosters": net_after_boosters,
        "net_after_boosters_per_day": _per_day(net_after_boosters, days),
        "net_final": net_final,
        "net_per_day_final": net_per_day_final,
        "net_final_min": band["min"],
        "net_final_max": band["max"],
        "net_per_day_final_min": _per_day(band["min"], days),
        "net_per_day_final_max": _per_day(band["max"], days),
        "booster_lift": net_after_boosters - r["net_no_boost"],
        "booster_lift_per_day": _per_day(net_after_boosters - r["net_no_boost"], days),
        "booster_details": details,
        "locked_net": net_final if locked else 0.0,
        "payout_per_day": 0.0 if locked else net_per_day_final,
        "breakeven_amount": breakeven_amount(tariff, fee_rate),
        "recommended_principal": tariff.recommended_principal,
    }


def _totals(rows: List[dict], subscription: Subscription, applied_cost: float) -> dict:
    def total(key):
        return sum(r[key] for r in rows)

    fee_total = total("fee")
    program_fees = total("program_fee")
    locked = total("locked_net")
    investor_net = total("net_final")
    return {
        "capital": total("amount"),
        "capital_days": total("capital_days"),
        "gross_total": total("gross"),
        "fee_total": fee_total,
        "fee_per_day_total": total("fee_per_day"),
        "booster_cost": applied_cost,
        "booster_cost_per_day": total("booster_alloc_per_day"),
        "sub_cost": subscription.price,
        "sub_cost_per_day": total("sub_alloc_per_day"),
        "program_fees": program_fees,
        "program_fees_per_day": total("program_fee_per_day"),
        "baseline_net": total("net_no_boost"),
        "baseline_net_per_day": total("net_no_boost_per_day"),
        "investor_net_before_sub": total("net_after_boosters"),
        "investor_net_per_day_before_sub": total("net_after_boosters_per_day"),
        "investor_net": investor_net,
        "investor_net_per_day": total("net_per_day_final"),
        "investor_net_min": total("net_final_min"),
        "investor_net_max": total("net_final_max"),
        "investor_net_per_day_min": total("net_per_day_final_min"),
        "investor_net_per_day_max": total("net_per_day_final_max"),
        "locked_net_total": locked,
        "unlocked_net_total": investor_net - locked,
        "payout_per_day_total": total("payout_per_day"),
        "project_revenue": fee_total + applied_cost + subscription.price + program_fees,
        "project_revenue_per_day": (
            total("fee_per_day") + total("booster_alloc_per_day")
            + total("sub_alloc_per_day") + total("program_fee_per_day")
        ),
    }


def _booster_summary(rows: List[dict], applied: Sequence[Booster], applied_cost: float, capital: float) -> dict:
    lift_net = sum(r["booster_lift"] for r in rows)
    net_before_cost = sum(
        r["booster_details"][b.id]["net_gain"]
        for r in rows for b in applied if b.id in r["booster_details"]
    )
    active_hours = sum(b.duration_hours for b in applied)
    net_per_hour = net_before_cost / active_hours if active_hours > 0 else 0.0

    covered = 0.0
    for r in rows:
        if r["booster_details"]:
            best = max(d["coverage"] for d in r["booster_details"].values())
            covered += r["amount"] * max(0.0, min(1.0, best))

    return {
        "lift_net": lift_net,
        "lift_per_plan_day": sum(r["booster_lift_per_day"] for r in rows),
        "lift_per_active_hour": lift_net / active_hours if active_hours > 0 else 0.0,
        "active_hours": active_hours,
        "net_before_cost": net_before_cost,
        "spend": applied_cost,
        "roi": lift_net / applied_cost if applied_cost > 0 else None,
        "payback_hours": applied_cost / net_per_hour if net_per_hour > 0 else None,
        "coverage_share": min(1.0, covered / capital) if capital > 0 else 0.0,
    }


def compute_portfolio_state(
    portfolio: Sequence[PortfolioItem],
    tariffs: Sequence[Tariff],
    boosters: Sequence[Booster],
    selected_booster_ids: Sequence[str],
    subscriptions: Sequence[Subscription],
    subscription_id: str,
    user_level: int,
    program_controls: ProgramDesignControls = None,
    optimism: Optional[float] = None,
) -> dict:
    """
    Aggregate a portfolio into per-item rows, totals, booster summary,
    30-day projections and program insights.

    Items pointing at unknown tariffs and unknown booster ids are skipped.
    """
    subscription = resolve_subscription(list(subscriptions), subscription_id)
    fee_rate = subscription.fee_rate
    boosters_by_id = {b.id: b for b in boosters}
    chosen = []
    chosen_ids = set()
    for bid in selected_booster_ids:
        b = boosters_by_id.get(bid)
        if b is not None and bid not in chosen_ids:
            chosen.append(b)
            chosen_ids.add(bid)

    tariffs_by_id = {t.id: t for t in tariffs}
    base_rows = []
    for item in portfolio:
        tariff = tariffs_by_id.get(item.tariff_id)
        if tariff is None:
            logger.debug("Skipping item %s: unknown tariff %s", item.id, item.tariff_id)
            continue
        base_rows.append(_base_row(item, tariff, chosen, fee_rate, optimism))

    denom_by_booster = _booster_denominators(base_rows, chosen)
    capital_days_all = sum(r["capital_days"] for r in base_rows)
    rows = [
        _finish_row(r, denom_by_booster, capital_days_all, subscription, fee_rate)
        for r in base_rows
    ]

    # A selected booster that applies to nothing costs nothing
    applied = [b for b in chosen if denom_by_booster.get(b.id, 0.0) > 0]
    applied_cost = sum(b.price for b in applied)

    totals = _totals(rows, subscription, applied_cost)
    insights = build_program_insights(
        tariffs, user_level, subscription.id, fee_rate, program_controls, subscriptions
    )

    logger.debug(
        "Portfolio state: %d rows, %d boosters applied, investor_net=%.4f",
        len(rows), len(applied), totals["investor_net"],
    )
    return {
        "subscription_id": subscription.id,
        "fee_rate": fee_rate,
        "rows": rows,
        "totals": totals,
        "booster_summary": _booster_summary(rows, applied, applied_cost, totals["capital"]),
        "applied_booster_ids": [b.id for b in applied],
        "projection30": compare_subscriptions(
            base_rows, subscriptions, subscription, user_level, sum(r["booster_alloc"] for r in rows)
        ),
        "program_insights": insights,
        "program_summary": summarize_programs(insights, tariffs, user_level, subscription.id, subscriptions),
    }
