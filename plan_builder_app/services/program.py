"""
Program design insights.

A program (entry-fee tariff) is only worth joining when its return beats the
best plan the user can already access by a required premium. The insight rows
say how large a deposit makes the entry fee worthwhile and how large an entry
fee the program could carry at that deposit.
"""

from typing import Dict, Optional, Sequence

from plan_builder_app.schemas import ProgramDesignControls, Subscription, Tariff
from plan_builder_app.services.boosts import tariff_rate
from plan_builder_app.services.eligibility import is_accessible


def base_return(tariff: Tariff, fee_rate: float) -> float:
    """Net return per unit of deposit over the full tariff term."""
    return tariff_rate(tariff) * tariff.duration_days * (1.0 - fee_rate)


def breakeven_amount(tariff: Tariff, fee_rate: float) -> Optional[float]:
    """Deposit at which a program's net yield equals its entry fee."""
    if tariff.category != "program":
        return None
    denom = base_return(tariff, fee_rate)
    if denom <= 0:
        return None
    return tariff.entry_fee / denom


def build_program_insights(
    tariffs: Sequence[Tariff],
    user_level: int,
    subscription_id: str,
    fee_rate: float,
    controls: ProgramDesignControls = None,
    subscriptions: Sequence[Subscription] = None,
) -> Dict[str, dict]:
    controls = controls or ProgramDesignControls()
    plans = [
        t for t in tariffs
        if t.category == "plan" and is_accessible(t, user_level, subscription_id, subscriptions)
    ]
    competitor: Optional[Tariff] = None
    competitor_return = 0.0
    for plan in plans:
        r = base_return(plan, fee_rate)
        if r > competitor_return:
            competitor, competitor_return = plan, r

    relative = max(0.0, controls.relative_premium_pct) / 100.0
    absolute = max(0.0, controls.absolute_premium_pct) / 100.0
    buffer = max(1.0, controls.buffer_multiple)

    insights = {}
    for program in (t for t in tariffs if t.category == "program"):
        ret = base_return(program, fee_rate)
        required_premium = max(competitor_return * relative, absolute)
        margin = ret - competitor_return - required_premium
        fee = program.entry_fee

        breakeven = fee / ret if fee > 0 and ret > 0 else None
        if breakeven is not None:
            anchor = max(program.base_min, breakeven * buffer)
        else:
            anchor = max(program.base_min, program.recommended_principal or program.base_min)

        recommended = max(program.base_min, fee / margin * buffer) if fee > 0 and margin > 0 else None
        target = recommended if recommended is not None else anchor

        premium_at_base_min = ret - fee / program.base_min - competitor_return if program.base_min > 0 else None
        premium_at_target = ret - fee / target - competitor_return if target > 0 else None
        advantage_ratio = (
            premium_at_target / competitor_return
            if competitor_return > 0 and premium_at_target is not None
            else None
        )
        max_entry_fee = margin * target if margin > 0 else 0.0

        insights[program.id] = {
            "tariff_id": program.id,
            "base_return": ret,
            "competitor_id": competitor.id if competitor else None,
            "competitor_return": competitor_return,
            "required_premium": required_premium,
            "margin": margin,
            "breakeven_amount": breakeven,
            "recommended_principal": recommended,
            "target_deposit": target,
            "premium_at_base_min": premium_at_base_min,
            "premium_at_target": premium_at_target,
            "advantage_ratio": advantage_ratio,
            "max_entry_fee_for_target": max_entry_fee,
            "entry_fee_gap": max_entry_fee - fee,
            "requirement_met": premium_at_target is not None and premium_at_target >= required_premium,
        }
    return insights


def summarize_programs(
    insights: Dict[str, dict],
    tariffs: Sequence[Tariff],
    user_level: int,
    subscription_id: str,
    subscriptions: Sequence[Subscription] = None,
) -> dict:
    by_id = {t.id: t for t in tariffs}
    relevant = [
        ins for tid, ins in insights.items()
        if tid in by_id
        and by_id[tid].entry_fee > 0
        and is_accessible(by_id[tid], user_level, subscription_id, subscriptions)
    ]
    if not relevant:
        return {"count": 0, "avg_premium": None, "flagged": 0}
    avg_premium = sum(max(0.0, ins["premium_at_target"] or 0.0) for ins in relevant) / len(relevant)
    flagged = sum(1 for ins in relevant if not ins["requirement_met"])
    return {"count": len(relevant), "avg_premium": avg_premium, "flagged": flagged}
