import asyncio
import logging
from functools import partial

from fastapi import APIRouter, HTTPException

from plan_builder_app.catalog import catalog_snapshot, resolve_subscription
from plan_builder_app.normalize import dump_persisted_state, load_persisted_state
from plan_builder_app.schemas import (
    AccessibilityInput,
    AddDepositInput,
    GrowthSimulationInput,
    PlannerState,
    ReserveSimulationInput,
)
from plan_builder_app.services.eligibility import accessibility_report, available_boosters
from plan_builder_app.services.growth import simulate_growth
from plan_builder_app.services.holdings import PortfolioRejection, add_deposit
from plan_builder_app.services.impact import evaluate_boosters
from plan_builder_app.services.planner import compute_planner
from plan_builder_app.services.pricing import price_boosters_dynamically
from plan_builder_app.services.reserve import simulate_reserve_survival
from plan_builder_app.utils.json_safety import sanitize_floats

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_subscription(subscriptions, subscription_id: str):
    if all(s.id != subscription_id for s in subscriptions):
        raise HTTPException(
            status_code=422,
            detail=f"Unknown subscription_id '{subscription_id}'",
        )


@router.get("/catalog")
async def api_catalog():
    return sanitize_floats(catalog_snapshot())


@router.post("/catalog/normalize")
async def api_normalize_catalog(raw: dict):
    state = load_persisted_state(raw)
    return sanitize_floats(dump_persisted_state(state))


@router.post("/accessibility")
async def api_accessibility(data: AccessibilityInput):
    _check_subscription(data.subscriptions, data.subscription_id)
    return accessibility_report(
        data.tariffs, data.boosters, data.user_level, data.subscription_id, data.subscriptions
    )


@router.post("/boosters/price")
async def api_price_boosters(data: PlannerState):
    _check_subscription(data.subscriptions, data.subscription_id)
    sub = resolve_subscription(data.subscriptions, data.subscription_id)
    priced = price_boosters_dynamically(
        data.boosters, data.tariffs, sub, data.user_level, data.portfolio, data.pricing, data.subscriptions
    )
    return sanitize_floats({"boosters": priced})


@router.post("/boosters/impact")
async def api_booster_impact(data: PlannerState):
    _check_subscription(data.subscriptions, data.subscription_id)
    sub = resolve_subscription(data.subscriptions, data.subscription_id)
    boosters = data.boosters
    if data.dynamic_pricing:
        boosters = price_boosters_dynamically(
            boosters, data.tariffs, sub, data.user_level, data.portfolio, data.pricing, data.subscriptions
        )
    available = available_boosters(boosters, data.user_level, sub.id, data.subscriptions)
    return sanitize_floats({"impacts": evaluate_boosters(available, data.portfolio, data.tariffs, sub)})


@router.post("/portfolio/compute")
async def api_compute_portfolio(data: PlannerState):
    _check_subscription(data.subscriptions, data.subscription_id)
    logger.info("Computing planner: %d items, %d boosters selected", len(data.portfolio), len(data.selected_booster_ids))
    return sanitize_floats(compute_planner(data))


@router.post("/portfolio/add")
async def api_add_deposit(data: AddDepositInput):
    _check_subscription(data.subscriptions, data.subscription_id)
    tariff = next((t for t in data.tariffs if t.id == data.tariff_id), None)
    try:
        portfolio = add_deposit(
            data.portfolio,
            tariff,
            data.user_level,
            data.subscription_id,
            data.subscriptions,
            amount=data.amount,
            item_id=data.item_id,
        )
    except PortfolioRejection as e:
        raise HTTPException(status_code=422, detail={"reason": e.reason, "message": str(e)})

    state = PlannerState(**{**data.model_dump(exclude={"tariff_id", "amount", "item_id"}), "portfolio": portfolio})
    return sanitize_floats({"portfolio": portfolio, "state": compute_planner(state)})


@router.post("/simulation/reserve")
async def api_reserve_simulation(data: ReserveSimulationInput):
    if not data.segments:
        raise HTTPException(status_code=422, detail="At least one investor segment is required.")

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None,
        simulate_reserve_survival,
        data.segments,
        data.subscriptions,
        data.tariffs,
        data.boosters,
        data.pricing,
        data.program_controls,
        data.dynamic_pricing,
    )
    logger.info("Reserve simulation: collapse_day=%s horizon=%s", result["collapse_day"], result["horizon"])
    return sanitize_floats(result)


@router.post("/simulation/growth")
async def api_growth_simulation(data: GrowthSimulationInput):
    if not data.segments:
        raise HTTPException(status_code=422, detail="At least one investor segment is required.")

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None,
        partial(
            simulate_growth,
            data.segments,
            data.subscriptions,
            data.tariffs,
            data.boosters,
            data.pricing,
            data.program_controls,
            data.dynamic_pricing,
            scenario_bias=data.scenario_bias,
            profile=data.scenario,
        ),
    )
    logger.info(
        "Growth simulation (%s): collapse_day=%s truncated=%s",
        result["scenario"]["label"], result["collapse_day"], result["truncated"],
    )
    return sanitize_floats(result)


@router.get("/health")
async def health():
    return {"status": "ok"}
