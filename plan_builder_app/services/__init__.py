from plan_builder_app.services.eligibility import is_accessible
from plan_builder_app.services.growth import simulate_growth
from plan_builder_app.services.impact import evaluate_booster_impact
from plan_builder_app.services.planner import compute_planner
from plan_builder_app.services.portfolio import compute_portfolio_state
from plan_builder_app.services.pricing import price_boosters_dynamically
from plan_builder_app.services.reserve import simulate_reserve_survival

__all__ = [
    "compute_planner",
    "compute_portfolio_state",
    "evaluate_booster_impact",
    "is_accessible",
    "price_boosters_dynamically",
    "simulate_growth",
    "simulate_reserve_survival",
]
