import math
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _coerce_amount(v) -> float:
    try:
        amount = float(v)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


class Subscription(BaseModel):
    id: str
    name: str = ""
    fee_rate: float
    price: float = 0.0          # per 30-day cycle
    min_level: int = 1

    @field_validator("fee_rate")
    @classmethod
    def fee_range(cls, v):
        if v < 0 or v > 1:
            raise ValueError("fee_rate must be between 0 and 1")
        return v

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v):
        if v < 0:
            raise ValueError("price must be >= 0")
        return v


class Tariff(BaseModel):
    id: str
    name: str = "Tariff"
    duration_days: float
    daily_rate: float
    # Optional payout band around daily_rate; None collapses the band onto daily_rate
    daily_rate_min: Optional[float] = None
    daily_rate_max: Optional[float] = None
    min_level: int = 1
    base_min: float = 0.0
    base_max: float = 0.0
    required_subscription: Optional[str] = None
    access_mode: str = "level"      # level | open
    limited: bool = False
    capacity_slots: Optional[int] = None
    category: str = "plan"          # plan | program
    entry_fee: float = 0.0          # one-time, program only
    recommended_principal: Optional[float] = None
    payout_mode: str = "stream"     # stream | locked

    @field_validator("duration_days")
    @classmethod
    def duration_positive(cls, v):
        if v <= 0:
            raise ValueError("duration_days must be > 0")
        return v

    @field_validator("daily_rate", "base_min", "base_max", "entry_fee")
    @classmethod
    def non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("daily_rate_min", "daily_rate_max", "recommended_principal")
    @classmethod
    def optional_non_negative(cls, v, info):
        if v is None:
            return v
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("capacity_slots")
    @classmethod
    def capacity_non_negative(cls, v):
        if v is None:
            return v
        if v < 0:
            raise ValueError("capacity_slots must be >= 0")
        return v

    @field_validator("access_mode")
    @classmethod
    def valid_access_mode(cls, v):
        vv = str(v).lower().strip()
        if vv not in {"level", "open"}:
            raise ValueError("access_mode must be one of: level, open")
        return vv

    @field_validator("category")
    @classmethod
    def valid_category(cls, v):
        vv = str(v).lower().strip()
        if vv not in {"plan", "program"}:
            raise ValueError("category must be one of: plan, program")
        return vv

    @field_validator("payout_mode")
    @classmethod
    def valid_payout_mode(cls, v):
        vv = str(v).lower().strip()
        if vv not in {"stream", "locked"}:
            raise ValueError("payout_mode must be one of: stream, locked")
        return vv

    def model_post_init(self, __context):
        if self.base_max < self.base_min:
            raise ValueError(
                f"Tariff '{self.id}': base_max={self.base_max} is below base_min={self.base_min}"
            )
        lo, hi = self.rate_band
        if lo > hi:
            raise ValueError(
                f"Tariff '{self.id}': daily_rate_min={lo} exceeds daily_rate_max={hi}"
            )

    @property
    def rate_band(self):
        lo = self.daily_rate if self.daily_rate_min is None else self.daily_rate_min
        hi = self.daily_rate if self.daily_rate_max is None else self.daily_rate_max
        return lo, hi

    @property
    def duration_hours(self) -> float:
        return self.duration_days * 24.0


class BoosterEffect(BaseModel):
    """Tagged booster effect. ``mult`` is a fractional yield bonus (0.5 = +50%)."""

    type: str = "mult"
    value: float = 0.0

    @field_validator("type")
    @classmethod
    def valid_type(cls, v):
        # Kept in sync with services.boosts.EFFECT_MULTIPLIERS
        vv = str(v).lower().strip()
        if vv not in {"mult"}:
            raise ValueError("effect type must be one of: mult")
        return vv

    @field_validator("value")
    @classmethod
    def value_non_negative(cls, v):
        if v < 0:
            raise ValueError("effect value must be >= 0")
        return v


class Booster(BaseModel):
    id: str
    name: str = "Booster"
    scope: str = "account"          # account | tariff
    effect: BoosterEffect = Field(default_factory=BoosterEffect)
    duration_hours: float
    price: float = 0.0
    min_level: int = 1
    required_subscription: Optional[str] = None
    blocked_tariff_ids: List[str] = Field(default_factory=list)
    per_portfolio_limit: int = 1

    @field_validator("scope")
    @classmethod
    def valid_scope(cls, v):
        vv = str(v).lower().strip()
        if vv not in {"account", "tariff"}:
            raise ValueError("scope must be one of: account, tariff")
        return vv

    @field_validator("duration_hours")
    @classmethod
    def duration_positive(cls, v):
        if v <= 0:
            raise ValueError("duration_hours must be > 0")
        return v

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v):
        if v < 0:
            raise ValueError("price must be >= 0")
        return v

    @property
    def effect_value(self) -> float:
        return self.effect.value

    def blocks(self, tariff_id: str) -> bool:
        return tariff_id in self.blocked_tariff_ids


class PortfolioItem(BaseModel):
    id: str
    tariff_id: str
    amount: float = 0.0

    @field_validator("amount", mode="before")
    @classmethod
    def amount_coerced(cls, v):
        return _coerce_amount(v)


def _check_unique_items(items: List[PortfolioItem], owner: str):
    seen = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"{owner}: duplicate portfolio item id '{item.id}'")
        seen.add(item.id)


class PricingControls(BaseModel):
    base_capture_pct: float = 65.0
    whale_capture_pct: float = 90.0
    investor_roi_floor_pct: float = 20.0
    min_price: float = 0.5
    max_price: float = 1_000_000.0

    @field_validator("base_capture_pct", "whale_capture_pct")
    @classmethod
    def pct_range(cls, v, info):
        if v < 0 or v > 100:
            raise ValueError(f"{info.field_name} must be between 0 and 100")
        return v

    @field_validator("investor_roi_floor_pct", "min_price", "max_price")
    @classmethod
    def non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    def model_post_init(self, __context):
        if self.max_price < self.min_price:
            raise ValueError(
                f"max_price={self.max_price} must be >= min_price={self.min_price}"
            )


class ProgramDesignControls(BaseModel):
    relative_premium_pct: float = 20.0
    absolute_premium_pct: float = 5.0
    buffer_multiple: float = 1.2

    @field_validator("relative_premium_pct", "absolute_premium_pct")
    @classmethod
    def non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("buffer_multiple")
    @classmethod
    def buffer_at_least_one(cls, v):
        if v < 1:
            raise ValueError("buffer_multiple must be >= 1")
        return v


class InvestorSegment(BaseModel):
    id: str
    name: str = "Segment"
    investors_count: int = 1
    user_level: int = 1
    subscription_id: str = "free"
    booster_ids: List[str] = Field(default_factory=list)
    portfolio: List[PortfolioItem] = Field(default_factory=list)
    # Growth scenario only: onboarding window and recurring top-ups
    ramp_days: int = 7
    daily_top_up_per_investor: float = 0.0

    @field_validator("investors_count")
    @classmethod
    def investors_non_negative(cls, v):
        if v < 0:
            raise ValueError("investors_count must be >= 0")
        return v

    @field_validator("ramp_days")
    @classmethod
    def ramp_at_least_one(cls, v):
        if v < 1:
            raise ValueError("ramp_days must be >= 1")
        return v

    @field_validator("daily_top_up_per_investor")
    @classmethod
    def top_up_non_negative(cls, v):
        if v < 0:
            raise ValueError("daily_top_up_per_investor must be >= 0")
        return v

    def model_post_init(self, __context):
        _check_unique_items(self.portfolio, f"Segment '{self.id}'")


class ScenarioProfile(BaseModel):
    """Growth assumptions for the cohort model; see services/growth.py."""

    label: str = "Balanced"
    optimism: float = 0.5                   # position inside each tariff's rate band
    acquisition_multiplier: float = 1.0
    expansion_rate: float = 0.0             # daily referral growth of the active base
    top_up_growth: float = 0.0
    churn_probability: float = 0.0
    reinvest_share: float = 0.0             # share of matured money deposited again
    marketing_cost_per_investor: float = 0.0
    ramp_compression: float = 1.0
    acquisition_floor: float = 1.0
    daily_ad_budget_growth: float = 0.0
    seasonality_amplitude: float = 0.0
    momentum_midpoint: float = 30.0
    momentum_slope: float = 0.1
    retention_boost: float = 0.0

    @field_validator("optimism", "churn_probability", "reinvest_share")
    @classmethod
    def unit_range(cls, v, info):
        if v < 0 or v > 1:
            raise ValueError(f"{info.field_name} must be between 0 and 1")
        return v

    @field_validator(
        "acquisition_multiplier",
        "expansion_rate",
        "marketing_cost_per_investor",
        "ramp_compression",
        "acquisition_floor",
        "daily_ad_budget_growth",
        "seasonality_amplitude",
    )
    @classmethod
    def non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v


# ── Request envelopes ──
# Catalog fields default to the built-in catalog (see catalog.py).

def _default_subscriptions():
    from plan_builder_app.catalog import SUBSCRIPTIONS
    return list(SUBSCRIPTIONS)


def _default_tariffs():
    from plan_builder_app.catalog import TARIFFS
    return list(TARIFFS)


def _default_boosters():
    from plan_builder_app.catalog import BOOSTERS
    return list(BOOSTERS)


class CatalogInput(BaseModel):
    subscriptions: List[Subscription] = Field(default_factory=_default_subscriptions)
    tariffs: List[Tariff] = Field(default_factory=_default_tariffs)
    boosters: List[Booster] = Field(default_factory=_default_boosters)

    @field_validator("subscriptions")
    @classmethod
    def subscriptions_present(cls, v):
        if not v:
            raise ValueError("subscriptions must contain at least one tier")
        return v


class PlannerState(CatalogInput):
    portfolio: List[PortfolioItem] = Field(default_factory=list)
    selected_booster_ids: List[str] = Field(default_factory=list)
    subscription_id: str = "free"
    user_level: int = 1
    pricing: PricingControls = Field(default_factory=PricingControls)
    program_controls: ProgramDesignControls = Field(default_factory=ProgramDesignControls)
    dynamic_pricing: bool = True
    optimism: Optional[float] = None    # 0..1 position inside each tariff's rate band

    @field_validator("optimism")
    @classmethod
    def optimism_range(cls, v):
        if v is None:
            return v
        if v < 0 or v > 1:
            raise ValueError("optimism must be between 0 and 1")
        return v

    def model_post_init(self, __context):
        _check_unique_items(self.portfolio, "Portfolio")


class AccessibilityInput(CatalogInput):
    user_level: int = 1
    subscription_id: str = "free"


class AddDepositInput(PlannerState):
    tariff_id: str
    amount: Optional[float] = None
    item_id: Optional[str] = None


class ReserveSimulationInput(CatalogInput):
    segments: List[InvestorSegment]
    pricing: PricingControls = Field(default_factory=PricingControls)
    program_controls: ProgramDesignControls = Field(default_factory=ProgramDesignControls)
    dynamic_pricing: bool = True

    @field_validator("segments")
    @classmethod
    def segments_range(cls, v):
        if len(v) > 200:
            raise ValueError("segments must contain at most 200 entries")
        return v


class GrowthSimulationInput(ReserveSimulationInput):
    scenario_bias: float = 55.0             # 0 = crisis, 100 = aggressive growth
    scenario: Optional[ScenarioProfile] = None  # explicit profile overrides the bias

    @field_validator("scenario_bias")
    @classmethod
    def bias_range(cls, v):
        if v < 0 or v > 100:
            raise ValueError("scenario_bias must be between 0 and 100")
        return v


class PersistedState(BaseModel):
    tariffs: List[Tariff] = Field(default_factory=_default_tariffs)
    boosters: List[Booster] = Field(default_factory=_default_boosters)
    pricing: PricingControls = Field(default_factory=PricingControls)
    program_controls: ProgramDesignControls = Field(default_factory=ProgramDesignControls)
