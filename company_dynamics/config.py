"""Configuration management using Pydantic v2 models.

This module provides the configuration classes consumed when constructing
companies. The company-generation layer produces one :class:`CompanyConfig`
per company; the engine assumes it has been validated here and never checks
it again inside a tick.

The configuration is hierarchical:

    - :class:`CompanyConfig` is the root, selecting an archetype
      (``"mature"`` or ``"hypergrowth"``).
    - :class:`BaseBusinessConfig` holds the revenue process and the margin /
      multiple convergence curves.
    - :class:`FinanceConfig` and :class:`CostConfig` hold the capital
      structure and cost parameters. Unset fields fall back to archetype
      defaults at construction time.
    - :class:`ProductConfig` / :class:`StageConfig` describe R&D pipeline bets.
    - :class:`ScheduledEventConfig` / :class:`EffectConfig` describe recurring
      one-off effects.

Examples:
    Minimal mature company::

        from company_dynamics.config import CompanyConfig

        config = CompanyConfig.model_validate({
            "id": "acme",
            "static": {"name": "Acme Corp", "sector": "Retail"},
            "base_business": {
                "revenue_process": {"initial_revenue_usd": {"min": 5e8, "max": 8e8}},
                "multiple_curve": {
                    "initial_ps_ratio": 2.0,
                    "terminal_pe_ratio": 18.0,
                    "years_to_converge": 10,
                },
            },
        })

Note:
    All monetary values are in nominal dollars. Rates and ratios are expressed
    as decimals (0.1 = 10%).
"""

from typing import Any, List, Literal, Optional
import warnings

from pydantic import BaseModel, Field, field_validator, model_validator

from ._warnings import ConfigurationWarning
from .stochastic_processes import StochasticDriver


class ValueRange(BaseModel):
    """Closed interval sampled uniformly at construction time.

    Accepts ``{"min": a, "max": b}``, a two-element list ``[a, b]`` or a bare
    number (a degenerate range).
    """

    min: float
    max: float

    @model_validator(mode="before")
    @classmethod
    def coerce_shorthand(cls, data: Any) -> Any:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return {"min": data, "max": data}
        if isinstance(data, (list, tuple)) and len(data) == 2:
            return {"min": data[0], "max": data[1]}
        return data

    @model_validator(mode="after")
    def validate_order(self):
        if self.min > self.max:
            raise ValueError(f"Range min ({self.min}) exceeds max ({self.max})")
        return self

    def sample(self, driver: StochasticDriver) -> float:
        if self.min == self.max:
            return self.min
        return driver.between(self.min, self.max)


class RevenueProcessConfig(BaseModel):
    """Starting revenue of the core business."""

    initial_revenue_usd: ValueRange

    @field_validator("initial_revenue_usd")
    @classmethod
    def validate_positive(cls, v: ValueRange) -> ValueRange:
        """Revenue ranges must be strictly positive.

        Raises:
            ValueError: If the lower bound is not positive.
        """
        if v.min <= 0:
            raise ValueError(f"initial_revenue_usd.min must be positive, got {v.min}")
        return v


class MarginCurveConfig(BaseModel):
    """Profit margin glide path.

    Attributes:
        start_profit_margin: Margin at inception.
        terminal_profit_margin: Margin once mature.
        years_to_mature: Years until the terminal margin is reached.
    """

    start_profit_margin: float = Field(gt=-5, lt=1)
    terminal_profit_margin: float = Field(gt=-1, lt=1)
    years_to_mature: float = Field(gt=0, le=100)

    @field_validator("terminal_profit_margin")
    @classmethod
    def validate_terminal_margin(cls, v: float) -> float:
        """Warn if the terminal margin is unusually high.

        Args:
            v: Terminal margin (as decimal, e.g. 0.2 for 20%).

        Returns:
            float: The validated margin.
        """
        if v > 0.6:
            warnings.warn(
                f"Terminal profit margin {v:.1%} is unusually high",
                ConfigurationWarning,
                stacklevel=2,
            )
        return v


class MultipleCurveConfig(BaseModel):
    """Valuation multiple glide path from P/S toward P/E x margin."""

    initial_ps_ratio: float = Field(gt=0, le=200)
    terminal_pe_ratio: float = Field(gt=0, le=500)
    years_to_converge: float = Field(gt=0, le=100)


class BaseBusinessConfig(BaseModel):
    """Core business: revenue process plus convergence curves."""

    revenue_process: Optional[RevenueProcessConfig] = None
    margin_curve: Optional[MarginCurveConfig] = None
    multiple_curve: Optional[MultipleCurveConfig] = None


class FinanceConfig(BaseModel):
    """Starting capital structure. ``None`` means use the archetype default."""

    starting_cash_usd: Optional[float] = Field(default=None, ge=0)
    starting_debt_usd: Optional[float] = Field(default=None, ge=0)
    interest_rate_annual: Optional[float] = Field(default=None, ge=0, le=1)


class CostConfig(BaseModel):
    """Operating cost parameters. ``None`` means use the archetype default."""

    opex_fixed_usd: Optional[float] = Field(default=None, ge=0)
    opex_variable_ratio: Optional[float] = Field(default=None, ge=0, le=1)
    rd_base_ratio: Optional[float] = Field(default=None, ge=0, le=1)


class StructuralBiasConfig(BaseModel):
    """Initial structural sentiment bias range and its decay half-life."""

    min: float = Field(default=0.25, gt=0)
    max: float = Field(default=4.0, gt=0)
    half_life_years: float = Field(default=15.0, gt=0)

    @model_validator(mode="after")
    def validate_range(self):
        if self.min > self.max:
            raise ValueError(f"structural_bias.min ({self.min}) exceeds max ({self.max})")
        if self.half_life_years > 100:
            warnings.warn(
                f"Structural bias half-life of {self.half_life_years} years effectively "
                f"disables decay",
                ConfigurationWarning,
                stacklevel=2,
            )
        return self


class SentimentConfig(BaseModel):
    structural_bias: StructuralBiasConfig = Field(default_factory=StructuralBiasConfig)


class StageConfig(BaseModel):
    """One stage of an R&D product.

    Attributes:
        id: Stage identifier, referenced by ``depends_on`` of later stages.
        name: Display name.
        depends_on: Stage that must have succeeded before this one may start.
        success_prob: Probability that an attempt succeeds.
        duration_days: Days per attempt.
        value_realization: Share of the product's full value unlocked on success.
        cost_usd: Annualized spend while the stage is running.
        max_retries: Additional attempts allowed after a failure.
        commercialises_revenue: Whether success starts revenue recognition.
    """

    id: str
    name: str = ""
    depends_on: Optional[str] = None
    success_prob: float = Field(default=1.0, ge=0, le=1)
    duration_days: float = Field(default=365.0, ge=0)
    value_realization: float = Field(default=0.0, ge=0, le=1)
    cost_usd: float = Field(default=0.0, ge=0)
    max_retries: int = Field(default=0, ge=0)
    commercialises_revenue: bool = False


class ProductConfig(BaseModel):
    """An R&D bet composed of ordered stages."""

    id: str
    label: Optional[str] = None
    full_revenue_usd: float = Field(default=0.0, ge=0)
    weight: float = Field(default=1.0, gt=0, description="Selection weight in a product plan")
    stages: List[StageConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_dependencies(self):
        """Stages may only depend on stages declared before them.

        Raises:
            ValueError: If a stage depends on an unknown or later stage.
        """
        seen: set = set()
        for stage in self.stages:
            if stage.depends_on is not None and stage.depends_on not in seen:
                raise ValueError(
                    f"Stage '{stage.id}' of product '{self.id}' depends on unknown "
                    f"or later stage '{stage.depends_on}'"
                )
            seen.add(stage.id)
        return self


class ProductPlanConfig(BaseModel):
    """Catalog-driven product spawning and retirement.

    Attributes:
        catalog: Product templates to draw from (weighted by ``weight``).
        max_active: Maximum number of plan-managed products alive at once.
        initial_count: Products seeded on the first tick.
        replacement_years: Years after a spawn before a successor is scheduled.
        gap_years: Delay between scheduling a successor and spawning it.
        allow_duplicates: Whether a template may be active more than once.
    """

    catalog: List[ProductConfig] = Field(min_length=1)
    max_active: int = Field(default=2, ge=1)
    initial_count: int = Field(default=1, ge=0)
    replacement_years: ValueRange = Field(default_factory=lambda: ValueRange(min=8, max=12))
    gap_years: ValueRange = Field(default_factory=lambda: ValueRange(min=0.5, max=2))
    allow_duplicates: bool = False


EffectKind = Literal["revenue_multiplier", "volatility_multiplier", "flat_revenue"]


class EffectConfig(BaseModel):
    """A timed modification of a company parameter."""

    type: EffectKind
    value: float
    duration_days: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def validate_multiplier(self):
        if self.type != "flat_revenue" and self.value <= 0:
            raise ValueError(f"Multiplier effect '{self.type}' needs a positive value")
        return self


class ScheduledEventConfig(BaseModel):
    """A recurring event firing its effects every ``interval_days``."""

    id: str
    label: Optional[str] = None
    interval_days: float = Field(default=365.0, gt=0)
    effects: List[EffectConfig] = Field(default_factory=list)


class StaticConfig(BaseModel):
    """Identity of a company."""

    name: Optional[str] = None
    sector: Optional[str] = None
    mission: str = ""
    founding_location: str = ""


class CompanyConfig(BaseModel):
    """Root configuration for a single simulated company.

    Attributes:
        id: Unique company identifier.
        archetype: ``"mature"`` for :class:`~company_dynamics.mature_company.MatureCompany`,
            ``"hypergrowth"`` for
            :class:`~company_dynamics.hypergrowth_company.HypergrowthCompany`.
        static: Name, sector and descriptive metadata.
        base_business: Revenue process and convergence curves.
        finance: Starting capital structure.
        costs: Cost parameters.
        sentiment: Sentiment parameters.
        pipeline: Initial R&D products.
        events: Scheduled one-off events.
        product_plan: Optional catalog-driven product spawning.
    """

    id: str
    archetype: Literal["mature", "hypergrowth"] = "mature"
    static: StaticConfig = Field(default_factory=StaticConfig)
    base_business: BaseBusinessConfig = Field(default_factory=BaseBusinessConfig)
    finance: FinanceConfig = Field(default_factory=FinanceConfig)
    costs: CostConfig = Field(default_factory=CostConfig)
    sentiment: SentimentConfig = Field(default_factory=SentimentConfig)
    pipeline: List[ProductConfig] = Field(default_factory=list)
    events: List[ScheduledEventConfig] = Field(default_factory=list)
    product_plan: Optional[ProductPlanConfig] = None

    @model_validator(mode="after")
    def validate_archetype_requirements(self):
        """Mature companies need a revenue process and a multiple curve.

        Raises:
            ValueError: If a mature company is missing either block.
        """
        if self.archetype == "mature":
            if self.base_business.revenue_process is None:
                raise ValueError(f"Mature company '{self.id}' requires a revenue_process")
            if self.base_business.multiple_curve is None:
                raise ValueError(f"Mature company '{self.id}' requires a multiple_curve")
        return self


class SectorImpactConfig(BaseModel):
    """Revenue trough for one sector (or ``"ALL"``) during a macro event."""

    sector: str = "ALL"
    min_multiplier: ValueRange


class MacroEffectConfig(BaseModel):
    """Adjustment to the sector indices while a macro event is active.

    ``macro_mu_delta`` adds ``value`` to every index drift;
    ``volatility_multiplier`` scales every index volatility by ``value``.
    """

    type: Literal["macro_mu_delta", "volatility_multiplier"]
    value: float

    @model_validator(mode="after")
    def validate_value(self):
        if self.type == "volatility_multiplier" and self.value <= 0:
            raise ValueError("volatility_multiplier effects need a positive value")
        return self


class MacroEventConfig(BaseModel):
    """Definition of a market-wide shock such as a recession or a bubble.

    The event multiplier falls linearly from 1 to its trough over
    ``impact_days`` and recovers linearly over ``recovery_days``.

    Attributes:
        id: Event identifier.
        label: Display label.
        description: Free-form description.
        chance: Probability the event is scheduled at all.
        start_year_range: Calendar years the start is drawn from.
        start_day: Day of year of the start; drawn when omitted.
        impact_days: Length of the decline phase (at least 30 days).
        recovery_days: Length of the recovery phase; defaults to ``impact_days``.
        global_multiplier: Revenue trough for sectors without a specific impact.
        valuation_compression: Valuation trough applied to all sectors.
        sector_impacts: Sector-specific revenue troughs.
        effects: Index drift/volatility adjustments while active.
    """

    id: str
    label: str = "Macro Event"
    description: str = ""
    chance: float = Field(default=1.0, ge=0, le=1)
    start_year_range: Optional[ValueRange] = None
    start_day: Optional[int] = Field(default=None, ge=1, le=366)
    impact_days: ValueRange = Field(default_factory=lambda: ValueRange(min=180, max=180))
    recovery_days: Optional[ValueRange] = None
    global_multiplier: ValueRange = Field(default_factory=lambda: ValueRange(min=1, max=1))
    valuation_compression: ValueRange = Field(default_factory=lambda: ValueRange(min=1, max=1))
    sector_impacts: List[SectorImpactConfig] = Field(default_factory=list)
    effects: List[MacroEffectConfig] = Field(default_factory=list)
