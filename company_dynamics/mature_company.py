"""Mature, cash-generative company.

A mature company earns a base revenue scaled by its sector's cyclicality and
an idiosyncratic multiplier, converts it to earnings along a margin curve and
is valued at a multiple that converges from price-to-sales toward
price-to-earnings. Valuation passes through three stages each tick:

    1. **Fair value**: forward earnings times the fair multiple, plus the
       unlocked and option value of the R&D pipeline.
    2. **Enterprise value**: fair value scaled by sentiment, the product of a
       decaying structural bias and a mean-reverting cyclical multiplier.
    3. **Distressed value**: enterprise value discounted by a logistic survival
       probability in leverage.

Market cap is the distressed value less debt plus cash. A non-positive market
cap is bankruptcy, which is terminal.

Debt-free companies with three consecutive profitable years distribute 11% of
their cash each year in four quarterly installments.
"""

from datetime import date
import logging
import math
from typing import Dict, List, Optional, Tuple

from scipy.special import expit

from .bookkeeping import CompanyBooks, Phase
from .company import SimulatableCompany, fast_forward
from .config import CompanyConfig
from .curves import MarginCurve, MultipleCurve, sector_margin, sector_micro
from .dividends import DividendEvent, DividendSchedule, plan_dividend
from .effects import EffectTracker, ScheduledEvent
from .macro import MacroEnvironment
from .pipeline import PipelineContext, Product, ProductManager
from .stochastic_processes import (
    MeanRevertingConfig,
    MeanRevertingMultiplier,
    StochasticDriver,
    StructuralBias,
)

logger = logging.getLogger(__name__)

DEFAULT_OPEX_FIXED = 5_000_000
DEFAULT_OPEX_VARIABLE = 0.15
DEFAULT_RD_BASE_RATIO = 0.05
DEFAULT_INTEREST_RATE = 0.05
DEFAULT_SECTOR_NAME = "General"

MICRO_REVERSION = 0.4
MICRO_BOUNDS = (0.1, 5.0)
CYCLICAL_REVERSION = 0.3
CYCLICAL_VOLATILITY = 0.20
CYCLICAL_BOUNDS = (0.2, 5.0)
CYCLICAL_INITIAL_RANGE = (0.8, 1.2)

MIN_CASH_RESERVE = 1_000_000
CASH_RESERVE_OPEX_SHARE = 0.25
LEVERAGE_PIVOT = 0.6
LEVERAGE_STEEPNESS = 4.0
MIN_MARGIN = 0.01
SIZE_MARGIN_KICK = 0.02
DOWNTURN_MARGIN_PENALTY = 0.15


def distressed_value(enterprise_value: float, debt: float) -> Tuple[float, float, float]:
    """Discount enterprise value for the risk of default.

    ``survival = 1 / (1 + exp(4 * (leverage - 0.6)))`` with
    ``leverage = debt / max(1, enterprise_value)``.

    Args:
        enterprise_value: Sentiment-adjusted enterprise value.
        debt: Outstanding debt.

    Returns:
        tuple: ``(leverage, survival_probability, distressed_enterprise_value)``.
    """
    leverage = debt / max(1.0, enterprise_value)
    survival = float(expit(-LEVERAGE_STEEPNESS * (leverage - LEVERAGE_PIVOT)))
    return leverage, survival, enterprise_value * survival


class MatureCompany(SimulatableCompany):
    """Cash-generative company valued on margin and multiple convergence.

    Args:
        config: Validated configuration with a revenue process and a multiple curve.
        macro: Shared macro environment, read each tick.
        driver: Source of randomness for construction and every tick.
        game_start_year: Year the game starts. Companies founded earlier are
            stepped every 14 days from ``ipo_date`` until that year.
        ipo_date: Inception date; defaults to January 1st of ``game_start_year``.
        phase: Lifecycle phase; defaults to public.
    """

    show_dividend_column = True

    def __init__(
        self,
        config: CompanyConfig,
        macro: MacroEnvironment,
        driver: StochasticDriver,
        game_start_year: int = 1990,
        ipo_date: Optional[date] = None,
        phase: Optional[Phase] = None,
    ):
        ipo_date = ipo_date or date(game_start_year, 1, 1)
        static = config.static
        self.config = config
        self.macro = macro
        self.driver = driver
        self.books = CompanyBooks(
            company_id=config.id,
            name=static.name or "Company",
            sector=static.sector or DEFAULT_SECTOR_NAME,
            ipo_date=ipo_date,
            start_year=game_start_year,
            phase=phase,
            mission=static.mission,
            founding_location=static.founding_location,
        )

        business = config.base_business
        self.base_revenue = business.revenue_process.initial_revenue_usd.sample(driver)
        mc = business.margin_curve
        self.margin_curve: Optional[MarginCurve] = (
            MarginCurve(mc.start_profit_margin, mc.terminal_profit_margin, mc.years_to_mature)
            if mc is not None
            else None
        )
        mu = business.multiple_curve
        self.multiple_curve = MultipleCurve(mu.initial_ps_ratio, mu.terminal_pe_ratio, mu.years_to_converge)

        fin = config.finance
        self.books.cash = fin.starting_cash_usd if fin.starting_cash_usd is not None else 0.0
        self.books.debt = fin.starting_debt_usd if fin.starting_debt_usd is not None else 0.0
        self.interest_rate = (
            fin.interest_rate_annual if fin.interest_rate_annual is not None else DEFAULT_INTEREST_RATE
        )

        costs = config.costs
        self.opex_fixed = costs.opex_fixed_usd if costs.opex_fixed_usd is not None else DEFAULT_OPEX_FIXED
        self.opex_variable = (
            costs.opex_variable_ratio if costs.opex_variable_ratio is not None else DEFAULT_OPEX_VARIABLE
        )
        self.rd_base_ratio = costs.rd_base_ratio if costs.rd_base_ratio is not None else DEFAULT_RD_BASE_RATIO

        # Effect-mutable parameters
        self.rev_mult = 1.0
        self.vol_mult = 1.0
        self.flat_rev = 0.0

        bias_cfg = config.sentiment.structural_bias
        self.structural_bias = StructuralBias(driver.between(bias_cfg.min, bias_cfg.max), bias_cfg.half_life_years)
        self.cyclical = MeanRevertingMultiplier(
            MeanRevertingConfig(
                reversion_speed=CYCLICAL_REVERSION,
                volatility=CYCLICAL_VOLATILITY,
                lower=CYCLICAL_BOUNDS[0],
                upper=CYCLICAL_BOUNDS[1],
            ),
            initial_value=driver.between(*CYCLICAL_INITIAL_RANGE),
        )
        micro = sector_micro(self.books.sector)
        self.micro = MeanRevertingMultiplier(
            MeanRevertingConfig(
                drift=micro.drift,
                reversion_speed=MICRO_REVERSION,
                volatility=micro.volatility,
                lower=MICRO_BOUNDS[0],
                upper=MICRO_BOUNDS[1],
            )
        )

        self.mult_freeze: Optional[float] = None
        self.pipeline_context = PipelineContext()
        self.products: List[Product] = [Product(p) for p in config.pipeline]
        self.effects = EffectTracker([ScheduledEvent(e, driver) for e in config.events])
        self.product_manager: Optional[ProductManager] = (
            ProductManager(config.product_plan, self.products, driver, self.pipeline_context)
            if config.product_plan is not None
            else None
        )
        self.dividends = DividendSchedule()
        self.metrics: Dict[str, float] = {}

        fast_forward(self, ipo_date, game_start_year)

    @property
    def archetype(self) -> str:
        return "mature"

    @property
    def has_pipeline_update(self) -> bool:
        return self.pipeline_context.has_pipeline_update

    def current_margin(self, age_years: float, run_rate: float, sector_factor: float) -> float:
        """Profit margin for this tick.

        Follows the margin curve when one is configured. Otherwise starts from
        the sector default margin, adds a small kick for companies above $1B of
        revenue and subtracts a penalty while the sector is below trend.
        """
        if self.margin_curve is not None:
            return self.margin_curve.value(age_years)
        base = sector_margin(self.books.sector)
        size_kick = SIZE_MARGIN_KICK * math.log10(max(1.0, run_rate / 1e9))
        downturn = max(0.0, 1 - sector_factor)
        return max(MIN_MARGIN, base + size_kick - DOWNTURN_MARGIN_PENALTY * downturn)

    def step(self, dt_days: float, current_date: date) -> None:
        """Advance the company by one tick.

        Args:
            dt_days: Tick length in days.
            current_date: Calendar date of the tick, used for quarter
                attribution, dividend timestamps and history points.
        """
        books = self.books
        if books.bankrupt:
            return

        books.age_days += dt_days
        dt_years = dt_days / 365
        age_years = books.age_days / 365

        if self.product_manager is not None:
            self.product_manager.tick(books.age_days)
        self.effects.step(dt_days, self)

        # Pipeline
        self.pipeline_context.rd_opex = 0.0
        success_this_tick = False
        for product in self.products:
            before = product.unlocked_value()
            product.advance(dt_days, self.driver, self.pipeline_context)
            if product.unlocked_value() > before:
                success_this_tick = True
        if success_this_tick and self.mult_freeze is None:
            margin_anchor = (
                self.margin_curve.value(age_years)
                if self.margin_curve is not None
                else sector_margin(books.sector)
            )
            self.mult_freeze = self.multiple_curve.value(age_years, margin_anchor)
            logger.info(f"{books.name}: first pipeline success, multiple frozen at {self.mult_freeze:.2f}")

        micro = self.micro.step(dt_years, self.driver, volatility_scale=self.vol_mult)

        # Revenue
        sector_factor = self.macro.sector_factor(books.sector, current_date)
        core_annual = self.base_revenue * sector_factor * micro * self.rev_mult - self.flat_rev
        pipeline_annual = sum(p.realised_revenue_per_year() for p in self.products)
        run_rate = (core_annual + pipeline_annual) * self.macro.revenue_multiplier(books.sector)
        revenue = run_rate * dt_years

        # Earnings
        margin = self.current_margin(age_years, run_rate, sector_factor)
        gross_profit = revenue * margin
        opex = self.opex_fixed * dt_years + self.opex_variable * gross_profit
        option_value = sum(p.expected_value() for p in self.products)
        rd_burn = self.rd_base_ratio * option_value * dt_years
        interest = books.debt * self.interest_rate * dt_years
        net_income = gross_profit - opex - rd_burn - interest

        # Capital structure
        books.cash += net_income
        if books.cash < 0:
            books.debt += -books.cash
            books.cash = 0.0
        if books.debt > 0 and books.cash > 0:
            reserve = max(MIN_CASH_RESERVE, self.opex_fixed * CASH_RESERVE_OPEX_SHARE)
            excess = books.cash - reserve
            if excess > 0:
                repayment = min(books.debt, excess)
                books.debt -= repayment
                books.cash -= repayment

        self.dividends.accrue(dt_days)
        books.cash -= self.dividends.process(books.cash, current_date)

        # Valuation
        unlocked = sum(p.unlocked_value() for p in self.products)
        fair_multiple = self.multiple_curve.value(age_years, margin)
        fair_value = run_rate * margin * fair_multiple + unlocked + option_value
        fair_value *= self.macro.valuation_multiplier(books.sector)

        bias = self.structural_bias.decay(dt_years)
        cyclical = self.cyclical.step(dt_years, self.driver)
        sentiment = bias * cyclical
        enterprise = fair_value * sentiment
        leverage, survival, distressed = distressed_value(enterprise, books.debt)

        self.metrics = {
            "revenue": revenue,
            "run_rate": run_rate,
            "margin": margin,
            "net_income": net_income,
            "fair_value": fair_value,
            "sentiment": sentiment,
            "enterprise_value": enterprise,
            "leverage": leverage,
            "survival_probability": survival,
            "distressed_value": distressed,
            "rd_stage_spend": self.pipeline_context.rd_opex,
        }

        candidate = distressed - books.debt + books.cash
        if candidate <= 0:
            books.mark_bankrupt(current_date)
            return

        books.market_cap = candidate
        books.display_cap = candidate
        books.accumulate_year(revenue, net_income, current_date)

        planned = plan_dividend([s.profit for s in books.financial_history], books.cash, books.debt)
        if books.maybe_record_annual(planned):
            if planned > 0:
                books.cash -= self.dividends.settle(books.cash, current_date)
                self.dividends.arm(planned)
            elif self.dividends.remaining <= 0:
                self.dividends.clear()

        books.record_history_point(current_date)
        logger.debug(
            f"{books.name} {current_date}: revenue={revenue:,.0f} net={net_income:,.0f} "
            f"cap={candidate:,.0f} leverage={leverage:.2f}"
        )

    def drain_dividend_events(self) -> List[DividendEvent]:
        return self.dividends.drain_events()
