"""Hypergrowth company driven by annual recurring revenue (ARR).

A hypergrowth company burns cash while its ARR compounds at a growth rate
that decays toward a floor and is hit by occasional random shocks. Once in its
life a growth inflection may trigger, dragging the growth target down to a
negative rate over two to three years. Margins glide from deeply negative
toward a positive target, but expenses are sticky: they rise immediately with
revenue and only fall gradually.

The company is valued on an ARR multiple driven by its current growth,
scaled by a structural bias and a sentiment random walk, and floored by its
net cash.
"""

from dataclasses import dataclass
from datetime import date
import logging
from typing import Dict, List, Optional

import numpy as np

from .bookkeeping import CompanyBooks, Phase
from .company import SimulatableCompany, fast_forward
from .config import CompanyConfig
from .curves import lerp
from .macro import MacroEnvironment
from .pipeline import Product
from .stochastic_processes import StochasticDriver

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Hypergrowth Co"
DEFAULT_SECTOR_NAME = "Web"
DEFAULT_ARR_RANGE = (2_000_000, 40_000_000)
DEFAULT_CASH_RANGE = (80_000_000, 140_000_000)
DEFAULT_INTEREST_RATE = 0.06

GROWTH_TARGET_RANGE = (0.8, 2.5)
GROWTH_FLOOR_RANGE = (0.08, 0.35)
GROWTH_DECAY_RANGE = (0.75, 0.92)
GROWTH_BOUNDS = (-0.8, 3.0)
MARGIN_START_RANGE = (-2.0, -0.3)
MARGIN_TARGET_RANGE = (0.08, 0.28)
MARGIN_YEARS_RANGE = (5, 10)

STRUCTURAL_BIAS_RANGE = (0.8, 1.4)
STRUCTURAL_BIAS_BOUNDS = (0.6, 1.6)
STRUCTURAL_BIAS_STEP = 0.005
SENTIMENT_BOUNDS = (0.5, 1.8)
SENTIMENT_STEP = 0.025
GROWTH_NOISE = 0.08

# Annual hazard rates
DOWN_SHOCK_RATE = 0.05
UP_SHOCK_RATE = 0.02
INFLECTION_RATE = 0.10

ARR_FLOOR = 100_000
BANKRUPT_ARR = 500_000
BANKRUPT_PEAK_RATIO = 0.1
BANKRUPT_DEBT_TO_ARR = 4
BANKRUPT_RUNWAY_MONTHS = 3
HEALTHY_RUNWAY_MONTHS = 24
MIN_INTRINSIC_VALUE = 5_000_000


@dataclass
class Inflection:
    """One-time regime change dragging growth from positive to negative.

    Attributes:
        duration_days: Length of the transition window.
        start_growth: Growth target when the inflection triggered.
        end_growth: Growth target at the end of the window.
        tail_decay: Annual decline of the growth target after the window.
        elapsed_days: Days since the inflection triggered.
    """

    duration_days: float
    start_growth: float
    end_growth: float
    tail_decay: float
    elapsed_days: float = 0.0

    @property
    def progress(self) -> float:
        return min(1.0, self.elapsed_days / self.duration_days)

    def target(self) -> float:
        return lerp(self.start_growth, self.end_growth, self.progress)


class HypergrowthCompany(SimulatableCompany):
    """ARR-driven, cash-burning growth company.

    Args:
        config: Validated configuration. Revenue range, margin curve, cash,
            debt and interest rate are optional overrides of sampled defaults.
        macro: Shared macro environment.
        driver: Source of randomness for construction and every tick.
        game_start_year: Year the game starts. Companies founded earlier are
            stepped every 14 days from ``ipo_date`` until that year.
        ipo_date: Inception date; defaults to January 1st of ``game_start_year``.
        phase: Lifecycle phase; defaults to public.
    """

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
            name=static.name or DEFAULT_NAME,
            sector=static.sector or DEFAULT_SECTOR_NAME,
            ipo_date=ipo_date,
            start_year=game_start_year,
            phase=phase,
            mission=static.mission,
            founding_location=static.founding_location,
        )

        business = config.base_business
        if business.revenue_process is not None:
            self.arr = business.revenue_process.initial_revenue_usd.sample(driver)
        else:
            self.arr = driver.between(*DEFAULT_ARR_RANGE)
        self.growth_target = driver.between(*GROWTH_TARGET_RANGE)
        self.growth_floor = driver.between(*GROWTH_FLOOR_RANGE)
        self.growth_decay = driver.between(*GROWTH_DECAY_RANGE)

        mc = business.margin_curve
        if mc is not None:
            self.margin_start = mc.start_profit_margin
            self.margin_target = mc.terminal_profit_margin
            self.margin_years = mc.years_to_mature
        else:
            self.margin_start = driver.between(*MARGIN_START_RANGE)
            self.margin_target = driver.between(*MARGIN_TARGET_RANGE)
            self.margin_years = driver.between(*MARGIN_YEARS_RANGE)

        fin = config.finance
        self.books.cash = (
            fin.starting_cash_usd if fin.starting_cash_usd is not None else driver.between(*DEFAULT_CASH_RANGE)
        )
        self.books.debt = fin.starting_debt_usd if fin.starting_debt_usd is not None else 0.0
        self.interest_rate = (
            fin.interest_rate_annual if fin.interest_rate_annual is not None else DEFAULT_INTEREST_RATE
        )

        self.structural_bias = driver.between(*STRUCTURAL_BIAS_RANGE)
        self.sentiment = 1.0
        self.inflection: Optional[Inflection] = None
        self.peak_arr = self.arr
        self.slow_expense: Optional[float] = None
        self.effective_growth = 0.0
        self.products: List[Product] = []
        self.metrics: Dict[str, float] = {}

        fast_forward(self, ipo_date, game_start_year)

    @property
    def archetype(self) -> str:
        return "hypergrowth"

    def _update_growth_target(self, dt_days: float, dt_years: float) -> None:
        driver = self.driver
        self.growth_target = max(self.growth_floor, self.growth_target * self.growth_decay**dt_years)
        if driver.uniform() < DOWN_SHOCK_RATE * dt_years:
            self.growth_target *= driver.between(0.45, 0.75)
        elif driver.uniform() < UP_SHOCK_RATE * dt_years:
            self.growth_target *= driver.between(1.15, 1.35)

        if self.inflection is None and driver.uniform() < INFLECTION_RATE * dt_years:
            self.inflection = Inflection(
                duration_days=driver.between(720, 1080),
                start_growth=self.growth_target,
                end_growth=driver.between(-0.25, -0.4),
                tail_decay=driver.between(0.005, 0.01),
            )
            logger.info(
                f"{self.books.name}: growth inflection from {self.growth_target:.2f} "
                f"toward {self.inflection.end_growth:.2f} over {self.inflection.duration_days:.0f} days"
            )
        if self.inflection is not None:
            self.inflection.elapsed_days += dt_days
            self.growth_target = min(self.growth_target, self.inflection.target())
            if self.inflection.progress >= 1:
                self.growth_target -= self.inflection.tail_decay * dt_years

        self.growth_target = float(np.clip(self.growth_target, *GROWTH_BOUNDS))

    def desired_margin(self, effective_growth: float) -> float:
        """Margin the company is steering expenses toward this tick."""
        progress = self.books.age_days / (365 * self.margin_years)
        margin = lerp(self.margin_start, self.margin_target, progress)
        if effective_growth < 0:
            margin -= min(0.25, abs(effective_growth) * 0.3)
        if self.inflection is not None:
            margin -= self.inflection.progress * 0.15
        return float(np.clip(margin, self.margin_start, self.margin_target))

    def step(self, dt_days: float, current_date: date) -> None:
        """Advance the company by one tick.

        Args:
            dt_days: Tick length in days.
            current_date: Calendar date of the tick.
        """
        books = self.books
        if books.bankrupt:
            return
        dt_years = dt_days / 365
        books.age_days += dt_days

        self._update_growth_target(dt_days, dt_years)

        driver = self.driver
        self.structural_bias = float(
            np.clip(self.structural_bias + driver.gaussian() * STRUCTURAL_BIAS_STEP, *STRUCTURAL_BIAS_BOUNDS)
        )
        self.sentiment = float(np.clip(self.sentiment + driver.gaussian() * SENTIMENT_STEP, *SENTIMENT_BOUNDS))

        noise = driver.gaussian() * GROWTH_NOISE
        effective_growth = max(GROWTH_BOUNDS[0], self.growth_target + noise)
        self.effective_growth = effective_growth
        self.arr = max(ARR_FLOOR, self.arr * (1 + effective_growth) ** dt_years)
        self.peak_arr = max(self.peak_arr, self.arr)

        # Sticky expenses rise at once and fall gradually
        revenue = self.arr * dt_years
        target_expense = revenue * (1 - self.desired_margin(effective_growth))
        if self.slow_expense is None or target_expense >= self.slow_expense:
            self.slow_expense = target_expense
        else:
            rate = 0.08 if self.inflection is not None else 0.2
            self.slow_expense += (target_expense - self.slow_expense) * min(1.0, rate * dt_years)
        net_income = revenue - self.slow_expense

        books.cash += net_income
        if books.cash < 0:
            books.debt += -books.cash
            books.cash = 0.0
        if books.debt > 0:
            interest = books.debt * self.interest_rate * dt_years
            books.debt += interest
            if books.cash > interest:
                books.cash -= interest
                books.debt -= interest

        if net_income < 0:
            runway_months = books.cash / max(1.0, -net_income) * 12
        else:
            runway_months = HEALTHY_RUNWAY_MONTHS
        self.metrics = {
            "revenue": revenue,
            "arr": self.arr,
            "growth_target": self.growth_target,
            "effective_growth": effective_growth,
            "net_income": net_income,
            "runway_months": runway_months,
        }

        overleveraged = books.debt > self.arr * BANKRUPT_DEBT_TO_ARR and runway_months < BANKRUPT_RUNWAY_MONTHS
        collapsed = self.peak_arr > 0 and self.arr / self.peak_arr <= BANKRUPT_PEAK_RATIO
        if overleveraged or self.arr < BANKRUPT_ARR or collapsed:
            books.mark_bankrupt(current_date)
            return

        multiple = float(np.clip(6 + 12 * effective_growth, 3, 35)) * self.structural_bias * self.sentiment
        intrinsic = max(MIN_INTRINSIC_VALUE, self.arr * max(1.0, multiple))
        books.market_cap = max(intrinsic, books.cash - books.debt)
        books.display_cap = books.market_cap

        books.accumulate_year(revenue, net_income, current_date)
        books.maybe_record_annual(0.0)
        books.record_history_point(current_date)
        logger.debug(
            f"{books.name} {current_date}: arr={self.arr:,.0f} growth={effective_growth:.2f} "
            f"cap={books.market_cap:,.0f}"
        )
