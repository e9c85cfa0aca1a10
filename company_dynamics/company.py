"""Company capability interface, fast-forward helper and factory.

Every simulated company, whatever its archetype, exposes the same surface to
the orchestrator:

    - :meth:`SimulatableCompany.step` advances it by one tick.
    - ``market_cap``, ``display_cap`` and ``bankrupt`` report its valuation.
    - ``history`` and ``financial_history`` expose its time series.
    - :meth:`SimulatableCompany.financial_table` derives the annual table.
    - :meth:`SimulatableCompany.drain_dividend_events` hands over dividends.
    - :meth:`SimulatableCompany.to_snapshot` exports plain data.

Shared state lives in a composed :class:`~company_dynamics.bookkeeping.CompanyBooks`.

Examples:
    Build a company from configuration and step it::

        from datetime import date

        from company_dynamics import SeededDriver, SectorMacroEnvironment, build_company

        driver = SeededDriver(7)
        macro = SectorMacroEnvironment({"Retail"}, driver)
        company = build_company(config, macro, driver, game_start_year=1990)
        company.step(14, date(1990, 1, 15))
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from .bookkeeping import AnnualSnapshot, CompanyBooks, HistoryPoint, Phase
from .config import CompanyConfig
from .dividends import DividendEvent
from .financial_table import build_financial_table, render_financial_table
from .macro import MacroEnvironment
from .pipeline import Product
from .stochastic_processes import StochasticDriver

logger = logging.getLogger(__name__)

FAST_FORWARD_STEP_DAYS = 14


class SimulatableCompany(ABC):
    """Capability interface implemented by every company archetype.

    Subclasses own a :class:`CompanyBooks` as ``self.books`` and implement
    :meth:`step`. The remaining surface is provided here in terms of the books.
    """

    books: CompanyBooks
    products: List[Product]
    show_dividend_column: bool = False

    @abstractmethod
    def step(self, dt_days: float, current_date: date) -> None:
        """Advance the company by ``dt_days``. A no-op once bankrupt."""
        ...

    @property
    def id(self) -> str:
        return self.books.id

    @property
    def name(self) -> str:
        return self.books.name

    @property
    def sector(self) -> str:
        return self.books.sector

    @property
    def age_days(self) -> float:
        return self.books.age_days

    @property
    def cash(self) -> float:
        return self.books.cash

    @property
    def debt(self) -> float:
        return self.books.debt

    @property
    def market_cap(self) -> float:
        return self.books.market_cap

    @property
    def display_cap(self) -> float:
        return self.books.display_cap

    @display_cap.setter
    def display_cap(self, value: float) -> None:
        self.books.display_cap = value

    @property
    def bankrupt(self) -> bool:
        return self.books.bankrupt

    @property
    def phase(self) -> Phase:
        return self.books.phase

    @property
    def history(self) -> List[HistoryPoint]:
        return self.books.history

    @property
    def financial_history(self) -> List[AnnualSnapshot]:
        return self.books.financial_history

    def financial_table(self) -> pd.DataFrame:
        return build_financial_table(self.books.financial_history, self.show_dividend_column)

    def render_financial_table(self) -> str:
        return render_financial_table(self.books.financial_history, self.show_dividend_column)

    def yoy_series(self, limit: int = 8) -> List[Dict[str, Any]]:
        return self.books.yoy_series(limit)

    def drain_dividend_events(self) -> List[DividendEvent]:
        return []

    def to_snapshot(self, history_limit: int = 10, quarter_limit: int = 8) -> Dict[str, Any]:
        """Export the company as plain data, including pipeline stage state."""
        snapshot = self.books.to_snapshot(history_limit, quarter_limit)
        snapshot["archetype"] = self.archetype
        snapshot["products"] = [
            {
                "id": p.id,
                "label": p.label,
                "full_value": p.full_value,
                "stages": [
                    {
                        "id": s.id,
                        "completed": s.completed,
                        "succeeded": s.succeeded,
                        "elapsed": s.elapsed,
                        "tries": s.tries,
                    }
                    for s in p.stages
                ],
            }
            for p in self.products
        ]
        return snapshot

    @property
    @abstractmethod
    def archetype(self) -> str:
        ...

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(id={self.id!r}, market_cap={self.market_cap:,.0f}, "
            f"bankrupt={self.bankrupt})"
        )


def fast_forward(
    company: SimulatableCompany,
    ipo_date: date,
    game_start_year: int,
    step_days: int = FAST_FORWARD_STEP_DAYS,
) -> int:
    """Replay a company's life from inception up to the game start year.

    Steps the company every ``step_days`` from ``ipo_date`` while the walk's
    calendar year is before ``game_start_year``.

    Returns:
        int: Number of steps taken.
    """
    sim_date = ipo_date
    steps = 0
    while sim_date.year < game_start_year and not company.bankrupt:
        company.step(step_days, sim_date)
        sim_date += timedelta(days=step_days)
        steps += 1
    if steps:
        logger.debug(f"Fast-forwarded {company.name} by {steps} steps to {sim_date}")
    return steps


def build_company(
    config: CompanyConfig,
    macro: MacroEnvironment,
    driver: StochasticDriver,
    game_start_year: int = 1990,
    ipo_date: Optional[date] = None,
    phase: Optional[Phase] = None,
) -> SimulatableCompany:
    """Construct the company variant selected by ``config.archetype``.

    Args:
        config: Validated company configuration.
        macro: Shared macro environment.
        driver: Source of randomness.
        game_start_year: Year the game clock starts; companies founded earlier
            are fast-forwarded up to it.
        ipo_date: Inception date; defaults to January 1st of ``game_start_year``.
        phase: Lifecycle phase; defaults to public.

    Returns:
        The constructed, fast-forwarded company.
    """
    # Imported here to avoid a cycle; both variants import this module
    from .hypergrowth_company import HypergrowthCompany
    from .mature_company import MatureCompany

    cls = HypergrowthCompany if config.archetype == "hypergrowth" else MatureCompany
    company = cls(config, macro, driver, game_start_year=game_start_year, ipo_date=ipo_date, phase=phase)
    logger.info(f"Built {config.archetype} company {company.name} ({company.id})")
    return company
