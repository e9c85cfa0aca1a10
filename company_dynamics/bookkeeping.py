"""Shared company bookkeeping.

Both company archetypes compose a :class:`CompanyBooks` instance that owns the
state every simulated company has in common:

    - identity, inception date, age and lifecycle phase
    - capital structure (cash and debt)
    - the authoritative market cap and the presentation display cap
    - the valuation history used for charting
    - the rolling window of annual snapshots and the quarterly ledger
    - the terminal bankruptcy flag

The books never decide anything about valuation; the company variants compute
the numbers and hand them over through :meth:`CompanyBooks.accumulate_year`,
:meth:`CompanyBooks.maybe_record_annual`, :meth:`CompanyBooks.record_history_point`
and :meth:`CompanyBooks.mark_bankrupt`.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import warnings

from ._warnings import DataQualityWarning

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
MAX_ANNUAL_SNAPSHOTS = 10
MAX_QUARTER_HISTORY = 100
MAX_HISTORY_POINTS = 2000
QUARTER_EPSILON = 1e-6


@dataclass
class PublicPhase:
    """Listed company. ``listed_on`` records the listing date when known."""

    listed_on: Optional[date] = None

    @property
    def name(self) -> str:
        return "public"


@dataclass
class PrivatePhase:
    """Privately held company, with an optional last funding valuation."""

    last_round_valuation: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return "private"


Phase = Union[PublicPhase, PrivatePhase]


@dataclass
class HistoryPoint:
    timestamp: date
    value: float


@dataclass
class AnnualSnapshot:
    """One closed fiscal year of a company."""

    year: int
    revenue: float
    profit: float
    market_cap: float
    cash: float
    debt: float
    dividend: float = 0.0
    price_to_sales: float = 0.0
    price_to_earnings: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class QuarterRecord:
    year: int
    quarter: int
    revenue: float
    profit: float


def quarter_of(day: date) -> Tuple[int, int]:
    """Calendar ``(year, quarter)`` of a date."""
    return day.year, (day.month - 1) // 3 + 1


class CompanyBooks:
    """Bookkeeping record shared by every company variant.

    Args:
        company_id: Unique identifier.
        name: Display name.
        sector: Sector used for macro and default-table lookups.
        ipo_date: Inception date. Annual snapshots are tagged
            ``ipo_date.year + completed_years``.
        start_year: Game start year the company was fast-forwarded to.
        phase: Lifecycle phase. Stored for the orchestrator, never changed here.
        mission: Free-form description.
        founding_location: Free-form location.
    """

    def __init__(
        self,
        company_id: str,
        name: str,
        sector: str,
        ipo_date: date,
        start_year: int,
        phase: Optional[Phase] = None,
        mission: str = "",
        founding_location: str = "",
    ):
        self.id = company_id
        self.name = name
        self.sector = sector
        self.ipo_date = ipo_date
        self.start_year = start_year
        self.phase: Phase = phase if phase is not None else PublicPhase(listed_on=ipo_date)
        self.mission = mission
        self.founding_location = founding_location

        self.age_days = 0.0
        self.cash = 0.0
        self.debt = 0.0
        self.market_cap = 0.0
        self.display_cap = 0.0
        self.bankrupt = False

        self.history: List[HistoryPoint] = []
        self.financial_history: List[AnnualSnapshot] = []
        self.current_year_revenue = 0.0
        self.current_year_profit = 0.0
        self.last_year_end = 0.0
        self.new_annual_data = False

        self.quarter_history: List[QuarterRecord] = []
        self.current_quarter: Optional[Tuple[int, int]] = None
        self.current_quarter_revenue = 0.0
        self.current_quarter_profit = 0.0
        self.new_quarterly_data = False

    def __repr__(self) -> str:
        return (
            f"CompanyBooks(id={self.id!r}, age_days={self.age_days:.0f}, "
            f"market_cap={self.market_cap:,.0f}, bankrupt={self.bankrupt})"
        )

    def set_phase(self, phase: Phase) -> None:
        self.phase = phase

    @property
    def is_public(self) -> bool:
        return isinstance(self.phase, PublicPhase)

    def accumulate_year(
        self, revenue: float, profit: float, current_date: Optional[date] = None
    ) -> None:
        """Add one tick of revenue and profit to the year-to-date totals."""
        self.current_year_revenue += revenue
        self.current_year_profit += profit
        self.accumulate_quarter(revenue, profit, current_date)

    def maybe_record_annual(self, dividend_paid: float = 0.0) -> bool:
        """Close the fiscal year if the company's age crossed a year boundary.

        Args:
            dividend_paid: Dividend planned for the closing year.

        Returns:
            True if a snapshot was appended.
        """
        current_year = math.floor(self.age_days / DAYS_PER_YEAR)
        last_year = math.floor(self.last_year_end / DAYS_PER_YEAR)
        if current_year > last_year and self.age_days >= DAYS_PER_YEAR:
            revenue = self.current_year_revenue
            profit = self.current_year_profit
            snapshot = AnnualSnapshot(
                year=self.ipo_date.year + last_year,
                revenue=revenue,
                profit=profit,
                market_cap=self.market_cap,
                cash=self.cash,
                debt=self.debt,
                dividend=dividend_paid,
                price_to_sales=self.market_cap / revenue if revenue > 0 else 0.0,
                price_to_earnings=self.market_cap / profit if profit > 0 else 0.0,
            )
            self.financial_history.append(snapshot)
            if len(self.financial_history) > MAX_ANNUAL_SNAPSHOTS:
                self.financial_history.pop(0)
            self.current_year_revenue = 0.0
            self.current_year_profit = 0.0
            self.new_annual_data = True
            self.last_year_end = self.age_days
            logger.debug(
                f"{self.name}: closed fiscal year {snapshot.year} "
                f"(revenue={revenue:,.0f}, profit={profit:,.0f})"
            )
            return True
        self.last_year_end = self.age_days
        return False

    def accumulate_quarter(
        self, revenue: float = 0.0, profit: float = 0.0, current_date: Optional[date] = None
    ) -> None:
        """Attribute increments to the calendar quarter of ``current_date``.

        Without a date the increments go to the open quarter, or to the
        inception quarter when none is open yet.
        """
        if current_date is not None:
            key = quarter_of(current_date)
        elif self.current_quarter is not None:
            key = self.current_quarter
        else:
            key = quarter_of(self.ipo_date)
        if key != self.current_quarter:
            self.finalize_quarter(key)
        self.current_quarter_revenue += revenue
        self.current_quarter_profit += profit

    def finalize_quarter(self, next_quarter: Optional[Tuple[int, int]] = None) -> None:
        if self.current_quarter is not None:
            has_revenue = abs(self.current_quarter_revenue) > QUARTER_EPSILON
            has_profit = abs(self.current_quarter_profit) > QUARTER_EPSILON
            if has_revenue or has_profit:
                year, quarter = self.current_quarter
                self.quarter_history.append(
                    QuarterRecord(
                        year, quarter, self.current_quarter_revenue, self.current_quarter_profit
                    )
                )
                self.new_quarterly_data = True
                if len(self.quarter_history) > MAX_QUARTER_HISTORY:
                    self.quarter_history.pop(0)
        self.current_quarter = next_quarter
        self.current_quarter_revenue = 0.0
        self.current_quarter_profit = 0.0

    def yoy_series(self, limit: int = 8) -> List[Dict[str, Any]]:
        """Trailing-twelve-month revenue and profit for each recorded quarter.

        Windows shorter than four quarters are annualized by ``4 / count``.

        Args:
            limit: Keep only the most recent ``limit`` entries (0 keeps all).

        Returns:
            list: Dicts with ``year``, ``quarter``, ``label``, ``revenue``, ``profit``.
        """
        ordered = sorted(self.quarter_history, key=lambda q: (q.year, q.quarter))
        series = []
        for i, current in enumerate(ordered):
            window = ordered[max(0, i - 3) : i + 1]
            scale = 4 / len(window)
            series.append(
                {
                    "year": current.year,
                    "quarter": current.quarter,
                    "label": f"{current.year} Q{current.quarter}",
                    "revenue": sum(q.revenue for q in window) * scale,
                    "profit": sum(q.profit for q in window) * scale,
                }
            )
        if limit > 0:
            return series[-limit:]
        return series

    def record_history_point(self, timestamp: date, value: Optional[float] = None) -> None:
        """Append a valuation point, overwriting the last one on the same timestamp."""
        if value is None:
            value = self.market_cap
        if self.history and self.history[-1].timestamp == timestamp:
            self.history[-1].value = value
            return
        self.history.append(HistoryPoint(timestamp, value))
        if len(self.history) > MAX_HISTORY_POINTS:
            self.history.pop(0)

    def mark_bankrupt(self, timestamp: date) -> None:
        self.market_cap = 0.0
        self.display_cap = 0.0
        self.bankrupt = True
        self.record_history_point(timestamp, 0.0)
        logger.warning(
            f"BANKRUPTCY: {self.name} ({self.id}) failed on {timestamp} "
            f"with cash=${self.cash:,.0f}, debt=${self.debt:,.0f}"
        )

    def restore_history(
        self,
        history: Optional[Iterable[Union[HistoryPoint, Dict[str, Any]]]] = None,
        financial_history: Optional[Iterable[Union[AnnualSnapshot, Dict[str, Any]]]] = None,
        quarter_history: Optional[Iterable[Union[QuarterRecord, Dict[str, Any]]]] = None,
    ) -> None:
        """Seed the series from previously exported data.

        Entries are sorted; duplicate annual years keep the last entry and the
        annual window is trimmed to its maximum size. Dropped entries raise a
        :class:`DataQualityWarning`.
        """
        if history is not None:
            points = [_as_history_point(p) for p in history]
            points.sort(key=lambda p: p.timestamp)
            self.history = points[-MAX_HISTORY_POINTS:]

        if financial_history is not None:
            by_year: Dict[int, AnnualSnapshot] = {}
            entries = [_as_snapshot(s) for s in financial_history]
            for snapshot in entries:
                by_year[snapshot.year] = snapshot
            restored = sorted(by_year.values(), key=lambda s: s.year)
            dropped = len(entries) - len(restored)
            if len(restored) > MAX_ANNUAL_SNAPSHOTS:
                dropped += len(restored) - MAX_ANNUAL_SNAPSHOTS
                restored = restored[-MAX_ANNUAL_SNAPSHOTS:]
            if dropped:
                warnings.warn(
                    f"Dropped {dropped} annual snapshot(s) while restoring {self.id}",
                    DataQualityWarning,
                    stacklevel=2,
                )
            self.financial_history = restored
            self.new_annual_data = True

        if quarter_history is not None:
            records = [_as_quarter(q) for q in quarter_history]
            records.sort(key=lambda q: (q.year, q.quarter))
            self.quarter_history = records[-MAX_QUARTER_HISTORY:]
            self.new_quarterly_data = True

    def to_snapshot(self, history_limit: int = 10, quarter_limit: int = 8) -> Dict[str, Any]:
        """Export the public state as plain data for an external persistence layer."""
        return {
            "id": self.id,
            "name": self.name,
            "sector": self.sector,
            "mission": self.mission,
            "founding_location": self.founding_location,
            "age_days": self.age_days,
            "start_year": self.start_year,
            "ipo_date": self.ipo_date.isoformat(),
            "phase": self.phase.name,
            "market_cap": self.market_cap,
            "display_cap": self.display_cap,
            "cash": self.cash,
            "debt": self.debt,
            "bankrupt": self.bankrupt,
            "revenue_ytd": self.current_year_revenue,
            "profit_ytd": self.current_year_profit,
            "quarter_history": [asdict(q) for q in _tail(self.quarter_history, quarter_limit)],
            "financial_history": [s.to_dict() for s in _tail(self.financial_history, history_limit)],
            "history": [
                {"timestamp": p.timestamp.isoformat(), "value": p.value}
                for p in _tail(self.history, history_limit)
            ],
        }


def _tail(items: List[Any], n: int) -> List[Any]:
    return items[max(0, len(items) - n) :]


def _as_history_point(item: Union[HistoryPoint, Dict[str, Any]]) -> HistoryPoint:
    if isinstance(item, HistoryPoint):
        return HistoryPoint(item.timestamp, item.value)
    timestamp = item["timestamp"]
    if isinstance(timestamp, str):
        timestamp = date.fromisoformat(timestamp[:10])
    return HistoryPoint(timestamp, float(item["value"]))


def _as_snapshot(item: Union[AnnualSnapshot, Dict[str, Any]]) -> AnnualSnapshot:
    if isinstance(item, AnnualSnapshot):
        return AnnualSnapshot(**asdict(item))
    return AnnualSnapshot(**item)


def _as_quarter(item: Union[QuarterRecord, Dict[str, Any]]) -> QuarterRecord:
    if isinstance(item, QuarterRecord):
        return QuarterRecord(**asdict(item))
    return QuarterRecord(**item)
