"""Macro environment: sector cyclicality and market-wide shocks.

The macro environment is the only collaborator shared between companies. It is
stepped once per tick by the orchestrator, before any company steps, and is
read-only while companies query it.

:class:`SectorMacroEnvironment` keeps one Geometric Brownian Motion index per
sector. An optional :class:`MacroEventManager` overlays scheduled shocks
(recessions, bubbles): while an event is active it shifts index drift and
volatility, and it scales company revenue and valuation through a
decline-then-recovery multiplier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
import logging
import math
from typing import Dict, Iterable, List, Optional

from .config import MacroEventConfig
from .stochastic_processes import GeometricIndex, StochasticDriver

logger = logging.getLogger(__name__)

DEFAULT_SECTOR = "DEFAULT"
MIN_PHASE_DAYS = 30

# (annual drift, annual volatility) per sector index
SECTOR_INDEX_PRESETS: Dict[str, tuple] = {
    "Biotech": (0.08, 0.25),
    "Semiconductor": (0.10, 0.30),
    "Tech": (0.165, 0.22),
    "Retail": (0.12, 0.10),
}
DEFAULT_INDEX_PARAMS = (0.12, 0.15)


class MacroEnvironment(ABC):
    """Interface companies use to read the macro state."""

    @abstractmethod
    def sector_factor(self, sector: str, current_date: Optional[date] = None) -> float:
        """Cyclicality multiplier for ``sector``, centered near 1."""
        ...

    def revenue_multiplier(self, sector: str) -> float:
        return 1.0

    def valuation_multiplier(self, sector: str) -> float:
        return 1.0


@dataclass
class SectorImpact:
    sector: str
    min_multiplier: float


@dataclass
class MacroEvent:
    """A realized macro event with sampled timing and severity."""

    id: str
    label: str
    description: str
    start_date: date
    impact_days: int
    recovery_days: int
    global_min_multiplier: float
    valuation_min_multiplier: float
    sector_impacts: List[SectorImpact] = field(default_factory=list)
    drift_delta: float = 0.0
    volatility_multiplier: float = 1.0
    state: str = "scheduled"

    @property
    def total_days(self) -> int:
        return self.impact_days + self.recovery_days

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=self.total_days)

    def multiplier(self, reference_date: date, minimum: float) -> float:
        """Decline-then-recovery multiplier at ``reference_date``.

        Falls linearly from 1 to ``minimum`` over the impact phase and climbs
        back to 1 over the recovery phase. Returns 1 outside the event window.
        """
        elapsed = (reference_date - self.start_date).days
        if elapsed < 0 or elapsed >= self.total_days:
            return 1.0
        if elapsed <= self.impact_days:
            return 1 - (1 - minimum) * (elapsed / self.impact_days)
        recovery_progress = (elapsed - self.impact_days) / self.recovery_days
        return minimum + (1 - minimum) * recovery_progress

    def sector_minimum(self, sector: Optional[str]) -> float:
        target = sector.lower() if sector else "all"
        for impact in self.sector_impacts:
            impact_sector = impact.sector.lower()
            if impact_sector in ("all", target):
                return impact.min_multiplier
        return self.global_min_multiplier


class MacroEventManager:
    """Schedules macro events and reports their combined effect.

    Events are realized from their definitions at construction: each one is
    kept with probability ``chance`` and gets a sampled start date, duration
    and severity. :meth:`tick` moves events through
    ``scheduled -> active -> ended``.
    """

    def __init__(
        self,
        definitions: Iterable[MacroEventConfig],
        driver: StochasticDriver,
        base_year: int = 1990,
    ):
        self.driver = driver
        self.base_year = base_year
        self.current_date = date(base_year, 1, 1)
        self.definitions: Dict[str, MacroEventConfig] = {}
        self.events: List[MacroEvent] = []
        self.active_events: List[MacroEvent] = []
        for definition in definitions:
            self.definitions[definition.id] = definition
            event = self.create_event(definition)
            if event is not None:
                self.events.append(event)
        logger.debug(f"Scheduled {len(self.events)} of {len(self.definitions)} macro events")

    def create_event(
        self,
        definition: MacroEventConfig,
        start_date: Optional[date] = None,
        force: bool = False,
    ) -> Optional[MacroEvent]:
        """Realize a macro event from its definition.

        Args:
            definition: Event definition.
            start_date: Explicit start date; sampled from the definition when omitted.
            force: Skip the ``chance`` roll.

        Returns:
            The realized event, or ``None`` if the chance roll failed.
        """
        if not force and self.driver.uniform() > definition.chance:
            return None

        if start_date is None:
            if definition.start_year_range is not None:
                low = int(definition.start_year_range.min)
                high = int(definition.start_year_range.max)
                start_year = math.floor(self.driver.between(low, high + 1))
            else:
                start_year = self.base_year + 2
            start_day = definition.start_day or math.floor(self.driver.between(1, 366))
            start_date = date(start_year, 1, 1) + timedelta(days=start_day - 1)

        impact_days = max(MIN_PHASE_DAYS, math.floor(definition.impact_days.sample(self.driver)))
        recovery_range = definition.recovery_days or definition.impact_days
        recovery_days = max(MIN_PHASE_DAYS, math.floor(recovery_range.sample(self.driver)))

        drift_delta = sum(e.value for e in definition.effects if e.type == "macro_mu_delta")
        volatility_multiplier = math.prod(
            e.value for e in definition.effects if e.type == "volatility_multiplier"
        )

        return MacroEvent(
            id=definition.id,
            label=definition.label,
            description=definition.description,
            start_date=start_date,
            impact_days=impact_days,
            recovery_days=recovery_days,
            global_min_multiplier=definition.global_multiplier.sample(self.driver),
            valuation_min_multiplier=definition.valuation_compression.sample(self.driver),
            sector_impacts=[
                SectorImpact(impact.sector, impact.min_multiplier.sample(self.driver))
                for impact in definition.sector_impacts
            ],
            drift_delta=drift_delta,
            volatility_multiplier=volatility_multiplier,
        )

    def tick(self, current_date: date) -> None:
        self.current_date = current_date
        for event in self.events:
            if event.state == "scheduled" and current_date >= event.start_date:
                event.state = "active"
                logger.info(f"Macro event '{event.label}' started on {current_date}")
            if event.state == "active" and current_date >= event.end_date:
                event.state = "ended"
                logger.info(f"Macro event '{event.label}' ended on {current_date}")
        self.active_events = [e for e in self.events if e.state == "active"]

    def force_trigger(self, event_id: str, current_date: Optional[date] = None) -> Optional[MacroEvent]:
        """Start a defined event immediately, regardless of its chance.

        Returns:
            The new active event, or ``None`` for an unknown ``event_id``.
        """
        definition = self.definitions.get(event_id)
        if definition is None:
            return None
        start = current_date or self.current_date
        event = self.create_event(definition, start_date=start, force=True)
        if event is None:
            return None
        event.state = "active"
        self.events.append(event)
        self.active_events.append(event)
        logger.info(f"Macro event '{event.label}' forced on {start}")
        return event

    def describe_active(self, reference_date: Optional[date] = None) -> List[Dict]:
        ref = reference_date or self.current_date
        return [
            {
                "id": e.id,
                "label": e.label,
                "description": e.description,
                "days_remaining": max(0, (e.end_date - ref).days),
            }
            for e in self.active_events
        ]

    def drift_delta(self) -> float:
        return sum(e.drift_delta for e in self.active_events)

    def volatility_multiplier(self) -> float:
        return math.prod(e.volatility_multiplier for e in self.active_events)

    def revenue_multiplier(self, sector: str) -> float:
        return math.prod(
            e.multiplier(self.current_date, e.sector_minimum(sector)) for e in self.active_events
        )

    def valuation_multiplier(self, sector: str) -> float:
        return math.prod(
            e.multiplier(self.current_date, e.valuation_min_multiplier) for e in self.active_events
        )


class SectorMacroEnvironment(MacroEnvironment):
    """One GBM cyclicality index per sector, optionally shocked by macro events.

    Example:
        Step the environment once per tick before stepping companies::

            driver = SeededDriver(42)
            macro = SectorMacroEnvironment({"Retail", "Tech"}, driver)
            macro.step(14 / 365)
            factor = macro.sector_factor("Retail")
    """

    def __init__(
        self,
        sectors: Iterable[str],
        driver: StochasticDriver,
        event_manager: Optional[MacroEventManager] = None,
    ):
        self.driver = driver
        self.event_manager = event_manager
        self.indices: Dict[str, GeometricIndex] = {}
        for sector in sectors:
            self.ensure_sector(sector)
        self.ensure_sector(DEFAULT_SECTOR)

    def ensure_sector(self, sector: str) -> GeometricIndex:
        if sector not in self.indices:
            drift, volatility = SECTOR_INDEX_PRESETS.get(sector, DEFAULT_INDEX_PARAMS)
            self.indices[sector] = GeometricIndex(drift, volatility)
        return self.indices[sector]

    def step(self, dt_years: float, current_date: Optional[date] = None) -> None:
        """Advance every sector index by one tick."""
        if self.event_manager is not None and current_date is not None:
            self.event_manager.tick(current_date)
        drift_delta = self.event_manager.drift_delta() if self.event_manager else 0.0
        vol_mult = self.event_manager.volatility_multiplier() if self.event_manager else 1.0
        for index in self.indices.values():
            index.step(dt_years, self.driver, drift_delta, vol_mult)

    def sector_factor(self, sector: str, current_date: Optional[date] = None) -> float:
        return self.ensure_sector(sector).value

    def sector_drift(self, sector: str) -> float:
        return self.ensure_sector(sector).drift

    def revenue_multiplier(self, sector: str) -> float:
        if self.event_manager is None:
            return 1.0
        return self.event_manager.revenue_multiplier(sector)

    def valuation_multiplier(self, sector: str) -> float:
        if self.event_manager is None:
            return 1.0
        return self.event_manager.valuation_multiplier(sector)
