"""Convergence curves and sector defaults.

Margin and valuation multiples of a mature company glide from a young-company
value toward a terminal value over a configured horizon. The multiple curve
converges from a price-to-sales style multiple toward ``terminal_pe * margin``,
i.e. a price-to-earnings multiple expressed against revenue.
"""

from dataclasses import dataclass
from typing import Dict, NamedTuple

import numpy as np

MIN_CONVERGENCE_YEARS = 0.01


def lerp(start: float, end: float, t: float) -> float:
    """Linear interpolation with ``t`` clamped to [0, 1]."""
    return start + (end - start) * float(np.clip(t, 0.0, 1.0))


class MicroParams(NamedTuple):
    """Idiosyncratic revenue-process drift and volatility for a sector."""

    drift: float
    volatility: float


SECTOR_MICRO: Dict[str, MicroParams] = {
    "Biotech": MicroParams(0.02, 0.35),
    "Semiconductor": MicroParams(0.04, 0.30),
    "Retail": MicroParams(0.01, 0.15),
    "DEFAULT": MicroParams(0.02, 0.20),
}

SECTOR_MARGIN: Dict[str, float] = {
    "Biotech": 0.25,
    "Semiconductor": 0.18,
    "Tech": 0.22,
    "Retail": 0.06,
    "DEFAULT": 0.15,
}


def sector_micro(sector: str) -> MicroParams:
    return SECTOR_MICRO.get(sector, SECTOR_MICRO["DEFAULT"])


def sector_margin(sector: str) -> float:
    return SECTOR_MARGIN.get(sector, SECTOR_MARGIN["DEFAULT"])


@dataclass
class MarginCurve:
    """Profit margin converging linearly with company age.

    Attributes:
        start_margin: Margin at age 0.
        terminal_margin: Margin once the company has matured.
        years_to_mature: Horizon over which the margin converges.
    """

    start_margin: float
    terminal_margin: float
    years_to_mature: float

    def __post_init__(self):
        self.years_to_mature = max(MIN_CONVERGENCE_YEARS, self.years_to_mature)

    def value(self, age_years: float) -> float:
        return lerp(self.start_margin, self.terminal_margin, age_years / self.years_to_mature)


@dataclass
class MultipleCurve:
    """Fair valuation multiple converging from P/S toward P/E x margin.

    Attributes:
        initial_ps: Price-to-sales multiple at age 0.
        terminal_pe: Long-run price-to-earnings multiple.
        years_to_converge: Horizon over which the multiple converges.
    """

    initial_ps: float
    terminal_pe: float
    years_to_converge: float

    def __post_init__(self):
        self.years_to_converge = max(MIN_CONVERGENCE_YEARS, self.years_to_converge)

    def value(self, age_years: float, margin: float) -> float:
        return lerp(self.initial_ps, self.terminal_pe * margin, age_years / self.years_to_converge)
