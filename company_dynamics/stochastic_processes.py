"""Stochastic processes for company dynamics.

This module provides the random-number abstraction used throughout the
engine together with the small stochastic processes that drive a company's
multipliers: a bounded Ornstein-Uhlenbeck style multiplier (idiosyncratic and
cyclical factors), a structural bias that decays toward 1 with a half-life,
and a Geometric Brownian Motion index used by the macro environment.

Every process draws its randomness from an injected :class:`StochasticDriver`.
Two companies fed the same sequence of draws produce identical trajectories,
which is what makes seeded replays and tests possible.
"""

from abc import ABC, abstractmethod
import logging
import math
from typing import Optional

import numpy as np
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class StochasticDriver(ABC):
    """Abstract source of randomness.

    Concrete drivers must provide standard normal and uniform draws. Call
    sites only ever talk to this interface, so a seeded driver, a scripted
    test driver or a shared game-wide driver can be swapped without changes.
    """

    @abstractmethod
    def gaussian(self) -> float:
        """Draw from the standard normal distribution."""
        ...

    @abstractmethod
    def uniform(self) -> float:
        """Draw uniformly from [0, 1)."""
        ...

    def between(self, low: float, high: float) -> float:
        """Draw uniformly from [low, high)."""
        return low + self.uniform() * (high - low)


class SeededDriver(StochasticDriver):
    """numpy-backed driver seeded for reproducibility."""

    def __init__(self, seed: Optional[int] = None):
        """Initialize the driver.

        Args:
            seed: Random seed. ``None`` draws entropy from the OS.
        """
        self.seed = seed
        self.rng = np.random.RandomState(seed)
        logger.debug(f"Initialized {self.__class__.__name__} with seed={seed}")

    def gaussian(self) -> float:
        return float(self.rng.randn())

    def uniform(self) -> float:
        return float(self.rng.random_sample())

    def reset(self, seed: Optional[int] = None) -> None:
        """Reset the random number generator.

        Args:
            seed: Optional new seed to use
        """
        if seed is not None:
            self.seed = seed
        self.rng = np.random.RandomState(self.seed)
        logger.debug(f"Reset RNG with seed={self.seed}")


class MeanRevertingConfig(BaseModel):
    """Parameters of a bounded mean-reverting multiplier.

    The process reverts toward 1.0 at ``reversion_speed`` with an additional
    constant ``drift`` and is clamped to ``[lower, upper]`` after every step.
    """

    drift: float = Field(default=0.0, ge=-1, le=1, description="Annual drift added to the pull")
    reversion_speed: float = Field(ge=0, le=10, description="Speed of reversion toward 1.0")
    volatility: float = Field(ge=0, le=5, description="Annual volatility")
    lower: float = Field(gt=0, description="Lower clamp")
    upper: float = Field(gt=0, description="Upper clamp")

    @model_validator(mode="after")
    def validate_bounds(self):
        """Ensure the clamp interval is not inverted.

        Raises:
            ValueError: If ``lower`` is not below ``upper``.
        """
        if self.lower >= self.upper:
            raise ValueError(f"lower ({self.lower}) must be below upper ({self.upper})")
        return self


class MeanRevertingMultiplier:
    """Ornstein-Uhlenbeck multiplier pulled toward 1.0 and clamped.

    Discretization per step of ``dt`` years::

        x += (drift + theta * (1 - x)) * dt + sigma * sqrt(dt) * Z
        x = clip(x, lower, upper)

    Used for the idiosyncratic ("micro") revenue multiplier and for the
    cyclical sentiment multiplier of mature companies.
    """

    def __init__(self, config: MeanRevertingConfig, initial_value: float = 1.0):
        self.config = config
        self.value = float(np.clip(initial_value, config.lower, config.upper))

    def step(self, dt_years: float, driver: StochasticDriver, volatility_scale: float = 1.0) -> float:
        """Advance the process by one tick.

        Args:
            dt_years: Tick length in years.
            driver: Source of the gaussian draw (exactly one draw per call).
            volatility_scale: Multiplier applied to the configured volatility.

        Returns:
            The new, clamped value.
        """
        cfg = self.config
        z = driver.gaussian()
        sigma = cfg.volatility * volatility_scale
        self.value += (cfg.drift + cfg.reversion_speed * (1 - self.value)) * dt_years
        self.value += sigma * math.sqrt(dt_years) * z
        self.value = float(np.clip(self.value, cfg.lower, cfg.upper))
        return self.value


class StructuralBias:
    """Sentiment bias that decays deterministically toward 1.0.

    ``bias(t + dt) = 1 + (bias(t) - 1) * exp(-ln(2) / half_life * dt)``
    """

    def __init__(self, initial_value: float, half_life_years: float):
        if half_life_years <= 0:
            raise ValueError(f"half_life_years must be positive, got {half_life_years}")
        self.value = initial_value
        self.half_life_years = half_life_years
        self.decay_rate = math.log(2) / half_life_years

    def decay(self, dt_years: float) -> float:
        self.value = 1 + (self.value - 1) * math.exp(-self.decay_rate * dt_years)
        return self.value


class GeometricIndex:
    """Geometric Brownian Motion index starting at 1.0.

    Uses the exact lognormal step::

        S(t+dt)/S(t) = exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    The macro environment keeps one index per sector and perturbs drift and
    volatility while macro events are active.
    """

    def __init__(self, drift: float, volatility: float, initial_value: float = 1.0):
        self.drift = drift
        self.volatility = volatility
        self.value = initial_value

    def step(
        self,
        dt_years: float,
        driver: StochasticDriver,
        drift_delta: float = 0.0,
        volatility_multiplier: float = 1.0,
    ) -> float:
        """Advance the index by one tick.

        Args:
            dt_years: Tick length in years.
            driver: Source of the gaussian draw.
            drift_delta: Additive adjustment to the annual drift.
            volatility_multiplier: Scale on the annual volatility, floored so the
                effective volatility never drops below 1%.

        Returns:
            The new index level.
        """
        mu = self.drift + drift_delta
        sigma = max(0.01, self.volatility * volatility_multiplier)
        z = driver.gaussian()
        shock = np.exp((mu - 0.5 * sigma**2) * dt_years + sigma * np.sqrt(dt_years) * z)
        self.value *= float(shock)
        logger.debug(f"GBM index step: shock={shock:.4f} (drift={mu:.3f}, vol={sigma:.3f})")
        return self.value
