"""Scheduled one-off effects.

A :class:`ScheduledEvent` fires its effects every ``interval_days``, starting
after a random initial delay. Each fired :class:`TimedEffect` modifies one
effect-mutable parameter of a company (``rev_mult``, ``vol_mult`` or
``flat_rev``) and is reverted once its duration has elapsed.

Active effects are tracked as :class:`ActiveEffect` pairs so that the same
effect definition can be live several times with independent lifetimes.
"""

from dataclasses import dataclass
import logging
from typing import Any, List

from .config import EffectConfig, ScheduledEventConfig
from .stochastic_processes import StochasticDriver

logger = logging.getLogger(__name__)

EFFECT_KINDS = ("revenue_multiplier", "volatility_multiplier", "flat_revenue")


class TimedEffect:
    """Reversible modification of a company parameter.

    Args:
        kind: One of ``revenue_multiplier``, ``volatility_multiplier`` or
            ``flat_revenue``.
        value: Multiplier, or flat annual revenue offset in dollars.
        duration_days: Lifetime once applied.

    Raises:
        ValueError: If ``kind`` is not a known effect kind.
    """

    def __init__(self, kind: str, value: float, duration_days: float = 0.0):
        if kind not in EFFECT_KINDS:
            raise ValueError(f"Unknown effect kind '{kind}'. Expected one of {EFFECT_KINDS}")
        self.kind = kind
        self.value = value
        self.duration_days = duration_days

    @classmethod
    def from_config(cls, config: EffectConfig) -> "TimedEffect":
        return cls(config.type, config.value, config.duration_days)

    def apply(self, company: Any) -> None:
        if self.kind == "revenue_multiplier":
            company.rev_mult *= self.value
        elif self.kind == "volatility_multiplier":
            company.vol_mult *= self.value
        else:
            company.flat_rev += self.value

    def revert(self, company: Any) -> None:
        if self.kind == "revenue_multiplier":
            company.rev_mult /= self.value
        elif self.kind == "volatility_multiplier":
            company.vol_mult /= self.value
        else:
            company.flat_rev -= self.value

    def __repr__(self) -> str:
        return f"TimedEffect({self.kind!r}, {self.value!r}, duration_days={self.duration_days!r})"


class ScheduledEvent:
    """Recurring trigger for a fixed set of effects."""

    def __init__(self, config: ScheduledEventConfig, driver: StochasticDriver):
        self.id = config.id
        self.label = config.label or config.id
        self.interval_days = config.interval_days
        self.timer = driver.between(0, self.interval_days)
        self.effects = [TimedEffect.from_config(e) for e in config.effects]

    def maybe(self, dt_days: float, company_name: str = "") -> List[TimedEffect]:
        """Count down the timer and return the effects due this tick."""
        self.timer -= dt_days
        if self.timer > 0:
            return []
        self.timer = self.interval_days
        if self.effects:
            logger.debug(f"Event '{self.label}' fired for {company_name or 'company'}")
        return self.effects


@dataclass
class ActiveEffect:
    effect: TimedEffect
    remaining_days: float


class EffectTracker:
    """Applies fired effects and reverts them when they expire."""

    def __init__(self, events: List[ScheduledEvent]):
        self.events = events
        self.active: List[ActiveEffect] = []

    def step(self, dt_days: float, company: Any) -> None:
        """Run one tick of effect processing.

        First every event is polled and its due effects are applied. Then each
        active effect whose lifetime is exhausted is reverted and dropped;
        the rest have ``dt_days`` taken off their lifetime.
        """
        name = getattr(company, "name", "")
        for event in self.events:
            for effect in event.maybe(dt_days, name):
                effect.apply(company)
                self.active.append(ActiveEffect(effect, effect.duration_days))

        still_active = []
        for entry in self.active:
            if entry.remaining_days <= 0:
                entry.effect.revert(company)
                continue
            entry.remaining_days -= dt_days
            still_active.append(entry)
        self.active = still_active
