"""Tests for scheduled events and timed effects."""

from types import SimpleNamespace

import pytest

from company_dynamics.config import ScheduledEventConfig
from company_dynamics.effects import EffectTracker, ScheduledEvent, TimedEffect


def _company():
    return SimpleNamespace(name="Acme", rev_mult=1.0, vol_mult=1.0, flat_rev=0.0)


def _event(driver, interval=100.0, effects=None):
    config = ScheduledEventConfig.model_validate(
        {
            "id": "launch",
            "interval_days": interval,
            "effects": effects
            if effects is not None
            else [{"type": "revenue_multiplier", "value": 2.0, "duration_days": 30}],
        }
    )
    return ScheduledEvent(config, driver)


class TestTimedEffect:
    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown effect kind"):
            TimedEffect("tax_holiday", 1.0)

    @pytest.mark.parametrize(
        "kind,attr,value,applied",
        [
            ("revenue_multiplier", "rev_mult", 1.5, 1.5),
            ("volatility_multiplier", "vol_mult", 3.0, 3.0),
            ("flat_revenue", "flat_rev", 5e6, 5e6),
        ],
    )
    def test_apply_and_revert(self, kind, attr, value, applied):
        company = _company()
        effect = TimedEffect(kind, value)
        before = getattr(company, attr)

        effect.apply(company)
        assert getattr(company, attr) == pytest.approx(applied)

        effect.revert(company)
        assert getattr(company, attr) == pytest.approx(before)


class TestScheduledEvent:
    """Test the countdown timer."""

    def test_initial_delay_is_drawn(self, make_driver):
        event = _event(make_driver(uniforms=[0.25]))
        assert event.timer == pytest.approx(25.0)

    def test_fires_and_rearms(self, make_driver):
        event = _event(make_driver(uniforms=[0.25]))

        assert event.maybe(20) == []
        fired = event.maybe(10)
        assert len(fired) == 1
        assert event.timer == 100.0

    def test_fires_same_effect_objects(self, make_driver):
        event = _event(make_driver(uniforms=[0.0]))
        first = event.maybe(1)
        event.timer = 0
        assert event.maybe(1) is first


class TestEffectTracker:
    """Test the apply-then-expire cycle."""

    def test_effect_reverts_after_duration(self, make_driver):
        company = _company()
        tracker = EffectTracker([_event(make_driver(uniforms=[0.0]))])

        tracker.step(14, company)
        assert company.rev_mult == 2.0
        assert tracker.active[0].remaining_days == 16

        tracker.step(14, company)
        tracker.step(14, company)
        assert company.rev_mult == 2.0

        tracker.step(14, company)
        assert company.rev_mult == pytest.approx(1.0)
        assert tracker.active == []

    def test_overlapping_firings_stack(self, make_driver):
        company = _company()
        tracker = EffectTracker([_event(make_driver(uniforms=[0.0]), interval=10)])

        tracker.step(10, company)
        tracker.step(10, company)

        assert company.rev_mult == 4.0
        assert len(tracker.active) == 2

    def test_zero_duration_reverts_within_tick(self, make_driver):
        company = _company()
        effects = [{"type": "flat_revenue", "value": 1e6}]
        tracker = EffectTracker([_event(make_driver(uniforms=[0.0]), effects=effects)])

        tracker.step(1, company)
        assert company.flat_rev == 0.0
        assert tracker.active == []
