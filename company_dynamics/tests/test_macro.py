"""Tests for the macro environment and macro events."""

from datetime import date, timedelta
import logging
import math

import pytest

from company_dynamics.config import MacroEventConfig
from company_dynamics.macro import (
    DEFAULT_SECTOR,
    MacroEvent,
    MacroEventManager,
    SectorMacroEnvironment,
)


@pytest.fixture
def recession():
    """A certain recession starting on 1993-01-01."""
    return MacroEventConfig.model_validate(
        {
            "id": "recession",
            "label": "Recession",
            "chance": 1.0,
            "start_year_range": [1993, 1993],
            "start_day": 1,
            "impact_days": 100,
            "recovery_days": 100,
            "global_multiplier": 0.8,
            "valuation_compression": 0.6,
            "sector_impacts": [{"sector": "Retail", "min_multiplier": 0.7}],
            "effects": [
                {"type": "macro_mu_delta", "value": -0.1},
                {"type": "volatility_multiplier", "value": 2.0},
            ],
        }
    )


class TestMacroEvent:
    """Test the decline-then-recovery multiplier."""

    @pytest.fixture
    def event(self):
        return MacroEvent(
            id="e",
            label="E",
            description="",
            start_date=date(1992, 1, 1),
            impact_days=100,
            recovery_days=100,
            global_min_multiplier=0.8,
            valuation_min_multiplier=0.5,
        )

    @pytest.mark.parametrize(
        "offset,expected",
        [(-10, 1.0), (0, 1.0), (50, 0.9), (100, 0.8), (150, 0.9), (200, 1.0), (400, 1.0)],
    )
    def test_multiplier_shape(self, event, offset, expected):
        day = event.start_date + timedelta(days=offset)
        assert event.multiplier(day, 0.8) == pytest.approx(expected)

    def test_sector_minimum_falls_back_to_global(self, event):
        assert event.sector_minimum("Tech") == 0.8

    def test_end_date(self, event):
        assert event.end_date == date(1992, 7, 19)


class TestMacroEventManager:
    """Test event scheduling and aggregation."""

    def test_lifecycle(self, recession, make_driver, caplog):
        manager = MacroEventManager([recession], make_driver(), base_year=1990)
        assert len(manager.events) == 1
        assert manager.events[0].start_date == date(1993, 1, 1)

        manager.tick(date(1992, 6, 1))
        assert manager.active_events == []
        assert manager.revenue_multiplier("Retail") == 1.0

        with caplog.at_level(logging.INFO, logger="company_dynamics.macro"):
            manager.tick(date(1993, 2, 20))
        assert "Recession" in caplog.text
        assert len(manager.active_events) == 1
        assert manager.revenue_multiplier("Retail") == pytest.approx(0.85)
        assert manager.revenue_multiplier("Tech") == pytest.approx(0.9)
        assert manager.valuation_multiplier("Tech") == pytest.approx(0.8)
        assert manager.drift_delta() == pytest.approx(-0.1)
        assert manager.volatility_multiplier() == pytest.approx(2.0)
        assert manager.describe_active()[0]["days_remaining"] == 150

        manager.tick(date(1993, 8, 1))
        assert manager.active_events == []
        assert manager.events[0].state == "ended"
        assert manager.volatility_multiplier() == 1.0

    def test_failed_chance_roll(self, recession, make_driver):
        definition = recession.model_copy(update={"chance": 0.3})
        manager = MacroEventManager([definition], make_driver(uniforms=[0.9]))

        assert manager.events == []

    def test_force_trigger(self, recession, make_driver):
        definition = recession.model_copy(update={"chance": 0.0})
        manager = MacroEventManager([definition], make_driver(uniforms=[0.9]))

        event = manager.force_trigger("recession", date(1995, 3, 1))

        assert event is not None
        assert event.start_date == date(1995, 3, 1)
        assert manager.active_events == [event]
        assert manager.force_trigger("unknown") is None

    def test_phase_lengths_are_floored(self, recession, make_driver):
        definition = recession.model_copy(
            update={"impact_days": recession.impact_days.model_copy(update={"min": 5, "max": 5})}
        )
        manager = MacroEventManager([definition], make_driver())

        assert manager.events[0].impact_days == 30


class TestSectorMacroEnvironment:
    """Test the per-sector GBM indices."""

    def test_default_sector_always_present(self, make_driver):
        macro = SectorMacroEnvironment({"Tech"}, make_driver())
        assert set(macro.indices) == {"Tech", DEFAULT_SECTOR}

    def test_unknown_sector_created_on_demand(self, make_driver):
        macro = SectorMacroEnvironment(set(), make_driver())

        assert macro.sector_factor("Shipping") == 1.0
        assert macro.sector_drift("Shipping") == 0.12

    def test_step_moves_every_index(self, make_driver):
        macro = SectorMacroEnvironment({"Tech", "Retail"}, make_driver())
        macro.step(1.0)

        assert macro.sector_factor("Tech") == pytest.approx(math.exp(0.165 - 0.5 * 0.22**2))
        assert macro.sector_factor("Retail") == pytest.approx(math.exp(0.12 - 0.5 * 0.10**2))

    def test_multipliers_without_events(self, make_driver):
        macro = SectorMacroEnvironment({"Tech"}, make_driver())

        assert macro.revenue_multiplier("Tech") == 1.0
        assert macro.valuation_multiplier("Tech") == 1.0

    def test_events_shift_drift(self, recession, make_driver):
        driver = make_driver()
        manager = MacroEventManager([recession], driver)
        macro = SectorMacroEnvironment({"Retail"}, driver, event_manager=manager)

        macro.step(1.0, current_date=date(1993, 2, 20))

        sigma = 0.10 * 2.0
        expected = math.exp(0.12 - 0.1 - 0.5 * sigma**2)
        assert macro.sector_factor("Retail") == pytest.approx(expected)
        assert macro.revenue_multiplier("Retail") == pytest.approx(0.85)
