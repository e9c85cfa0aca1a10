"""Tests for convergence curves and sector tables."""

import pytest

from company_dynamics.curves import (
    MarginCurve,
    MultipleCurve,
    lerp,
    sector_margin,
    sector_micro,
)


def test_lerp_clamps():
    assert lerp(0, 10, -1) == 0
    assert lerp(0, 10, 0.3) == pytest.approx(3)
    assert lerp(0, 10, 5) == 10


class TestMarginCurve:
    def test_converges_linearly(self):
        curve = MarginCurve(0.05, 0.15, years_to_mature=10)

        assert curve.value(0) == pytest.approx(0.05)
        assert curve.value(5) == pytest.approx(0.10)
        assert curve.value(30) == pytest.approx(0.15)

    def test_zero_horizon_is_floored(self):
        curve = MarginCurve(0.05, 0.15, years_to_mature=0)

        assert curve.years_to_mature == 0.01
        assert curve.value(1) == pytest.approx(0.15)


class TestMultipleCurve:
    def test_converges_to_pe_times_margin(self):
        curve = MultipleCurve(initial_ps=3.0, terminal_pe=20.0, years_to_converge=10)

        assert curve.value(0, 0.1) == pytest.approx(3.0)
        assert curve.value(10, 0.1) == pytest.approx(2.0)
        assert curve.value(5, 0.1) == pytest.approx(2.5)


class TestSectorTables:
    def test_known_sector(self):
        assert sector_micro("Biotech").volatility == 0.35
        assert sector_margin("Retail") == 0.06

    def test_unknown_sector_falls_back(self):
        assert sector_micro("Shipping") == sector_micro("DEFAULT")
        assert sector_margin("Shipping") == 0.15
