"""Pytest configuration and shared fixtures."""

from collections import deque
from pathlib import Path
from typing import Iterable, Optional

import pytest

from company_dynamics.config import CompanyConfig
from company_dynamics.macro import MacroEnvironment
from company_dynamics.stochastic_processes import StochasticDriver


class ScriptedDriver(StochasticDriver):
    """Driver replaying queued draws, then falling back to fixed defaults."""

    def __init__(
        self,
        gaussians: Iterable[float] = (),
        uniforms: Iterable[float] = (),
        default_gaussian: float = 0.0,
        default_uniform: float = 0.5,
    ):
        self.gaussians = deque(gaussians)
        self.uniforms = deque(uniforms)
        self.default_gaussian = default_gaussian
        self.default_uniform = default_uniform
        self.gaussian_calls = 0
        self.uniform_calls = 0

    def gaussian(self) -> float:
        self.gaussian_calls += 1
        return self.gaussians.popleft() if self.gaussians else self.default_gaussian

    def uniform(self) -> float:
        self.uniform_calls += 1
        return self.uniforms.popleft() if self.uniforms else self.default_uniform


class FixedMacro(MacroEnvironment):
    """Macro environment with constant factors."""

    def __init__(self, factor: float = 1.0, revenue: float = 1.0, valuation: float = 1.0):
        self.factor = factor
        self.revenue = revenue
        self.valuation = valuation

    def sector_factor(self, sector, current_date=None):
        return self.factor

    def revenue_multiplier(self, sector):
        return self.revenue

    def valuation_multiplier(self, sector):
        return self.valuation


@pytest.fixture
def project_root():
    """Return the package root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def parameters_dir(project_root):
    """Return the bundled parameters directory."""
    return project_root / "data" / "parameters"


@pytest.fixture
def make_driver():
    """Factory for scripted drivers."""

    def _make(gaussians=(), uniforms=(), default_gaussian=0.0, default_uniform=0.5):
        return ScriptedDriver(gaussians, uniforms, default_gaussian, default_uniform)

    return _make


@pytest.fixture
def flat_macro():
    """Macro environment pinned at a sector factor of 1."""
    return FixedMacro()


@pytest.fixture
def make_macro():
    """Factory for fixed macro environments."""

    def _make(factor=1.0, revenue=1.0, valuation=1.0):
        return FixedMacro(factor, revenue, valuation)

    return _make


def _mature_data(**overrides) -> dict:
    data: dict = {
        "id": "acme",
        "archetype": "mature",
        "static": {"name": "Acme Corp", "sector": "Retail"},
        "base_business": {
            "revenue_process": {"initial_revenue_usd": {"min": 1e9, "max": 1e9}},
            "margin_curve": {
                "start_profit_margin": 0.2,
                "terminal_profit_margin": 0.2,
                "years_to_mature": 5,
            },
            "multiple_curve": {
                "initial_ps_ratio": 2.0,
                "terminal_pe_ratio": 15.0,
                "years_to_converge": 10,
            },
        },
        "finance": {"starting_cash_usd": 100_000_000, "starting_debt_usd": 0},
        "sentiment": {"structural_bias": {"min": 1.0, "max": 1.0}},
    }
    for key, value in overrides.items():
        parts = key.split(".")
        current = data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value
    return data


@pytest.fixture
def mature_config_data():
    """Factory for raw mature-company config mappings with dot-notation overrides."""
    return _mature_data


@pytest.fixture
def mature_config():
    """Factory for validated mature-company configs."""

    def _make(**overrides) -> CompanyConfig:
        return CompanyConfig.model_validate(_mature_data(**overrides))

    return _make


@pytest.fixture
def hypergrowth_config():
    """Factory for validated hypergrowth configs."""

    def _make(cash: Optional[float] = None, **extra) -> CompanyConfig:
        data: dict = {"id": "rocket", "archetype": "hypergrowth"}
        if cash is not None:
            data["finance"] = {"starting_cash_usd": cash}
        data.update(extra)
        return CompanyConfig.model_validate(data)

    return _make
