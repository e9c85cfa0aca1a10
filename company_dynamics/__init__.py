"""Company Dynamics"""

from ._version import __version__

# Use lazy imports to avoid import issues during test discovery
# Direct imports are defined but modules are imported only when accessed

__all__ = [
    "__version__",
    "CompanyBooks",
    "CompanyConfig",
    "CompanyConfigLoader",
    "ConfigurationError",
    "DividendEvent",
    "HypergrowthCompany",
    "MacroEnvironment",
    "MacroEventManager",
    "MatureCompany",
    "Product",
    "SectorMacroEnvironment",
    "SeededDriver",
    "SimulatableCompany",
    "StochasticDriver",
    "build_company",
    "format_money",
]


def __getattr__(name):
    """Lazy import modules to avoid circular dependencies during test discovery."""
    if name == "CompanyBooks":
        from .bookkeeping import CompanyBooks

        return CompanyBooks
    elif name == "CompanyConfig":
        from .config import CompanyConfig

        return CompanyConfig
    elif name == "CompanyConfigLoader":
        from .config_loader import CompanyConfigLoader

        return CompanyConfigLoader
    elif name == "ConfigurationError":
        from .exceptions import ConfigurationError

        return ConfigurationError
    elif name == "DividendEvent":
        from .dividends import DividendEvent

        return DividendEvent
    elif name == "HypergrowthCompany":
        from .hypergrowth_company import HypergrowthCompany

        return HypergrowthCompany
    elif name in ["MacroEnvironment", "MacroEventManager", "SectorMacroEnvironment"]:
        from .macro import MacroEnvironment, MacroEventManager, SectorMacroEnvironment

        return locals()[name]
    elif name == "MatureCompany":
        from .mature_company import MatureCompany

        return MatureCompany
    elif name == "Product":
        from .pipeline import Product

        return Product
    elif name == "SeededDriver" or name == "StochasticDriver":
        from .stochastic_processes import SeededDriver, StochasticDriver

        return locals()[name]
    elif name == "SimulatableCompany" or name == "build_company":
        from .company import SimulatableCompany, build_company

        return locals()[name]
    elif name == "format_money":
        from .financial_table import format_money

        return format_money
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
