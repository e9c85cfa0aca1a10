"""Version information for company_dynamics."""

__version__ = "0.3.0"
