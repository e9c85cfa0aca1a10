"""Custom warning classes for the company_dynamics package.

These warning classes allow users to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Suppress configuration warnings while loading a large preset file::

        import warnings
        from company_dynamics._warnings import ConfigurationWarning

        warnings.filterwarnings("ignore", category=ConfigurationWarning)
"""


class CompanyDynamicsWarning(UserWarning):
    """Base class for all company_dynamics warnings."""


class ConfigurationWarning(CompanyDynamicsWarning):
    """Unusual or potentially incorrect configuration parameters.

    Raised during config validation when parameter values fall outside
    typical ranges (e.g., terminal margins above 60%, an inverted
    structural-bias range).
    """


class DataQualityWarning(CompanyDynamicsWarning):
    """Runtime data-quality observations.

    Raised when restored history contains entries that had to be dropped
    or reordered (duplicate years, non-finite values).
    """
