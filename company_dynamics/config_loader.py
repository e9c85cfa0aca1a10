"""Configuration loader with validation and override support.

Company and macro-event definitions are stored as YAML (JSON files load too,
being valid YAML). A file holds either a single company mapping or a
``companies`` list, optionally alongside a ``macro_events`` list. Top-level
keys starting with ``_`` are reserved for YAML anchors and ignored.

Examples:
    Load the bundled sample companies with a tweak::

        from company_dynamics.config_loader import CompanyConfigLoader

        loader = CompanyConfigLoader()
        companies = loader.load_companies(
            "sample_companies", overrides={"finance.interest_rate_annual": 0.07}
        )
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
import yaml

from .config import CompanyConfig, MacroEventConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _make_hashable(obj: Any) -> Any:
    if isinstance(obj, dict):
        return frozenset((k, _make_hashable(v)) for k, v in obj.items())
    if isinstance(obj, list):
        return tuple(_make_hashable(item) for item in obj)
    return obj


def apply_overrides(data: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Apply overrides to a raw config mapping.

    Args:
        data: Raw mapping, modified in place.
        overrides: Dot-notation keys (``{"finance.starting_cash_usd": 1e8}``)
            or top-level keys.

    Returns:
        The updated mapping.
    """
    for key, value in overrides.items():
        if "." in key:
            parts = key.split(".")
            current = data
            for part in parts[:-1]:
                if current.get(part) is None:
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            data[key] = value
    return data


def _format_validation_error(label: str, error: ValidationError) -> List[str]:
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        issues.append(f"{label}: {location or '<root>'}: {err['msg']}")
    return issues


class CompanyConfigLoader:
    """Loads, validates and caches company configurations.

    Args:
        config_dir: Directory containing configuration files. Defaults to the
            bundled ``data/parameters`` directory.
    """

    DEFAULT_CONFIG_DIR = Path(__file__).parent / "data" / "parameters"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else self.DEFAULT_CONFIG_DIR
        self._cache: Dict[Any, Any] = {}

    def _resolve(self, config_name: str) -> Path:
        candidates = [
            self.config_dir / f"{config_name}.yaml",
            self.config_dir / f"{config_name}.yml",
            self.config_dir / f"{config_name}.json",
            self.config_dir / config_name,
            Path(config_name),
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(f"Configuration '{config_name}' not found in {self.config_dir}")

    def read_raw(self, config_name: str) -> Dict[str, Any]:
        """Read a configuration file into a plain mapping.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is not parseable or not a mapping.
        """
        path = self._resolve(config_name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError([f"{path.name}: could not parse file ({e})"]) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                [f"{path.name}: expected a mapping at top level, got {type(data).__name__}"]
            )
        return {k: v for k, v in data.items() if not str(k).startswith("_")}

    def load(self, config_name: str, overrides: Optional[Dict[str, Any]] = None) -> CompanyConfig:
        """Load a single company configuration.

        Args:
            config_name: File name (without extension) or path.
            overrides: Dot-notation overrides applied before validation.

        Returns:
            Validated configuration.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is unreadable.
            ValidationError: If the configuration is invalid.
        """
        cache_key = ("company", config_name, _make_hashable(overrides) if overrides else None)
        if cache_key in self._cache:
            return self._cache[cache_key]

        data = self.read_raw(config_name)
        data.pop("macro_events", None)
        config = CompanyConfig(**apply_overrides(data, overrides or {}))
        self._cache[cache_key] = config
        return config

    def load_companies(
        self, config_name: str, overrides: Optional[Dict[str, Any]] = None
    ) -> List[CompanyConfig]:
        """Load every company from a file with a ``companies`` list.

        Overrides apply to each company. All invalid entries are reported
        together.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is unreadable, has no ``companies``
                list, or any company fails validation.
        """
        cache_key = ("companies", config_name, _make_hashable(overrides) if overrides else None)
        if cache_key in self._cache:
            return self._cache[cache_key]

        data = self.read_raw(config_name)
        entries = data.get("companies")
        if not isinstance(entries, list):
            raise ConfigurationError([f"{config_name}: missing 'companies' list"])

        configs: List[CompanyConfig] = []
        issues: List[str] = []
        seen_ids: set = set()
        for index, entry in enumerate(entries):
            label = f"companies[{index}]"
            if not isinstance(entry, dict):
                issues.append(f"{label}: expected a mapping")
                continue
            label = f"companies[{index}] ({entry.get('id', '?')})"
            try:
                config = CompanyConfig(**apply_overrides(copy.deepcopy(entry), overrides or {}))
            except ValidationError as e:
                issues.extend(_format_validation_error(label, e))
                continue
            if config.id in seen_ids:
                issues.append(f"{label}: duplicate company id '{config.id}'")
                continue
            seen_ids.add(config.id)
            configs.append(config)

        if issues:
            raise ConfigurationError(issues)

        logger.info(f"Loaded {len(configs)} company configurations from {config_name}")
        self._cache[cache_key] = configs
        return configs

    def load_macro_events(self, config_name: str) -> List[MacroEventConfig]:
        """Load the ``macro_events`` list of a file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is unreadable or an event is invalid.
        """
        cache_key = ("macro_events", config_name)
        if cache_key in self._cache:
            return self._cache[cache_key]

        data = self.read_raw(config_name)
        entries = data.get("macro_events") or []
        events: List[MacroEventConfig] = []
        issues: List[str] = []
        for index, entry in enumerate(entries):
            label = f"macro_events[{index}]"
            if not isinstance(entry, dict):
                issues.append(f"{label}: expected a mapping")
                continue
            try:
                events.append(MacroEventConfig(**entry))
            except ValidationError as e:
                issues.extend(_format_validation_error(label, e))
        if issues:
            raise ConfigurationError(issues)

        self._cache[cache_key] = events
        return events

    def list_available_configs(self) -> List[str]:
        """List configuration files in the config directory (without extension)."""
        files = list(self.config_dir.glob("*.yaml")) + list(self.config_dir.glob("*.json"))
        return sorted(f.stem for f in files if not f.stem.startswith("_"))

    def clear_cache(self) -> None:
        """Clear the configuration cache."""
        self._cache.clear()
        logger.debug("Configuration cache cleared")


def load_config(config_name: str, overrides: Optional[Dict[str, Any]] = None) -> CompanyConfig:
    """Quick helper to load a single company configuration."""
    return CompanyConfigLoader().load(config_name, overrides)
