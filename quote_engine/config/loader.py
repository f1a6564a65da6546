"""
Configuration management and loading.

Handles quote engine settings: currency presentation, expiry defaults and
the status ledger location.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Tuple

import yaml

from quote_engine.storage.db import DEFAULT_DB_PATH


@dataclass(frozen=True)
class CurrencyConfig:
    """Currency presentation settings."""
    default: str = "USD"
    minor_units: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Validate currency codes and precision."""
        _check_currency_code(self.default, "currency.default")
        for code, places in self.minor_units.items():
            _check_currency_code(code, "currency.minor_units")
            if isinstance(places, bool) or not isinstance(places, int) or not 0 <= places <= 4:
                raise ValueError(f"minor units for {code} must be an integer between 0 and 4")


@dataclass(frozen=True)
class ExpiryConfig:
    """Quote validity and reminder settings."""
    validity_days: int = 30
    reminder_days: Tuple[int, ...] = (7, 3, 1)

    def __post_init__(self):
        """Validate expiry values."""
        if self.validity_days <= 0:
            raise ValueError("validity_days must be > 0")
        if any(day <= 0 for day in self.reminder_days):
            raise ValueError("reminder_days must all be > 0")
        if len(set(self.reminder_days)) != len(self.reminder_days):
            raise ValueError("reminder_days must not contain duplicates")


@dataclass(frozen=True)
class StorageConfig:
    """Status ledger location."""
    db_path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class EngineConfig:
    """Complete quote engine configuration."""
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def default_engine_config() -> EngineConfig:
    """Configuration used when no file is given."""
    return EngineConfig()


def _check_currency_code(code, path: str) -> None:
    if not isinstance(code, str) or len(code) != 3 or not code.isalpha() or not code.isupper():
        raise ValueError(f"'{path}' must be a 3-letter uppercase currency code, got {code!r}")


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name, {})
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def load_engine_config(path: str) -> EngineConfig:
    """Load and validate engine configuration from a YAML file.

    Unknown keys are rejected so that a typo never silently falls back to a
    default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated EngineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Engine config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    _check_keys(raw_config, {'currency', 'expiry', 'storage'}, "configuration")

    return EngineConfig(
        currency=_parse_currency(_section(raw_config, 'currency')),
        expiry=_parse_expiry(_section(raw_config, 'expiry')),
        storage=_parse_storage(_section(raw_config, 'storage')),
    )


def _parse_currency(data: Dict) -> CurrencyConfig:
    _check_keys(data, {'default', 'minor_units'}, "currency")

    default = data.get('default', CurrencyConfig.default)
    minor_units = data.get('minor_units') or {}
    if not isinstance(minor_units, dict):
        raise ValueError("'currency.minor_units' must be a dictionary")

    return CurrencyConfig(default=default, minor_units=dict(minor_units))


def _parse_expiry(data: Dict) -> ExpiryConfig:
    _check_keys(data, {'validity_days', 'reminder_days'}, "expiry")

    validity_days = data.get('validity_days', ExpiryConfig.validity_days)
    if isinstance(validity_days, bool) or not isinstance(validity_days, int):
        raise ValueError("'expiry.validity_days' must be an integer")

    reminder_days = data.get('reminder_days', list(ExpiryConfig.reminder_days))
    if not isinstance(reminder_days, list):
        raise ValueError("'expiry.reminder_days' must be a list")
    for day in reminder_days:
        if isinstance(day, bool) or not isinstance(day, int):
            raise ValueError("'expiry.reminder_days' must contain integers")

    return ExpiryConfig(validity_days=validity_days, reminder_days=tuple(reminder_days))


def _parse_storage(data: Dict) -> StorageConfig:
    _check_keys(data, {'db_path'}, "storage")

    db_path = data.get('db_path', DEFAULT_DB_PATH)
    if not isinstance(db_path, str) or not db_path.strip():
        raise ValueError("'storage.db_path' must be a non-empty string")

    return StorageConfig(db_path=db_path)
