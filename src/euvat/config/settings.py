"""Configuration loader wrapping the shared schema models."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .schema import (
    GEOLOCATION_SERVICE_URL,
    VIES_SERVICE_URL,
    ConfigurationError,
    RateTable,
    VatSettings,
    normalise_country_code,
)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
RATES_FILE = CONFIG_DIRECTORY / "rates.yaml"

CONFIG_ENV_VAR = "EUVAT_CONFIG"
BUSINESS_COUNTRY_ENV_VAR = "EUVAT_BUSINESS_COUNTRY_CODE"
SETTINGS_NAMESPACE = "vat_calculator"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_rate_table() -> RateTable:
    """Load and cache the built-in rate table."""

    if not RATES_FILE.exists():
        raise FileNotFoundError("Rate table not found")

    raw_table = _load_yaml(RATES_FILE)

    try:
        return RateTable.model_validate(raw_table)
    except ValidationError as error:
        raise ConfigurationError(f"Rate table validation failed: {error}") from error


def default_rates() -> Mapping[str, float]:
    """Expose the built-in rates as a read-only mapping."""

    return MappingProxyType(dict(load_rate_table().rates))


def parse_settings(raw: Mapping[str, Any]) -> VatSettings:
    """Validate a raw settings mapping, unwrapping the ``vat_calculator`` namespace."""

    data = dict(raw)
    namespaced = data.get(SETTINGS_NAMESPACE)
    if isinstance(namespaced, Mapping):
        data = dict(namespaced)

    try:
        return VatSettings.model_validate(data)
    except ValidationError as error:
        raise ConfigurationError(f"Settings validation failed: {error}") from error


def load_settings(path: str | os.PathLike[str] | None = None) -> VatSettings:
    """Load deployment settings from ``path`` or the ``EUVAT_CONFIG`` file.

    Without either, defaults are returned so the built-in rate table applies
    unmodified. ``EUVAT_BUSINESS_COUNTRY_CODE`` takes precedence over the
    business country recorded in the file.
    """

    source = path or os.getenv(CONFIG_ENV_VAR)
    raw: dict[str, Any] = {}
    if source:
        config_file = Path(source)
        if not config_file.exists():
            raise FileNotFoundError(f"Settings file missing: {config_file}")
        raw = _load_yaml(config_file)

    settings = parse_settings(raw)

    business_country = os.getenv(BUSINESS_COUNTRY_ENV_VAR, "").strip()
    if business_country:
        try:
            code = normalise_country_code(business_country)
        except ConfigurationError as error:
            raise ConfigurationError(
                f"{BUSINESS_COUNTRY_ENV_VAR} is invalid: {error}"
            ) from error
        settings = settings.model_copy(update={"business_country_code": code})

    return settings


__all__ = [
    "BUSINESS_COUNTRY_ENV_VAR",
    "CONFIG_DIRECTORY",
    "CONFIG_ENV_VAR",
    "ConfigurationError",
    "GEOLOCATION_SERVICE_URL",
    "RATES_FILE",
    "RateTable",
    "VIES_SERVICE_URL",
    "VatSettings",
    "default_rates",
    "load_rate_table",
    "load_settings",
    "parse_settings",
]
