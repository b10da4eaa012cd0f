"""Pydantic models describing the VAT rate table and deployment settings."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
)

VIES_SERVICE_URL = "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
GEOLOCATION_SERVICE_URL = "http://ip2c.org/"

_COUNTRY_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")
_RULE_PREFIX = "rules."


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def normalise_country_code(value: Any) -> str:
    """Return ``value`` as an uppercase two-letter country code."""

    if isinstance(value, bool):
        # YAML 1.1 reads an unquoted ``NO`` key as ``False``.
        raise ConfigurationError(
            "Country codes must be strings; quote keys such as 'NO' in YAML files"
        )
    code = str(value).strip().upper()
    if not _COUNTRY_CODE_PATTERN.match(code):
        raise ConfigurationError(f"Invalid country code '{value}'")
    return code


def _coerce_rate_mapping(value: Any, label: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{label} must be provided as a mapping")

    rates: dict[str, float] = {}
    for key, raw_rate in value.items():
        code = normalise_country_code(key)
        if code in rates:
            raise ConfigurationError(f"Duplicate {label.lower()} entry for '{code}'")
        try:
            rate = float(raw_rate)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"{label} entry for '{code}' must be numeric"
            ) from exc
        if not math.isfinite(rate):
            raise ConfigurationError(f"{label} entry for '{code}' must be a finite number")
        if rate < 0:
            raise ConfigurationError(f"{label} entry for '{code}' must be non-negative")
        rates[code] = rate
    return rates


class RateTable(ImmutableModel):
    """Built-in standard VAT rates keyed by country code."""

    rates: Mapping[str, float]

    @field_validator("rates", mode="before")
    @classmethod
    def _coerce_rates(cls, value: Any) -> Mapping[str, float]:
        rates = _coerce_rate_mapping(value, "Rate table")
        if not rates:
            raise ConfigurationError("The rate table must define at least one country")
        return rates

    @computed_field
    @property
    def countries(self) -> tuple[str, ...]:
        return tuple(sorted(self.rates))


class VatSettings(ImmutableModel):
    """Per-deployment settings consulted before the built-in rate table.

    ``rules`` holds per-country rate overrides. A rate of ``0`` is a valid
    override and marks a jurisdiction as intentionally exempt.
    """

    business_country_code: str | None = None
    rules: Mapping[str, float] = Field(default_factory=dict)
    vies_url: str = VIES_SERVICE_URL
    geolocation_url: str = GEOLOCATION_SERVICE_URL
    timeout: float | None = None

    @field_validator("business_country_code", mode="before")
    @classmethod
    def _coerce_business_country(cls, value: Any) -> str | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return normalise_country_code(value)

    @field_validator("rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> Mapping[str, float]:
        return _coerce_rate_mapping(value, "Rules")

    @field_validator("vies_url", "geolocation_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ConfigurationError(f"Service URL '{value}' must be absolute")
        return value

    @field_validator("timeout")
    @classmethod
    def _validate_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ConfigurationError("Timeouts must be positive when provided")
        return value

    def rate_override(self, country_code: str) -> float | None:
        """Return the configured rate for ``country_code`` if one exists."""

        return self.rules.get(str(country_code).upper())

    def has(self, key: str) -> bool:
        """Return ``True`` when the dotted configuration ``key`` is set."""

        if key.startswith(_RULE_PREFIX):
            return key[len(_RULE_PREFIX):].upper() in self.rules
        if key == "business_country_code":
            return self.business_country_code is not None
        return key in type(self).model_fields

    def get(self, key: str, default: Any = None) -> Any:
        """Read a dotted configuration ``key``, returning ``default`` when unset."""

        if not self.has(key):
            return default
        if key.startswith(_RULE_PREFIX):
            return self.rules[key[len(_RULE_PREFIX):].upper()]
        return getattr(self, key)


__all__ = [
    "ConfigurationError",
    "GEOLOCATION_SERVICE_URL",
    "ImmutableModel",
    "RateTable",
    "VIES_SERVICE_URL",
    "ValidationError",
    "VatSettings",
    "normalise_country_code",
]
