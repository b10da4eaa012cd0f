"""Resolve VAT rates and compute gross prices for EU sales.

The calculator combines the built-in rate table with the optional per-deployment
rules from :class:`~euvat.config.schema.VatSettings`. Rate resolution applies
the reverse-charge rule first: a company buying from outside the seller's
business country is never charged VAT, whatever the table or the rules say.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from numbers import Real
from typing import Any, Callable, Literal, Mapping

from euvat.config.settings import VatSettings, default_rates

from .geolocation import GeolocationClient, resolve_client_ip
from .vies import (
    VatCheckUnavailableError,
    VatNumberService,
    ViesClient,
    ViesFault,
)

_LOGGER = logging.getLogger(__name__)

_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_VAT_NUMBER_NOISE = str.maketrans("", "", " -.,")


def coerce_price(value: Any) -> float:
    """Convert ``value`` to a float, reading the leading number of strings.

    Anything without a numeric prefix becomes ``0.0``.
    """

    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (Real, Decimal)):
        return float(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        return float(match.group(0)) if match else 0.0
    return 0.0


def split_vat_number(vat_number: str) -> tuple[str, str]:
    """Return the country prefix and the remaining digits of ``vat_number``."""

    cleaned = str(vat_number).strip().translate(_VAT_NUMBER_NOISE)
    return cleaned[:2].upper(), cleaned[2:]


@dataclass(frozen=True)
class CalculationResult:
    """Snapshot of the calculator state after a calculation."""

    net_price: float
    country_code: str
    company: bool
    tax_rate: float
    tax_value: float
    value: float


class VatCalculator:
    """Stateful VAT calculator mirroring a checkout flow.

    Country and company flags persist between :meth:`calculate` calls until
    they are changed; the derived figures are overwritten by every call.
    Instances are not safe to share across threads.
    """

    def __init__(
        self,
        settings: VatSettings | None = None,
        *,
        vat_service: VatNumberService | None = None,
        vat_service_factory: Callable[[], VatNumberService] | None = None,
        geolocation: GeolocationClient | None = None,
        rates: Mapping[str, float] | None = None,
    ) -> None:
        self._settings = settings or VatSettings()
        self._rates = rates if rates is not None else default_rates()
        self._vat_service = vat_service
        self._vat_service_factory = vat_service_factory or self._default_vat_service
        self._geolocation = geolocation

        self._net_price = 0.0
        self._country_code: str | None = None
        self._company = False
        self._business_country_code = self._settings.get("business_country_code")
        self._tax_rate = 0.0
        self._tax_value = 0.0
        self._value = 0.0

    def _default_vat_service(self) -> VatNumberService:
        return ViesClient(self._settings.vies_url, timeout=self._settings.timeout)

    @property
    def settings(self) -> VatSettings:
        return self._settings

    @property
    def net_price(self) -> float:
        return self._net_price

    @property
    def country_code(self) -> str:
        return (self._country_code or "").upper()

    @country_code.setter
    def country_code(self, value: str | None) -> None:
        self._country_code = value

    @property
    def company(self) -> bool:
        return self._company

    @company.setter
    def company(self, value: bool) -> None:
        self._company = bool(value)

    @property
    def business_country_code(self) -> str | None:
        return self._business_country_code

    @business_country_code.setter
    def business_country_code(self, value: str | None) -> None:
        self._business_country_code = value

    @property
    def tax_rate(self) -> float:
        return self._tax_rate

    @property
    def tax_value(self) -> float:
        return self._tax_value

    @property
    def value(self) -> float:
        """Gross value (net price plus tax) of the last calculation."""

        return self._value

    @property
    def vat_service(self) -> VatNumberService | None:
        return self._vat_service

    @vat_service.setter
    def vat_service(self, service: VatNumberService | None) -> None:
        self._vat_service = service

    def calculate(
        self,
        net_price: Any,
        country_code: str | None = None,
        company: bool | None = None,
    ) -> float:
        """Compute and return the gross value for ``net_price``."""

        if country_code:
            self.country_code = country_code
        if company is not None and company != self.company:
            self.company = company

        self._net_price = coerce_price(net_price)
        self._tax_rate = self.get_tax_rate_for_country(self.country_code, self.company)
        self._tax_value = self._tax_rate * self._net_price
        self._value = self._net_price + self._tax_value

        return self._value

    def snapshot(self) -> CalculationResult:
        """Return the figures of the most recent calculation."""

        return CalculationResult(
            net_price=self._net_price,
            country_code=self.country_code,
            company=self._company,
            tax_rate=self._tax_rate,
            tax_value=self._tax_value,
            value=self._value,
        )

    def get_tax_rate_for_country(self, country_code: str | None, company: bool = False) -> float:
        """Return the rate applying to ``country_code``.

        Resolution order: reverse charge for foreign companies, then the
        configured rule, then the built-in table (``0`` when unknown).
        """

        code = (country_code or "").upper()
        business_country = (self._business_country_code or "").upper()

        if company and code != business_country:
            _LOGGER.debug("Reverse charge applies to %s (business country %r)", code, business_country)
            return 0.0

        override = self._settings.rate_override(code)
        if override is not None:
            return float(override)

        return float(self._rates.get(code, 0.0))

    def should_collect_vat(self, country_code: str) -> bool:
        """Return ``True`` when VAT is handled for ``country_code``."""

        code = (country_code or "").upper()
        return code in self._rates or self._settings.has(f"rules.{code}")

    def is_valid_vat_number(self, vat_number: str) -> bool:
        """Check ``vat_number`` against the registry.

        Raises :class:`VatCheckUnavailableError` whenever the registry cannot
        answer, whether the client failed to build or the call itself failed.
        """

        country_code, number = split_vat_number(vat_number)
        service = self._resolve_vat_service()

        try:
            result = service.check_vat(country_code, number)
        except ViesFault as fault:
            if fault.is_input_error:
                return False
            _LOGGER.warning("VAT check for %s failed: %s", country_code, fault.code)
            raise VatCheckUnavailableError(
                "The VAT check service is currently unavailable. Please try again later."
            ) from fault

        return bool(result.valid)

    def _resolve_vat_service(self) -> VatNumberService:
        if self._vat_service is None:
            try:
                self._vat_service = self._vat_service_factory()
            except Exception as exc:
                _LOGGER.warning("Unable to construct the VAT check client: %s", exc)
                raise VatCheckUnavailableError(
                    "The VAT check service is currently unavailable. Please try again later."
                ) from exc
        return self._vat_service

    def get_ip_based_country(
        self, environ: Mapping[str, str] | None = None
    ) -> str | Literal[False]:
        """Return the caller's country from their IP address, or ``False``."""

        if self._geolocation is None:
            self._geolocation = GeolocationClient(
                self._settings.geolocation_url, timeout=self._settings.timeout
            )
        return self._geolocation.lookup(resolve_client_ip(environ))


__all__ = [
    "CalculationResult",
    "VatCalculator",
    "coerce_price",
    "split_vat_number",
]
