"""Service-layer helpers for the euvat package."""

from .calculator import CalculationResult, VatCalculator, coerce_price, split_vat_number
from .geolocation import GeolocationClient, resolve_client_ip
from .vies import VatCheckResult, VatCheckUnavailableError, VatNumberService, ViesClient, ViesFault

__all__ = [
    "CalculationResult",
    "GeolocationClient",
    "VatCalculator",
    "VatCheckResult",
    "VatCheckUnavailableError",
    "VatNumberService",
    "ViesClient",
    "ViesFault",
    "coerce_price",
    "resolve_client_ip",
    "split_vat_number",
]
