"""EU VAT rates, reverse-charge aware pricing and VAT number checks."""

from euvat.services import VatCalculator, VatCheckUnavailableError

__all__ = ["VatCalculator", "VatCheckUnavailableError"]
