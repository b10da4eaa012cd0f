"""Command line access to the VAT calculator."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from euvat.config.settings import ConfigurationError, load_settings
from euvat.services import VatCalculator, VatCheckUnavailableError
from euvat.version import get_project_version

_LOGGER = logging.getLogger(__name__)


def _format_percentage(value: float) -> str:
    percentage = value * 100
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="euvat",
        description="Compute EU VAT, check VAT numbers and locate client addresses.",
    )
    parser.add_argument("--version", action="version", version=f"euvat {get_project_version()}")
    parser.add_argument("--config", help="Settings file (defaults to $EUVAT_CONFIG)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    calculate = subparsers.add_parser("calculate", help="Compute the gross price")
    calculate.add_argument("net_price", help="Net price (non-numeric values count as 0)")
    calculate.add_argument("country", help="Two-letter country code of the customer")
    calculate.add_argument("--company", action="store_true", help="Customer is a business")

    rate = subparsers.add_parser("rate", help="Show the rate applying to a country")
    rate.add_argument("country")
    rate.add_argument("--company", action="store_true")

    collect = subparsers.add_parser("should-collect", help="Report whether VAT is collected")
    collect.add_argument("country")

    check = subparsers.add_parser("check-vat", help="Validate a VAT number with VIES")
    check.add_argument("vat_number")

    locate = subparsers.add_parser("locate", help="Resolve an IP address to a country")
    locate.add_argument("ip_address")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``euvat`` console script."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ConfigurationError) as error:
        print(f"Failed to load configuration: {error}")
        return 1

    calculator = VatCalculator(settings)

    if args.command == "calculate":
        gross = calculator.calculate(args.net_price, args.country, args.company)
        print(f"Net price: {calculator.net_price:.2f}")
        print(f"Tax rate: {_format_percentage(calculator.tax_rate)}")
        print(f"Tax value: {calculator.tax_value:.2f}")
        print(f"Gross value: {gross:.2f}")
        return 0

    if args.command == "rate":
        rate = calculator.get_tax_rate_for_country(args.country, args.company)
        print(f"{args.country.upper()}: {_format_percentage(rate)}")
        return 0

    if args.command == "should-collect":
        collect = calculator.should_collect_vat(args.country)
        print(f"{args.country.upper()}: {'yes' if collect else 'no'}")
        return 0 if collect else 2

    if args.command == "check-vat":
        try:
            valid = calculator.is_valid_vat_number(args.vat_number)
        except VatCheckUnavailableError as error:
            _LOGGER.debug("VAT check unavailable", exc_info=True)
            print(f"Unavailable: {error}")
            return 3
        print("valid" if valid else "invalid")
        return 0 if valid else 2

    country = calculator.get_ip_based_country({"REMOTE_ADDR": args.ip_address})
    if country is False:
        print(f"{args.ip_address}: unknown")
        return 2
    print(f"{args.ip_address}: {country}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
