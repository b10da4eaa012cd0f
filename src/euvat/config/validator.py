"""Utilities for validating rate data and deployment settings."""

from __future__ import annotations

import argparse
import math
from typing import Mapping, Sequence

from .settings import (
    ConfigurationError,
    RateTable,
    VatSettings,
    load_rate_table,
    load_settings,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_rate_bounds(scope: str, rates: Mapping[str, float]) -> list[str]:
    errors: list[str] = []

    for country, rate in sorted(rates.items()):
        if not math.isfinite(rate) or rate < 0 or rate > 1:
            errors.append(
                _format_scope(scope, f"{country} rate {rate} must be between 0 and 1")
            )

    return errors


def validate_rate_table(table: RateTable) -> list[str]:
    """Return human-readable issues detected in the built-in rate table."""

    return _validate_rate_bounds("rates", table.rates)


def validate_settings(settings: VatSettings, table: RateTable | None = None) -> list[str]:
    """Return issues detected in ``settings`` relative to the rate table."""

    table = table or load_rate_table()
    errors = _validate_rate_bounds("rules", settings.rules)

    business_country = settings.business_country_code
    if business_country and business_country not in table.rates:
        if business_country not in settings.rules:
            errors.append(
                _format_scope(
                    "business_country_code",
                    f"{business_country} has neither a built-in rate nor a configured rule",
                )
            )

    for country, rate in sorted(settings.rules.items()):
        default = table.rates.get(country)
        if default is None:
            errors.append(
                _format_scope(
                    "rules",
                    f"{country} is not in the built-in table; the rule adds a new jurisdiction",
                )
            )
        elif default == rate:
            errors.append(
                _format_scope(
                    "rules",
                    f"{country} repeats the built-in rate {rate} and can be removed",
                )
            )

    return errors


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate the built-in VAT rates and optional deployment settings."
    )
    parser.add_argument(
        "config",
        nargs="?",
        help="Settings file to validate (defaults to $EUVAT_CONFIG when set)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    exit_code = 0

    table = load_rate_table()
    issues = validate_rate_table(table)
    if issues:
        exit_code = 1
        print(f"[rates] {len(issues)} issue(s) detected:")
        for issue in issues:
            print(f"  - {issue}")
    else:
        print(f"[rates] OK ({len(table.rates)} countries)")

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ConfigurationError) as error:
        print(f"[settings] failed to load configuration: {error}")
        return 1

    issues = validate_settings(settings, table)
    if issues:
        exit_code = 1
        print(f"[settings] {len(issues)} issue(s) detected:")
        for issue in issues:
            print(f"  - {issue}")
    else:
        print("[settings] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
