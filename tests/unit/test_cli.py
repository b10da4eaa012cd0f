"""Tests for the euvat command line interface."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import RecordingVatService
from euvat import cli
from euvat.services import calculator as calculator_module
from euvat.services.geolocation import GeolocationClient
from euvat.services.vies import VatCheckUnavailableError


def test_no_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage: euvat" in capsys.readouterr().out


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out.startswith("euvat ")


def test_calculate_command(capsys) -> None:
    assert cli.main(["calculate", "100", "de"]) == 0

    output = capsys.readouterr().out
    assert "Tax rate: 19%" in output
    assert "Tax value: 19.00" in output
    assert "Gross value: 119.00" in output


def test_calculate_command_uses_config(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "vat.yaml"
    config_path.write_text("vat_calculator:\n  business_country_code: DE\n")

    assert cli.main(["--config", str(config_path), "calculate", "100", "DE", "--company"]) == 0
    assert "Gross value: 119.00" in capsys.readouterr().out

    assert cli.main(["--config", str(config_path), "calculate", "100", "FR", "--company"]) == 0
    assert "Gross value: 100.00" in capsys.readouterr().out


def test_rate_command(capsys) -> None:
    assert cli.main(["rate", "lu"]) == 0
    assert "LU: 17%" in capsys.readouterr().out


def test_should_collect_command(capsys) -> None:
    assert cli.main(["should-collect", "SE"]) == 0
    assert "SE: yes" in capsys.readouterr().out

    assert cli.main(["should-collect", "US"]) == 2
    assert "US: no" in capsys.readouterr().out


def test_missing_config_file(tmp_path: Path, capsys) -> None:
    assert cli.main(["--config", str(tmp_path / "absent.yaml"), "rate", "DE"]) == 1
    assert "Failed to load configuration" in capsys.readouterr().out


def test_check_vat_command(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    service = RecordingVatService(valid=True)
    monkeypatch.setattr(
        calculator_module.VatCalculator, "_default_vat_service", lambda self: service
    )

    assert cli.main(["check-vat", "DE 123 456 789"]) == 0
    assert capsys.readouterr().out.strip() == "valid"
    assert service.calls == [("DE", "123456789")]


def test_check_vat_command_unavailable(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    service = RecordingVatService(error=VatCheckUnavailableError("VIES is down"))
    monkeypatch.setattr(
        calculator_module.VatCalculator, "_default_vat_service", lambda self: service
    )

    assert cli.main(["check-vat", "DE123456789"]) == 3
    assert "Unavailable: VIES is down" in capsys.readouterr().out


def test_locate_command(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    looked_up: list[str] = []

    def fake_lookup(self: GeolocationClient, ip_address: str) -> str:
        looked_up.append(ip_address)
        return "PT"

    monkeypatch.setattr(GeolocationClient, "lookup", fake_lookup)

    assert cli.main(["locate", "192.0.2.44"]) == 0
    assert "192.0.2.44: PT" in capsys.readouterr().out
    assert looked_up == ["192.0.2.44"]
