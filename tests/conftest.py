"""Test configuration utilities and shared fixtures."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402

from euvat.config.settings import BUSINESS_COUNTRY_ENV_VAR, CONFIG_ENV_VAR  # noqa: E402
from euvat.services.vies import VatCheckResult  # noqa: E402


@dataclass
class FakeResponse:
    text: str = ""
    status_code: int = 200

    @property
    def content(self) -> bytes:
        return self.text.encode("utf-8")


@dataclass
class FakeSession:
    """Stand-in for ``requests.Session`` that replays canned responses."""

    response: FakeResponse | None = None
    error: Exception | None = None
    calls: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)

    def _reply(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response or FakeResponse()

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._reply("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._reply("POST", url, **kwargs)


@dataclass
class RecordingVatService:
    """VAT registry double remembering the numbers it was asked about."""

    valid: bool = True
    error: Exception | None = None
    calls: list[tuple[str, str]] = field(default_factory=list)

    def check_vat(self, country_code: str, vat_number: str) -> VatCheckResult:
        self.calls.append((country_code, vat_number))
        if self.error is not None:
            raise self.error
        return VatCheckResult(country_code=country_code, vat_number=vat_number, valid=self.valid)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer settings out of the test run."""

    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(BUSINESS_COUNTRY_ENV_VAR, raising=False)


@pytest.fixture()
def app() -> Flask:
    """Return a bare Flask application for request-context tests."""

    application = Flask(__name__)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def vat_service() -> RecordingVatService:
    return RecordingVatService()
