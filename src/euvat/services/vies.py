"""Client for the EU VIES VAT number registry.

VIES exposes a SOAP 1.1 ``checkVat`` operation. The envelope is small enough
that it is built and parsed with ElementTree and posted with ``requests``
rather than through a WSDL-driven SOAP stack.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Protocol

import requests

from euvat.config.schema import VIES_SERVICE_URL

_LOGGER = logging.getLogger(__name__)

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
CHECK_VAT_NS = "urn:ec.europa.eu:taxud:vies:services:checkVat:types"

# Faults that describe the submitted number rather than the registry itself.
INPUT_FAULTS = frozenset({"INVALID_INPUT"})

SOAP_HEADERS = {"Content-Type": "text/xml; charset=utf-8", "SOAPAction": ""}

ET.register_namespace("soapenv", SOAP_ENV_NS)
ET.register_namespace("urn", CHECK_VAT_NS)


class VatCheckUnavailableError(RuntimeError):
    """Raised when the VAT registry cannot give a definite answer."""


class ViesFault(RuntimeError):
    """SOAP fault returned by the VIES service."""

    def __init__(self, code: str) -> None:
        super().__init__(f"VIES fault: {code}")
        self.code = code

    @property
    def is_input_error(self) -> bool:
        return self.code in INPUT_FAULTS


@dataclass(frozen=True)
class VatCheckResult:
    """Outcome of a registry lookup for a single VAT number."""

    country_code: str
    vat_number: str
    valid: bool
    name: str | None = None
    address: str | None = None
    request_date: str | None = None


class VatNumberService(Protocol):
    """Anything able to confirm a VAT number against a registry."""

    def check_vat(self, country_code: str, vat_number: str) -> VatCheckResult:
        ...


def _tag(name: str, namespace: str = CHECK_VAT_NS) -> str:
    return f"{{{namespace}}}{name}"


def build_check_vat_envelope(country_code: str, vat_number: str) -> bytes:
    """Return the serialised SOAP request for ``checkVat``."""

    envelope = ET.Element(_tag("Envelope", SOAP_ENV_NS))
    ET.SubElement(envelope, _tag("Header", SOAP_ENV_NS))
    body = ET.SubElement(envelope, _tag("Body", SOAP_ENV_NS))
    request = ET.SubElement(body, _tag("checkVat"))
    ET.SubElement(request, _tag("countryCode")).text = country_code
    ET.SubElement(request, _tag("vatNumber")).text = vat_number

    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def _child_text(parent: ET.Element, name: str) -> str | None:
    node = parent.find(_tag(name))
    if node is None or node.text is None:
        return None
    text = node.text.strip()
    # VIES reports withheld trader details as "---".
    return text if text and text != "---" else None


def parse_check_vat_response(payload: bytes | str) -> VatCheckResult:
    """Parse a ``checkVat`` SOAP reply, raising :class:`ViesFault` on faults."""

    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise VatCheckUnavailableError("VIES returned a malformed response") from exc

    body = root.find(_tag("Body", SOAP_ENV_NS))
    if body is None:
        raise VatCheckUnavailableError("VIES response is missing a SOAP body")

    fault = body.find(_tag("Fault", SOAP_ENV_NS))
    if fault is not None:
        code = (fault.findtext("faultstring") or "UNKNOWN").strip()
        raise ViesFault(code)

    response = body.find(_tag("checkVatResponse"))
    if response is None:
        raise VatCheckUnavailableError("VIES response is missing checkVatResponse")

    valid = (_child_text(response, "valid") or "").lower() == "true"
    return VatCheckResult(
        country_code=_child_text(response, "countryCode") or "",
        vat_number=_child_text(response, "vatNumber") or "",
        valid=valid,
        name=_child_text(response, "name"),
        address=_child_text(response, "address"),
        request_date=_child_text(response, "requestDate"),
    )


class ViesClient:
    """Blocking VIES client posting SOAP envelopes over ``requests``."""

    def __init__(
        self,
        url: str = VIES_SERVICE_URL,
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def check_vat(self, country_code: str, vat_number: str) -> VatCheckResult:
        envelope = build_check_vat_envelope(country_code, vat_number)
        try:
            response = self.session.post(
                self.url, data=envelope, headers=SOAP_HEADERS, timeout=self.timeout
            )
        except requests.RequestException as exc:
            _LOGGER.warning("VIES request for %s failed: %s", country_code, exc)
            raise VatCheckUnavailableError(
                "The VAT check service is currently unavailable. Please try again later."
            ) from exc

        # Faults arrive with HTTP 500, so the body is inspected before the status.
        try:
            return parse_check_vat_response(response.content)
        except VatCheckUnavailableError:
            if response.status_code >= 400:
                raise VatCheckUnavailableError(
                    f"VIES responded with HTTP {response.status_code}"
                ) from None
            raise


__all__ = [
    "CHECK_VAT_NS",
    "INPUT_FAULTS",
    "SOAP_ENV_NS",
    "SOAP_HEADERS",
    "VatCheckResult",
    "VatCheckUnavailableError",
    "VatNumberService",
    "ViesClient",
    "ViesFault",
    "build_check_vat_envelope",
    "parse_check_vat_response",
]
