"""IP-to-country lookups and client address discovery."""

from __future__ import annotations

import logging
from typing import Literal, Mapping

import requests
from flask import has_request_context, request

from euvat.config.schema import GEOLOCATION_SERVICE_URL

_LOGGER = logging.getLogger(__name__)

_FORWARDED_FOR_KEY = "HTTP_X_FORWARDED_FOR"
_REMOTE_ADDR_KEY = "REMOTE_ADDR"


def resolve_client_ip(environ: Mapping[str, str] | None = None) -> str:
    """Return the caller's address from ``environ`` or the active Flask request.

    ``X-Forwarded-For`` wins over the socket peer address. An empty string is
    returned when neither is known.
    """

    if environ is None:
        environ = request.environ if has_request_context() else {}

    forwarded = environ.get(_FORWARDED_FOR_KEY)
    if forwarded:
        return forwarded
    remote = environ.get(_REMOTE_ADDR_KEY)
    if remote:
        return remote
    return ""


def parse_geolocation_reply(body: str) -> str | Literal[False]:
    """Extract the country code from an ip2c reply such as ``1;US;USA;...``."""

    if not body or body[0] != "1":
        return False
    fields = body.split(";")
    if len(fields) < 2 or not fields[1]:
        return False
    return fields[1]


class GeolocationClient:
    """Thin client for the ip2c.org lookup service."""

    def __init__(
        self,
        base_url: str = GEOLOCATION_SERVICE_URL,
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, ip_address: str) -> str | Literal[False]:
        """Return the two-letter country for ``ip_address`` or ``False``."""

        url = f"{self.base_url}{ip_address}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            _LOGGER.warning("Geolocation lookup for %r failed: %s", ip_address, exc)
            return False

        country = parse_geolocation_reply(response.text)
        if country is False:
            _LOGGER.debug("Geolocation service could not resolve %r", ip_address)
        return country


__all__ = ["GeolocationClient", "parse_geolocation_reply", "resolve_client_ip"]
