"""Reverse geocoding through the public Nominatim endpoint."""

from __future__ import annotations
import logging
from typing import Any, Optional

import requests

from .settings import GEOCODER_TIMEOUT, NOMINATIM_REVERSE_URL, USER_AGENT
from .types import GeocodeResult

logger = logging.getLogger(__name__)

_STREET_KEYS = ("road", "pedestrian", "street", "path", "footway")
_CITY_KEYS = ("city", "town", "village", "hamlet", "county")


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"


def address_from_payload(data: Any) -> Optional[GeocodeResult]:
    """Build the closest street-level address from a Nominatim reply."""
    if not isinstance(data, dict) or not isinstance(data.get("address"), dict):
        return None
    address = data["address"]

    street = ""
    if address.get("house_number"):
        street = f"{address['house_number']} "
    street += next((address[k] for k in _STREET_KEYS if address.get(k)), "")
    street = street.strip()
    if not street:
        street = address.get("neighbourhood") or address.get("suburb") or ""

    city = next((address[k] for k in _CITY_KEYS if address.get(k)), "")
    state = address.get("state", "")
    postal_code = address.get("postcode", "")

    formatted = street
    for part in (address.get("neighbourhood") or address.get("suburb"), city, state):
        if part and part not in formatted:
            formatted = f"{formatted}, {part}" if formatted else part
    if postal_code and postal_code not in formatted:
        formatted = f"{formatted} {postal_code}" if formatted else postal_code
    if not formatted:
        formatted = data.get("display_name", "")

    return GeocodeResult(
        formatted_address=formatted,
        street_address=street,
        city=city,
        state=state,
        postal_code=postal_code,
    )


class NominatimGeocoder:
    """Single-attempt reverse geocoder; any failure is "no result"."""

    def __init__(
        self,
        url: str = NOMINATIM_REVERSE_URL,
        user_agent: str = USER_AGENT,
        timeout: float = GEOCODER_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        # Nominatim rejects anonymous clients; the session itself is left untouched
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }

    @classmethod
    def from_settings(cls, settings) -> "NominatimGeocoder":
        return cls(settings.geocoder_url, settings.user_agent, settings.geocoder_timeout)

    def reverse_geocode(self, lat: float, lon: float) -> Optional[GeocodeResult]:
        params = {
            "lat": lat,
            "lon": lon,
            "format": "json",
            "addressdetails": 1,
            "zoom": 18,
        }
        try:
            response = self.session.get(
                self.url, params=params, headers=self.headers, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("reverse geocoding %s failed: %s", format_coordinates(lat, lon), e)
            return None

        result = address_from_payload(data)
        if result is None:
            logger.warning("no address returned for %s", format_coordinates(lat, lon))
        return result

    __call__ = reverse_geocode
