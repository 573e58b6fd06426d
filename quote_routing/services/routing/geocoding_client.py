"""Throttled client for the external geocoding provider."""

import asyncio
import json
import math
from typing import Any, Dict, List, Optional

import httpx

from quote_routing.config import GeocodingSettings
from quote_routing.core.exceptions import (
    APIClientError,
    APITimeoutError,
    InvalidPayloadError,
)
from quote_routing.schemas.routing import (
    GeocodedLocation,
    GeocodeFailure,
    GeocodeFound,
    GeocodeMissed,
    GeocodeResult,
)
from quote_routing.services.routing.throttle import IntervalThrottle
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _as_coordinate(value: Any) -> Optional[float]:
    # Nominatim serializes lat/lon as strings
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


class ThrottledGeocodingClient:
    """Resolves postal codes against a Nominatim-compatible ``/search`` API.

    Every request, including the free-text retry, waits for its own slot on
    the shared throttle and is cancelled when it exceeds the timeout. Failures
    never escape ``geocode``; they come back as ``GeocodeMissed``.
    """

    def __init__(
        self,
        config: GeocodingSettings,
        throttle: Optional[IntervalThrottle] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            config: Provider settings
            throttle: Shared gate; a private one is created when omitted
            http_client: Optional client, e.g. with a mock transport in tests
        """
        self.config = config
        self.throttle = throttle or IntervalThrottle(config.min_interval_seconds)
        self.search_url = f"{config.base_url.rstrip('/')}/search"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self.headers = {
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }
        self.logger = LOGGER

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _base_params(self) -> Dict[str, Any]:
        return {
            "format": "jsonv2",
            "limit": 1,
            "addressdetails": 1,
            "countrycodes": self.config.country_code,
            "accept-language": self.config.language,
            "email": self.config.contact_email,
        }

    def build_queries(self, postal_code_normalized: str) -> List[Dict[str, Any]]:
        """Structured postal code query first, then a free-text fallback."""
        structured = {**self._base_params(), "postalcode": postal_code_normalized}
        free_text = {
            **self._base_params(),
            "q": f"{postal_code_normalized}, {self.config.country_name}",
        }
        return [structured, free_text]

    async def geocode(self, postal_code_normalized: str) -> GeocodeResult:
        """Resolve a normalized postal code to coordinates.

        Args:
            postal_code_normalized: 4-digit postal code

        Returns:
            GeocodeFound with the location, or GeocodeMissed with the reason
            of the last failed attempt
        """
        if not self.config.enabled:
            return GeocodeMissed(GeocodeFailure.DISABLED)

        reason = GeocodeFailure.NO_RESULT
        for attempt, params in enumerate(self.build_queries(postal_code_normalized), start=1):
            try:
                location = await self._search(params)
            except APITimeoutError:
                reason = GeocodeFailure.TIMEOUT
                continue
            except InvalidPayloadError:
                reason = GeocodeFailure.INVALID_PAYLOAD
                continue
            except APIClientError:
                reason = GeocodeFailure.HTTP_ERROR
                continue

            if location is not None:
                self.logger.info(
                    "Geocoded postal code",
                    extra={"postal_code": postal_code_normalized, "attempt": attempt},
                )
                return GeocodeFound(location)
            reason = GeocodeFailure.NO_RESULT

        self.logger.warning(
            "Geocoding returned no usable result",
            extra={"postal_code": postal_code_normalized, "reason": reason.value},
        )
        return GeocodeMissed(reason)

    async def _search(self, params: Dict[str, Any]) -> Optional[GeocodedLocation]:
        """Run one throttled request.

        Raises:
            APITimeoutError: If the request exceeds the timeout
            APIClientError: On transport errors or non-2xx answers
            InvalidPayloadError: If the body is not a JSON array
        """
        await self.throttle.acquire()

        try:
            response = await asyncio.wait_for(
                self._client.get(self.search_url, params=params, headers=self.headers),
                timeout=self.config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self.logger.warning("Geocoding request timed out", extra={"url": self.search_url})
            raise APITimeoutError("Geocoding request timed out", original_error=e) from e
        except httpx.HTTPError as e:
            self.logger.warning(
                "Geocoding request failed",
                extra={"url": self.search_url, "error": str(e)},
            )
            raise APIClientError(f"Geocoding request failed: {e}", original_error=e) from e

        if not response.is_success:
            self.logger.warning(
                "Geocoding provider returned an error status",
                extra={"url": self.search_url, "status_code": response.status_code},
            )
            raise APIClientError(f"Geocoding provider returned {response.status_code}")

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidPayloadError("Geocoding response is not JSON", original_error=e) from e

        if not isinstance(payload, list):
            raise InvalidPayloadError("Geocoding response is not an array")

        return self.parse_first_location(payload)

    def parse_first_location(self, payload: List[Any]) -> Optional[GeocodedLocation]:
        """First element exposing numeric ``lat``/``lon``, if any."""
        for item in payload:
            if not isinstance(item, dict):
                continue
            latitude = _as_coordinate(item.get("lat"))
            longitude = _as_coordinate(item.get("lon"))
            if latitude is None or longitude is None:
                continue
            display_name = item.get("display_name")
            return GeocodedLocation(
                latitude=latitude,
                longitude=longitude,
                provider=self.config.provider,
                formatted_address=display_name if isinstance(display_name, str) else None,
            )
        return None
