"""Routing resolution for a single quote request."""

from typing import Optional

from quote_routing.repositories.geocode_cache_repository import GeocodeCacheRepository
from quote_routing.schemas.routing import (
    DEFAULT_BRANCH,
    BranchLookupFailure,
    BranchLookupResult,
    BranchMissed,
    GeocodedLocation,
    GeocodeFailure,
    GeocodeFound,
    GeocodeMissed,
    GeocodeResult,
    NearestBranch,
    RoutingResolution,
    RoutingStatus,
)
from quote_routing.services.routing.branch_locator import NearestBranchLocator
from quote_routing.services.routing.branches import (
    canonical_branch,
    get_redirect_url_for_branch,
)
from quote_routing.services.routing.geo import round_distance_km
from quote_routing.services.routing.geocoding_client import ThrottledGeocodingClient
from quote_routing.services.routing.normalizer import normalize_postal_code
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RoutingResolutionOrchestrator:
    """Turns a raw postal code into a complete ``RoutingResolution``.

    Outcomes:
        - no 4-digit code: ``fallback_invalid_cp`` on the default branch
        - no coordinates: ``fallback_geocode_failed`` on the default branch
        - coordinates but no branch: ``fallback_geocode_failed`` with the
          coordinates and provider kept
        - nearest branch found: ``resolved``; beyond the distance threshold
          the default branch is used, within it the branch is collapsed to
          its user-facing equivalent

    ``resolve`` never raises. Each step reports a found/missed result and any
    unexpected error at a step boundary is logged and mapped to the matching
    fallback.
    """

    def __init__(
        self,
        cache_repository: GeocodeCacheRepository,
        geocoding_client: ThrottledGeocodingClient,
        branch_locator: NearestBranchLocator,
        distance_threshold_km: float,
    ):
        self.cache_repository = cache_repository
        self.geocoding_client = geocoding_client
        self.branch_locator = branch_locator
        self.distance_threshold_km = distance_threshold_km

    async def resolve(self, codigo_postal: Optional[str]) -> RoutingResolution:
        """Resolve the routing for a raw postal code.

        Args:
            codigo_postal: Postal code as typed by the customer

        Returns:
            RoutingResolution: Always fully populated
        """
        postal_code_normalized = normalize_postal_code(codigo_postal)
        if not postal_code_normalized:
            return self._fallback(RoutingStatus.FALLBACK_INVALID_CP)

        geocode = await self.resolve_coordinates(postal_code_normalized)
        if isinstance(geocode, GeocodeMissed):
            return self._fallback(
                RoutingStatus.FALLBACK_GEOCODE_FAILED,
                postal_code_normalized=postal_code_normalized,
            )

        location = geocode.location
        lookup = await self._find_nearest(location)
        if isinstance(lookup, BranchMissed):
            return self._fallback(
                RoutingStatus.FALLBACK_GEOCODE_FAILED,
                postal_code_normalized=postal_code_normalized,
                location=location,
            )

        return self._resolved(postal_code_normalized, location, lookup.nearest)

    async def resolve_coordinates(self, postal_code_normalized: str) -> GeocodeResult:
        """Cached coordinates, or a fresh geocode stored in the cache."""
        try:
            cached = await self.cache_repository.lookup(postal_code_normalized)
        except Exception as e:
            LOGGER.error(
                "Geocode cache lookup failed, geocoding directly",
                exc_info=True,
                extra={"postal_code": postal_code_normalized, "error": str(e)},
            )
            cached = None

        if cached is not None:
            return GeocodeFound(cached)

        try:
            result = await self.geocoding_client.geocode(postal_code_normalized)
        except Exception as e:
            LOGGER.error(
                "Geocoding client raised unexpectedly",
                exc_info=True,
                extra={"postal_code": postal_code_normalized, "error": str(e)},
            )
            return GeocodeMissed(GeocodeFailure.UNEXPECTED)

        if isinstance(result, GeocodeFound):
            await self._store(postal_code_normalized, result.location)
        return result

    async def _store(self, postal_code_normalized: str, location: GeocodedLocation) -> None:
        # A failed write only costs a future cache miss
        try:
            await self.cache_repository.upsert(
                postal_code_normalized,
                latitude=location.latitude,
                longitude=location.longitude,
                provider=location.provider,
                formatted_address=location.formatted_address,
            )
        except Exception as e:
            LOGGER.warning(
                "Could not store geocode in cache",
                extra={"postal_code": postal_code_normalized, "error": str(e)},
            )

    async def _find_nearest(self, location: GeocodedLocation) -> BranchLookupResult:
        try:
            return await self.branch_locator.find_nearest(location.latitude, location.longitude)
        except Exception as e:
            LOGGER.error(
                "Branch locator raised unexpectedly",
                exc_info=True,
                extra={"error": str(e)},
            )
            return BranchMissed(BranchLookupFailure.QUERY_FAILED)

    def _resolved(
        self,
        postal_code_normalized: str,
        location: GeocodedLocation,
        nearest: NearestBranch,
    ) -> RoutingResolution:
        if nearest.distance_km <= self.distance_threshold_km:
            branch = canonical_branch(nearest.branch)
        else:
            branch = DEFAULT_BRANCH

        return RoutingResolution(
            routing_branch=branch,
            routing_distance_km=round_distance_km(nearest.distance_km),
            routing_postal_code_normalized=postal_code_normalized,
            routing_latitude=location.latitude,
            routing_longitude=location.longitude,
            routing_provider=location.provider,
            routing_status=RoutingStatus.RESOLVED,
            redirect_url=get_redirect_url_for_branch(branch),
        )

    def _fallback(
        self,
        status: RoutingStatus,
        postal_code_normalized: Optional[str] = None,
        location: Optional[GeocodedLocation] = None,
    ) -> RoutingResolution:
        LOGGER.info(
            "Routing fell back to default branch",
            extra={"status": status.value, "postal_code": postal_code_normalized},
        )
        return RoutingResolution(
            routing_branch=DEFAULT_BRANCH,
            routing_distance_km=None,
            routing_postal_code_normalized=postal_code_normalized,
            routing_latitude=location.latitude if location else None,
            routing_longitude=location.longitude if location else None,
            routing_provider=location.provider if location else None,
            routing_status=status,
            redirect_url=get_redirect_url_for_branch(DEFAULT_BRANCH),
        )
