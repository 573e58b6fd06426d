"""Process-wide entry point for routing quote requests."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quote_routing.config import Settings
from quote_routing.repositories.geocode_cache_repository import GeocodeCacheRepository
from quote_routing.schemas.routing import RoutingResolution
from quote_routing.services.routing.branch_locator import NearestBranchLocator
from quote_routing.services.routing.geocoding_client import ThrottledGeocodingClient
from quote_routing.services.routing.orchestrator import RoutingResolutionOrchestrator
from quote_routing.services.routing.throttle import IntervalThrottle


class RoutingService:
    """Holds the long-lived routing collaborators.

    The throttle, the HTTP client and the locator's readiness state must be
    shared by every request in the process; the cache repository is bound to
    a fresh session per resolution.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        geocoding_client: Optional[ThrottledGeocodingClient] = None,
        branch_locator: Optional[NearestBranchLocator] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.geocoding_client = geocoding_client or ThrottledGeocodingClient(
            settings.geocoding,
            throttle=IntervalThrottle(settings.geocoding.min_interval_seconds),
        )
        self.branch_locator = branch_locator or NearestBranchLocator(session_factory)

    async def resolve(self, codigo_postal: Optional[str]) -> RoutingResolution:
        """Resolve the routing for one quote request. Never raises."""
        async with self.session_factory() as session:
            orchestrator = RoutingResolutionOrchestrator(
                cache_repository=GeocodeCacheRepository(session),
                geocoding_client=self.geocoding_client,
                branch_locator=self.branch_locator,
                distance_threshold_km=self.settings.routing.distance_threshold_km,
            )
            return await orchestrator.resolve(codigo_postal)

    async def aclose(self) -> None:
        await self.geocoding_client.aclose()
