"""Quote routing: postal code to branch resolution and backfill."""

from quote_routing.services.routing.branch_locator import NearestBranchLocator
from quote_routing.services.routing.geocoding_client import ThrottledGeocodingClient
from quote_routing.services.routing.normalizer import normalize_postal_code
from quote_routing.services.routing.orchestrator import RoutingResolutionOrchestrator
from quote_routing.services.routing.override_service import RoutingOverrideService
from quote_routing.services.routing.reconciler import BackfillSummary, BatchReconciler
from quote_routing.services.routing.service import RoutingService
from quote_routing.services.routing.throttle import IntervalThrottle

__all__ = [
    "BackfillSummary",
    "BatchReconciler",
    "IntervalThrottle",
    "NearestBranchLocator",
    "RoutingOverrideService",
    "RoutingResolutionOrchestrator",
    "RoutingService",
    "ThrottledGeocodingClient",
    "normalize_postal_code",
]
