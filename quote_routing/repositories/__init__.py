"""Repository layer for database operations."""

from quote_routing.repositories.admin_activity_repository import AdminActivityRepository
from quote_routing.repositories.base_repository import BaseRepository
from quote_routing.repositories.branch_repository import BranchRepository
from quote_routing.repositories.cotizacion_repository import CotizacionRepository
from quote_routing.repositories.geocode_cache_repository import GeocodeCacheRepository

__all__ = [
    "AdminActivityRepository",
    "BaseRepository",
    "BranchRepository",
    "CotizacionRepository",
    "GeocodeCacheRepository",
]
