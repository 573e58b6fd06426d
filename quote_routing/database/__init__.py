"""Database module for SQLAlchemy models and session management."""

from quote_routing.database.base import Base
from quote_routing.database.models import (
    AdminActivity,
    Cotizacion,
    PostalGeocodeCache,
    RoutingBranch,
)

__all__ = [
    "Base",
    "AdminActivity",
    "Cotizacion",
    "PostalGeocodeCache",
    "RoutingBranch",
]
