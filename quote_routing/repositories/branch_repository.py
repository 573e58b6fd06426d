"""Read access to the routing branch reference data."""

from typing import Any, Optional, Sequence, Tuple

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from quote_routing.database.models import RoutingBranch
from quote_routing.repositories.base_repository import BaseRepository

_NEAREST_ACTIVE_SQL = text(
    """
    SELECT
        "key"::text AS branch_key,
        (
            ST_DistanceSphere(
                ST_SetSRID(ST_MakePoint("longitude", "latitude"), 4326),
                ST_SetSRID(ST_MakePoint(:longitude, :latitude), 4326)
            ) / 1000.0
        ) AS distance_km
    FROM "routing_branches"
    WHERE "is_active" = true
    ORDER BY distance_km ASC
    LIMIT 1
    """
)


class BranchRepository(BaseRepository[RoutingBranch]):
    """Queries over ``routing_branches``. The engine never writes here."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, RoutingBranch)

    async def enable_postgis(self) -> None:
        """Create the PostGIS extension if it is missing."""
        await self.session.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        await self.session.commit()

    async def nearest_active_postgis(
        self, latitude: float, longitude: float
    ) -> Optional[Tuple[str, Any]]:
        """Closest active branch computed by PostGIS on a sphere.

        Returns:
            ``(branch_key, distance_km)`` or None when no branch is active
        """
        result = await self.session.execute(
            _NEAREST_ACTIVE_SQL, {"latitude": latitude, "longitude": longitude}
        )
        row = result.first()
        if row is None:
            return None
        return row.branch_key, row.distance_km

    async def list_active(self) -> Sequence[RoutingBranch]:
        """All active branches, ordered by key."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.is_active.is_(True))
            .order_by(self.model.key)
        )
        return result.scalars().all()
