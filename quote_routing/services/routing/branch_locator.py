"""Nearest active branch lookup."""

import asyncio
import math
from decimal import Decimal
from typing import Any, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quote_routing.core.exceptions import DatabaseError, GeospatialUnavailableError
from quote_routing.repositories.branch_repository import BranchRepository
from quote_routing.schemas.routing import (
    BranchFound,
    BranchLookupFailure,
    BranchLookupResult,
    BranchMissed,
    NearestBranch,
    RoutingBranchKey,
)
from quote_routing.services.routing.geo import sphere_distance_km
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)


def to_branch_key(value: Any) -> Optional[RoutingBranchKey]:
    try:
        return RoutingBranchKey(value)
    except ValueError:
        return None


def parse_distance_km(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


class NearestBranchLocator:
    """Finds the closest active branch to a point.

    On PostgreSQL the ranking runs in PostGIS, which has to be enabled once per
    process through ``ensure_ready``. Other dialects rank the active branches
    in Python with the same spherical model.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._ready = False
        self._ready_task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def ensure_ready(self) -> None:
        """Enable the spatial capability once.

        Concurrent callers share one in-flight attempt. Success is remembered;
        a failure is not, so the next call tries again.

        Raises:
            GeospatialUnavailableError: If the capability cannot be enabled
        """
        if self._ready:
            return

        if self._ready_task is None:
            self._ready_task = asyncio.ensure_future(self._enable_capability())
        task = self._ready_task

        try:
            await asyncio.shield(task)
        except Exception:
            if self._ready_task is task:
                self._ready_task = None
            raise

        self._ready = True

    async def _enable_capability(self) -> None:
        try:
            async with self.session_factory() as session:
                repository = BranchRepository(session)
                if repository.dialect_name() == "postgresql":
                    await repository.enable_postgis()
                    LOGGER.info("PostGIS extension available")
        except (SQLAlchemyError, OSError) as e:
            LOGGER.error("Could not enable PostGIS", exc_info=True)
            raise GeospatialUnavailableError(
                "PostGIS extension is not available", original_error=e
            ) from e

    async def find_nearest(self, latitude: float, longitude: float) -> BranchLookupResult:
        """Closest active branch and its distance in kilometers.

        Args:
            latitude: Point latitude
            longitude: Point longitude

        Returns:
            BranchFound, or BranchMissed with the reason
        """
        try:
            await self.ensure_ready()
        except GeospatialUnavailableError:
            return BranchMissed(BranchLookupFailure.CAPABILITY_UNAVAILABLE)

        try:
            async with self.session_factory() as session:
                row = await self._query_nearest(BranchRepository(session), latitude, longitude)
        except (SQLAlchemyError, DatabaseError, OSError) as e:
            LOGGER.error(
                "Nearest branch query failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            return BranchMissed(BranchLookupFailure.QUERY_FAILED)

        if row is None:
            LOGGER.warning("No active routing branches")
            return BranchMissed(BranchLookupFailure.NO_ACTIVE_BRANCHES)

        branch = to_branch_key(row[0])
        distance_km = parse_distance_km(row[1])
        if branch is None or distance_km is None:
            LOGGER.warning(
                "Nearest branch row is not usable",
                extra={"branch_key": row[0], "distance_km": row[1]},
            )
            return BranchMissed(BranchLookupFailure.INVALID_ROW)

        return BranchFound(NearestBranch(branch=branch, distance_km=distance_km))

    async def _query_nearest(
        self, repository: BranchRepository, latitude: float, longitude: float
    ) -> Optional[Tuple[Any, Any]]:
        if repository.dialect_name() == "postgresql":
            return await repository.nearest_active_postgis(latitude, longitude)

        ranked = sorted(
            (
                (
                    sphere_distance_km(latitude, longitude, branch.latitude, branch.longitude),
                    branch.key,
                )
                for branch in await repository.list_active()
            ),
            key=lambda pair: pair[0],
        )
        if not ranked:
            return None
        distance_km, key = ranked[0]
        return getattr(key, "value", key), distance_km
