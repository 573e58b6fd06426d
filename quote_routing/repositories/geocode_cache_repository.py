"""Persistent cache of postal code coordinates."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quote_routing.core.exceptions import DatabaseError
from quote_routing.database.models import PostalGeocodeCache
from quote_routing.repositories.base_repository import BaseRepository
from quote_routing.schemas.routing import GeocodedLocation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeocodeCacheRepository(BaseRepository[PostalGeocodeCache]):
    """Read-with-touch and upsert access to ``postal_geocode_cache``.

    Entries never expire and are never deleted here: a postal code keeps its
    coordinates until a later geocode replaces them.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, PostalGeocodeCache)

    async def lookup(self, postal_code_normalized: str) -> Optional[GeocodedLocation]:
        """Return the cached location and refresh its ``last_used_at``.

        Args:
            postal_code_normalized: 4-digit postal code

        Returns:
            Cached location, or None on a miss
        """
        try:
            result = await self.session.execute(
                select(self.model).where(
                    self.model.postal_code_normalized == postal_code_normalized
                )
            )
            cached = result.scalar_one_or_none()
            if cached is None:
                return None

            location = GeocodedLocation(
                latitude=cached.latitude,
                longitude=cached.longitude,
                provider=cached.provider,
                formatted_address=cached.formatted_address,
            )

            await self.session.execute(
                update(self.model)
                .where(self.model.postal_code_normalized == postal_code_normalized)
                .values(last_used_at=_utcnow())
            )
            await self.session.commit()
            return location
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error reading geocode cache for {postal_code_normalized}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError(
                f"Geocode cache lookup failed for {postal_code_normalized}",
                original_error=e,
            ) from e

    async def upsert(
        self,
        postal_code_normalized: str,
        latitude: float,
        longitude: float,
        provider: str,
        formatted_address: Optional[str] = None,
    ) -> None:
        """Insert or replace the entry for a postal code in one statement.

        Concurrent upserts of the same code are last-write-wins.
        """
        now = _utcnow()
        values = {
            "postal_code_normalized": postal_code_normalized,
            "latitude": latitude,
            "longitude": longitude,
            "provider": provider,
            "formatted_address": formatted_address,
            "last_used_at": now,
        }
        insert = sqlite.insert if self.dialect_name() == "sqlite" else postgresql.insert
        stmt = insert(self.model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.model.postal_code_normalized],
            set_={
                "latitude": stmt.excluded.latitude,
                "longitude": stmt.excluded.longitude,
                "provider": stmt.excluded.provider,
                "formatted_address": stmt.excluded.formatted_address,
                "last_used_at": stmt.excluded.last_used_at,
                "updated_at": now,
            },
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error writing geocode cache for {postal_code_normalized}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError(
                f"Geocode cache upsert failed for {postal_code_normalized}",
                original_error=e,
            ) from e
