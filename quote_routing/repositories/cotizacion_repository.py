"""Quote request (lead) persistence used by routing jobs and overrides."""

from typing import Sequence, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quote_routing.core.exceptions import DatabaseError
from quote_routing.database.models import Cotizacion
from quote_routing.repositories.base_repository import BaseRepository
from quote_routing.schemas.routing import RoutingResolution


class CotizacionRepository(BaseRepository[Cotizacion]):
    """Repository for ``cotizaciones`` routing fields."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Cotizacion)

    async def get_page_after(
        self, cursor_id: Optional[UUID], limit: int
    ) -> Sequence[Cotizacion]:
        """Get the next page of leads ordered by id.

        Keyset pagination: rows inserted while a job runs never shift a page
        the way an offset would.

        Args:
            cursor_id: Last id of the previous page, None for the first page
            limit: Page size

        Returns:
            Up to ``limit`` leads with ``id > cursor_id``
        """
        query = select(self.model).order_by(self.model.id.asc()).limit(limit)
        if cursor_id is not None:
            query = query.where(self.model.id > cursor_id)

        try:
            result = await self.session.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error paging cotizaciones after {cursor_id}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError("Could not page cotizaciones", original_error=e) from e

    async def apply_resolution(
        self, cotizacion_id: UUID, resolution: RoutingResolution
    ) -> Optional[Cotizacion]:
        """Write a resolution's persisted fields. The override flag is left as is."""
        return await self.update(cotizacion_id, **resolution.persisted_fields())
