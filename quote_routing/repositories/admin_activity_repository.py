from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quote_routing.database.models import AdminActivity
from quote_routing.repositories.base_repository import BaseRepository


class AdminActivityRepository(BaseRepository[AdminActivity]):
    """Repository for the admin activity audit log."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AdminActivity)

    async def register(
        self,
        action: str,
        description: str,
        section: Optional[str] = None,
        target_id: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AdminActivity:
        """Record one auditable event.

        Args:
            action: Machine-readable action name
            description: Human-readable summary
            section: Admin section the event belongs to
            target_id: Identifier of the affected record
            actor_user_id: Admin user, None for jobs
            metadata: JSON payload stored with the event

        Returns:
            The created activity
        """
        return await self.create(
            action=action,
            description=description,
            section=section,
            target_id=target_id,
            actor_user_id=actor_user_id,
            activity_metadata=metadata,
        )
