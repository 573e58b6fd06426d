"""Manual routing override for a single quote request."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from quote_routing.core.exceptions import ValidationError
from quote_routing.database.models import Cotizacion
from quote_routing.repositories.admin_activity_repository import AdminActivityRepository
from quote_routing.repositories.cotizacion_repository import CotizacionRepository
from quote_routing.schemas.routing import RoutingBranchKey
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)

OVERRIDE_ACTION = "override_cotizacion_routing"


@dataclass(frozen=True)
class RoutingSnapshot:
    routing_branch: RoutingBranchKey
    routing_distance_km: Optional[float]
    routing_overridden: bool

    @classmethod
    def from_row(cls, row: Cotizacion) -> "RoutingSnapshot":
        return cls(
            routing_branch=row.routing_branch,
            routing_distance_km=row.routing_distance_km,
            routing_overridden=row.routing_overridden,
        )


@dataclass(frozen=True)
class OverrideResult:
    previous: RoutingSnapshot
    current: RoutingSnapshot


class RoutingOverrideService:
    """Lets an admin pin a quote request to a branch.

    Overridden rows are left alone by the routing backfill from then on.
    """

    def __init__(
        self,
        cotizacion_repository: CotizacionRepository,
        activity_repository: AdminActivityRepository,
    ):
        self.cotizacion_repository = cotizacion_repository
        self.activity_repository = activity_repository

    async def override(
        self,
        cotizacion_id: UUID,
        branch: str,
        reason: Optional[str] = None,
        actor_user_id: Optional[str] = None,
    ) -> Optional[OverrideResult]:
        """Pin a quote request to a branch.

        Args:
            cotizacion_id: Lead identifier
            branch: Branch key, case-insensitive
            reason: Free-text justification
            actor_user_id: Admin performing the change

        Returns:
            Previous and current routing, or None if the lead does not exist

        Raises:
            ValidationError: If the branch key is unknown
        """
        try:
            branch_key = RoutingBranchKey(str(branch).strip().lower())
        except ValueError as e:
            allowed = ", ".join(key.value for key in RoutingBranchKey)
            raise ValidationError(f"Branch must be one of: {allowed}", original_error=e) from e

        existing = await self.cotizacion_repository.get_by_id(cotizacion_id)
        if existing is None:
            return None
        previous = RoutingSnapshot.from_row(existing)

        updated = await self.cotizacion_repository.update(
            cotizacion_id,
            routing_branch=branch_key,
            routing_overridden=True,
            routing_override_reason=reason or None,
            routing_overridden_at=datetime.now(timezone.utc),
        )
        if updated is None:
            return None
        current = RoutingSnapshot.from_row(updated)

        LOGGER.info(
            "Routing overridden",
            extra={
                "cotizacion_id": str(cotizacion_id),
                "previous_branch": previous.routing_branch,
                "next_branch": current.routing_branch,
            },
        )

        await self.activity_repository.register(
            action=OVERRIDE_ACTION,
            section="cotizaciones",
            target_id=str(cotizacion_id),
            actor_user_id=actor_user_id,
            description="Manual change of the routed branch of a quote request.",
            metadata={
                "previous_branch": _enum_value(previous.routing_branch),
                "next_branch": _enum_value(current.routing_branch),
                "previous_distance_km": previous.routing_distance_km,
                "next_distance_km": current.routing_distance_km,
                "reason": reason or None,
            },
        )

        return OverrideResult(previous=previous, current=current)


def _enum_value(value):
    return getattr(value, "value", value)
