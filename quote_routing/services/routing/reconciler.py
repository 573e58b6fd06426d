"""Re-resolution of stored quote requests (routing backfill)."""

import time
from dataclasses import dataclass, fields
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from quote_routing.database.models import Cotizacion
from quote_routing.repositories.admin_activity_repository import AdminActivityRepository
from quote_routing.repositories.cotizacion_repository import CotizacionRepository
from quote_routing.schemas.routing import RoutingBranchKey, RoutingResolution, RoutingStatus
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)

BACKFILL_ACTION = "backfill_cotizacion_routing"

Resolver = Callable[[Optional[str]], Awaitable[RoutingResolution]]


class RecordError(BaseModel):
    id: str = Field(..., description="Lead identifier")
    error: str = Field(..., description="Error message")


class BackfillSummary(BaseModel):
    """Counters reported at the end of a backfill run."""

    mode: str = Field(..., description="'force' or 'default'")
    total_read: int = 0
    total_processed: int = 0
    total_updated: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    duration_ms: int = 0
    errors: List[RecordError] = Field(default_factory=list)


@dataclass(frozen=True)
class StoredRouting:
    """Routing columns of a lead, copied out of the ORM row.

    A failed write rolls the session back and expires every loaded row, so
    the reconciler works on these copies instead.
    """
    id: UUID
    codigo_postal: Optional[str]
    routing_branch: RoutingBranchKey
    routing_distance_km: Optional[float]
    routing_postal_code_normalized: Optional[str]
    routing_latitude: Optional[float]
    routing_longitude: Optional[float]
    routing_provider: Optional[str]
    routing_status: RoutingStatus
    routing_overridden: bool

    @classmethod
    def from_row(cls, row: Cotizacion) -> "StoredRouting":
        return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})


def same_nullable_number(
    left: Optional[float], right: Optional[float], epsilon: float = 1e-4
) -> bool:
    if left is None or right is None:
        return left is right
    return abs(left - right) <= epsilon


def is_already_resolved(row: StoredRouting) -> bool:
    return bool(
        row.routing_postal_code_normalized
        and row.routing_provider
        and row.routing_status == RoutingStatus.RESOLVED
    )


def needs_update(row: StoredRouting, resolution: RoutingResolution, epsilon: float = 1e-4) -> bool:
    """Whether the stored snapshot differs from a fresh resolution."""
    return (
        row.routing_branch != resolution.routing_branch
        or not same_nullable_number(row.routing_distance_km, resolution.routing_distance_km, epsilon)
        or row.routing_postal_code_normalized != resolution.routing_postal_code_normalized
        or not same_nullable_number(row.routing_latitude, resolution.routing_latitude, epsilon)
        or not same_nullable_number(row.routing_longitude, resolution.routing_longitude, epsilon)
        or row.routing_provider != resolution.routing_provider
        or row.routing_status != resolution.routing_status
    )


class BatchReconciler:
    """Re-applies the routing rules to every stored quote request.

    Rows are read in ``id`` order with keyset pagination, so the run can be
    repeated safely: overridden rows are never touched, rows that are already
    resolved are skipped unless ``force`` is set, and a row is written only
    when its snapshot actually changed.
    """

    def __init__(
        self,
        cotizacion_repository: CotizacionRepository,
        resolver: Resolver,
        activity_repository: Optional[AdminActivityRepository] = None,
        page_size: int = 200,
        epsilon: float = 1e-4,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cotizacion_repository = cotizacion_repository
        self.resolver = resolver
        self.activity_repository = activity_repository
        self.page_size = page_size
        self.epsilon = epsilon
        self._clock = clock

    async def run(self, force: bool = False) -> BackfillSummary:
        """Reconcile all rows.

        Args:
            force: Re-resolve rows that already look resolved

        Returns:
            BackfillSummary: Counters and per-row errors
        """
        started_at = self._clock()
        summary = BackfillSummary(mode="force" if force else "default")
        cursor_id: Optional[UUID] = None

        LOGGER.info("Starting routing backfill", extra={"mode": summary.mode})

        while True:
            rows = await self.cotizacion_repository.get_page_after(cursor_id, self.page_size)
            if not rows:
                break

            snapshots = [StoredRouting.from_row(row) for row in rows]
            for row in snapshots:
                summary.total_read += 1
                cursor_id = row.id
                await self._reconcile_row(row, force, summary)

        summary.duration_ms = int((self._clock() - started_at) * 1000)
        LOGGER.info(
            "Routing backfill finished",
            extra=summary.model_dump(exclude={"errors"}),
        )

        await self._record_activity(summary)
        return summary

    async def _reconcile_row(
        self, row: StoredRouting, force: bool, summary: BackfillSummary
    ) -> None:
        if row.routing_overridden:
            summary.total_skipped += 1
            return

        if not force and is_already_resolved(row):
            summary.total_skipped += 1
            return

        summary.total_processed += 1

        try:
            resolution = await self.resolver(row.codigo_postal)

            if not needs_update(row, resolution, self.epsilon):
                summary.total_skipped += 1
                return

            await self.cotizacion_repository.apply_resolution(row.id, resolution)
            summary.total_updated += 1
        except Exception as e:
            summary.total_errors += 1
            summary.errors.append(RecordError(id=str(row.id), error=str(e)))
            LOGGER.error(
                f"Error processing cotizacion {row.id}: {str(e)}",
                exc_info=True,
            )

    async def _record_activity(self, summary: BackfillSummary) -> None:
        if self.activity_repository is None:
            return
        try:
            await self.activity_repository.register(
                action=BACKFILL_ACTION,
                section="cotizaciones",
                description="Routing backfill run over stored quote requests.",
                metadata=summary.model_dump(exclude={"errors"}),
            )
        except Exception as e:
            LOGGER.warning(f"Could not record backfill activity: {str(e)}")
