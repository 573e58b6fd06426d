"""SQLAlchemy models for the tables the routing engine reads and writes."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Enum,
    Float,
    Index,
    JSON,
    String,
    Text,
    TIMESTAMP,
    func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quote_routing.database.base import Base
from quote_routing.schemas.routing import RoutingBranchKey, RoutingStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


RoutingBranchEnum = Enum(
    RoutingBranchKey,
    name="cotizacion_routing_branch",
    values_callable=_enum_values,
)
RoutingStatusEnum = Enum(
    RoutingStatus,
    name="cotizacion_routing_status",
    values_callable=_enum_values,
)


class RoutingBranch(Base):
    """Physical branch that can receive routed quote requests."""

    __tablename__ = "routing_branches"

    key: Mapped[RoutingBranchKey] = mapped_column(RoutingBranchEnum, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class PostalGeocodeCache(Base):
    """Last known coordinates for a normalized postal code."""

    __tablename__ = "postal_geocode_cache"

    postal_code_normalized: Mapped[str] = mapped_column(String(4), primary_key=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    provider: Mapped[str] = mapped_column(String, nullable=False)
    formatted_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_used_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )


class Cotizacion(Base):
    """Quote request submitted through the public form."""

    __tablename__ = "cotizaciones"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    nombre: Mapped[str] = mapped_column(String, nullable=False, default="")
    telefono: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    localidad: Mapped[str | None] = mapped_column(String, nullable=True)
    codigo_postal: Mapped[str | None] = mapped_column(String, nullable=True)
    source_page: Mapped[str] = mapped_column(String, nullable=False, default="Cotizacion")

    # Routing snapshot written by the orchestrator
    routing_branch: Mapped[RoutingBranchKey] = mapped_column(
        RoutingBranchEnum, nullable=False, default=RoutingBranchKey.LEJANOS
    )
    routing_distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    routing_postal_code_normalized: Mapped[str | None] = mapped_column(String(4), nullable=True)
    routing_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    routing_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    routing_provider: Mapped[str | None] = mapped_column(String, nullable=True)
    routing_status: Mapped[RoutingStatus] = mapped_column(
        RoutingStatusEnum, nullable=False, default=RoutingStatus.FALLBACK_INVALID_CP
    )

    # Manual override, owned by the admin surface
    routing_overridden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    routing_override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    routing_overridden_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_cotizaciones_routing_branch", "routing_branch"),
        Index("ix_cotizaciones_routing_status", "routing_status"),
    )


class AdminActivity(Base):
    """Auditable event recorded by admin actions and batch jobs."""

    __tablename__ = "admin_activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    section: Mapped[str | None] = mapped_column(String, nullable=True)
    target_id: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    activity_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
