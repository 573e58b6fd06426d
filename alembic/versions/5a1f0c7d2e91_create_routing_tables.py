"""create_routing_tables

Revision ID: 5a1f0c7d2e91
Revises:
Create Date: 2026-02-20 10:12:41.183562

Creates the branch reference table (seeded), the postal code geocode cache,
the quote request table with its routing snapshot and the admin activity log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5a1f0c7d2e91'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

routing_branch = postgresql.ENUM(
    'avellaneda', 'lanus', 'dock_sud', 'lejanos',
    name='cotizacion_routing_branch', create_type=False,
)
routing_status = postgresql.ENUM(
    'resolved', 'fallback_invalid_cp', 'fallback_geocode_failed',
    name='cotizacion_routing_status', create_type=False,
)


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS postgis')
    routing_branch.create(op.get_bind(), checkfirst=True)
    routing_status.create(op.get_bind(), checkfirst=True)

    branches = op.create_table(
        'routing_branches',
        sa.Column('key', routing_branch, primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )

    op.create_table(
        'postal_geocode_cache',
        sa.Column('postal_code_normalized', sa.String(length=4), primary_key=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('formatted_address', sa.Text(), nullable=True),
        sa.Column('last_used_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )

    op.create_table(
        'cotizaciones',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('nombre', sa.String(), nullable=False, server_default=''),
        sa.Column('telefono', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('localidad', sa.String(), nullable=True),
        sa.Column('codigo_postal', sa.String(), nullable=True),
        sa.Column('source_page', sa.String(), nullable=False, server_default='Cotizacion'),
        sa.Column('routing_branch', routing_branch, nullable=False, server_default='lejanos'),
        sa.Column('routing_distance_km', sa.Float(), nullable=True),
        sa.Column('routing_postal_code_normalized', sa.String(length=4), nullable=True),
        sa.Column('routing_latitude', sa.Float(), nullable=True),
        sa.Column('routing_longitude', sa.Float(), nullable=True),
        sa.Column('routing_provider', sa.String(), nullable=True),
        sa.Column('routing_status', routing_status, nullable=False, server_default='fallback_invalid_cp'),
        sa.Column('routing_overridden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('routing_override_reason', sa.Text(), nullable=True),
        sa.Column('routing_overridden_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_cotizaciones_routing_branch', 'cotizaciones', ['routing_branch'])
    op.create_index('ix_cotizaciones_routing_status', 'cotizaciones', ['routing_status'])

    op.create_table(
        'admin_activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('actor_user_id', sa.String(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('section', sa.String(), nullable=True),
        sa.Column('target_id', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )

    # Dock Sud is a geographic point served by the Avellaneda office
    op.bulk_insert(
        branches,
        [
            {'key': 'avellaneda', 'name': 'Avellaneda', 'latitude': -34.6627, 'longitude': -58.3653, 'is_active': True},
            {'key': 'lanus', 'name': 'Lanús', 'latitude': -34.7008, 'longitude': -58.3923, 'is_active': True},
            {'key': 'dock_sud', 'name': 'Dock Sud', 'latitude': -34.6438, 'longitude': -58.3449, 'is_active': True},
        ],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('admin_activities')
    op.drop_index('ix_cotizaciones_routing_status', table_name='cotizaciones')
    op.drop_index('ix_cotizaciones_routing_branch', table_name='cotizaciones')
    op.drop_table('cotizaciones')
    op.drop_table('postal_geocode_cache')
    op.drop_table('routing_branches')
    routing_status.drop(op.get_bind(), checkfirst=True)
    routing_branch.drop(op.get_bind(), checkfirst=True)
