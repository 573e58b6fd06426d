"""Unit tests for the routing repositories against a mocked session."""

from types import SimpleNamespace
from uuid import UUID

import pytest
from unittest.mock import MagicMock
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError

from quote_routing.core.exceptions import DatabaseError
from quote_routing.database.models import AdminActivity
from quote_routing.repositories import (
    AdminActivityRepository,
    BranchRepository,
    CotizacionRepository,
    GeocodeCacheRepository,
)
from quote_routing.schemas.routing import (
    GeocodedLocation,
    RoutingBranchKey,
    RoutingResolution,
    RoutingStatus,
)


def compiled_sql(statement, dialect=None) -> str:
    return str(statement.compile(dialect=dialect or postgresql.dialect()))


def executed(mock_session, index=0):
    return mock_session.execute.await_args_list[index].args[0]


def scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestGeocodeCacheRepository:
    """Tests for GeocodeCacheRepository."""

    @pytest.mark.asyncio
    async def test_hit_returns_location_and_touches_entry(self, mock_session):
        cached = SimpleNamespace(
            latitude=-34.66,
            longitude=-58.36,
            provider="nominatim",
            formatted_address="Avellaneda",
        )
        mock_session.execute.side_effect = [scalar_result(cached), MagicMock()]
        repo = GeocodeCacheRepository(mock_session)

        location = await repo.lookup("1870")

        assert location == GeocodedLocation(-34.66, -58.36, "nominatim", "Avellaneda")
        touch = compiled_sql(executed(mock_session, 1))
        assert touch.startswith("UPDATE postal_geocode_cache SET last_used_at")
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_miss_does_not_write(self, mock_session):
        mock_session.execute.return_value = scalar_result(None)
        repo = GeocodeCacheRepository(mock_session)

        assert await repo.lookup("9999") is None
        assert mock_session.execute.await_count == 1
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_raises_database_error(self, mock_session):
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        repo = GeocodeCacheRepository(mock_session)

        with pytest.raises(DatabaseError):
            await repo.lookup("1870")
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upsert_is_single_statement_on_postgres(self, mock_session):
        repo = GeocodeCacheRepository(mock_session)

        await repo.upsert("1870", latitude=-34.66, longitude=-58.36, provider="nominatim")

        sql = compiled_sql(executed(mock_session))
        assert sql.startswith("INSERT INTO postal_geocode_cache")
        assert "ON CONFLICT (postal_code_normalized) DO UPDATE" in sql
        assert mock_session.execute.await_count == 1
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upsert_on_sqlite(self, mock_session):
        mock_session.get_bind.return_value.dialect.name = "sqlite"
        repo = GeocodeCacheRepository(mock_session)

        await repo.upsert("1870", latitude=-34.66, longitude=-58.36, provider="nominatim")

        sql = compiled_sql(executed(mock_session), sqlite.dialect())
        assert "ON CONFLICT (postal_code_normalized) DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_upsert_failure_rolls_back(self, mock_session):
        mock_session.execute.side_effect = OperationalError("INSERT", {}, Exception("read only"))
        repo = GeocodeCacheRepository(mock_session)

        with pytest.raises(DatabaseError):
            await repo.upsert("1870", latitude=-34.66, longitude=-58.36, provider="nominatim")
        mock_session.rollback.assert_awaited_once()


class TestCotizacionRepository:
    """Tests for CotizacionRepository."""

    @pytest.mark.asyncio
    async def test_first_page_has_no_cursor(self, mock_session):
        repo = CotizacionRepository(mock_session)

        await repo.get_page_after(None, 200)

        statement = executed(mock_session)
        sql = compiled_sql(statement)
        assert "ORDER BY cotizaciones.id ASC" in sql
        assert "WHERE" not in sql
        assert 200 in statement.compile(dialect=postgresql.dialect()).params.values()

    @pytest.mark.asyncio
    async def test_next_page_starts_after_cursor(self, mock_session):
        cursor = UUID(int=7)
        repo = CotizacionRepository(mock_session)

        await repo.get_page_after(cursor, 50)

        statement = executed(mock_session)
        assert "WHERE cotizaciones.id >" in compiled_sql(statement)
        assert cursor in statement.compile(dialect=postgresql.dialect()).params.values()

    @pytest.mark.asyncio
    async def test_page_failure_raises_database_error(self, mock_session):
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        repo = CotizacionRepository(mock_session)

        with pytest.raises(DatabaseError):
            await repo.get_page_after(None, 200)

    @pytest.mark.asyncio
    async def test_apply_resolution_keeps_override_flag(self, mock_session, row_factory):
        row = row_factory(routing_overridden=False)
        mock_session.get.return_value = row
        resolution = RoutingResolution(
            routing_branch=RoutingBranchKey.LANUS,
            routing_distance_km=2.5,
            routing_postal_code_normalized="1824",
            routing_latitude=-34.70,
            routing_longitude=-58.39,
            routing_provider="nominatim",
            routing_status=RoutingStatus.RESOLVED,
            redirect_url="https://wa.me/5491136942482",
        )
        repo = CotizacionRepository(mock_session)

        updated = await repo.apply_resolution(row.id, resolution)

        assert updated is row
        assert row.routing_branch == RoutingBranchKey.LANUS
        assert row.routing_status == RoutingStatus.RESOLVED
        assert row.routing_overridden is False
        assert not hasattr(row, "redirect_url")
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_apply_resolution_to_missing_row(self, mock_session):
        mock_session.get.return_value = None
        repo = CotizacionRepository(mock_session)

        resolution = RoutingResolution(
            routing_branch=RoutingBranchKey.LEJANOS,
            routing_status=RoutingStatus.FALLBACK_INVALID_CP,
            redirect_url="https://wa.me/5491140830416",
        )

        assert await repo.apply_resolution(UUID(int=1), resolution) is None
        mock_session.commit.assert_not_awaited()


class TestBranchRepository:
    """Tests for BranchRepository."""

    @pytest.mark.asyncio
    async def test_nearest_active_postgis(self, mock_session):
        result = MagicMock()
        result.first.return_value = SimpleNamespace(branch_key="lanus", distance_km=2.5)
        mock_session.execute.return_value = result
        repo = BranchRepository(mock_session)

        row = await repo.nearest_active_postgis(-34.70, -58.39)

        assert row == ("lanus", 2.5)
        statement, params = mock_session.execute.await_args.args
        assert "ST_DistanceSphere" in str(statement)
        assert '"is_active" = true' in str(statement)
        assert params == {"latitude": -34.70, "longitude": -58.39}

    @pytest.mark.asyncio
    async def test_nearest_without_rows(self, mock_session):
        result = MagicMock()
        result.first.return_value = None
        mock_session.execute.return_value = result
        repo = BranchRepository(mock_session)

        assert await repo.nearest_active_postgis(-34.70, -58.39) is None

    @pytest.mark.asyncio
    async def test_enable_postgis(self, mock_session):
        repo = BranchRepository(mock_session)

        await repo.enable_postgis()

        assert str(executed(mock_session)) == "CREATE EXTENSION IF NOT EXISTS postgis"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_active_filters_inactive(self, mock_session):
        repo = BranchRepository(mock_session)

        await repo.list_active()

        sql = compiled_sql(executed(mock_session))
        assert "routing_branches.is_active IS true" in sql
        assert "ORDER BY routing_branches." in sql

    def test_dialect_name(self, mock_session):
        assert BranchRepository(mock_session).dialect_name() == "postgresql"


class TestAdminActivityRepository:
    """Tests for AdminActivityRepository."""

    @pytest.mark.asyncio
    async def test_register_stores_metadata(self, mock_session):
        repo = AdminActivityRepository(mock_session)

        activity = await repo.register(
            action="backfill_cotizacion_routing",
            description="Routing backfill",
            section="cotizaciones",
            metadata={"total_updated": 3},
        )

        assert isinstance(activity, AdminActivity)
        assert activity.activity_metadata == {"total_updated": 3}
        assert activity.actor_user_id is None
        mock_session.add.assert_called_once_with(activity)
        mock_session.commit.assert_awaited_once()
