"""Async engine, session factory and database client."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quote_routing.config import settings
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)


def build_engine(database_url: str = None) -> AsyncEngine:
    """Create the async engine for the configured database.

    Args:
        database_url: Optional URL overriding ``DATABASE_URL``

    Returns:
        AsyncEngine: Engine with the configured pool
    """
    url = database_url or settings.database_url
    kwargs = {
        "echo": settings.database_echo,
        "future": True,
    }
    if url.startswith("postgresql"):
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
    if url.startswith("postgresql+asyncpg"):
        # Disable prepared statement cache for PgBouncer compatibility
        kwargs["connect_args"] = {"statement_cache_size": 0}
    return create_async_engine(url, **kwargs)


engine = build_engine()

async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class DatabaseClient:
    """Connection check and pool disposal around a job run."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine
        self._connected = False

    async def connect(self) -> bool:
        """Test database connection.

        Raises:
            Exception: Whatever the driver raised when the database is unreachable
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.commit()

            self._connected = True
            LOGGER.info("Database connection successful")
            return True

        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        """Dispose the engine pool."""
        try:
            await self.engine.dispose()
            self._connected = False
            LOGGER.info("Database connection closed")
        except Exception as e:
            LOGGER.error(
                "Error closing database connection",
                exc_info=True,
                extra={"error": str(e)}
            )

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected


# Global database client instance
db_client = DatabaseClient(engine)


async def close_database() -> None:
    """Close database connection."""
    LOGGER.info("Closing database connection...")
    await db_client.disconnect()
