from typing import Generic, TypeVar, Type, Optional, Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from quote_routing.core.exceptions import DatabaseError
from quote_routing.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    SQLAlchemy failures are logged and re-raised as ``DatabaseError`` so that
    callers only deal with the application's exception hierarchy.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def dialect_name(self) -> str:
        """Name of the SQL dialect behind the session (``postgresql``, ``sqlite``...)."""
        return self.session.get_bind().dialect.name

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """Get a record by its primary key.

        Args:
            id: Primary key value

        Returns:
            The record if found, None otherwise
        """
        try:
            return await self.session.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError(
                f"Could not load {self.model.__name__} {id}", original_error=e
            ) from e

    async def create(self, **kwargs) -> ModelType:
        """Create a new record.

        Args:
            **kwargs: Fields and values for the new record

        Returns:
            The created record
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error creating {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError(
                f"Could not create {self.model.__name__}", original_error=e
            ) from e

    async def update(self, id: Any, **kwargs) -> Optional[ModelType]:
        """Update an existing record.

        Args:
            id: Primary key of the record to update
            **kwargs: Fields and values to update

        Returns:
            The updated record if found, None otherwise
        """
        instance = await self.get_by_id(id)
        if not instance:
            return None

        try:
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)

            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error updating {self.model.__name__} {id}: {str(e)}",
                exc_info=True
            )
            raise DatabaseError(
                f"Could not update {self.model.__name__} {id}", original_error=e
            ) from e
