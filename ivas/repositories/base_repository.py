from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    Repositories only flush. The service that owns the unit of work decides
    when to commit or roll back, so an approval row and the entity it decides
    land in the same transaction.
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

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                if value is not None and hasattr(self.model, field):
                    query = query.where(getattr(self.model, field) == value)
        return query

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get a record by its ID.

        Args:
            id: Primary key of the record

        Returns:
            The record if found, None otherwise
        """
        try:
            query = select(self.model).where(self.model.id == id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}",
                exc_info=True,
            )
            raise

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 200,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """Get all records with optional pagination and filtering.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            filters: Dictionary of field_name: value to filter by; None values are ignored

        Returns:
            List of records, newest first
        """
        try:
            query = self._apply_filters(select(self.model), filters)
            query = query.order_by(self.model.id.desc()).offset(skip).limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving all {self.model.__name__}: {str(e)}",
                exc_info=True,
            )
            raise

    async def create(self, **kwargs) -> ModelType:
        """Create a new record and flush it so the primary key is assigned.

        Args:
            **kwargs: Fields and values for the new record

        Returns:
            The created record
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error creating {self.model.__name__}: {str(e)}",
                exc_info=True,
            )
            raise

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update an existing record.

        Args:
            id: Primary key of the record to update
            **kwargs: Fields and values to update

        Returns:
            The updated record if found, None otherwise
        """
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return None

            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)

            await self.session.flush()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error updating {self.model.__name__} {id}: {str(e)}",
                exc_info=True,
            )
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching filters.

        Args:
            filters: Dictionary of field_name: value to filter by

        Returns:
            Count of matching records
        """
        try:
            query = self._apply_filters(select(func.count()).select_from(self.model), filters)
            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error counting {self.model.__name__}: {str(e)}",
                exc_info=True,
            )
            raise

    async def count_by(self, column_name: str) -> Dict[str, int]:
        """Group-count records by one column, e.g. status."""
        column = getattr(self.model, column_name)
        query = select(column, func.count()).group_by(column)
        result = await self.session.execute(query)
        return {key: total for key, total in result.all()}
