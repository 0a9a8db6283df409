"""Generic async repository shared by the domain repositories."""

from typing import Any, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.db.base import BaseModel

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository providing common persistence operations.

    Domain repositories extend this with their own queries.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize the repository.

        Args:
            model: The SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new entity.

        Args:
            **kwargs: Field values for the new entity

        Returns:
            The created entity with generated ID
        """
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Retrieve an entity by its primary key, or None."""
        return await self.db.get(self.model, id)

    async def update_instance(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """
        Apply field changes to a loaded entity and flush them.

        Args:
            instance: The entity to change
            **kwargs: Fields to update with new values

        Returns:
            The refreshed entity
        """
        for field, value in kwargs.items():
            setattr(instance, field, value)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def find_by(self, order_by: Optional[Any] = None, **filters: Any) -> List[ModelType]:
        """
        Find entities matching the given field filters.

        Args:
            order_by: Optional ordering clause
            **filters: Field equality filters (e.g., status="published")

        Returns:
            List of matching entities
        """
        stmt = select(self.model)
        for field, value in filters.items():
            stmt = stmt.where(getattr(self.model, field) == value)
        if order_by is not None:
            stmt = stmt.order_by(order_by)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_one_by(self, **filters: Any) -> Optional[ModelType]:
        """Find the single entity matching the given filters, or None."""
        stmt = select(self.model)
        for field, value in filters.items():
            stmt = stmt.where(getattr(self.model, field) == value)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, **filters: Any) -> int:
        """Count entities matching the given filters."""
        stmt = select(func.count()).select_from(self.model)
        for field, value in filters.items():
            stmt = stmt.where(getattr(self.model, field) == value)

        result = await self.db.execute(stmt)
        return result.scalar_one()
