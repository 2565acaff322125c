"""Base repository class with common CRUD operations."""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...config.logging import get_logger
from ..models import Base

T = TypeVar("T", bound=Base)


class RepositoryError(Exception):
    """Base exception for repository operations."""

    pass


class BaseRepository(Generic[T]):
    """Base repository class providing common CRUD operations."""

    def __init__(self, session: AsyncSession, model_class: Type[T]):
        self.session = session
        self.model_class = model_class
        self.logger = get_logger(f"{__name__}.{model_class.__name__}")

    async def create(self, entity: T) -> T:
        """Create a new entity."""
        try:
            self.session.add(entity)
            await self.session.flush()
            await self.session.refresh(entity)

            self.logger.debug(
                "Entity created",
                entity_type=self.model_class.__name__,
                entity_id=getattr(entity, "id", None),
            )

            return entity

        except Exception as e:
            await self.session.rollback()
            self.logger.error(
                "Failed to create entity",
                entity_type=self.model_class.__name__,
                error=str(e),
            )
            raise RepositoryError(
                f"Failed to create {self.model_class.__name__}: {str(e)}"
            ) from e

    async def get_by_id(self, entity_id: int) -> Optional[T]:
        """Get entity by ID."""
        try:
            stmt = select(self.model_class).where(self.model_class.id == entity_id)
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error(
                "Failed to get entity by ID",
                entity_type=self.model_class.__name__,
                entity_id=entity_id,
                error=str(e),
            )
            raise RepositoryError(
                f"Failed to get {self.model_class.__name__} by ID: {str(e)}"
            ) from e

    async def count(self) -> int:
        """Count all entities."""
        try:
            stmt = select(func.count()).select_from(self.model_class)
            result = await self.session.execute(stmt)
            return result.scalar() or 0

        except Exception as e:
            self.logger.error(
                "Failed to count entities",
                entity_type=self.model_class.__name__,
                error=str(e),
            )
            raise RepositoryError(
                f"Failed to count {self.model_class.__name__}: {str(e)}"
            ) from e
