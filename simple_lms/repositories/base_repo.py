import logging
from typing import TypeVar, Generic, Type, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable, Select

from simple_lms.model.base import Base
from simple_lms.utils.exceptions import StoreUnavailableException

logger = logging.getLogger(__name__)

# Generic type for SQLAlchemy models
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class with common CRUD operations.

    Every statement goes through _execute / _commit so that storage failures
    surface as StoreUnavailableException instead of raw driver errors.

    Usage:
        class LessonRepository(BaseRepository[Lesson]):
            def __init__(self, session: AsyncSession):
                super().__init__(Lesson, session)
    """
    model: Type[ModelType]

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository with model class and database session.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    # ==================== SESSION ====================

    async def _execute(self, statement: Executable):
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Query on {self.model.__name__} failed: {e}")
            raise StoreUnavailableException(
                f"Could not read {self.model.__tablename__}"
            ) from e

    async def _commit(self):
        """
        Commit the current transaction.

        IntegrityError is re-raised as is so callers can resolve unique
        conflicts; any other failure rolls back and becomes
        StoreUnavailableException.
        """
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Commit on {self.model.__name__} failed: {e}")
            raise StoreUnavailableException(
                f"Could not write {self.model.__tablename__}"
            ) from e

    def _exclude_deleted(self, query: Select, include_deleted: bool = False) -> Select:
        if not include_deleted and hasattr(self.model, 'is_deleted'):
            query = query.where(self.model.is_deleted.is_(False))
        return query

    # ==================== CREATE ====================

    async def create(self, obj_in: dict | ModelType) -> ModelType:
        """
        Create a new record.

        Args:
            obj_in: Dictionary or model instance with data to create

        Returns:
            Created model instance
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = obj_in

        self.session.add(db_obj)
        await self._commit()
        await self.session.refresh(db_obj)
        return db_obj

    # ==================== READ ====================

    async def get_by_id(self, id: int, include_deleted: bool = False) -> Optional[ModelType]:
        """
        Get a single record by ID.

        Args:
            id: Primary key ID
            include_deleted: Whether to include soft-deleted records

        Returns:
            Model instance or None if not found
        """
        query = self._exclude_deleted(
            select(self.model).where(self.model.id == id), include_deleted
        )
        result = await self._execute(query)
        return result.scalar_one_or_none()

    # ==================== UPDATE ====================

    async def update(self, db_obj: ModelType, obj_in: dict) -> ModelType:
        """
        Apply field values to a loaded record and commit.

        Args:
            db_obj: Model instance to update
            obj_in: Dictionary with fields to update

        Returns:
            Updated model instance
        """
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self._commit()
        await self.session.refresh(db_obj)
        return db_obj

    # ==================== DELETE ====================

    async def soft_delete(self, db_obj: ModelType) -> None:
        """
        Mark a record as deleted.

        Args:
            db_obj: Model instance using SoftDeleteMixin
        """
        db_obj.mark_deleted()
        await self._commit()

    async def restore(self, db_obj: ModelType, obj_in: Optional[dict] = None) -> ModelType:
        """
        Restore a soft-deleted record, optionally updating fields.

        Args:
            db_obj: Soft-deleted model instance
            obj_in: Extra fields to set while restoring

        Returns:
            Restored model instance
        """
        db_obj.mark_restored()
        return await self.update(db_obj, obj_in or {})
