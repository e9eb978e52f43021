"""
Lesson Repository - Data access layer for lessons within modules
"""
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.model.course_models import Lesson
from simple_lms.model.enums import PostStatus
from simple_lms.repositories.base_repo import BaseRepository


class LessonRepository(BaseRepository[Lesson]):
    """
    Repository for Lesson entity
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Lesson, session)

    async def get_lessons_by_module_id(
        self,
        module_id: int,
        statuses: Sequence[PostStatus] = (PostStatus.PUBLISHED,),
        include_deleted: bool = False
    ) -> Sequence[Lesson]:
        """
        Get the lessons of a module in their explicit order.

        Args:
            module_id: ID of the module
            statuses: Publication statuses to include
            include_deleted: Whether to include soft-deleted records

        Returns:
            Lessons ordered by menu_order, then id
        """
        query = (
            select(Lesson)
            .where(Lesson.module_id == module_id)
            .where(Lesson.status.in_(statuses))
            .order_by(Lesson.menu_order, Lesson.id)
        )
        query = self._exclude_deleted(query, include_deleted)

        result = await self._execute(query)
        return result.scalars().all()

    async def update_order(self, module_id: int, lesson_ids: Sequence[int]) -> int:
        """
        Persist a new lesson order for a module.

        Lessons dragged in from another module are re-parented to this one.

        Args:
            module_id: ID of the target module
            lesson_ids: Lesson IDs in their new order

        Returns:
            Number of lessons updated
        """
        updated = 0
        for position, lesson_id in enumerate(lesson_ids):
            result = await self._execute(
                update(Lesson)
                .where(Lesson.id == lesson_id)
                .values(menu_order=position, module_id=module_id)
            )
            updated += result.rowcount
        await self._commit()
        return updated
