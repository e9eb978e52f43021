"""
Module Repository - Data access layer for course modules
"""
import logging
from typing import List, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.model.course_models import Lesson, Module
from simple_lms.model.enums import PostStatus
from simple_lms.repositories.base_repo import BaseRepository

logger = logging.getLogger(__name__)


class ModuleRepository(BaseRepository[Module]):
    """
    Repository for Module entity
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Module, session)

    async def get_modules_by_course_id(
        self,
        course_id: int,
        statuses: Sequence[PostStatus] = (PostStatus.PUBLISHED,),
        include_deleted: bool = False
    ) -> Sequence[Module]:
        """
        Get the modules of a course in their explicit order.

        Args:
            course_id: ID of the course
            statuses: Publication statuses to include
            include_deleted: Whether to include soft-deleted records

        Returns:
            Modules ordered by menu_order, then id
        """
        query = (
            select(Module)
            .where(Module.course_id == course_id)
            .where(Module.status.in_(statuses))
            .order_by(Module.menu_order, Module.id)
        )
        query = self._exclude_deleted(query, include_deleted)

        result = await self._execute(query)
        return result.scalars().all()

    async def update_status_with_lessons(
        self,
        module: Module,
        status: PostStatus,
        cascade_lessons: bool
    ) -> List[int]:
        """
        Set a module's status and, optionally, force the same status onto
        every child lesson. Both writes share one transaction.

        Args:
            module: Loaded module instance
            status: New status
            cascade_lessons: Whether child lessons follow the module

        Returns:
            IDs of lessons whose status was changed
        """
        module.status = status
        changed_ids: List[int] = []

        if cascade_lessons:
            query = (
                select(Lesson.id)
                .where(Lesson.module_id == module.id)
                .where(Lesson.is_deleted.is_(False))
                .where(Lesson.status != status)
            )
            result = await self._execute(query)
            changed_ids = list(result.scalars().all())

            if changed_ids:
                await self._execute(
                    update(Lesson)
                    .where(Lesson.id.in_(changed_ids))
                    .values(status=status)
                    .execution_options(synchronize_session="fetch")
                )

        await self._commit()
        await self.session.refresh(module)
        logger.debug(f"Module {module.id} -> {status.value}, cascaded lessons: {changed_ids}")
        return changed_ids

    async def update_order(self, course_id: int, module_ids: Sequence[int]) -> int:
        """
        Persist a new module order for a course.

        Args:
            course_id: ID of the course owning the modules
            module_ids: Module IDs in their new order

        Returns:
            Number of modules updated
        """
        updated = 0
        for position, module_id in enumerate(module_ids):
            result = await self._execute(
                update(Module)
                .where(Module.id == module_id)
                .where(Module.course_id == course_id)
                .values(menu_order=position)
            )
            updated += result.rowcount
        await self._commit()
        return updated
