"""
Course Repository - Data access layer for courses
"""

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.model.course_models import Course
from simple_lms.repositories.base_repo import BaseRepository


class CourseRepository(BaseRepository[Course]):
    """
    Repository for Course entity
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Course, session)

    async def get_courses_by_ids(
        self,
        course_ids: Sequence[int],
        include_deleted: bool = False
    ) -> Sequence[Course]:
        """
        Get courses for a list of IDs, keeping the order of the input.

        Args:
            course_ids: Course IDs in the desired order
            include_deleted: Whether to include soft-deleted records

        Returns:
            Existing courses only
        """
        if not course_ids:
            return []

        query = self._exclude_deleted(
            select(Course).where(Course.id.in_(course_ids)), include_deleted
        )
        result = await self._execute(query)
        by_id = {course.id: course for course in result.scalars().all()}
        return [by_id[course_id] for course_id in course_ids if course_id in by_id]
