"""
Access Repository - Data access layer for course access grants
"""
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.model.progress_models import CourseAccess
from simple_lms.repositories.base_repo import BaseRepository


class AccessRepository(BaseRepository[CourseAccess]):
    """
    Repository for CourseAccess grants
    """

    def __init__(self, session: AsyncSession):
        super().__init__(CourseAccess, session)

    async def get_grant(
        self,
        user_id: int,
        course_id: int,
        include_deleted: bool = False
    ) -> Optional[CourseAccess]:
        """
        Get the grant for a user and course.

        Args:
            user_id: ID of the user
            course_id: ID of the course
            include_deleted: Whether to return revoked grants

        Returns:
            CourseAccess or None
        """
        query = (
            select(CourseAccess)
            .where(CourseAccess.user_id == user_id)
            .where(CourseAccess.course_id == course_id)
        )
        query = self._exclude_deleted(query, include_deleted)

        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def get_user_course_ids(self, user_id: int, now: datetime) -> List[int]:
        """
        Get IDs of courses the user currently holds a valid grant for.

        Args:
            user_id: ID of the user
            now: Reference instant for expiry

        Returns:
            Course IDs in grant order
        """
        query = (
            select(CourseAccess.course_id)
            .where(CourseAccess.user_id == user_id)
            .where(CourseAccess.is_deleted.is_(False))
            .where((CourseAccess.expires_at.is_(None)) | (CourseAccess.expires_at > now))
            .order_by(CourseAccess.id)
        )
        result = await self._execute(query)
        return list(result.scalars().all())

    async def get_expired_grants(self, now: datetime) -> Sequence[CourseAccess]:
        """
        Get active grants whose expiry has passed.

        Args:
            now: Reference instant

        Returns:
            Expired, not yet revoked grants
        """
        query = (
            select(CourseAccess)
            .where(CourseAccess.is_deleted.is_(False))
            .where(CourseAccess.expires_at.is_not(None))
            .where(CourseAccess.expires_at < now)
        )
        result = await self._execute(query)
        return result.scalars().all()
