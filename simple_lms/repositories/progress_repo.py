"""
Progress Repository - Data access layer for per-user lesson progress
"""
import logging
from typing import Any, Optional, Sequence, Set

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.model.progress_models import LessonProgress
from simple_lms.repositories.base_repo import BaseRepository

logger = logging.getLogger(__name__)


class ProgressRepository(BaseRepository[LessonProgress]):
    """
    Repository for LessonProgress rows, keyed by (user_id, lesson_id)
    """

    def __init__(self, session: AsyncSession):
        super().__init__(LessonProgress, session)

    async def get_progress(self, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        """
        Get the progress row for a user and lesson.

        Always reloads from the database, since time spent is incremented
        in SQL behind the identity map.

        Returns:
            LessonProgress or None when the user never touched the lesson
        """
        query = (
            select(LessonProgress)
            .where(LessonProgress.user_id == user_id)
            .where(LessonProgress.lesson_id == lesson_id)
            .execution_options(populate_existing=True)
        )
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: int,
        lesson_id: int,
        module_id: int,
        course_id: int,
        values: dict[str, Any],
    ) -> LessonProgress:
        """
        Insert or update the row for (user_id, lesson_id).

        A concurrent insert of the same key loses the unique constraint race;
        it is then applied as an update on the winning row.

        Args:
            user_id: Owner of the row
            lesson_id: Lesson the row tracks
            module_id: Current parent module of the lesson
            course_id: Current course of the lesson
            values: Columns to set

        Returns:
            The stored row
        """
        structure = {"module_id": module_id, "course_id": course_id}
        existing = await self.get_progress(user_id, lesson_id)
        if existing is not None:
            return await self.update(existing, {**structure, **values})

        row = LessonProgress(
            user_id=user_id,
            lesson_id=lesson_id,
            completed=False,
            time_spent=0,
            **structure,
        )
        for field, value in values.items():
            setattr(row, field, value)

        try:
            return await self.create(row)
        except IntegrityError:
            logger.info(f"Progress row for user {user_id}, lesson {lesson_id} created concurrently")
            existing = await self.get_progress(user_id, lesson_id)
            if existing is None:
                raise
            return await self.update(existing, {**structure, **values})

    async def add_time_spent(
        self,
        user_id: int,
        lesson_id: int,
        module_id: int,
        course_id: int,
        seconds: int,
    ) -> None:
        """
        Add seconds to the row for (user_id, lesson_id), creating it if needed.

        The increment runs in SQL so concurrent beacons on the same row add
        up. A concurrent first insert falls back to the increment.
        """
        if await self._increment_time_spent(user_id, lesson_id, module_id, course_id, seconds):
            await self._commit()
            return

        row = LessonProgress(
            user_id=user_id,
            lesson_id=lesson_id,
            module_id=module_id,
            course_id=course_id,
            completed=False,
            time_spent=seconds,
        )
        try:
            await self.create(row)
        except IntegrityError:
            logger.info(f"Progress row for user {user_id}, lesson {lesson_id} created concurrently")
            if not await self._increment_time_spent(user_id, lesson_id, module_id, course_id, seconds):
                raise
            await self._commit()

    async def _increment_time_spent(
        self,
        user_id: int,
        lesson_id: int,
        module_id: int,
        course_id: int,
        seconds: int,
    ) -> int:
        statement = (
            update(LessonProgress)
            .where(LessonProgress.user_id == user_id)
            .where(LessonProgress.lesson_id == lesson_id)
            .values(
                time_spent=LessonProgress.time_spent + seconds,
                module_id=module_id,
                course_id=course_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(statement)
        return result.rowcount or 0

    async def get_completed_lesson_ids(
        self,
        user_id: int,
        lesson_ids: Sequence[int]
    ) -> Set[int]:
        """
        Get which of the given lessons the user completed.

        Args:
            user_id: ID of the user
            lesson_ids: Candidate lesson IDs

        Returns:
            Set of completed lesson IDs
        """
        if not lesson_ids:
            return set()

        query = (
            select(LessonProgress.lesson_id)
            .where(LessonProgress.user_id == user_id)
            .where(LessonProgress.lesson_id.in_(lesson_ids))
            .where(LessonProgress.completed.is_(True))
        )
        result = await self._execute(query)
        return set(result.scalars().all())

    async def get_last_viewed_lesson_id(
        self,
        user_id: int,
        lesson_ids: Sequence[int]
    ) -> Optional[int]:
        """
        Get the most recently viewed lesson among the given lessons.

        Args:
            user_id: ID of the user
            lesson_ids: Lessons currently belonging to the course

        Returns:
            Lesson ID or None when none of them was viewed
        """
        if not lesson_ids:
            return None

        query = (
            select(LessonProgress.lesson_id)
            .where(LessonProgress.user_id == user_id)
            .where(LessonProgress.lesson_id.in_(lesson_ids))
            .where(LessonProgress.last_viewed_at.is_not(None))
            .order_by(LessonProgress.last_viewed_at.desc(), LessonProgress.id.desc())
            .limit(1)
        )
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def get_user_course_summaries(
        self,
        user_id: int,
        course_id: Optional[int] = None
    ) -> Sequence[dict]:
        """
        Aggregate a user's rows per course.

        SQL equivalent:
            SELECT course_id, COUNT(*), SUM(completed), AVG(completed) * 100,
                   SUM(time_spent), MAX(updated_date)
            FROM lesson_progress
            WHERE user_id = :user_id [AND course_id = :course_id]
            GROUP BY course_id
        """
        completed_int = case((LessonProgress.completed.is_(True), 1), else_=0)
        query = (
            select(
                LessonProgress.course_id,
                func.count(LessonProgress.id).label("tracked_lessons"),
                func.sum(completed_int).label("completed_lessons"),
                func.sum(LessonProgress.time_spent).label("total_time_spent"),
                func.max(LessonProgress.updated_date).label("last_activity"),
            )
            .where(LessonProgress.user_id == user_id)
            .group_by(LessonProgress.course_id)
            .order_by(LessonProgress.course_id)
        )
        if course_id is not None:
            query = query.where(LessonProgress.course_id == course_id)

        result = await self._execute(query)
        return [
            {
                "course_id": row.course_id,
                "tracked_lessons": int(row.tracked_lessons or 0),
                "completed_lessons": int(row.completed_lessons or 0),
                "total_time_spent": int(row.total_time_spent or 0),
                "last_activity": row.last_activity,
            }
            for row in result.all()
        ]

    async def get_course_totals(self, lesson_ids: Sequence[int]) -> dict:
        """
        Aggregate all users' rows over the lessons currently in a course.

        Rows are matched by lesson rather than by their stored course_id,
        which goes stale when a lesson is moved or drafted.
        """
        totals = {
            "enrolled_users": 0,
            "users_with_progress": 0,
            "avg_completion_rate": 0.0,
            "total_time_spent": 0,
        }
        if not lesson_ids:
            return totals

        completed_int = case((LessonProgress.completed.is_(True), 1), else_=0)
        completed_user = case((LessonProgress.completed.is_(True), LessonProgress.user_id))
        query = (
            select(
                func.count(func.distinct(LessonProgress.user_id)).label("enrolled_users"),
                func.count(func.distinct(completed_user)).label("users_with_progress"),
                func.avg(completed_int).label("completion_ratio"),
                func.sum(LessonProgress.time_spent).label("total_time_spent"),
            )
            .where(LessonProgress.lesson_id.in_(lesson_ids))
        )
        result = await self._execute(query)
        row = result.one()
        totals.update(
            enrolled_users=int(row.enrolled_users or 0),
            users_with_progress=int(row.users_with_progress or 0),
            avg_completion_rate=round(float(row.completion_ratio or 0) * 100, 1),
            total_time_spent=int(row.total_time_spent or 0),
        )
        return totals

    async def get_lesson_set_totals(self, lesson_ids: Sequence[int]) -> dict:
        """
        Count tracked and completed rows over a set of lessons.
        """
        if not lesson_ids:
            return {"tracked_lessons": 0, "completed_lessons": 0}

        completed_int = case((LessonProgress.completed.is_(True), 1), else_=0)
        query = (
            select(
                func.count(LessonProgress.id).label("tracked_lessons"),
                func.sum(completed_int).label("completed_lessons"),
            )
            .where(LessonProgress.lesson_id.in_(lesson_ids))
        )
        result = await self._execute(query)
        row = result.one()
        return {
            "tracked_lessons": int(row.tracked_lessons or 0),
            "completed_lessons": int(row.completed_lessons or 0),
        }

    # ==================== PERSONAL DATA ====================

    async def get_user_rows(self, user_id: int, offset: int = 0, limit: int = 100) -> Sequence[LessonProgress]:
        """
        Page through every row of a user, oldest first.
        """
        query = (
            select(LessonProgress)
            .where(LessonProgress.user_id == user_id)
            .order_by(LessonProgress.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._execute(query)
        return result.scalars().all()

    async def delete_user_rows(self, user_id: int) -> int:
        """
        Delete every row of a user.

        Returns:
            Number of rows removed
        """
        statement = delete(LessonProgress).where(LessonProgress.user_id == user_id)
        result = await self._execute(statement)
        await self._commit()
        return result.rowcount or 0
