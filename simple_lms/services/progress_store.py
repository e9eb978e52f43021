"""
Progress Store - completion, view and time-spent state per (user, lesson).

Rows are created lazily on the first completion, view or time beacon.
Writes are last-write-wins and idempotent: repeating a toggle that already
matches the stored state performs no write.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Set

from simple_lms.model import LessonProgress
from simple_lms.repositories.progress_repo import ProgressRepository
from simple_lms.schemas.progress import ProgressExport, ProgressExportItem
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.utils.time_utils import Clock, to_naive_utc, utc_now

logger = logging.getLogger(__name__)


class ProgressStore:
    """Persists and reads lesson progress"""

    def __init__(
            self,
            progress_repository: ProgressRepository,
            course_tree: CourseTreeReader,
            clock: Clock = utc_now,
    ):
        self._repository = progress_repository
        self._tree = course_tree
        self._clock = clock

    async def _save(self, user_id: int, lesson_id: int, values: dict) -> Optional[LessonProgress]:
        """Upsert a row, or return None when the lesson is not part of a course"""
        course_id = await self._tree.get_lesson_course_id(lesson_id)
        if course_id is None:
            logger.warning(f"Lesson {lesson_id} does not belong to a course, progress not saved")
            return None
        lesson = await self._tree.get_lesson(lesson_id)
        return await self._repository.upsert(
            user_id=user_id,
            lesson_id=lesson_id,
            module_id=lesson.module_id,
            course_id=course_id,
            values=values,
        )

    async def is_completed(self, user_id: int, lesson_id: int) -> bool:
        if user_id <= 0 or lesson_id <= 0:
            return False
        row = await self._repository.get_progress(user_id, lesson_id)
        return bool(row and row.completed)

    async def mark_completed(self, user_id: int, lesson_id: int) -> bool:
        """
        Mark a lesson completed for a user.

        Returns:
            True when the lesson is trackable (state now completed),
            False for unknown or orphaned lessons
        """
        row = await self._repository.get_progress(user_id, lesson_id)
        if row is not None and row.completed:
            return True

        saved = await self._save(
            user_id, lesson_id, {"completed": True, "completed_at": self._clock()}
        )
        if saved is None:
            return False
        logger.info(f"User {user_id} completed lesson {lesson_id}")
        return True

    async def mark_incomplete(self, user_id: int, lesson_id: int) -> bool:
        """
        Clear the completion flag of a lesson for a user.

        Returns:
            True when the lesson is trackable (state now incomplete),
            False for unknown or orphaned lessons
        """
        row = await self._repository.get_progress(user_id, lesson_id)
        if row is None:
            # No row already means "not completed"
            return await self._tree.get_lesson_course_id(lesson_id) is not None
        if not row.completed:
            return True

        saved = await self._save(user_id, lesson_id, {"completed": False, "completed_at": None})
        if saved is None:
            return False
        logger.info(f"User {user_id} marked lesson {lesson_id} incomplete")
        return True

    async def record_last_viewed(
            self,
            user_id: int,
            lesson_id: int,
            timestamp: Optional[datetime] = None
    ) -> bool:
        """
        Record that the user opened a lesson.

        Aware timestamps are stored as naive UTC like every other column.

        Returns:
            False for unknown or orphaned lessons
        """
        viewed_at = to_naive_utc(timestamp) if timestamp is not None else self._clock()
        saved = await self._save(user_id, lesson_id, {"last_viewed_at": viewed_at})
        return saved is not None

    async def get_last_viewed(self, user_id: int, course_id: int) -> Optional[int]:
        """
        Get the most recently viewed lesson of a course.

        Only lessons currently in the course's published tree are considered.
        """
        if user_id <= 0:
            return None
        lesson_ids = [lesson.id for lesson in await self._tree.get_lesson_sequence(course_id)]
        return await self._repository.get_last_viewed_lesson_id(user_id, lesson_ids)

    async def add_time_spent(self, user_id: int, lesson_id: int, seconds: int) -> bool:
        """
        Add seconds to the time spent on a lesson.

        Non-positive input is ignored (clock skew, malformed beacons).

        Returns:
            True when time was recorded
        """
        if seconds <= 0:
            logger.debug(f"Ignoring non-positive time beacon ({seconds}s) for lesson {lesson_id}")
            return False

        course_id = await self._tree.get_lesson_course_id(lesson_id)
        if course_id is None:
            logger.warning(f"Lesson {lesson_id} does not belong to a course, time not saved")
            return False
        lesson = await self._tree.get_lesson(lesson_id)
        await self._repository.add_time_spent(
            user_id=user_id,
            lesson_id=lesson_id,
            module_id=lesson.module_id,
            course_id=course_id,
            seconds=seconds,
        )
        return True

    async def get_completed_lesson_ids(self, user_id: int, lesson_ids: Sequence[int]) -> Set[int]:
        if user_id <= 0:
            return set()
        return await self._repository.get_completed_lesson_ids(user_id, lesson_ids)

    async def get_course_summaries(self, user_id: int, course_id: Optional[int] = None) -> Sequence[dict]:
        return await self._repository.get_user_course_summaries(user_id, course_id)

    async def get_course_totals(self, course_id: int) -> dict:
        """Totals over the lessons currently in the course's published tree"""
        lesson_ids = [lesson.id for lesson in await self._tree.get_lesson_sequence(course_id)]
        return await self._repository.get_course_totals(lesson_ids)

    async def get_module_totals(self, course_id: int) -> List[dict]:
        """Tracked and completed rows per published module, in course order"""
        rows = []
        for module in await self._tree.get_modules(course_id):
            lesson_ids = [lesson.id for lesson in await self._tree.get_lessons(module.id)]
            totals = await self._repository.get_lesson_set_totals(lesson_ids)
            rows.append({"module_id": module.id, **totals})
        return rows

    # ===== Personal data =====

    async def export_user_data(self, user_id: int, page: int = 1, page_size: int = 100) -> ProgressExport:
        """
        Export one page of a user's stored progress.

        Rows of lessons that left their course are exported too; titles are
        None when the course or lesson no longer exists.
        """
        page = max(page, 1)
        rows = await self._repository.get_user_rows(
            user_id, offset=(page - 1) * page_size, limit=page_size
        )

        items = []
        for row in rows:
            course = await self._tree.get_course(row.course_id)
            lesson = await self._tree.get_lesson(row.lesson_id)
            items.append(
                ProgressExportItem(
                    id=row.id,
                    course_id=row.course_id,
                    course_title=course.title if course is not None else None,
                    lesson_id=row.lesson_id,
                    lesson_title=lesson.title if lesson is not None else None,
                    completed=row.completed,
                    started_at=row.created_date,
                    completed_at=row.completed_at,
                    last_viewed_at=row.last_viewed_at,
                    time_spent=row.time_spent,
                )
            )

        return ProgressExport(user_id=user_id, page=page, items=items, done=len(rows) < page_size)

    async def erase_user_data(self, user_id: int) -> int:
        """
        Delete every progress row of a user.

        Returns:
            Number of rows removed
        """
        removed = await self._repository.delete_user_rows(user_id)
        logger.info(f"Erased {removed} progress rows of user {user_id}")
        return removed
