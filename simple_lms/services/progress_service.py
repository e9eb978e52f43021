"""
Progress Service - derived progress values over the course tree.

Combines CourseTreeReader (structure) with ProgressStore (per-user state):
lesson counts, completion percentage, "continue learning" resolution and
previous / next navigation.
"""
import logging
from typing import List, Optional

from simple_lms.model import Direction
from simple_lms.schemas.progress import (
    CourseProgressOverview,
    CourseProgressRow,
    CourseStats,
    ModuleStats,
    ProgressSummary,
    UserProgressReport,
)
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.services.progress_store import ProgressStore
from simple_lms.utils.request_cache import RequestCache

logger = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> int:
    """round(completed / total * 100) with halves rounded up; 0 for no lessons"""
    if total <= 0:
        return 0
    completed = max(0, min(completed, total))
    return (completed * 200 + total) // (2 * total)


class ProgressService:
    """Progress queries for one user against one course"""

    def __init__(
            self,
            course_tree: CourseTreeReader,
            progress_store: ProgressStore,
            cache: RequestCache,
    ):
        self._tree = course_tree
        self._store = progress_store
        self._cache = cache

    async def _lesson_ids(self, course_id: int) -> List[int]:
        return [lesson.id for lesson in await self._tree.get_lesson_sequence(course_id)]

    async def get_total_lessons_count(self, course_id: int) -> int:
        async def load() -> int:
            stats = await self._tree.get_course_stats(course_id)
            return stats["lesson_count"]

        return await self._cache.get_or_load("total_lessons", course_id, load)

    async def get_completed_lessons_count(self, user_id: int, course_id: int) -> int:
        """Completed lessons among the lessons currently in the course"""
        lesson_ids = await self._lesson_ids(course_id)
        return len(await self._store.get_completed_lesson_ids(user_id, lesson_ids))

    async def get_course_progress(self, user_id: int, course_id: int) -> int:
        """
        Course completion percentage in [0, 100]; 0 when the course has no lessons.
        """
        total = await self.get_total_lessons_count(course_id)
        if total == 0:
            return 0
        completed = await self.get_completed_lessons_count(user_id, course_id)
        return completion_percentage(completed, total)

    async def get_continue_lesson(self, user_id: int, course_id: int) -> Optional[int]:
        """
        Resolve the lesson a returning user should open.

        1. Last viewed lesson, if not completed.
        2. The lesson after a completed last viewed lesson.
        3. The first incomplete lesson in course order.
        4. None when every lesson is completed.
        """
        lesson_ids = await self._lesson_ids(course_id)
        if not lesson_ids:
            return None

        completed = await self._store.get_completed_lesson_ids(user_id, lesson_ids)
        last_viewed = await self._store.get_last_viewed(user_id, course_id)

        if last_viewed is not None:
            if last_viewed not in completed:
                return last_viewed
            position = lesson_ids.index(last_viewed)
            if position + 1 < len(lesson_ids):
                return lesson_ids[position + 1]

        for lesson_id in lesson_ids:
            if lesson_id not in completed:
                return lesson_id
        return None

    async def get_adjacent_lesson(self, lesson_id: int, direction: Direction) -> Optional[int]:
        """
        Previous or next lesson across the whole course.

        Falls back to navigating inside the lesson's module when the lesson
        cannot be placed in a course sequence.
        """
        lesson = await self._tree.get_lesson(lesson_id)
        if lesson is None:
            return None

        course_id = await self._tree.get_lesson_course_id(lesson_id)
        if course_id is not None:
            neighbour = self._neighbour(await self._lesson_ids(course_id), lesson_id, direction)
            if neighbour is not False:
                return neighbour

        if lesson.module_id:
            module_ids = [item.id for item in await self._tree.get_lessons(lesson.module_id)]
            neighbour = self._neighbour(module_ids, lesson_id, direction)
            if neighbour is not False:
                return neighbour
        return None

    @staticmethod
    def _neighbour(sequence: List[int], lesson_id: int, direction: Direction):
        """Neighbour ID, None at a boundary, False when lesson_id is absent"""
        if lesson_id not in sequence:
            return False
        target = sequence.index(lesson_id) + direction.step
        if 0 <= target < len(sequence):
            return sequence[target]
        return None

    async def get_course_overview(self, user_id: int, course_id: int) -> CourseProgressOverview:
        total = await self.get_total_lessons_count(course_id)
        completed = await self.get_completed_lessons_count(user_id, course_id) if total else 0
        return CourseProgressOverview(
            course_id=course_id,
            total_lessons=total,
            completed_lessons=completed,
            percentage=completion_percentage(completed, total),
            continue_lesson_id=await self.get_continue_lesson(user_id, course_id),
            is_completed=total > 0 and completed == total,
        )

    async def get_user_progress(self, user_id: int, course_id: Optional[int] = None) -> UserProgressReport:
        """
        Progress of every course the user has touched (or just one).
        """
        rows: List[CourseProgressRow] = []
        for summary in await self._store.get_course_summaries(user_id, course_id):
            tracked_course = summary["course_id"]
            if await self._tree.get_course(tracked_course) is None:
                continue
            total = await self.get_total_lessons_count(tracked_course)
            completed = await self.get_completed_lessons_count(user_id, tracked_course)
            rows.append(
                CourseProgressRow(
                    course_id=tracked_course,
                    total_lessons=total,
                    completed_lessons=completed,
                    completion_percentage=completion_percentage(completed, total),
                    total_time_spent=summary["total_time_spent"],
                    last_activity=summary["last_activity"],
                )
            )

        summary = ProgressSummary()
        if rows:
            average = sum(row.completion_percentage for row in rows) / len(rows)
            summary = ProgressSummary(total_courses=len(rows), avg_completion=round(average, 1))

        return UserProgressReport(user_id=user_id, courses=rows, summary=summary)

    async def get_course_stats(self, course_id: int) -> CourseStats:
        structure = await self._tree.get_course_stats(course_id)
        totals = await self._store.get_course_totals(course_id)
        modules = [ModuleStats(**row) for row in await self._store.get_module_totals(course_id)]
        return CourseStats(
            course_id=course_id,
            module_count=structure["module_count"],
            lesson_count=structure["lesson_count"],
            modules=modules,
            **totals,
        )
