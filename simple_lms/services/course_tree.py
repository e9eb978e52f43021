"""
Course Tree Reader - resolves course -> ordered modules -> ordered lessons.

Reads go through the injected RequestCache, so repeated lookups inside one
request hit the database once. Unknown identifiers resolve to empty results.
"""
import logging
from typing import List, Optional

from simple_lms.model import Course, Lesson, Module
from simple_lms.repositories.course_repo import CourseRepository
from simple_lms.repositories.lesson_repo import LessonRepository
from simple_lms.repositories.module_repo import ModuleRepository
from simple_lms.utils.request_cache import RequestCache

logger = logging.getLogger(__name__)


class CourseTreeReader:
    """Read-only view of the published course structure"""

    def __init__(
            self,
            course_repository: CourseRepository,
            module_repository: ModuleRepository,
            lesson_repository: LessonRepository,
            cache: RequestCache,
    ):
        self._course_repository = course_repository
        self._module_repository = module_repository
        self._lesson_repository = lesson_repository
        self._cache = cache

    async def get_course(self, course_id: int) -> Optional[Course]:
        if course_id <= 0:
            return None
        return await self._cache.get_or_load(
            "course", course_id, lambda: self._course_repository.get_by_id(course_id)
        )

    async def get_module(self, module_id: int) -> Optional[Module]:
        if module_id <= 0:
            return None
        return await self._cache.get_or_load(
            "module", module_id, lambda: self._module_repository.get_by_id(module_id)
        )

    async def get_lesson(self, lesson_id: int) -> Optional[Lesson]:
        if lesson_id <= 0:
            return None
        return await self._cache.get_or_load(
            "lesson", lesson_id, lambda: self._lesson_repository.get_by_id(lesson_id)
        )

    async def get_modules(self, course_id: int) -> List[Module]:
        """
        Get the published modules of a course in order.

        Args:
            course_id: ID of the course

        Returns:
            Ordered modules, empty when the course is unknown or has none
        """
        if await self.get_course(course_id) is None:
            return []

        async def load() -> List[Module]:
            modules = list(await self._module_repository.get_modules_by_course_id(course_id))
            logger.debug(f"Loaded {len(modules)} modules for course {course_id}")
            return modules

        return await self._cache.get_or_load("course_modules", course_id, load)

    async def get_lessons(self, module_id: int) -> List[Lesson]:
        """
        Get the published lessons of a module in order.

        Args:
            module_id: ID of the module

        Returns:
            Ordered lessons, empty when the module is unknown or has none
        """
        if module_id <= 0:
            return []

        async def load() -> List[Lesson]:
            lessons = list(await self._lesson_repository.get_lessons_by_module_id(module_id))
            logger.debug(f"Loaded {len(lessons)} lessons for module {module_id}")
            return lessons

        return await self._cache.get_or_load("module_lessons", module_id, load)

    async def get_lesson_sequence(self, course_id: int) -> List[Lesson]:
        """
        Flatten a course into one lesson sequence, module by module.
        """
        sequence: List[Lesson] = []
        for module in await self.get_modules(course_id):
            sequence.extend(await self.get_lessons(module.id))
        return sequence

    async def get_lesson_course_id(self, lesson_id: int) -> Optional[int]:
        """
        Resolve lesson -> module -> course.

        Returns:
            Course ID, or None for unknown or orphaned lessons
        """
        lesson = await self.get_lesson(lesson_id)
        if lesson is None or not lesson.module_id:
            return None
        module = await self.get_module(lesson.module_id)
        if module is None or not module.course_id:
            return None
        course = await self.get_course(module.course_id)
        return course.id if course is not None else None

    async def get_course_stats(self, course_id: int) -> dict:
        modules = await self.get_modules(course_id)
        lesson_count = 0
        for module in modules:
            lesson_count += len(await self.get_lessons(module.id))
        return {"module_count": len(modules), "lesson_count": lesson_count}
