"""
Content Service - authoring operations on the course structure.

Status changes and reordering. A module switched to DRAFT drags every
child lesson to DRAFT in the same transaction, and a lesson cannot be
published below an unpublished module.
"""
import logging
from typing import List, Optional, Sequence

from simple_lms.model import Lesson, Module, PostStatus
from simple_lms.repositories.course_repo import CourseRepository
from simple_lms.repositories.lesson_repo import LessonRepository
from simple_lms.repositories.module_repo import ModuleRepository
from simple_lms.utils.exceptions import BadRequestException, ResourceNotFoundException
from simple_lms.utils.request_cache import RequestCache

logger = logging.getLogger(__name__)

ALL_STATUSES = tuple(PostStatus)


class ContentService:
    """Writes to modules and lessons, keeping the request cache coherent"""

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

    async def _get_module_or_404(self, module_id: int) -> Module:
        module = await self._module_repository.get_by_id(module_id)
        if module is None:
            raise ResourceNotFoundException(f"Module {module_id} not found")
        return module

    async def _get_lesson_or_404(self, lesson_id: int) -> Lesson:
        lesson = await self._lesson_repository.get_by_id(lesson_id)
        if lesson is None:
            raise ResourceNotFoundException(f"Lesson {lesson_id} not found")
        return lesson

    def _forget_module(self, module: Module):
        self._cache.invalidate("module", module.id)
        self._cache.invalidate("module_lessons", module.id)
        if module.course_id:
            self._cache.invalidate("course_modules", module.course_id)
            self._cache.invalidate("total_lessons", module.course_id)

    # =============================
    #   Status
    # =============================
    async def set_module_status(self, module_id: int, status: PostStatus) -> List[int]:
        """
        Change a module's status.

        Args:
            module_id: ID of the module
            status: New status

        Returns:
            IDs of child lessons forced to DRAFT (empty unless status is DRAFT)

        Raises:
            ResourceNotFoundException: If the module does not exist
        """
        module = await self._get_module_or_404(module_id)
        cascaded = await self._module_repository.update_status_with_lessons(
            module, status, cascade_lessons=status == PostStatus.DRAFT
        )

        self._forget_module(module)
        for lesson_id in cascaded:
            self._cache.invalidate("lesson", lesson_id)

        logger.info(
            f"Module {module_id} set to {status.value}"
            + (f", {len(cascaded)} lessons moved to DRAFT" if cascaded else "")
        )
        return cascaded

    async def set_lesson_status(self, lesson_id: int, status: PostStatus) -> Lesson:
        """
        Change a lesson's status.

        Raises:
            ResourceNotFoundException: If the lesson does not exist
            BadRequestException: If publishing below an unpublished module
        """
        lesson = await self._get_lesson_or_404(lesson_id)

        if status == PostStatus.PUBLISHED:
            module = None
            if lesson.module_id:
                module = await self._module_repository.get_by_id(lesson.module_id)
            if module is None or module.status != PostStatus.PUBLISHED:
                raise BadRequestException(
                    f"Lesson {lesson_id} cannot be published while its module is not published"
                )

        lesson = await self._lesson_repository.update(lesson, {"status": status})
        self._cache.invalidate("lesson", lesson_id)
        if lesson.module_id:
            module = await self._module_repository.get_by_id(lesson.module_id)
            if module is not None:
                self._forget_module(module)

        logger.info(f"Lesson {lesson_id} set to {status.value}")
        return lesson

    async def get_effective_lesson_status(self, lesson_id: int) -> Optional[PostStatus]:
        """
        Status a learner effectively sees: DRAFT when the lesson or its module
        is a draft, the lesson's own status otherwise.
        """
        lesson = await self._lesson_repository.get_by_id(lesson_id)
        if lesson is None:
            return None
        if lesson.status == PostStatus.DRAFT:
            return PostStatus.DRAFT
        if lesson.module_id:
            module = await self._module_repository.get_by_id(lesson.module_id)
            if module is not None and module.status == PostStatus.DRAFT:
                return PostStatus.DRAFT
        return PostStatus(lesson.status)

    # =============================
    #   Ordering
    # =============================
    async def reorder_modules(self, course_id: int, module_ids: Sequence[int]) -> int:
        """
        Store a new module order; list position becomes menu_order.

        Raises:
            ResourceNotFoundException: If the course does not exist
            BadRequestException: If an ID repeats or is not a module of the course
        """
        if await self._course_repository.get_by_id(course_id) is None:
            raise ResourceNotFoundException(f"Course {course_id} not found")
        if len(set(module_ids)) != len(module_ids):
            raise BadRequestException("Module order contains duplicate IDs")

        modules = await self._module_repository.get_modules_by_course_id(
            course_id, statuses=ALL_STATUSES
        )
        known = {module.id for module in modules}
        unknown = [module_id for module_id in module_ids if module_id not in known]
        if unknown:
            raise BadRequestException(f"Modules {unknown} do not belong to course {course_id}")

        updated = await self._module_repository.update_order(course_id, module_ids)
        self._cache.invalidate("course_modules", course_id)
        for module_id in module_ids:
            self._cache.invalidate("module", module_id)

        logger.info(f"Reordered {updated} modules of course {course_id}")
        return updated

    async def reorder_lessons(self, module_id: int, lesson_ids: Sequence[int]) -> int:
        """
        Store a new lesson order for a module.

        Lessons coming from another module are moved into this one.

        Raises:
            ResourceNotFoundException: If the module does not exist
            BadRequestException: If an ID repeats or is not a lesson
        """
        target = await self._get_module_or_404(module_id)
        if len(set(lesson_ids)) != len(lesson_ids):
            raise BadRequestException("Lesson order contains duplicate IDs")

        source_module_ids = set()
        for lesson_id in lesson_ids:
            lesson = await self._lesson_repository.get_by_id(lesson_id)
            if lesson is None:
                raise BadRequestException(f"Lesson {lesson_id} not found")
            if lesson.module_id and lesson.module_id != module_id:
                source_module_ids.add(lesson.module_id)

        updated = await self._lesson_repository.update_order(module_id, lesson_ids)

        self._forget_module(target)
        for source_id in source_module_ids:
            source = await self._module_repository.get_by_id(source_id)
            if source is not None:
                self._forget_module(source)
        for lesson_id in lesson_ids:
            self._cache.invalidate("lesson", lesson_id)

        if source_module_ids:
            logger.info(f"Moved lessons from modules {sorted(source_module_ids)} into module {module_id}")
        logger.info(f"Reordered {updated} lessons of module {module_id}")
        return updated
