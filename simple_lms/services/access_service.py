"""
Access Service - course access grants and module release (drip) rules.

Every unknown identifier, missing grant or expired grant resolves to
"no access" / "locked". Only storage failures propagate.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from simple_lms.model import (
    Course,
    CourseAccess,
    DripStrategy,
    Module,
    ModuleDripMode,
    ScheduleMode,
)
from simple_lms.repositories.access_repo import AccessRepository
from simple_lms.repositories.course_repo import CourseRepository
from simple_lms.schemas.access import AccessStatus, ModuleUnlockInfo
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.utils.request_cache import RequestCache
from simple_lms.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class AccessService:
    """
    Answers "may this user see this course / module / lesson now".

    Release rules, in order:
        1. Unknown or orphaned module: locked.
        2. IMMEDIATE course: unlocked.
        3. Module drip settings, when present, override the course rule.
        4. Course rule: FIXED_DATE date, or DRIP interval by module position.
    """

    def __init__(
            self,
            access_repository: AccessRepository,
            course_repository: CourseRepository,
            course_tree: CourseTreeReader,
            cache: RequestCache,
            clock: Clock = utc_now,
            expiration_warning_days: int = 7,
    ):
        self._access_repository = access_repository
        self._course_repository = course_repository
        self._tree = course_tree
        self._cache = cache
        self._clock = clock
        self._expiration_warning_days = expiration_warning_days

    async def _get_grant(self, user_id: int, course_id: int) -> Optional[CourseAccess]:
        if user_id <= 0 or course_id <= 0:
            return None
        return await self._cache.get_or_load(
            "grant",
            (user_id, course_id),
            lambda: self._access_repository.get_grant(user_id, course_id),
        )

    # =============================
    #   Course access
    # =============================
    async def has_course_access(self, user_id: int, course_id: int) -> bool:
        """
        Check for a live grant: exists, not revoked, lifetime or unexpired.
        """
        if await self._tree.get_course(course_id) is None:
            return False
        grant = await self._get_grant(user_id, course_id)
        if grant is None:
            return False
        if grant.is_lifetime:
            return True
        return grant.expires_at > self._clock()

    async def can_access_lesson(self, user_id: int, lesson_id: int) -> bool:
        """
        Course access plus the lesson's module being released.
        """
        lesson = await self._tree.get_lesson(lesson_id)
        if lesson is None or not lesson.module_id:
            return False
        module = await self._tree.get_module(lesson.module_id)
        if module is None or not module.course_id:
            return False
        if not await self.has_course_access(user_id, module.course_id):
            return False
        return await self.is_module_unlocked(user_id, module.id)

    async def get_access_expiration(self, user_id: int, course_id: int) -> Optional[datetime]:
        grant = await self._get_grant(user_id, course_id)
        return grant.expires_at if grant is not None else None

    async def get_days_remaining(self, user_id: int, course_id: int) -> Optional[int]:
        """
        Whole days of access left, rounded up.

        Returns:
            None for lifetime or missing grants, 0 once expired
        """
        expiration = await self.get_access_expiration(user_id, course_id)
        if expiration is None:
            return None
        now = self._clock()
        if now >= expiration:
            return 0
        return math.ceil((expiration - now).total_seconds() / SECONDS_PER_DAY)

    async def get_access_status(self, user_id: int, course_id: int) -> AccessStatus:
        has_access = await self.has_course_access(user_id, course_id)
        if not has_access:
            return AccessStatus(course_id=course_id, has_access=False)

        days_remaining = await self.get_days_remaining(user_id, course_id)
        return AccessStatus(
            course_id=course_id,
            has_access=True,
            expires_at=await self.get_access_expiration(user_id, course_id),
            days_remaining=days_remaining,
            expiring_soon=days_remaining is not None and days_remaining <= self._expiration_warning_days,
        )

    async def list_user_courses(self, user_id: int) -> List[Course]:
        if user_id <= 0:
            return []
        course_ids = await self._access_repository.get_user_course_ids(user_id, self._clock())
        return list(await self._course_repository.get_courses_by_ids(course_ids))

    # =============================
    #   Module release
    # =============================
    async def is_module_unlocked(self, user_id: int, module_id: int) -> bool:
        info = await self.get_module_unlock_info(user_id, module_id)
        return not info.locked

    async def get_module_unlock_info(self, user_id: int, module_id: int) -> ModuleUnlockInfo:
        """
        Compute whether a module is released for a user and when it unlocks.

        Args:
            user_id: ID of the user (drip anchor owner)
            module_id: ID of the module

        Returns:
            ModuleUnlockInfo; unlock_at is None when no instant can be computed
        """
        module = await self._tree.get_module(module_id)
        course = None
        if module is not None and module.course_id:
            course = await self._tree.get_course(module.course_id)
        if module is None or course is None:
            return ModuleUnlockInfo(locked=True)

        if course.schedule_mode == ScheduleMode.IMMEDIATE:
            return ModuleUnlockInfo(locked=False)

        if module.drip_mode != ModuleDripMode.NONE:
            info = await self._module_rule(user_id, course, module)
            if info is not None:
                return info

        return await self._course_rule(user_id, course, module)

    async def _module_rule(
            self,
            user_id: int,
            course: Course,
            module: Module
    ) -> Optional[ModuleUnlockInfo]:
        """Module-level drip; None when the module carries no usable setting"""
        if module.drip_mode == ModuleDripMode.MANUAL:
            return ModuleUnlockInfo(locked=not module.manual_unlocked)

        if module.drip_mode == ModuleDripMode.FIXED_DATE:
            if module.unlock_date is None:
                return None
            return self._unlock_at(module.unlock_date)

        # DAYS_AFTER_ENROLLMENT
        start = await self._get_enrollment_start(user_id, course.id)
        if start is None:
            return ModuleUnlockInfo(locked=True)
        return self._unlock_at(start + timedelta(days=module.drip_days))

    async def _course_rule(self, user_id: int, course: Course, module: Module) -> ModuleUnlockInfo:
        if course.schedule_mode == ScheduleMode.FIXED_DATE:
            if course.fixed_date is None:
                return ModuleUnlockInfo(locked=False)
            return self._unlock_at(course.fixed_date)

        # DRIP
        if course.drip_strategy == DripStrategy.PER_MODULE:
            return ModuleUnlockInfo(locked=False)

        start = await self._get_enrollment_start(user_id, course.id)
        if start is None:
            return ModuleUnlockInfo(locked=True)
        if course.drip_interval_days <= 0:
            return self._unlock_at(start)

        position = 0
        for index, candidate in enumerate(await self._tree.get_modules(course.id)):
            if candidate.id == module.id:
                position = index
                break
        return self._unlock_at(start + timedelta(days=position * course.drip_interval_days))

    async def _get_enrollment_start(self, user_id: int, course_id: int) -> Optional[datetime]:
        grant = await self._get_grant(user_id, course_id)
        if grant is None:
            return None
        return grant.started_at

    def _unlock_at(self, unlock_at: datetime) -> ModuleUnlockInfo:
        return ModuleUnlockInfo(locked=self._clock() < unlock_at, unlock_at=unlock_at)
