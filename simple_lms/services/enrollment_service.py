"""
Enrollment Service - writes course access grants.

Grants carry the drip anchor (started_at) and the expiry derived from the
course's access duration. Revocation is a soft delete, so a later grant
restores the same row.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

from simple_lms.model import Course, CourseAccess, ScheduleMode
from simple_lms.repositories.access_repo import AccessRepository
from simple_lms.repositories.course_repo import CourseRepository
from simple_lms.utils.exceptions import ResourceNotFoundException
from simple_lms.utils.request_cache import RequestCache
from simple_lms.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)


def compute_expiration(course: Course, now: datetime) -> Optional[datetime]:
    """
    Expiry of a grant issued now; None means lifetime access.

    Fixed-date courses count the duration from the later of the course date
    and now.
    """
    value = course.access_duration_value or 0
    if value <= 0:
        return None

    start = now
    if course.schedule_mode == ScheduleMode.FIXED_DATE and course.fixed_date and course.fixed_date > now:
        start = course.fixed_date
    return start + timedelta(days=value * course.access_duration_unit.days)


class EnrollmentService:
    """Grants, revokes and sweeps course access"""

    def __init__(
            self,
            access_repository: AccessRepository,
            course_repository: CourseRepository,
            cache: RequestCache,
            clock: Clock = utc_now,
    ):
        self._access_repository = access_repository
        self._course_repository = course_repository
        self._cache = cache
        self._clock = clock

    def _is_live(self, grant: CourseAccess, now: datetime) -> bool:
        return not grant.is_deleted and (grant.is_lifetime or grant.expires_at > now)

    async def grant_access(self, user_id: int, course_id: int) -> CourseAccess:
        """
        Give a user access to a course.

        A live grant is returned untouched. Revoked or expired grants are
        renewed from now.

        Args:
            user_id: ID of the user
            course_id: ID of the course

        Returns:
            The live grant

        Raises:
            ResourceNotFoundException: If the course does not exist
        """
        course = await self._course_repository.get_by_id(course_id)
        if course is None:
            raise ResourceNotFoundException(f"Course {course_id} not found")

        now = self._clock()
        values = {"started_at": now, "expires_at": compute_expiration(course, now)}

        existing = await self._access_repository.get_grant(user_id, course_id, include_deleted=True)
        if existing is not None and self._is_live(existing, now):
            logger.debug(f"User {user_id} already has access to course {course_id}")
            return existing

        if existing is not None:
            grant = await self._access_repository.restore(existing, values)
            logger.info(f"Renewed access of user {user_id} to course {course_id}")
        else:
            try:
                grant = await self._access_repository.create(
                    {"user_id": user_id, "course_id": course_id, **values}
                )
            except IntegrityError:
                # Granted concurrently
                grant = await self._access_repository.get_grant(user_id, course_id)
                if grant is None:
                    raise
            logger.info(f"Granted access of user {user_id} to course {course_id}")

        self._cache.invalidate("grant", (user_id, course_id))
        return grant

    async def revoke_access(self, user_id: int, course_id: int) -> bool:
        """
        Revoke a user's access to a course.

        Returns:
            False when there was no active grant
        """
        grant = await self._access_repository.get_grant(user_id, course_id)
        if grant is None:
            return False

        await self._access_repository.soft_delete(grant)
        self._cache.invalidate("grant", (user_id, course_id))
        logger.info(f"Revoked access of user {user_id} to course {course_id}")
        return True

    async def cleanup_expired_access(self) -> int:
        """
        Revoke every grant whose expiry has passed.

        Returns:
            Number of grants revoked
        """
        expired = await self._access_repository.get_expired_grants(self._clock())
        for grant in expired:
            await self._access_repository.soft_delete(grant)
            self._cache.invalidate("grant", (grant.user_id, grant.course_id))

        logger.info(f"Expired access cleanup revoked {len(expired)} grants")
        return len(expired)
