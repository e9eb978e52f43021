import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from simple_lms.clients.redis_client import RedisClient
from simple_lms.config import get_settings
from simple_lms.db.session import get_database
from simple_lms.repositories import (
    AccessRepository,
    CourseRepository,
    LessonRepository,
    ModuleRepository,
    ProgressRepository,
)
from simple_lms.services.access_service import AccessService
from simple_lms.services.content_service import ContentService
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.services.enrollment_service import EnrollmentService
from simple_lms.services.progress_service import ProgressService
from simple_lms.services.progress_store import ProgressStore
from simple_lms.services.rate_limiter import CompletionRateLimiter
from simple_lms.utils.request_cache import RequestCache
from simple_lms.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)

# =============================
#   Redis Client (Singleton)
# =============================
_redis_client_instance = None


async def get_redis_client() -> RedisClient:
    """
    Get singleton RedisClient instance.
    Connection is established on first call and reused.
    """
    global _redis_client_instance

    if _redis_client_instance is None:
        settings = get_settings()
        _redis_client_instance = RedisClient(settings)
        await _redis_client_instance.connect()
        logger.info("RedisClient singleton created and connected")

    return _redis_client_instance


# =============================
#   Per-Request State
# =============================
async def get_request_cache() -> RequestCache:
    """
    Fresh memoization cache for one request.

    FastAPI resolves a dependency once per request, so every service built
    for the same request shares this instance.
    """
    return RequestCache()


def get_clock() -> Clock:
    """Source of "now" for access and progress rules"""
    return utc_now


# =============================
#   Repository Dependencies
# =============================
async def get_course_repository(
        session: AsyncSession = Depends(get_database),
) -> CourseRepository:
    return CourseRepository(session)


async def get_module_repository(
        session: AsyncSession = Depends(get_database),
) -> ModuleRepository:
    return ModuleRepository(session)


async def get_lesson_repository(
        session: AsyncSession = Depends(get_database),
) -> LessonRepository:
    return LessonRepository(session)


async def get_progress_repository(
        session: AsyncSession = Depends(get_database),
) -> ProgressRepository:
    return ProgressRepository(session)


async def get_access_repository(
        session: AsyncSession = Depends(get_database),
) -> AccessRepository:
    return AccessRepository(session)


# =============================
#   Services (Per-Request)
# =============================
async def get_course_tree(
        course_repository: CourseRepository = Depends(get_course_repository),
        module_repository: ModuleRepository = Depends(get_module_repository),
        lesson_repository: LessonRepository = Depends(get_lesson_repository),
        cache: RequestCache = Depends(get_request_cache),
) -> CourseTreeReader:
    return CourseTreeReader(
        course_repository=course_repository,
        module_repository=module_repository,
        lesson_repository=lesson_repository,
        cache=cache,
    )


async def get_progress_store(
        progress_repository: ProgressRepository = Depends(get_progress_repository),
        course_tree: CourseTreeReader = Depends(get_course_tree),
        clock: Clock = Depends(get_clock),
) -> ProgressStore:
    return ProgressStore(progress_repository, course_tree, clock=clock)


async def get_access_service(
        access_repository: AccessRepository = Depends(get_access_repository),
        course_repository: CourseRepository = Depends(get_course_repository),
        course_tree: CourseTreeReader = Depends(get_course_tree),
        cache: RequestCache = Depends(get_request_cache),
        clock: Clock = Depends(get_clock),
) -> AccessService:
    """
    Get AccessService instance with all dependencies injected.

    Note: This is NOT a singleton because it shares the request's database
    session and RequestCache.
    """
    return AccessService(
        access_repository=access_repository,
        course_repository=course_repository,
        course_tree=course_tree,
        cache=cache,
        clock=clock,
        expiration_warning_days=get_settings().expiration_warning_days,
    )


async def get_progress_service(
        course_tree: CourseTreeReader = Depends(get_course_tree),
        progress_store: ProgressStore = Depends(get_progress_store),
        cache: RequestCache = Depends(get_request_cache),
) -> ProgressService:
    return ProgressService(course_tree, progress_store, cache)


async def get_content_service(
        course_repository: CourseRepository = Depends(get_course_repository),
        module_repository: ModuleRepository = Depends(get_module_repository),
        lesson_repository: LessonRepository = Depends(get_lesson_repository),
        cache: RequestCache = Depends(get_request_cache),
) -> ContentService:
    return ContentService(course_repository, module_repository, lesson_repository, cache)


async def get_enrollment_service(
        access_repository: AccessRepository = Depends(get_access_repository),
        course_repository: CourseRepository = Depends(get_course_repository),
        cache: RequestCache = Depends(get_request_cache),
        clock: Clock = Depends(get_clock),
) -> EnrollmentService:
    return EnrollmentService(access_repository, course_repository, cache, clock=clock)


async def get_rate_limiter(
        redis_client: RedisClient = Depends(get_redis_client),
) -> CompletionRateLimiter:
    settings = get_settings()
    return CompletionRateLimiter(
        redis_client,
        limit=settings.completion_rate_limit,
        window_seconds=settings.completion_rate_window_seconds,
    )
