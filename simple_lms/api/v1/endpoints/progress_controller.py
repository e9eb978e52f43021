import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from simple_lms.dependencies.services import (
    get_access_service,
    get_course_tree,
    get_progress_service,
    get_progress_store,
    get_rate_limiter,
)
from simple_lms.model import Direction, Lesson
from simple_lms.schemas.generic import ApiResponse
from simple_lms.schemas.progress import (
    AdjacentLessonResponse,
    CourseProgressOverview,
    CourseStats,
    LessonCompletionResponse,
    LessonRef,
    LessonViewRequest,
    ProgressErasureResponse,
    ProgressExport,
    TimeSpentRequest,
    TimeSpentResponse,
    UserProgressReport,
)
from simple_lms.services.access_service import AccessService
from simple_lms.services.auth_service import AuthService, CurrentUser, get_admin_user
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.services.progress_service import ProgressService
from simple_lms.services.progress_store import ProgressStore
from simple_lms.services.rate_limiter import CompletionRateLimiter
from simple_lms.utils.exceptions import AccessDeniedException, ResourceNotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Progress"])


async def _get_accessible_lesson(
        lesson_id: int,
        user: CurrentUser,
        course_tree: CourseTreeReader,
        access_service: AccessService,
) -> Lesson:
    """Load a lesson of a course, enforcing access for non-admin callers"""
    lesson = await course_tree.get_lesson(lesson_id)
    if lesson is None or await course_tree.get_lesson_course_id(lesson_id) is None:
        raise ResourceNotFoundException(f"Lesson {lesson_id} not found")
    if not user.is_admin and not await access_service.can_access_lesson(user.id, lesson_id):
        raise AccessDeniedException(f"No access to lesson {lesson_id}")
    return lesson


async def _completion_response(
        lesson_id: int,
        completed: bool,
        user: CurrentUser,
        course_tree: CourseTreeReader,
        progress_service: ProgressService,
) -> LessonCompletionResponse:
    course_id = await course_tree.get_lesson_course_id(lesson_id)
    return LessonCompletionResponse(
        lesson_id=lesson_id,
        completed=completed,
        completed_lessons=await progress_service.get_completed_lessons_count(user.id, course_id),
        course_progress=await progress_service.get_course_progress(user.id, course_id),
    )


# =============================
#   Course progress
# =============================
@router.get(
    "/courses/{course_id}/progress",
    response_model=ApiResponse[CourseProgressOverview],
    summary="Get Course Progress",
    description="Completed and total lessons, percentage and the lesson to continue with.",
)
async def get_course_progress(
        course_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        progress_service: ProgressService = Depends(get_progress_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[CourseProgressOverview]:
    if await course_tree.get_course(course_id) is None:
        raise ResourceNotFoundException(f"Course {course_id} not found")

    overview = await progress_service.get_course_overview(user.id, course_id)
    return ApiResponse[CourseProgressOverview].success(data=overview)


@router.get(
    "/progress/me",
    response_model=ApiResponse[UserProgressReport],
    summary="Get My Progress",
)
async def get_my_progress(
        course_id: Optional[int] = Query(None, gt=0),
        progress_service: ProgressService = Depends(get_progress_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[UserProgressReport]:
    report = await progress_service.get_user_progress(user.id, course_id)
    return ApiResponse[UserProgressReport].success(data=report)


@router.get(
    "/courses/{course_id}/stats",
    response_model=ApiResponse[CourseStats],
    summary="Get Course Statistics",
)
async def get_course_stats(
        course_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        progress_service: ProgressService = Depends(get_progress_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[CourseStats]:
    if await course_tree.get_course(course_id) is None:
        raise ResourceNotFoundException(f"Course {course_id} not found")

    stats = await progress_service.get_course_stats(course_id)
    return ApiResponse[CourseStats].success(data=stats)


# =============================
#   Lesson progress
# =============================
@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=ApiResponse[LessonCompletionResponse],
    summary="Mark Lesson Completed",
)
async def complete_lesson(
        lesson_id: int,
        rate_limiter: CompletionRateLimiter = Depends(get_rate_limiter),
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        progress_store: ProgressStore = Depends(get_progress_store),
        progress_service: ProgressService = Depends(get_progress_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[LessonCompletionResponse]:
    """
    Raises:
        - 403 Forbidden: No access to the lesson
        - 404 Not Found: Unknown lesson or lesson outside any course
        - 429 Too Many Requests: Completion toggled too often
    """
    await rate_limiter.check(user.id)
    await _get_accessible_lesson(lesson_id, user, course_tree, access_service)

    await progress_store.mark_completed(user.id, lesson_id)
    response = await _completion_response(lesson_id, True, user, course_tree, progress_service)
    return ApiResponse[LessonCompletionResponse].success(
        data=response, message="Lesson marked as completed"
    )


@router.delete(
    "/lessons/{lesson_id}/complete",
    response_model=ApiResponse[LessonCompletionResponse],
    summary="Mark Lesson Incomplete",
)
async def uncomplete_lesson(
        lesson_id: int,
        rate_limiter: CompletionRateLimiter = Depends(get_rate_limiter),
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        progress_store: ProgressStore = Depends(get_progress_store),
        progress_service: ProgressService = Depends(get_progress_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[LessonCompletionResponse]:
    await rate_limiter.check(user.id)
    await _get_accessible_lesson(lesson_id, user, course_tree, access_service)

    await progress_store.mark_incomplete(user.id, lesson_id)
    response = await _completion_response(lesson_id, False, user, course_tree, progress_service)
    return ApiResponse[LessonCompletionResponse].success(
        data=response, message="Lesson marked as incomplete"
    )


@router.post(
    "/lessons/{lesson_id}/view",
    response_model=ApiResponse[LessonRef],
    summary="Record Lesson View",
)
async def record_lesson_view(
        lesson_id: int,
        request: Optional[LessonViewRequest] = None,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        progress_store: ProgressStore = Depends(get_progress_store),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[LessonRef]:
    lesson = await _get_accessible_lesson(lesson_id, user, course_tree, access_service)

    viewed_at = request.viewed_at if request is not None else None
    await progress_store.record_last_viewed(user.id, lesson_id, viewed_at)
    return ApiResponse[LessonRef].success(
        data=LessonRef(id=lesson.id, title=lesson.title, module_id=lesson.module_id),
        message="View recorded",
    )


@router.post(
    "/lessons/{lesson_id}/time",
    response_model=ApiResponse[TimeSpentResponse],
    summary="Add Time Spent",
    description="Non-positive beacons are accepted and ignored.",
)
async def add_time_spent(
        lesson_id: int,
        request: TimeSpentRequest,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        progress_store: ProgressStore = Depends(get_progress_store),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[TimeSpentResponse]:
    await _get_accessible_lesson(lesson_id, user, course_tree, access_service)

    recorded = await progress_store.add_time_spent(user.id, lesson_id, request.seconds)
    return ApiResponse[TimeSpentResponse].success(
        data=TimeSpentResponse(lesson_id=lesson_id, recorded=recorded)
    )


@router.get(
    "/lessons/{lesson_id}/adjacent",
    response_model=ApiResponse[AdjacentLessonResponse],
    summary="Get Previous / Next Lesson",
)
async def get_adjacent_lesson(
        lesson_id: int,
        direction: Direction = Query(Direction.NEXT),
        course_tree: CourseTreeReader = Depends(get_course_tree),
        progress_service: ProgressService = Depends(get_progress_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[AdjacentLessonResponse]:
    if await course_tree.get_lesson(lesson_id) is None:
        raise ResourceNotFoundException(f"Lesson {lesson_id} not found")

    adjacent_id = await progress_service.get_adjacent_lesson(lesson_id, direction)
    adjacent = await course_tree.get_lesson(adjacent_id) if adjacent_id is not None else None
    return ApiResponse[AdjacentLessonResponse].success(
        data=AdjacentLessonResponse(
            lesson_id=lesson_id,
            direction=direction,
            lesson=(
                LessonRef(id=adjacent.id, title=adjacent.title, module_id=adjacent.module_id)
                if adjacent is not None else None
            ),
        )
    )


# =============================
#   Personal data (admin)
# =============================
@router.get(
    "/users/{user_id}/progress",
    response_model=ApiResponse[ProgressExport],
    summary="Export User Progress",
    description="One page of a user's stored progress rows, for personal data requests.",
)
async def export_user_progress(
        user_id: int,
        page: int = Query(1, ge=1),
        progress_store: ProgressStore = Depends(get_progress_store),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[ProgressExport]:
    logger.info(f"Admin {admin.id} exports progress of user {user_id} (page {page})")
    export = await progress_store.export_user_data(user_id, page=page)
    return ApiResponse[ProgressExport].success(data=export)


@router.delete(
    "/users/{user_id}/progress",
    response_model=ApiResponse[ProgressErasureResponse],
    summary="Erase User Progress",
)
async def erase_user_progress(
        user_id: int,
        progress_store: ProgressStore = Depends(get_progress_store),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[ProgressErasureResponse]:
    logger.info(f"Admin {admin.id} erases progress of user {user_id}")
    removed = await progress_store.erase_user_data(user_id)
    return ApiResponse[ProgressErasureResponse].success(
        data=ProgressErasureResponse(user_id=user_id, removed=removed),
        message=f"Removed {removed} progress rows",
    )
