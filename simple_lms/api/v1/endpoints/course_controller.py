import logging
from typing import List

from fastapi import APIRouter, Depends

from simple_lms.dependencies.services import (
    get_access_service,
    get_content_service,
    get_course_tree,
    get_progress_store,
)
from simple_lms.model import Module
from simple_lms.schemas.access import ModuleUnlockInfo
from simple_lms.schemas.course import (
    LessonOutline,
    ModuleOutline,
    ReorderRequest,
    ReorderResponse,
    StatusChangeResponse,
    StatusUpdateRequest,
)
from simple_lms.schemas.generic import ApiResponse
from simple_lms.services.access_service import AccessService
from simple_lms.services.auth_service import AuthService, CurrentUser, get_admin_user
from simple_lms.services.content_service import ContentService
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.services.progress_store import ProgressStore
from simple_lms.utils.exceptions import AccessDeniedException, ResourceNotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Course"])


async def _get_module_or_404(course_tree: CourseTreeReader, module_id: int) -> Module:
    module = await course_tree.get_module(module_id)
    if module is None or not module.course_id:
        raise ResourceNotFoundException(f"Module {module_id} not found")
    return module


# =============================
#   Learner navigation
# =============================
@router.get(
    "/courses/{course_id}/modules",
    response_model=ApiResponse[List[ModuleOutline]],
    summary="List Course Modules",
    description="Published modules of a course in order, with lock state for the caller.",
)
async def list_course_modules(
        course_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[List[ModuleOutline]]:
    if await course_tree.get_course(course_id) is None:
        raise ResourceNotFoundException(f"Course {course_id} not found")

    outline = []
    for module in await course_tree.get_modules(course_id):
        if user.is_admin:
            info = ModuleUnlockInfo(locked=False)
        else:
            info = await access_service.get_module_unlock_info(user.id, module.id)
        outline.append(
            ModuleOutline(
                id=module.id,
                title=module.title,
                order=module.menu_order,
                lesson_count=len(await course_tree.get_lessons(module.id)),
                locked=info.locked,
                unlock_at=info.unlock_at,
            )
        )

    return ApiResponse[List[ModuleOutline]].success(
        data=outline, message=f"Found {len(outline)} modules"
    )


@router.get(
    "/modules/{module_id}/lessons",
    response_model=ApiResponse[List[LessonOutline]],
    summary="List Module Lessons",
    description="Published lessons of an unlocked module, with the caller's completion state.",
)
async def list_module_lessons(
        module_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        progress_store: ProgressStore = Depends(get_progress_store),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[List[LessonOutline]]:
    """
    Raises:
        - 403 Forbidden: No course access, or module still locked
        - 404 Not Found: Unknown module
    """
    module = await _get_module_or_404(course_tree, module_id)

    if not user.is_admin:
        if not await access_service.has_course_access(user.id, module.course_id):
            raise AccessDeniedException(f"No access to course {module.course_id}")
        if not await access_service.is_module_unlocked(user.id, module_id):
            raise AccessDeniedException(f"Module {module_id} is locked")

    lessons = await course_tree.get_lessons(module_id)
    completed = await progress_store.get_completed_lesson_ids(
        user.id, [lesson.id for lesson in lessons]
    )
    outline = [
        LessonOutline(
            id=lesson.id,
            title=lesson.title,
            order=lesson.menu_order,
            completed=lesson.id in completed,
        )
        for lesson in lessons
    ]
    return ApiResponse[List[LessonOutline]].success(
        data=outline, message=f"Found {len(outline)} lessons"
    )


@router.get(
    "/modules/{module_id}/unlock",
    response_model=ApiResponse[ModuleUnlockInfo],
    summary="Get Module Unlock Info",
)
async def get_module_unlock_info(
        module_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[ModuleUnlockInfo]:
    await _get_module_or_404(course_tree, module_id)
    info = await access_service.get_module_unlock_info(user.id, module_id)
    return ApiResponse[ModuleUnlockInfo].success(data=info)


# =============================
#   Authoring (admin)
# =============================
@router.patch(
    "/modules/{module_id}/status",
    response_model=ApiResponse[StatusChangeResponse],
    summary="Change Module Status",
    description="Switching a module to DRAFT moves all of its lessons to DRAFT.",
)
async def update_module_status(
        module_id: int,
        request: StatusUpdateRequest,
        content_service: ContentService = Depends(get_content_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[StatusChangeResponse]:
    logger.info(f"Admin {admin.id} sets module {module_id} to {request.status.value}")
    cascaded = await content_service.set_module_status(module_id, request.status)
    return ApiResponse[StatusChangeResponse].success(
        data=StatusChangeResponse(id=module_id, status=request.status, cascaded_lesson_ids=cascaded),
        message="Module status updated",
    )


@router.patch(
    "/lessons/{lesson_id}/status",
    response_model=ApiResponse[StatusChangeResponse],
    summary="Change Lesson Status",
)
async def update_lesson_status(
        lesson_id: int,
        request: StatusUpdateRequest,
        content_service: ContentService = Depends(get_content_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[StatusChangeResponse]:
    """
    Raises:
        - 400 Bad Request: Publishing a lesson whose module is not published
        - 404 Not Found: Unknown lesson
    """
    logger.info(f"Admin {admin.id} sets lesson {lesson_id} to {request.status.value}")
    lesson = await content_service.set_lesson_status(lesson_id, request.status)
    return ApiResponse[StatusChangeResponse].success(
        data=StatusChangeResponse(id=lesson.id, status=lesson.status),
        message="Lesson status updated",
    )


@router.put(
    "/courses/{course_id}/modules/order",
    response_model=ApiResponse[ReorderResponse],
    summary="Reorder Course Modules",
)
async def reorder_modules(
        course_id: int,
        request: ReorderRequest,
        content_service: ContentService = Depends(get_content_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[ReorderResponse]:
    updated = await content_service.reorder_modules(course_id, request.ids)
    return ApiResponse[ReorderResponse].success(
        data=ReorderResponse(updated=updated), message="Module order saved"
    )


@router.put(
    "/modules/{module_id}/lessons/order",
    response_model=ApiResponse[ReorderResponse],
    summary="Reorder Module Lessons",
    description="Lessons listed from other modules are moved into this module.",
)
async def reorder_lessons(
        module_id: int,
        request: ReorderRequest,
        content_service: ContentService = Depends(get_content_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[ReorderResponse]:
    updated = await content_service.reorder_lessons(module_id, request.ids)
    return ApiResponse[ReorderResponse].success(
        data=ReorderResponse(updated=updated), message="Lesson order saved"
    )
