import logging
from typing import List

from fastapi import APIRouter, Depends

from simple_lms.dependencies.services import (
    get_access_service,
    get_course_tree,
    get_enrollment_service,
)
from simple_lms.schemas.access import (
    AccessStatus,
    CleanupResponse,
    CourseSummary,
    GrantAccessRequest,
    GrantResponse,
)
from simple_lms.schemas.generic import ApiResponse
from simple_lms.services.access_service import AccessService
from simple_lms.services.auth_service import AuthService, CurrentUser, get_admin_user
from simple_lms.services.course_tree import CourseTreeReader
from simple_lms.services.enrollment_service import EnrollmentService
from simple_lms.utils.exceptions import ResourceNotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Access"])


@router.get(
    "/courses/{course_id}/access",
    response_model=ApiResponse[AccessStatus],
    summary="Get Course Access",
    description="Whether the caller can open the course, and when that access ends.",
)
async def get_course_access(
        course_id: int,
        course_tree: CourseTreeReader = Depends(get_course_tree),
        access_service: AccessService = Depends(get_access_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[AccessStatus]:
    if await course_tree.get_course(course_id) is None:
        raise ResourceNotFoundException(f"Course {course_id} not found")

    status = await access_service.get_access_status(user.id, course_id)
    return ApiResponse[AccessStatus].success(data=status)


@router.get(
    "/access/courses",
    response_model=ApiResponse[List[CourseSummary]],
    summary="List My Courses",
)
async def list_my_courses(
        access_service: AccessService = Depends(get_access_service),
        user: CurrentUser = Depends(AuthService.get_current_user),
) -> ApiResponse[List[CourseSummary]]:
    courses = await access_service.list_user_courses(user.id)
    return ApiResponse[List[CourseSummary]].success(
        data=[CourseSummary(id=course.id, title=course.title) for course in courses]
    )


# =============================
#   Grants (admin)
# =============================
@router.post(
    "/access/grant",
    response_model=ApiResponse[GrantResponse],
    summary="Grant Course Access",
)
async def grant_access(
        request: GrantAccessRequest,
        enrollment_service: EnrollmentService = Depends(get_enrollment_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[GrantResponse]:
    logger.info(f"Admin {admin.id} grants course {request.course_id} to user {request.user_id}")
    grant = await enrollment_service.grant_access(request.user_id, request.course_id)
    return ApiResponse[GrantResponse].success(
        data=GrantResponse(
            user_id=grant.user_id,
            course_id=grant.course_id,
            started_at=grant.started_at,
            expires_at=grant.expires_at,
        ),
        message="Access granted",
    )


@router.post(
    "/access/revoke",
    response_model=ApiResponse[None],
    summary="Revoke Course Access",
)
async def revoke_access(
        request: GrantAccessRequest,
        enrollment_service: EnrollmentService = Depends(get_enrollment_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[None]:
    logger.info(f"Admin {admin.id} revokes course {request.course_id} from user {request.user_id}")
    if not await enrollment_service.revoke_access(request.user_id, request.course_id):
        raise ResourceNotFoundException(
            f"User {request.user_id} has no access to course {request.course_id}"
        )
    return ApiResponse[None].success(message="Access revoked")


@router.post(
    "/access/cleanup",
    response_model=ApiResponse[CleanupResponse],
    summary="Revoke Expired Access",
)
async def cleanup_expired_access(
        enrollment_service: EnrollmentService = Depends(get_enrollment_service),
        admin: CurrentUser = Depends(get_admin_user),
) -> ApiResponse[CleanupResponse]:
    revoked = await enrollment_service.cleanup_expired_access()
    return ApiResponse[CleanupResponse].success(
        data=CleanupResponse(revoked=revoked), message=f"Revoked {revoked} expired grants"
    )
