from fastapi import APIRouter

from simple_lms.api.v1.endpoints import access_controller, course_controller, progress_controller

api_router = APIRouter()

# Course structure and authoring endpoints
api_router.include_router(course_controller.router)

# Progress tracking endpoints
api_router.include_router(progress_controller.router)

# Access grant endpoints
api_router.include_router(access_controller.router)
