import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from simple_lms.schemas.generic import ApiResponse
from simple_lms.utils.exceptions import (
    AccessDeniedException,
    BadRequestException,
    RateLimitExceededException,
    ResourceNotFoundException,
    StoreUnavailableException,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)


def _error_response(code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content=ApiResponse.error(code=code, message=message).model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI):
    """
    Register global exception handlers for the FastAPI app.
    Maps service exceptions to the ApiResponse error envelope.
    """

    @app.exception_handler(BadRequestException)
    async def bad_request_handler(request: Request, exc: BadRequestException):
        logger.warning(f"BadRequestException: {exc.message}")
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(ResourceNotFoundException)
    async def resource_not_found_handler(
            request: Request, exc: ResourceNotFoundException
    ):
        logger.warning(f"ResourceNotFoundException: {exc.message}")
        return _error_response(status.HTTP_404_NOT_FOUND, exc.message)

    @app.exception_handler(AccessDeniedException)
    async def access_denied_handler(request: Request, exc: AccessDeniedException):
        logger.warning(f"AccessDeniedException: {exc.message}")
        return _error_response(status.HTTP_403_FORBIDDEN, exc.message)

    @app.exception_handler(UnauthorizedException)
    async def unauthorized_handler(request: Request, exc: UnauthorizedException):
        logger.warning(f"UnauthorizedException: {exc.message}")
        return _error_response(status.HTTP_401_UNAUTHORIZED, exc.message)

    @app.exception_handler(RateLimitExceededException)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededException):
        logger.warning(f"RateLimitExceededException: {exc.message}")
        return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, exc.message)

    @app.exception_handler(StoreUnavailableException)
    async def store_unavailable_handler(
            request: Request, exc: StoreUnavailableException
    ):
        logger.error(f"StoreUnavailableException: {exc.message}", exc_info=True)
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
            request: Request, exc: RequestValidationError
    ):
        logger.error(f"Validation error: {exc.errors()}")
        # Extract validation errors
        errors = []
        for error in exc.errors():
            field = (
                ".".join(str(x) for x in error["loc"]) if error["loc"] else "unknown"
            )
            msg = error["msg"]
            errors.append(f"{field}: {msg}")

        message = ", ".join(errors)
        return _error_response(
            status.HTTP_400_BAD_REQUEST, f"Validation Error: {message}"
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTPException: {exc.detail}")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled Exception: {str(exc)}", exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"
        )
