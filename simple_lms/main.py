import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI
from starlette.middleware.cors import CORSMiddleware

from simple_lms.api.v1.router import api_router
from simple_lms.clients.redis_client import RedisClient
from simple_lms.config import get_settings
from simple_lms.db.session import init_db, close_db
from simple_lms.dependencies.services import get_redis_client
from simple_lms.schemas.generic import HealthResponse
from simple_lms.utils.exception_handlers import register_exception_handlers
from simple_lms.utils.log import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator:
    """Lifecycle events"""
    # STARTUP
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    await init_db()

    # Initialize Redis connection
    redis_client = await get_redis_client()
    if not await redis_client.ping():
        logger.warning("Redis unavailable, completion rate limiting disabled")

    yield

    # SHUTDOWN
    logger.info(f"Shutting down {settings.app_name}")
    await close_db()
    await redis_client.disconnect()


# Create app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Course structure, lesson progress and access rules",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
register_exception_handlers(app)


# Health check
@app.get("/health", response_model=HealthResponse)
async def health_check(redis_client: RedisClient = Depends(get_redis_client)):
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        redis=redis_client.is_available(),
    )


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


# Include routers
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "simple_lms.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.environment == "development",
    )
