import os

# Must be set before simple_lms.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from simple_lms.clients.redis_client import RedisClient
from simple_lms.config import get_settings
from simple_lms.model import Base, Course, CourseAccess, Lesson, Module, PostStatus
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
from simple_lms.utils.request_cache import RequestCache

NOW = datetime(2025, 3, 10, 12, 0, 0)


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRedis:
    """The subset of redis.asyncio.Redis used by RedisClient"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.ttls: Dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key: str, ttl: int) -> bool:
        self.ttls[key] = ttl
        return True

    async def aclose(self) -> None:
        return None


@dataclass
class SeededCourse:
    course: Course
    modules: List[Module]
    lessons: List[Lesson]
    lessons_by_module: Dict[int, List[Lesson]] = field(default_factory=dict)

    @property
    def lesson_ids(self) -> List[int]:
        return [lesson.id for lesson in self.lessons]


def make_token(user_id: int, roles: Optional[Sequence[str]] = None) -> str:
    return jwt.encode({"userId": user_id, "roles": list(roles or [])}, "test-secret", algorithm="HS256")


def auth_header(user_id: int, roles: Optional[Sequence[str]] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}


# =============================
#   Database
# =============================
@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_course(session):
    """Create a published course with published modules of the given sizes"""

    async def factory(module_sizes: Sequence[int] = (3, 2), **course_fields) -> SeededCourse:
        course = Course(title="Course", status=PostStatus.PUBLISHED, **course_fields)
        session.add(course)
        await session.flush()

        seeded = SeededCourse(course=course, modules=[], lessons=[])
        for module_index, size in enumerate(module_sizes):
            module = Module(
                course_id=course.id,
                title=f"Module {module_index + 1}",
                status=PostStatus.PUBLISHED,
                menu_order=module_index,
            )
            session.add(module)
            await session.flush()
            seeded.modules.append(module)
            seeded.lessons_by_module[module.id] = []

            for lesson_index in range(size):
                lesson = Lesson(
                    module_id=module.id,
                    title=f"Lesson {module_index + 1}.{lesson_index + 1}",
                    status=PostStatus.PUBLISHED,
                    menu_order=lesson_index,
                )
                session.add(lesson)
                await session.flush()
                seeded.lessons.append(lesson)
                seeded.lessons_by_module[module.id].append(lesson)

        await session.commit()
        return seeded

    return factory


@pytest.fixture
def grant(session):
    """Insert an access grant directly, as the enrollment system would"""

    async def factory(
            user_id: int,
            course_id: int,
            started_at: Optional[datetime] = NOW,
            expires_at: Optional[datetime] = None,
    ) -> CourseAccess:
        access = CourseAccess(
            user_id=user_id,
            course_id=course_id,
            started_at=started_at,
            expires_at=expires_at,
        )
        session.add(access)
        await session.commit()
        return access

    return factory


# =============================
#   Services
# =============================
@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def cache() -> RequestCache:
    return RequestCache()


@pytest.fixture
def course_tree(session, cache) -> CourseTreeReader:
    return CourseTreeReader(
        CourseRepository(session),
        ModuleRepository(session),
        LessonRepository(session),
        cache,
    )


@pytest.fixture
def progress_store(session, course_tree, clock) -> ProgressStore:
    return ProgressStore(ProgressRepository(session), course_tree, clock=clock)


@pytest.fixture
def access_service(session, course_tree, cache, clock) -> AccessService:
    return AccessService(
        AccessRepository(session),
        CourseRepository(session),
        course_tree,
        cache,
        clock=clock,
    )


@pytest.fixture
def progress_service(course_tree, progress_store, cache) -> ProgressService:
    return ProgressService(course_tree, progress_store, cache)


@pytest.fixture
def content_service(session, cache) -> ContentService:
    return ContentService(
        CourseRepository(session),
        ModuleRepository(session),
        LessonRepository(session),
        cache,
    )


@pytest.fixture
def enrollment_service(session, cache, clock) -> EnrollmentService:
    return EnrollmentService(AccessRepository(session), CourseRepository(session), cache, clock=clock)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_client(fake_redis) -> RedisClient:
    client = RedisClient(get_settings())
    client._client = fake_redis
    return client
