from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from simple_lms.db.session import get_database
from simple_lms.dependencies.services import get_clock, get_redis_client
from simple_lms.main import app
from simple_lms.model import ScheduleMode

from conftest import NOW, auth_header

USER = 1
ADMIN = 99


def _override(session, clock, redis_client) -> None:
    async def _get_database():
        yield session

    async def _get_redis_client():
        return redis_client

    app.dependency_overrides[get_database] = _get_database
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_redis_client] = _get_redis_client


@pytest.fixture
async def client(session, clock, redis_client):
    _override(session, clock, redis_client)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def broken_client(clock, redis_client):
    """Client whose database has no tables, so every query fails"""
    engine = create_async_engine("sqlite+aiosqlite://")
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        _override(session, clock, redis_client)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    app.dependency_overrides.clear()
    await engine.dispose()


def admin_header():
    return auth_header(ADMIN, ["ADMIN"])


# =============================
#   Service endpoints
# =============================
async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] is True


async def test_missing_token_is_unauthorized(client) -> None:
    response = await client.get("/api/v1/courses/1/progress")

    assert response.status_code == 401
    body = response.json()
    assert body["status"] == "ERROR"
    assert body["code"] == 401


async def test_store_failure_maps_to_service_unavailable(broken_client) -> None:
    response = await broken_client.get("/api/v1/courses/1/progress", headers=auth_header(USER))

    assert response.status_code == 503
    assert response.json()["status"] == "ERROR"


# =============================
#   Navigation
# =============================
async def test_module_outline_shows_drip_locks(client, make_course, grant) -> None:
    seeded = await make_course((2, 1), schedule_mode=ScheduleMode.DRIP, drip_interval_days=7)
    await grant(USER, seeded.course.id, started_at=NOW)

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/modules", headers=auth_header(USER)
    )

    assert response.status_code == 200
    modules = response.json()["data"]
    assert [module["id"] for module in modules] == [module.id for module in seeded.modules]
    assert [module["lesson_count"] for module in modules] == [2, 1]
    assert [module["locked"] for module in modules] == [False, True]
    assert modules[1]["unlock_at"] == (NOW + timedelta(days=7)).isoformat()


async def test_unknown_course_outline_is_not_found(client) -> None:
    response = await client.get("/api/v1/courses/404/modules", headers=auth_header(USER))

    assert response.status_code == 404


async def test_locked_module_lessons_are_forbidden(client, make_course, grant) -> None:
    seeded = await make_course((2, 1), schedule_mode=ScheduleMode.DRIP, drip_interval_days=7)
    await grant(USER, seeded.course.id, started_at=NOW)
    locked_module = seeded.modules[1]

    response = await client.get(
        f"/api/v1/modules/{locked_module.id}/lessons", headers=auth_header(USER)
    )
    assert response.status_code == 403

    response = await client.get(
        f"/api/v1/modules/{seeded.modules[0].id}/lessons", headers=auth_header(2)
    )
    assert response.status_code == 403

    response = await client.get(f"/api/v1/modules/{locked_module.id}/lessons", headers=admin_header())
    assert response.status_code == 200
    assert [lesson["id"] for lesson in response.json()["data"]] == [seeded.lessons[2].id]


async def test_module_unlock_info(client, make_course) -> None:
    seeded = await make_course(
        (1,), schedule_mode=ScheduleMode.FIXED_DATE, fixed_date=NOW + timedelta(days=1)
    )

    response = await client.get(
        f"/api/v1/modules/{seeded.modules[0].id}/unlock", headers=auth_header(USER)
    )

    assert response.status_code == 200
    assert response.json()["data"] == {
        "locked": True,
        "unlock_at": (NOW + timedelta(days=1)).isoformat(),
    }


async def test_adjacent_lessons(client, make_course) -> None:
    seeded = await make_course((1, 1))
    first, last = seeded.lessons

    response = await client.get(
        f"/api/v1/lessons/{first.id}/adjacent", params={"direction": "prev"}, headers=auth_header(USER)
    )
    assert response.json()["data"]["lesson"] is None

    response = await client.get(
        f"/api/v1/lessons/{first.id}/adjacent", params={"direction": "next"}, headers=auth_header(USER)
    )
    assert response.json()["data"]["lesson"]["id"] == last.id


# =============================
#   Progress
# =============================
async def test_complete_and_uncomplete_lesson(client, make_course, grant) -> None:
    seeded = await make_course((3, 2))
    await grant(USER, seeded.course.id)
    lesson_id = seeded.lessons[0].id

    response = await client.post(f"/api/v1/lessons/{lesson_id}/complete", headers=auth_header(USER))
    assert response.status_code == 200
    assert response.json()["data"] == {
        "lesson_id": lesson_id,
        "completed": True,
        "completed_lessons": 1,
        "course_progress": 20,
    }

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/progress", headers=auth_header(USER)
    )
    overview = response.json()["data"]
    assert overview["percentage"] == 20
    assert overview["continue_lesson_id"] == seeded.lessons[1].id

    response = await client.delete(f"/api/v1/lessons/{lesson_id}/complete", headers=auth_header(USER))
    assert response.status_code == 200
    assert response.json()["data"]["course_progress"] == 0


async def test_complete_requires_access(client, make_course) -> None:
    seeded = await make_course((1,))

    response = await client.post(
        f"/api/v1/lessons/{seeded.lessons[0].id}/complete", headers=auth_header(USER)
    )

    assert response.status_code == 403


async def test_complete_unknown_lesson(client) -> None:
    response = await client.post("/api/v1/lessons/404/complete", headers=auth_header(USER))

    assert response.status_code == 404


async def test_complete_is_rate_limited(client, make_course, grant, fake_redis) -> None:
    seeded = await make_course((1,))
    await grant(USER, seeded.course.id)
    fake_redis.counters[f"lms:rate:complete:{USER}"] = 20

    response = await client.post(
        f"/api/v1/lessons/{seeded.lessons[0].id}/complete", headers=auth_header(USER)
    )

    assert response.status_code == 429


async def test_view_and_time_tracking(client, make_course, grant) -> None:
    seeded = await make_course((2,))
    await grant(USER, seeded.course.id)
    lesson_id = seeded.lessons[1].id

    response = await client.post(f"/api/v1/lessons/{lesson_id}/view", headers=auth_header(USER))
    assert response.status_code == 200

    response = await client.post(
        f"/api/v1/lessons/{lesson_id}/time", json={"seconds": 30}, headers=auth_header(USER)
    )
    assert response.json()["data"]["recorded"] is True

    response = await client.post(
        f"/api/v1/lessons/{lesson_id}/time", json={"seconds": -5}, headers=auth_header(USER)
    )
    assert response.json()["data"]["recorded"] is False

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/progress", headers=auth_header(USER)
    )
    assert response.json()["data"]["continue_lesson_id"] == lesson_id

    response = await client.get("/api/v1/progress/me", headers=auth_header(USER))
    report = response.json()["data"]
    assert report["courses"][0]["total_time_spent"] == 30
    assert report["summary"]["total_courses"] == 1


async def test_invalid_body_is_bad_request(client, make_course, grant) -> None:
    seeded = await make_course((1,))
    await grant(USER, seeded.course.id)

    response = await client.post(
        f"/api/v1/lessons/{seeded.lessons[0].id}/time", json={}, headers=auth_header(USER)
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith("Validation Error")


async def test_time_beacon_over_a_day_is_bad_request(client, make_course, grant) -> None:
    seeded = await make_course((1,))
    await grant(USER, seeded.course.id)

    response = await client.post(
        f"/api/v1/lessons/{seeded.lessons[0].id}/time",
        json={"seconds": 86401},
        headers=auth_header(USER),
    )

    assert response.status_code == 400


async def test_view_with_utc_offset_orders_by_instant(client, make_course, grant) -> None:
    seeded = await make_course((2,))
    await grant(USER, seeded.course.id)
    first, second = seeded.lesson_ids

    await client.post(
        f"/api/v1/lessons/{first}/view",
        json={"viewed_at": "2025-03-10T10:00:00Z"},
        headers=auth_header(USER),
    )
    response = await client.post(
        f"/api/v1/lessons/{second}/view",
        json={"viewed_at": "2025-03-10T11:00:00+05:00"},
        headers=auth_header(USER),
    )
    assert response.status_code == 200

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/progress", headers=auth_header(USER)
    )
    assert response.json()["data"]["continue_lesson_id"] == first


# =============================
#   Authoring and grants
# =============================
async def test_module_draft_cascade_endpoint(client, make_course) -> None:
    seeded = await make_course((2,))
    module_id = seeded.modules[0].id

    response = await client.patch(
        f"/api/v1/modules/{module_id}/status", json={"status": "DRAFT"}, headers=auth_header(USER)
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/modules/{module_id}/status", json={"status": "DRAFT"}, headers=admin_header()
    )
    assert response.status_code == 200
    assert sorted(response.json()["data"]["cascaded_lesson_ids"]) == sorted(seeded.lesson_ids)

    response = await client.patch(
        f"/api/v1/lessons/{seeded.lessons[0].id}/status",
        json={"status": "PUBLISHED"},
        headers=admin_header(),
    )
    assert response.status_code == 400


async def test_reorder_endpoints(client, make_course) -> None:
    seeded = await make_course((1, 1))
    module_ids = [module.id for module in reversed(seeded.modules)]

    response = await client.put(
        f"/api/v1/courses/{seeded.course.id}/modules/order",
        json={"ids": module_ids},
        headers=admin_header(),
    )
    assert response.json()["data"] == {"updated": 2}

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/modules", headers=admin_header()
    )
    assert [module["id"] for module in response.json()["data"]] == module_ids

    target = seeded.modules[0].id
    response = await client.put(
        f"/api/v1/modules/{target}/lessons/order",
        json={"ids": [seeded.lessons[1].id, seeded.lessons[0].id]},
        headers=admin_header(),
    )
    assert response.json()["data"] == {"updated": 2}


async def test_grant_and_revoke_endpoints(client, make_course) -> None:
    seeded = await make_course((1,), access_duration_value=10)
    payload = {"user_id": USER, "course_id": seeded.course.id}

    response = await client.post("/api/v1/access/grant", json=payload, headers=auth_header(USER))
    assert response.status_code == 403

    response = await client.post("/api/v1/access/grant", json=payload, headers=admin_header())
    assert response.status_code == 200
    assert response.json()["data"]["expires_at"] == (NOW + timedelta(days=10)).isoformat()

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/access", headers=auth_header(USER)
    )
    status = response.json()["data"]
    assert status["has_access"] is True
    assert status["days_remaining"] == 10
    assert status["expiring_soon"] is False

    response = await client.get("/api/v1/access/courses", headers=auth_header(USER))
    assert [course["id"] for course in response.json()["data"]] == [seeded.course.id]

    response = await client.post("/api/v1/access/revoke", json=payload, headers=admin_header())
    assert response.status_code == 200
    response = await client.post("/api/v1/access/revoke", json=payload, headers=admin_header())
    assert response.status_code == 404

    response = await client.post("/api/v1/access/cleanup", headers=admin_header())
    assert response.json()["data"] == {"revoked": 0}


async def test_course_stats_endpoint(client, make_course, grant) -> None:
    seeded = await make_course((2,))
    await grant(USER, seeded.course.id)
    await client.post(f"/api/v1/lessons/{seeded.lessons[0].id}/complete", headers=auth_header(USER))

    response = await client.get(f"/api/v1/courses/{seeded.course.id}/stats", headers=admin_header())

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["lesson_count"] == 2
    assert stats["users_with_progress"] == 1
    assert stats["avg_completion_rate"] == 100.0


async def test_export_and_erase_user_progress(client, make_course, grant) -> None:
    seeded = await make_course((2,))
    await grant(USER, seeded.course.id)
    for lesson_id in seeded.lesson_ids:
        await client.post(f"/api/v1/lessons/{lesson_id}/complete", headers=auth_header(USER))

    response = await client.get(f"/api/v1/users/{USER}/progress", headers=auth_header(USER))
    assert response.status_code == 403

    response = await client.get(f"/api/v1/users/{USER}/progress", headers=admin_header())
    assert response.status_code == 200
    export = response.json()["data"]
    assert export["done"] is True
    assert [item["lesson_id"] for item in export["items"]] == seeded.lesson_ids
    assert all(item["completed"] for item in export["items"])

    response = await client.delete(f"/api/v1/users/{USER}/progress", headers=admin_header())
    assert response.json()["data"] == {"user_id": USER, "removed": 2}

    response = await client.get(
        f"/api/v1/courses/{seeded.course.id}/progress", headers=auth_header(USER)
    )
    assert response.json()["data"]["completed_lessons"] == 0
