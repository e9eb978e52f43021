from datetime import timedelta

import pytest

from simple_lms.model import AccessDurationUnit, ScheduleMode
from simple_lms.utils.exceptions import ResourceNotFoundException

from conftest import NOW

USER = 1


async def test_grant_without_duration_is_lifetime(make_course, enrollment_service, access_service) -> None:
    seeded = await make_course((1,))

    access = await enrollment_service.grant_access(USER, seeded.course.id)

    assert access.started_at == NOW
    assert access.expires_at is None
    assert await access_service.has_course_access(USER, seeded.course.id) is True


@pytest.mark.parametrize(
    "unit, value, days",
    [
        (AccessDurationUnit.DAYS, 10, 10),
        (AccessDurationUnit.WEEKS, 2, 14),
        (AccessDurationUnit.MONTHS, 1, 30),
        (AccessDurationUnit.YEARS, 1, 365),
    ],
)
async def test_grant_expiry_follows_course_duration(make_course, enrollment_service, unit, value, days) -> None:
    seeded = await make_course((1,), access_duration_value=value, access_duration_unit=unit)

    access = await enrollment_service.grant_access(USER, seeded.course.id)

    assert access.expires_at == NOW + timedelta(days=days)


async def test_fixed_date_course_counts_from_course_date(make_course, enrollment_service) -> None:
    start = NOW + timedelta(days=20)
    seeded = await make_course(
        (1,),
        schedule_mode=ScheduleMode.FIXED_DATE,
        fixed_date=start,
        access_duration_value=30,
        access_duration_unit=AccessDurationUnit.DAYS,
    )

    access = await enrollment_service.grant_access(USER, seeded.course.id)

    assert access.expires_at == start + timedelta(days=30)


async def test_grant_is_idempotent(session, make_course, enrollment_service, clock) -> None:
    seeded = await make_course((1,), access_duration_value=5)

    first = await enrollment_service.grant_access(USER, seeded.course.id)
    clock.advance(days=1)
    second = await enrollment_service.grant_access(USER, seeded.course.id)

    assert second.id == first.id
    assert second.started_at == NOW
    assert second.expires_at == NOW + timedelta(days=5)


async def test_revoke_then_grant_restores_row(make_course, enrollment_service, access_service, clock) -> None:
    seeded = await make_course((1,))
    first = await enrollment_service.grant_access(USER, seeded.course.id)

    assert await enrollment_service.revoke_access(USER, seeded.course.id) is True
    assert await access_service.has_course_access(USER, seeded.course.id) is False
    assert await enrollment_service.revoke_access(USER, seeded.course.id) is False

    clock.advance(days=2)
    restored = await enrollment_service.grant_access(USER, seeded.course.id)
    assert restored.id == first.id
    assert restored.is_deleted is False
    assert restored.started_at == NOW + timedelta(days=2)
    assert await access_service.has_course_access(USER, seeded.course.id) is True


async def test_grant_for_unknown_course(enrollment_service) -> None:
    with pytest.raises(ResourceNotFoundException):
        await enrollment_service.grant_access(USER, 404)


async def test_cleanup_revokes_only_expired(make_course, grant, enrollment_service, access_service) -> None:
    seeded = await make_course((1,))
    await grant(1, seeded.course.id, expires_at=NOW - timedelta(days=1))
    await grant(2, seeded.course.id, expires_at=NOW + timedelta(days=1))
    await grant(3, seeded.course.id)

    assert await enrollment_service.cleanup_expired_access() == 1
    assert await enrollment_service.cleanup_expired_access() == 0
    assert await access_service.has_course_access(2, seeded.course.id) is True
    assert await access_service.has_course_access(3, seeded.course.id) is True
