from datetime import timedelta

from simple_lms.model import DripStrategy, Module, ModuleDripMode, PostStatus, ScheduleMode

from conftest import NOW

USER = 1


async def test_lifetime_grant_gives_access(make_course, grant, access_service) -> None:
    seeded = await make_course((1,))
    await grant(USER, seeded.course.id)

    assert await access_service.has_course_access(USER, seeded.course.id) is True
    assert await access_service.get_days_remaining(USER, seeded.course.id) is None


async def test_expired_grant_denies_access(make_course, grant, access_service, progress_store) -> None:
    seeded = await make_course((2,))
    await grant(USER, seeded.course.id, expires_at=NOW - timedelta(days=1))
    await progress_store.mark_completed(USER, seeded.lessons[0].id)

    assert await access_service.has_course_access(USER, seeded.course.id) is False
    assert await access_service.get_days_remaining(USER, seeded.course.id) == 0
    assert await access_service.can_access_lesson(USER, seeded.lessons[0].id) is False


async def test_missing_revoked_or_unknown_grant_denies_access(session, make_course, grant, access_service) -> None:
    seeded = await make_course((1,))
    revoked = await grant(2, seeded.course.id)
    revoked.is_deleted = True
    await session.commit()

    assert await access_service.has_course_access(USER, seeded.course.id) is False
    assert await access_service.has_course_access(2, seeded.course.id) is False
    assert await access_service.has_course_access(USER, 404) is False
    assert await access_service.has_course_access(0, seeded.course.id) is False


async def test_days_remaining_rounds_up(make_course, grant, access_service) -> None:
    seeded = await make_course((1,))
    await grant(USER, seeded.course.id, expires_at=NOW + timedelta(days=2, hours=1))

    assert await access_service.get_days_remaining(USER, seeded.course.id) == 3

    status = await access_service.get_access_status(USER, seeded.course.id)
    assert status.has_access is True
    assert status.expiring_soon is True
    assert status.expires_at == NOW + timedelta(days=2, hours=1)


async def test_list_user_courses_skips_expired(make_course, grant, access_service) -> None:
    live = await make_course((1,))
    expired = await make_course((1,))
    await grant(USER, live.course.id)
    await grant(USER, expired.course.id, expires_at=NOW - timedelta(seconds=1))

    courses = await access_service.list_user_courses(USER)

    assert [course.id for course in courses] == [live.course.id]


async def test_immediate_course_unlocks_every_module(make_course, access_service) -> None:
    seeded = await make_course((1, 1))
    seeded.modules[1].drip_mode = ModuleDripMode.MANUAL

    for module in seeded.modules:
        info = await access_service.get_module_unlock_info(USER, module.id)
        assert info.locked is False


async def test_unknown_or_orphaned_module_is_locked(session, access_service) -> None:
    orphan = Module(course_id=None, title="Orphan", status=PostStatus.PUBLISHED)
    session.add(orphan)
    await session.commit()

    assert await access_service.is_module_unlocked(USER, 404) is False
    assert await access_service.is_module_unlocked(USER, orphan.id) is False


async def test_fixed_date_module_unlocks_on_its_date(session, make_course, access_service, clock) -> None:
    seeded = await make_course(
        (1,), schedule_mode=ScheduleMode.DRIP, drip_strategy=DripStrategy.PER_MODULE
    )
    module = seeded.modules[0]
    module.drip_mode = ModuleDripMode.FIXED_DATE
    module.unlock_date = NOW + timedelta(days=1)
    await session.commit()

    today = await access_service.get_module_unlock_info(USER, module.id)
    assert today.locked is True
    assert today.unlock_at == NOW + timedelta(days=1)

    clock.advance(days=1)
    assert await access_service.is_module_unlocked(USER, module.id) is True


async def test_days_after_enrollment_fails_closed(session, make_course, grant, access_service, clock) -> None:
    seeded = await make_course(
        (1,), schedule_mode=ScheduleMode.DRIP, drip_strategy=DripStrategy.PER_MODULE
    )
    module = seeded.modules[0]
    module.drip_mode = ModuleDripMode.DAYS_AFTER_ENROLLMENT
    module.drip_days = 3
    await session.commit()

    # No grant at all
    assert await access_service.is_module_unlocked(USER, module.id) is False

    # Grant without a start date
    await grant(2, seeded.course.id, started_at=None)
    assert await access_service.is_module_unlocked(2, module.id) is False

    await grant(3, seeded.course.id, started_at=NOW)
    info = await access_service.get_module_unlock_info(3, module.id)
    assert info.locked is True
    assert info.unlock_at == NOW + timedelta(days=3)

    clock.advance(days=3)
    assert await access_service.is_module_unlocked(3, module.id) is True


async def test_manual_module_follows_flag(session, make_course, access_service) -> None:
    seeded = await make_course((1,), schedule_mode=ScheduleMode.FIXED_DATE, fixed_date=NOW)
    module = seeded.modules[0]
    module.drip_mode = ModuleDripMode.MANUAL
    await session.commit()

    info = await access_service.get_module_unlock_info(USER, module.id)
    assert info.locked is True
    assert info.unlock_at is None

    module.manual_unlocked = True
    await session.commit()
    assert await access_service.is_module_unlocked(USER, module.id) is True


async def test_fixed_date_course_rule(make_course, access_service, clock) -> None:
    seeded = await make_course(
        (1,), schedule_mode=ScheduleMode.FIXED_DATE, fixed_date=NOW + timedelta(hours=2)
    )
    module_id = seeded.modules[0].id

    assert await access_service.is_module_unlocked(USER, module_id) is False
    clock.advance(hours=2)
    assert await access_service.is_module_unlocked(USER, module_id) is True


async def test_module_without_date_falls_back_to_course_rule(session, make_course, access_service) -> None:
    seeded = await make_course(
        (1,), schedule_mode=ScheduleMode.FIXED_DATE, fixed_date=NOW + timedelta(days=5)
    )
    module = seeded.modules[0]
    module.drip_mode = ModuleDripMode.FIXED_DATE
    await session.commit()

    info = await access_service.get_module_unlock_info(USER, module.id)
    assert info.locked is True
    assert info.unlock_at == NOW + timedelta(days=5)


async def test_interval_drip_unlocks_by_module_position(make_course, grant, access_service, clock) -> None:
    seeded = await make_course(
        (1, 1, 1), schedule_mode=ScheduleMode.DRIP, drip_interval_days=7
    )
    await grant(USER, seeded.course.id, started_at=NOW)
    first, second, third = seeded.modules

    assert await access_service.is_module_unlocked(USER, first.id) is True
    info = await access_service.get_module_unlock_info(USER, third.id)
    assert info.locked is True
    assert info.unlock_at == NOW + timedelta(days=14)

    clock.advance(days=7)
    assert await access_service.is_module_unlocked(USER, second.id) is True
    assert await access_service.is_module_unlocked(USER, third.id) is False


async def test_interval_drip_without_grant_is_locked(make_course, access_service) -> None:
    seeded = await make_course((1,), schedule_mode=ScheduleMode.DRIP, drip_interval_days=7)

    assert await access_service.is_module_unlocked(USER, seeded.modules[0].id) is False


async def test_can_access_lesson_requires_unlocked_module(make_course, grant, access_service) -> None:
    seeded = await make_course((1, 1), schedule_mode=ScheduleMode.DRIP, drip_interval_days=1)
    await grant(USER, seeded.course.id, started_at=NOW)

    assert await access_service.can_access_lesson(USER, seeded.lessons[0].id) is True
    assert await access_service.can_access_lesson(USER, seeded.lessons[1].id) is False
    assert await access_service.can_access_lesson(USER, 404) is False
