from __future__ import annotations

import pytest
import sedate

from datetime import datetime, time, timedelta
from rackbook.modules import errors
from rackbook.modules.window import WindowSettings
from rackbook.modules.window import deadline_message
from rackbook.modules.window import evaluate
from rackbook.modules.window import notification_deadline
from rackbook.modules.window import parse_time
from rackbook.modules.window import week_start


def utc(*args: int) -> datetime:
    return sedate.replace_timezone(datetime(*args), 'UTC')


def test_parse_time() -> None:
    assert parse_time('23:59:00') == time(23, 59)
    assert parse_time('07:30') == time(7, 30)
    assert parse_time(time(8)) == time(8)


def test_week_start() -> None:
    assert week_start(datetime(2026, 1, 12, 10)) == datetime(2026, 1, 12)
    assert week_start(datetime(2026, 1, 18, 23)) == datetime(2026, 1, 12)
    assert week_start(datetime(2026, 1, 11, 8)) == datetime(2026, 1, 5)


def test_deadline_is_in_the_week_before() -> None:
    settings = WindowSettings()

    monday = notification_deadline(
        utc(2026, 1, 12, 10), settings, 'Europe/London')
    sunday = notification_deadline(
        utc(2026, 1, 18, 10), settings, 'Europe/London')

    assert monday == utc(2026, 1, 8, 23, 59)
    assert sunday == utc(2026, 1, 8, 23, 59)


def test_deadline_uses_the_local_time() -> None:
    deadline = notification_deadline(
        utc(2026, 7, 6, 9), WindowSettings(), 'Europe/London')

    # 23:59 summer time
    assert deadline == utc(2026, 7, 2, 22, 59)


def test_deadline_on_a_sunday() -> None:
    settings = WindowSettings(
        notification_window_day_of_week=0,
        notification_window_time=time(18)
    )

    deadline = notification_deadline(
        utc(2026, 1, 14, 10), settings, 'Europe/London')

    assert deadline == utc(2026, 1, 11, 18)


def test_disabled_window() -> None:
    settings = WindowSettings(notification_window_enabled=False)

    assert notification_deadline(
        utc(2026, 1, 12, 10), settings, 'Europe/London') is None

    decision = evaluate(
        utc(2026, 1, 12, 10), utc(2026, 1, 11), settings, 'Europe/London')

    assert decision.cutoff_at is None
    assert not decision.late


def test_late_after_the_deadline() -> None:
    session = utc(2026, 1, 12, 10)
    settings = WindowSettings()

    before = evaluate(
        session, utc(2026, 1, 8, 23, 58), settings, 'Europe/London')
    exactly = evaluate(
        session, utc(2026, 1, 8, 23, 59), settings, 'Europe/London')
    after = evaluate(
        session, utc(2026, 1, 9, 0, 0), settings, 'Europe/London')

    assert not before.late
    assert not exactly.late
    assert after.late
    assert after.cutoff_at == utc(2026, 1, 8, 23, 59)
    assert after.state == 'late'
    assert before.state == 'normal'


def test_hard_restriction_boundary() -> None:
    session = utc(2026, 1, 12, 10)
    settings = WindowSettings()

    exactly = evaluate(
        session, session - timedelta(hours=12), settings, 'Europe/London')
    within = evaluate(
        session, session - timedelta(hours=11.999), settings,
        'Europe/London'
    )

    assert not exactly.hard_blocked
    assert exactly.hours_until_session == 12.0

    assert within.hard_blocked
    assert within.state == 'blocked'
    assert within.restriction_hours == 12


def test_hard_restriction_disabled() -> None:
    session = utc(2026, 1, 12, 10)
    settings = WindowSettings(hard_restriction_enabled=False)

    decision = evaluate(
        session, session - timedelta(hours=1), settings, 'Europe/London')

    assert not decision.hard_blocked
    assert decision.late


def test_authorize() -> None:
    session = utc(2026, 1, 12, 10)
    settings = WindowSettings()

    normal = evaluate(session, utc(2026, 1, 5), settings, 'Europe/London')
    late = evaluate(session, utc(2026, 1, 10), settings, 'Europe/London')
    blocked = evaluate(
        session, utc(2026, 1, 12, 6), settings, 'Europe/London')

    assert normal.authorize(is_admin=False) is False
    assert normal.authorize(is_admin=True) is False
    assert late.authorize(is_admin=False) is False
    assert late.authorize(is_admin=True) is True

    with pytest.raises(errors.HardRestrictionError) as e:
        blocked.authorize(is_admin=False, reason='Please')

    assert not e.value.override_possible
    assert 'within 12 hours' in str(e.value)

    with pytest.raises(errors.HardRestrictionError) as e:
        blocked.authorize(is_admin=True, reason='  ')

    assert e.value.override_possible
    assert 'provide a reason' in str(e.value)

    assert blocked.authorize(is_admin=True, reason='Team emergency')


def test_deadline_message() -> None:
    assert deadline_message(
        utc(2026, 1, 8, 23, 59), 'Europe/London'
    ) == 'Thursday, 8 Jan 2026 at 23:59'

    assert deadline_message(None, 'Europe/London') == (
        'Notification window is disabled')
