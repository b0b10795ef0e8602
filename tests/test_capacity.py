from __future__ import annotations

import sedate

from datetime import date, datetime, time, timedelta
from rackbook.modules.capacity import Load
from rackbook.modules.capacity import PeriodSchedule
from rackbook.modules.capacity import applies
from rackbook.modules.capacity import day_of_week
from rackbook.modules.capacity import time_points
from rackbook.modules.capacity import validate
from rackbook.modules.recurrence import Occurrence


from typing import NamedTuple


class Rule(NamedTuple):
    period_type: str
    day_of_week: int = 1
    start_time: time = time(6)
    end_time: time = time(22)
    capacity: int | None = None
    recurrence: str = 'weekly'
    start_date: date = date(2026, 1, 1)
    end_date: date | None = None
    excluded_dates: list[str] | None = None


def utc(*args: int) -> datetime:
    return sedate.replace_timezone(datetime(*args), 'UTC')


def monday(week: int = 0, capacity: int = 4) -> Occurrence:
    start = utc(2026, 1, 5, 10) + timedelta(weeks=week)
    return Occurrence(week, start, start + timedelta(hours=1), (1, ), capacity)


def test_day_of_week() -> None:
    assert day_of_week(date(2026, 1, 4)) == 0  # sunday
    assert day_of_week(date(2026, 1, 5)) == 1
    assert day_of_week(date(2026, 1, 10)) == 6


def test_rule_applies() -> None:
    rule = Rule('Performance')
    monday = date(2026, 1, 5)

    assert applies(rule, monday, time(6))
    assert applies(rule, monday, time(21, 59))
    assert not applies(rule, monday, time(22))
    assert not applies(rule, monday, time(5, 59))
    assert not applies(rule, date(2026, 1, 6), time(10))

    assert not applies(
        rule._replace(excluded_dates=['2026-01-05']), monday, time(10))
    assert not applies(
        rule._replace(end_date=date(2026, 1, 4)), monday, time(10))
    assert not applies(
        rule._replace(start_date=date(2026, 1, 6)), monday, time(10))


def test_single_rule_applies_on_its_date_only() -> None:
    rule = Rule('Closed', recurrence='single', start_date=date(2026, 1, 12))

    assert applies(rule, date(2026, 1, 12), time(10))
    assert not applies(rule, date(2026, 1, 5), time(10))
    assert not applies(rule, date(2026, 1, 19), time(10))


def test_weekend_and_weekday_rules() -> None:
    saturday = date(2026, 1, 10)

    assert applies(
        Rule('General User', day_of_week=6, recurrence='weekend'),
        saturday, time(10)
    )
    assert not applies(
        Rule('General User', day_of_week=6, recurrence='weekday'),
        saturday, time(10)
    )


def test_schedule_precedence() -> None:
    weekly = Rule('Performance', capacity=10)
    closed = Rule(
        'Closed', recurrence='single', start_date=date(2026, 1, 12))
    evening = Rule('High Hybrid', start_time=time(18), capacity=20)

    schedule = PeriodSchedule([weekly, closed, evening])

    limit = schedule.limit_at(datetime(2026, 1, 5, 10))
    assert limit is not None
    assert limit.capacity == 10
    assert limit.period_type == 'Performance'

    # the later starting window wins
    limit = schedule.limit_at(datetime(2026, 1, 5, 19))
    assert limit is not None
    assert limit.period_type == 'High Hybrid'

    # date specific overrides win
    limit = schedule.limit_at(datetime(2026, 1, 12, 10))
    assert limit is not None
    assert limit.closed
    assert limit.capacity == 0

    assert schedule.limit_at(datetime(2026, 1, 5, 23)) is None


def test_schedule_defaults() -> None:
    schedule = PeriodSchedule(
        [Rule('General User')],
        defaults={'General User': 4}
    )

    limit = schedule.limit_at(datetime(2026, 1, 5, 10))
    assert limit is not None
    assert limit.capacity == 4


def test_time_points() -> None:
    points = list(time_points(
        utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), timedelta(minutes=15)))

    assert points == [
        utc(2026, 1, 5, 10),
        utc(2026, 1, 5, 10, 15),
        utc(2026, 1, 5, 10, 30),
        utc(2026, 1, 5, 10, 45),
        utc(2026, 1, 5, 11) - timedelta(microseconds=1),
    ]


def test_validate_without_schedule() -> None:
    result = validate(
        [monday(capacity=100)], [], PeriodSchedule([]), 'Europe/London')

    assert result.is_valid
    assert result.max_used == 100
    assert result.max_limit is None
    assert result.overage == 0


def test_validate_up_to_the_limit() -> None:
    schedule = PeriodSchedule([Rule('Performance', capacity=10)])
    existing = [Load(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), 6)]

    result = validate([monday(capacity=4)], existing, schedule, 'UTC')

    assert result.is_valid
    assert not result.has_warnings
    assert result.max_used == 10
    assert result.max_limit == 10


def test_validate_overage() -> None:
    schedule = PeriodSchedule([Rule('Performance', capacity=10)])
    existing = [Load(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), 6)]

    result = validate([monday(capacity=7)], existing, schedule, 'UTC')

    assert not result.is_valid
    assert result.has_warnings
    assert result.max_used == 13
    assert result.max_limit == 10
    assert result.overage == 3
    assert all(v.overage == 3 for v in result.violations)

    peaks = result.peak_by_week()
    assert list(peaks) == [0]
    assert peaks[0].time == utc(2026, 1, 5, 10)

    message = result.message('Europe/London')
    assert message.startswith('Capacity exceeded:')
    assert 'by 3 athletes at peak times' in message
    assert 'Week 1: Peak violation at 10:00' in message
    assert 'Used: 13 / Limit: 10 athletes (Performance)' in message


def test_validate_partial_overlap() -> None:
    schedule = PeriodSchedule([Rule('Performance', capacity=10)])
    existing = [Load(utc(2026, 1, 5, 10, 30), utc(2026, 1, 5, 12), 8)]

    result = validate([monday(capacity=4)], existing, schedule, 'UTC')

    assert not result.is_valid
    assert result.violations[0].time == utc(2026, 1, 5, 10, 30)
    assert result.max_used == 12


def test_validate_closed_period() -> None:
    schedule = PeriodSchedule([Rule('Closed')])
    result = validate([monday(capacity=1)], [], schedule, 'UTC')

    assert not result.is_valid
    assert result.violations[0].period_type == 'Closed'
    assert result.violations[0].limit == 0


def test_validate_counts_accepted_occurrences() -> None:
    schedule = PeriodSchedule([Rule('Performance', capacity=10)])

    first = monday(capacity=6)
    second = first._replace(week=1, racks=(2, ))

    result = validate([first, second], [], schedule, 'UTC')

    assert not result.is_valid
    assert {v.week for v in result.violations} == {1}
    assert result.max_used == 12


def test_validate_uses_the_local_time() -> None:
    # 09:30 UTC is 10:30 in summer, within the window
    schedule = PeriodSchedule([Rule('Performance', start_time=time(10))])
    start = utc(2026, 7, 6, 9, 30)
    occurrence = Occurrence(
        0, start, start + timedelta(minutes=30), (1, ), 5)

    result = validate([occurrence], [], schedule, 'Europe/London')

    # no default for the period type, so the limit is zero
    assert not result.is_valid
    assert result.max_limit == 0
