from __future__ import annotations

import sedate

from datetime import datetime
from rackbook.modules.conflicts import ConflictReport
from rackbook.modules.conflicts import Occupation
from rackbook.modules.conflicts import find_conflicts
from rackbook.modules.recurrence import Occurrence


def utc(*args: int) -> datetime:
    return sedate.replace_timezone(datetime(*args), 'UTC')


def occurrence(
    start: datetime,
    end: datetime,
    racks: tuple[int, ...],
    week: int = 0
) -> Occurrence:
    return Occurrence(week, start, end, racks, capacity=1)


def test_no_conflicts_without_overlap() -> None:
    candidate = occurrence(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (1, 2))
    existing = [
        Occupation(1, 'Early', utc(2026, 1, 5, 8), utc(2026, 1, 5, 9), (1, )),
        Occupation(2, 'Late', utc(2026, 1, 5, 12), utc(2026, 1, 5, 13), (2, )),
    ]

    assert find_conflicts(candidate, existing) == []


def test_touching_sessions_do_not_conflict() -> None:
    candidate = occurrence(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (1, ))
    existing = [
        Occupation(
            1, 'Before', utc(2026, 1, 5, 9), utc(2026, 1, 5, 10), (1, )),
        Occupation(
            2, 'After', utc(2026, 1, 5, 11), utc(2026, 1, 5, 12), (1, )),
    ]

    assert find_conflicts(candidate, existing) == []


def test_conflicts_on_shared_racks_only() -> None:
    candidate = occurrence(
        utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (1, 2, 3), week=2)
    existing = [
        Occupation(
            7, 'Squat Club', utc(2026, 1, 5, 10, 30), utc(2026, 1, 5, 12),
            (2, 3, 4)
        ),
    ]

    records = find_conflicts(candidate, existing)

    assert [r.rack for r in records] == [2, 3]
    assert {r.booking_id for r in records} == {7}
    assert {r.week for r in records} == {2}
    assert records[0].title == 'Squat Club'


def test_every_occupying_booking_is_reported() -> None:
    candidate = occurrence(utc(2026, 1, 5, 10), utc(2026, 1, 5, 12), (5, ))
    existing = [
        Occupation(1, 'A', utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (5, )),
        Occupation(2, 'B', utc(2026, 1, 5, 11), utc(2026, 1, 5, 12), (5, )),
    ]

    records = find_conflicts(candidate, existing)
    assert [r.booking_id for r in records] == [1, 2]


def test_own_booking_is_ignored() -> None:
    candidate = occurrence(utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (1, ))
    existing = [
        Occupation(3, 'Mine', utc(2026, 1, 5, 10), utc(2026, 1, 5, 11), (1, )),
    ]

    assert find_conflicts(candidate, existing, exclude_booking=3) == []
    assert len(find_conflicts(candidate, existing)) == 1


def test_conflict_report_message() -> None:
    report = ConflictReport('Europe/London')
    assert not report

    squat = Occupation(
        7, 'Squat Club', utc(2026, 1, 12, 10), utc(2026, 1, 12, 11), (1, 2))
    bench = Occupation(
        8, 'Bench Press', utc(2026, 1, 12, 10), utc(2026, 1, 12, 11), (3, ))

    report.extend(find_conflicts(
        occurrence(
            utc(2026, 1, 12, 10), utc(2026, 1, 12, 11), (1, 2, 3), week=1),
        [squat, bench]
    ))

    assert report
    assert len(report) == 3
    assert report.weeks == [1]
    assert report.racks == [1, 2, 3]

    assert report.message().splitlines() == [
        'Booking conflicts detected:',
        '',
        'Week 2:',
        '  • "Squat Club" is using racks 1, 2 '
        '(Mon 12 Jan, 10:00 - Mon 12 Jan, 11:00)',
        '  • "Bench Press" is using racks 3 '
        '(Mon 12 Jan, 10:00 - Mon 12 Jan, 11:00)',
        '',
        'Please select different racks or adjust the booking time.',
    ]


def test_conflict_report_lists_every_time_range() -> None:
    # two sessions with the same title, back to back
    early = Occupation(
        7, 'Squat Club', utc(2026, 2, 2, 10), utc(2026, 2, 2, 10, 30), (1, ))
    late = Occupation(
        9, 'Squat Club', utc(2026, 2, 2, 10, 30), utc(2026, 2, 2, 11), (2, ))

    report = ConflictReport('Europe/London', find_conflicts(
        occurrence(utc(2026, 2, 2, 10), utc(2026, 2, 2, 11), (1, 2)),
        [late, early]
    ))

    assert report.message().splitlines()[2:5] == [
        'Week 1:',
        '  • "Squat Club" is using racks 1 '
        '(Mon 2 Feb, 10:00 - Mon 2 Feb, 10:30)',
        '  • "Squat Club" is using racks 2 '
        '(Mon 2 Feb, 10:30 - Mon 2 Feb, 11:00)',
    ]
