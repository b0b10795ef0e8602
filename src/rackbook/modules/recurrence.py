""" Expands a booking template into its weekly occurrences.

Occurrences are computed on the wall clock of the facility, so a session
at 18:00 stays at 18:00 when a daylight saving switch happens between two
weeks. The returned dates are timezone aware and in UTC.

"""
from __future__ import annotations

import sedate

from datetime import timedelta

from rackbook.modules import errors


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Mapping
    from datetime import datetime
    from sedate.types import TzInfoOrName


class Occurrence(NamedTuple):
    """ One concrete, dated session of a booking template. """

    #: zero based week index
    week: int
    start: datetime
    end: datetime
    racks: tuple[int, ...]
    capacity: int
    areas: tuple[str, ...] = ()


def normalize_racks(racks: Iterable[int] | None) -> tuple[int, ...]:
    """ Removes duplicate racks, keeping the order they were given in. """
    return tuple(dict.fromkeys(int(rack) for rack in racks or ()))


def wall_clock(date: datetime, timezone: TzInfoOrName) -> datetime:
    """ Returns the naive local time of the given date. """
    return sedate.to_timezone(
        sedate.standardize_date(date, timezone), timezone
    ).replace(tzinfo=None)


def shift(
    date: datetime,
    delta: timedelta,
    timezone: TzInfoOrName
) -> datetime:
    """ Moves the date by the given delta on the local wall clock and returns
    the result in UTC.

    """
    local = wall_clock(date, timezone) + delta
    return sedate.standardize_date(local, timezone)


def validate_template(start: datetime, end: datetime, weeks: int) -> None:
    if end <= start:
        raise errors.InvalidBookingTime('End time must be after start time.')

    if weeks < 1:
        raise errors.InvalidWeekCount(
            'A booking must span at least one week.')


def materialize(
    start: datetime,
    end: datetime,
    weeks: int,
    racks_by_week: Mapping[int, Iterable[int]],
    timezone: TzInfoOrName,
    capacity_by_week: Mapping[int, int] | None = None,
    default_capacity: int = 1,
    areas: Iterable[str] = (),
    first_week: int = 0,
    interval: timedelta = timedelta(weeks=1)
) -> list[Occurrence]:
    """ Returns exactly ``weeks`` occurrences of the given template.

    :start:
    :end:
        The first session. Naive dates are assumed to be in the given
        timezone.

    :racks_by_week:
        Maps the week index to the racks used that week. Every week needs
        at least one rack, otherwise :class:`~.errors.MissingRacksError`
        is raised, naming all weeks without racks.

    :capacity_by_week:
        Per week athlete counts, ``default_capacity`` is used for weeks
        not found in the map.

    :first_week:
        The index given to the first generated week. Used when appending
        weeks to an existing series.

    :interval:
        The time between two sessions, one week unless a series with a
        different rhythm is extended.

    """

    start = sedate.standardize_date(start, timezone)
    end = sedate.standardize_date(end, timezone)

    validate_template(start, end, weeks)

    capacity_by_week = capacity_by_week or {}
    areas = tuple(areas)

    racks = {
        week: normalize_racks(racks_by_week.get(week))
        for week in range(first_week, first_week + weeks)
    }

    missing = [week for week, selected in racks.items() if not selected]
    if missing:
        raise errors.MissingRacksError(missing)

    occurrences = []
    for offset in range(weeks):
        week = first_week + offset
        capacity = capacity_by_week.get(week)
        if capacity is None:
            capacity = default_capacity

        if capacity < 1:
            raise errors.InvalidCapacity(
                f'Week {week + 1} needs at least one athlete.')

        occurrences.append(Occurrence(
            week=week,
            start=shift(start, interval * offset, timezone),
            end=shift(end, interval * offset, timezone),
            racks=racks[week],
            capacity=capacity,
            areas=areas
        ))

    return occurrences
