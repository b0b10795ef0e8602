""" Athlete capacity of a side, as defined by its period type schedule.

A side's day is divided into periods (High Hybrid, Low Hybrid, Performance,
General User and Closed). Each period comes from a schedule rule with a
day of week, a ``[start, end)`` time window, a recurrence and an optional
capacity. Rules without a capacity use the default capacity of their
period type.

The validator samples every touched time slot of a candidate occurrence
and sums up the athletes of all instances covering that moment.

"""
from __future__ import annotations

from datetime import timedelta

from rackbook.modules.utils import localize
from rackbook.modules.utils import overlaps
from rackbook.modules.utils import pluralize


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Iterator
    from collections.abc import Mapping
    from collections.abc import Sequence
    from datetime import date, datetime, time
    from sedate.types import TzInfoOrName
    from typing import Protocol

    from rackbook.modules.recurrence import Occurrence

    class ScheduleRule(Protocol):
        @property
        def period_type(self) -> str: ...
        @property
        def day_of_week(self) -> int: ...
        @property
        def start_time(self) -> time: ...
        @property
        def end_time(self) -> time: ...
        @property
        def capacity(self) -> int | None: ...
        @property
        def recurrence(self) -> str: ...
        @property
        def start_date(self) -> date: ...
        @property
        def end_date(self) -> date | None: ...
        @property
        def excluded_dates(self) -> Sequence[str] | None: ...


CLOSED = 'Closed'

PERIOD_TYPES = (
    'High Hybrid',
    'Low Hybrid',
    'Performance',
    'General User',
    CLOSED,
)

RECURRENCES = ('single', 'weekday', 'weekend', 'weekly', 'all_future')


def day_of_week(day: date) -> int:
    """ Returns the day of week with 0 being Sunday and 6 Saturday. """
    return day.isoweekday() % 7


def applies(rule: ScheduleRule, day: date, moment: time) -> bool:
    """ True if the rule covers the given local day and time of day. The
    time window of a rule is inclusive at the start and exclusive at the end.

    """
    if not rule.start_time <= moment < rule.end_time:
        return False

    if day.isoformat() in (rule.excluded_dates or ()):
        return False

    if rule.end_date is not None and rule.end_date < day:
        return False

    weekday = day_of_week(day)
    if rule.day_of_week != weekday:
        return False

    if rule.recurrence == 'single':
        return rule.start_date == day

    if rule.start_date > day:
        return False

    if rule.recurrence == 'weekday':
        return 1 <= weekday <= 5

    if rule.recurrence == 'weekend':
        return weekday in (0, 6)

    return rule.recurrence in ('weekly', 'all_future')


class Limit(NamedTuple):
    capacity: int
    period_type: str

    @property
    def closed(self) -> bool:
        return self.period_type == CLOSED


class PeriodSchedule:
    """ Resolves local moments to exactly one period type and limit. """

    def __init__(
        self,
        rules: Iterable[ScheduleRule],
        defaults: Mapping[str, int] | None = None
    ):
        self.rules = list(rules)
        self.defaults = defaults or {}

    def precedence(self, rule: ScheduleRule) -> tuple[bool, bool, int]:
        # date specific overrides first, closed periods last, then the
        # most recently starting window
        minutes = rule.start_time.hour * 60 + rule.start_time.minute
        return (
            rule.recurrence != 'single',
            rule.period_type == CLOSED,
            -minutes
        )

    def limit_at(self, local: datetime) -> Limit | None:
        """ Returns the limit at the given local (wall clock) moment or
        None if no rule applies, in which case there's no limit.

        """
        applicable = [
            rule for rule in self.rules
            if applies(rule, local.date(), local.time())
        ]

        if not applicable:
            return None

        rule = min(applicable, key=self.precedence)

        if rule.period_type == CLOSED:
            return Limit(0, CLOSED)

        if rule.capacity is not None:
            return Limit(rule.capacity, rule.period_type)

        return Limit(self.defaults.get(rule.period_type, 0), rule.period_type)


class Load(NamedTuple):
    """ Athletes present between start and end. """

    start: datetime
    end: datetime
    capacity: int


class CapacityViolation(NamedTuple):
    time: datetime
    used: int
    limit: int
    period_type: str
    #: zero based week of the candidate, if known
    week: int | None = None

    @property
    def overage(self) -> int:
        return self.used - self.limit


class CapacityResult(NamedTuple):
    is_valid: bool
    has_warnings: bool
    violations: list[CapacityViolation]
    max_used: int
    max_limit: int | None

    @property
    def overage(self) -> int:
        if self.max_limit is None:
            return 0
        return self.max_used - self.max_limit

    def peak_by_week(self) -> dict[int | None, CapacityViolation]:
        peaks: dict[int | None, CapacityViolation] = {}
        for violation in self.violations:
            peak = peaks.get(violation.week)
            if peak is None or violation.used > peak.used:
                peaks[violation.week] = violation
        return peaks

    def message(self, timezone: TzInfoOrName) -> str:
        lines = [
            'Capacity exceeded:',
            '',
            f'This booking would exceed the facility capacity by '
            f'{pluralize(self.overage, "athlete")} at peak times.',
            '',
        ]

        for week, peak in self.peak_by_week().items():
            at = f'{localize(peak.time, timezone):%H:%M}'
            prefix = f'Week {week + 1}' if week is not None else 'Session'
            lines.append(f'{prefix}: Peak violation at {at}')
            lines.append(
                f'  Used: {peak.used} / Limit: {peak.limit} athletes '
                f'({peak.period_type})'
            )

        lines.append('')
        lines.append(
            'Please reduce the number of athletes or adjust the booking time.')

        return '\n'.join(lines)


def time_points(
    start: datetime,
    end: datetime,
    interval: timedelta
) -> Iterator[datetime]:
    """ Yields the moments sampled between start and end: every interval
    from the start, plus the moment right before the (exclusive) end.

    """
    current = start
    last = None

    while current < end:
        yield current
        last = current
        current += interval

    if last is not None and end - timedelta(microseconds=1) > last:
        yield end - timedelta(microseconds=1)


def used_at(moment: datetime, loads: Iterable[Load]) -> int:
    return sum(
        load.capacity for load in loads
        if load.start <= moment < load.end
    )


def validate(
    occurrences: Iterable[Occurrence],
    existing: Iterable[Load],
    schedule: PeriodSchedule,
    timezone: TzInfoOrName,
    interval: timedelta = timedelta(minutes=15)
) -> CapacityResult:
    """ Validates the capacity of all occurrences against the schedule.

    Occurrences are checked in order. Each accepted occurrence counts
    towards the usage of the following ones.

    """
    existing = list(existing)
    accepted: list[Load] = []

    violations = []
    max_used = 0
    max_limits: list[int] = []

    for occurrence in occurrences:
        candidate = Load(occurrence.start, occurrence.end, occurrence.capacity)
        others = [
            load for load in (*existing, *accepted)
            if overlaps(load.start, load.end, candidate.start, candidate.end)
        ]

        week_used = 0
        week_limit = None
        week_limits = []
        week_violations = []

        for point in time_points(candidate.start, candidate.end, interval):
            used = used_at(point, others) + candidate.capacity
            limit = schedule.limit_at(localize(point, timezone))

            if limit is None:
                week_used = max(week_used, used)
                continue

            week_limits.append(limit.capacity)

            if limit.closed or used > limit.capacity:
                week_violations.append(CapacityViolation(
                    time=point,
                    used=used,
                    limit=limit.capacity,
                    period_type=limit.period_type,
                    week=occurrence.week
                ))

            if used > week_used:
                week_used = used
                week_limit = limit.capacity

        if week_limit is None and week_limits:
            week_limit = min(week_limits)

        if week_limit is not None:
            max_limits.append(week_limit)

        max_used = max(max_used, week_used)

        if week_violations:
            violations.extend(week_violations)
        else:
            accepted.append(candidate)

    return CapacityResult(
        is_valid=not violations,
        has_warnings=bool(violations),
        violations=violations,
        max_used=max_used,
        max_limit=min(max_limits) if max_limits else None
    )
