""" The notification window and the hard restriction.

Bookings for a week should be in before a configured deadline in the week
before (by default Thursday 23:59). Bookings made after it are still
accepted, but they are flagged as last-minute changes and staff is
alerted.

The hard restriction is a short lead time before a session (by default
12 hours) within which bookings may not be made at all, unless an admin
overrides it with a reason.

Both checks are independent of each other and are evaluated fresh on every
submission.

"""
from __future__ import annotations

import sedate

from datetime import datetime, time, timedelta
from dateutil.relativedelta import relativedelta, MO

from rackbook.modules import errors
from rackbook.modules.utils import localize


from typing import Literal
from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName

    from rackbook.context.core import Context


DAY_NAMES = (
    'Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday',
    'Saturday'
)


def parse_time(value: time | str) -> time:
    """ Accepts 'HH:MM' or 'HH:MM:SS' strings as well as time instances. """
    if isinstance(value, time):
        return value

    parts = [int(part) for part in value.split(':')]
    return time(*parts)


class WindowSettings(NamedTuple):
    notification_window_enabled: bool = True
    #: 0 = Sunday, 1 = Monday, ..., 6 = Saturday
    notification_window_day_of_week: int = 4
    notification_window_time: time = time(23, 59)
    hard_restriction_enabled: bool = True
    hard_restriction_hours: float = 12

    @classmethod
    def from_context(cls, context: Context) -> WindowSettings:
        return cls(
            notification_window_enabled=context.get_setting(
                'notification_window_enabled'),
            notification_window_day_of_week=context.get_setting(
                'notification_window_day_of_week'),
            notification_window_time=parse_time(context.get_setting(
                'notification_window_time')),
            hard_restriction_enabled=context.get_setting(
                'hard_restriction_enabled'),
            hard_restriction_hours=context.get_setting(
                'hard_restriction_hours'),
        )


def week_start(date: datetime) -> datetime:
    """ Returns the local midnight of the monday on or before the date. """
    return datetime.combine(
        (date + relativedelta(weekday=MO(-1))).date(), time(0, 0))


def notification_deadline(
    session_start: datetime,
    settings: WindowSettings,
    timezone: TzInfoOrName
) -> datetime | None:
    """ Returns the deadline for the week of the given session, or None if
    the notification window is disabled.

    The deadline is the configured day and time in the week *before* the
    (monday based) week of the session.

    """
    if not settings.notification_window_enabled:
        return None

    local = localize(session_start, timezone).replace(tzinfo=None)

    target_day = settings.notification_window_day_of_week
    days_from_monday = 6 if target_day == 0 else target_day - 1

    target = week_start(local) - timedelta(days=7 - days_from_monday)
    deadline = datetime.combine(
        target.date(), parse_time(settings.notification_window_time))

    return sedate.standardize_date(deadline, timezone)


def deadline_message(deadline: datetime | None, timezone: TzInfoOrName) -> str:
    if deadline is None:
        return 'Notification window is disabled'

    local = localize(deadline, timezone)
    day_name = DAY_NAMES[local.isoweekday() % 7]
    return f'{day_name}, {local.day} {local:%b %Y} at {local:%H:%M}'


class GateDecision(NamedTuple):
    """ The outcome of evaluating a submission against both time rules. """

    cutoff_at: datetime | None
    late: bool
    hard_blocked: bool
    hours_until_session: float
    restriction_hours: float

    @property
    def state(self) -> Literal['blocked', 'late', 'normal']:
        if self.hard_blocked:
            return 'blocked'
        if self.late:
            return 'late'
        return 'normal'

    def authorize(self, is_admin: bool, reason: str | None = None) -> bool:
        """ Raises :class:`~.errors.HardRestrictionError` if the submission
        may not proceed. Returns True if the submission proceeds as an
        admin override (late or within the hard restriction).

        Non-admins are always rejected within the hard restriction, admins
        need to supply a non-empty reason.

        """
        if self.hard_blocked:
            if not is_admin:
                raise errors.HardRestrictionError(
                    self.restriction_hours, override_possible=False)

            if not reason or not reason.strip():
                raise errors.HardRestrictionError(
                    self.restriction_hours, override_possible=True)

        return is_admin and (self.late or self.hard_blocked)


def evaluate(
    session_start: datetime,
    now: datetime,
    settings: WindowSettings,
    timezone: TzInfoOrName
) -> GateDecision:
    """ Classifies a submission for the given session at the given time. """

    session_start = sedate.standardize_date(session_start, timezone)
    now = sedate.standardize_date(now, timezone)

    deadline = notification_deadline(session_start, settings, timezone)
    hours = (session_start - now).total_seconds() / 3600

    return GateDecision(
        cutoff_at=deadline,
        late=deadline is not None and now > deadline,
        hard_blocked=(
            settings.hard_restriction_enabled
            and hours < settings.hard_restriction_hours
        ),
        hours_until_session=hours,
        restriction_hours=settings.hard_restriction_hours
    )
