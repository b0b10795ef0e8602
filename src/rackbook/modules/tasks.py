""" Tasks for the bookings team.

Each kind of task is its own type, carrying only what the task needs. The
task board service (see :mod:`rackbook.context.task_board`) stores them.

"""
from __future__ import annotations

from rackbook.modules.utils import pluralize


from typing import Any
from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from typing_extensions import TypeAlias


def booking_link(booking_id: int) -> str:
    return f'/bookings-team?booking={booking_id}'


class BookingCreated(NamedTuple):
    booking_id: int
    booking_title: str
    created_by: str | None

    kind = 'booking:created'

    @property
    def title(self) -> str:
        return 'New Booking Created'

    @property
    def message(self) -> str:
        return f'New booking "{self.booking_title}" requires processing.'

    @property
    def link(self) -> str:
        return booking_link(self.booking_id)

    def metadata(self) -> dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'booking_title': self.booking_title,
            'created_by': self.created_by,
            'is_last_minute': False,
        }


class LastMinuteChange(NamedTuple):
    booking_id: int
    booking_title: str
    actor: str | None
    cutoff_at: datetime | None
    #: True if an existing booking was edited after the deadline
    is_edit: bool = False
    override_reason: str | None = None

    kind = 'last_minute_change'

    @property
    def title(self) -> str:
        if self.is_edit:
            return 'Last-Minute Booking Change'
        return 'Last-Minute Booking Created'

    @property
    def message(self) -> str:
        if self.is_edit:
            return (
                f'Booking "{self.booking_title}" was changed after the '
                f'notification window deadline.'
            )
        return (
            f'Booking "{self.booking_title}" was created after the '
            f'notification window deadline.'
        )

    @property
    def link(self) -> str:
        return booking_link(self.booking_id)

    def metadata(self) -> dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'booking_title': self.booking_title,
            'created_by': self.actor,
            'is_last_minute': True,
            'is_edit': self.is_edit,
            'cutoff_at': self.cutoff_at and self.cutoff_at.isoformat(),
            'override_reason': self.override_reason,
        }


class BookingEdited(NamedTuple):
    booking_id: int
    booking_title: str
    edited_by: str | None
    sessions: int

    kind = 'booking:edited'

    @property
    def title(self) -> str:
        return 'Processed Booking Changed'

    @property
    def message(self) -> str:
        return (
            f'Booking "{self.booking_title}" was changed on '
            f'{pluralize(self.sessions, "session")} and needs to be '
            f'processed again.'
        )

    @property
    def link(self) -> str:
        return booking_link(self.booking_id)

    def metadata(self) -> dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'booking_title': self.booking_title,
            'edited_by': self.edited_by,
            'sessions': self.sessions,
        }


class CancellationRequested(NamedTuple):
    booking_id: int
    booking_title: str
    requested_by: str | None

    kind = 'booking:cancellation_requested'

    @property
    def title(self) -> str:
        return 'Cancellation Requested'

    @property
    def message(self) -> str:
        return (
            f'Cancellation of booking "{self.booking_title}" was requested '
            f'and needs to be confirmed.'
        )

    @property
    def link(self) -> str:
        return booking_link(self.booking_id)

    def metadata(self) -> dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'booking_title': self.booking_title,
            'requested_by': self.requested_by,
        }


if TYPE_CHECKING:
    TaskEvent: TypeAlias = (
        BookingCreated
        | LastMinuteChange
        | BookingEdited
        | CancellationRequested
    )
