""" Alerts about last-minute bookings.

Rackbook decides whether an alert is due and what it contains, the delivery
is up to the notifier service. The default notifier only logs. To deliver
e-mails, register your own notifier on your context::

    class Mailer(Notifier):
        def send_last_minute_alert(self, alert, recipients):
            ...

    context.set_service('notifier', lambda context: Mailer())

"""
from __future__ import annotations

import logging

from rackbook.modules.utils import format_racks
from rackbook.modules.utils import localize


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from sedate.types import TzInfoOrName


log = logging.getLogger('rackbook')


def format_alert_date(date: datetime, timezone: TzInfoOrName) -> str:
    """ Long date, e.g. 'Thursday 8 Jan 2026'. """
    local = localize(date, timezone)
    return f'{local:%A} {local.day} {local:%b %Y}'


def format_alert_time(
    start: datetime,
    end: datetime,
    timezone: TzInfoOrName
) -> str:
    start = localize(start, timezone)
    end = localize(end, timezone)
    return f'{start:%H:%M} - {end:%H:%M}'


class LastMinuteAlert(NamedTuple):
    """ Sent to the configured recipients when a booking is made or changed
    after the notification window closed.

    """

    booking_id: int
    title: str
    date: str
    time: str
    side: str
    racks: str
    athletes: int
    creator: str | None
    is_edit: bool = False
    override_reason: str | None = None

    @classmethod
    def for_session(
        cls,
        booking_id: int,
        title: str,
        start: datetime,
        end: datetime,
        side: str,
        racks: Sequence[int],
        athletes: int,
        creator: str | None,
        timezone: TzInfoOrName,
        is_edit: bool = False,
        override_reason: str | None = None
    ) -> LastMinuteAlert:
        return cls(
            booking_id=booking_id,
            title=title,
            date=format_alert_date(start, timezone),
            time=format_alert_time(start, end, timezone),
            side=side,
            racks=format_racks(racks),
            athletes=athletes,
            creator=creator,
            is_edit=is_edit,
            override_reason=override_reason
        )


class Confirmation(NamedTuple):
    """ Sent to the person who made the last-minute booking. """

    recipient: str
    alert: LastMinuteAlert


class Notifier:
    """ The default notifier, logging the alerts instead of delivering
    them.

    """

    def send_last_minute_alert(
        self,
        alert: LastMinuteAlert,
        recipients: Sequence[str]
    ) -> None:
        if not recipients:
            log.info(
                'No recipients for the last-minute alert of booking %s',
                alert.booking_id
            )
            return

        log.info(
            'Last-minute %s of "%s" on %s (%s), racks %s: alerting %s',
            'change' if alert.is_edit else 'booking',
            alert.title,
            alert.date,
            alert.time,
            alert.racks,
            ', '.join(recipients)
        )

    def send_confirmation(self, confirmation: Confirmation) -> None:
        log.info(
            'Confirming last-minute booking "%s" to %s',
            confirmation.alert.title,
            confirmation.recipient
        )
