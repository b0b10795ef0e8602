from __future__ import annotations

import logging

from sqlalchemy.orm import joinedload
from sqlalchemy.sql import and_, or_

from rackbook.context.core import ContextServicesMixin
from rackbook.db.models import Booking
from rackbook.db.models import BookingInstance
from rackbook.db.models import CapacitySchedule
from rackbook.db.models import PeriodTypeDefault
from rackbook.modules.capacity import Load
from rackbook.modules.capacity import PeriodSchedule
from rackbook.modules.conflicts import Occupation
from rackbook.modules.recurrence import normalize_racks


from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import date, datetime
    from sqlalchemy.orm import Query

    from rackbook.context.core import Context

_T = TypeVar('_T')


log = logging.getLogger('rackbook')


class Queries(ContextServicesMixin):
    """ Contains helper methods independent of the side (as owned by
    :class:`.scheduler.Scheduler`)

    Some contained methods require the current context (for the session).
    Some contained methods do not require any context, they are marked
    as staticmethods.

    """

    def __init__(self, context: Context):
        self.context = context

    @staticmethod
    def instances_in_range(
        query: Query[_T],
        start: datetime,
        end: datetime
    ) -> Query[_T]:
        """ Takes a booking instance query and limits it to the instances
        overlapping with start and end. Touching instances (one ending
        when the other starts) do not overlap.

        """
        return query.filter(
            and_(
                BookingInstance.start < end,
                BookingInstance.end > start
            )
        )

    def overlapping_instances(
        self,
        side: str,
        start: datetime,
        end: datetime,
        exclude_booking: int | None = None,
        exclude_instances: Collection[int] = ()
    ) -> Query[BookingInstance]:
        """ Returns the active instances on the given side overlapping with
        start and end. Instances of cancelled bookings are ignored.

        """
        query = self.session.query(BookingInstance)
        query = query.join(Booking, Booking.id == BookingInstance.booking_id)
        query = query.options(joinedload(BookingInstance.booking))
        query = query.filter(BookingInstance.side == side)
        query = query.filter(Booking.status != 'cancelled')
        query = self.instances_in_range(query, start, end)

        if exclude_booking is not None:
            query = query.filter(BookingInstance.booking_id != exclude_booking)

        if exclude_instances:
            query = query.filter(
                BookingInstance.id.not_in(exclude_instances))

        return query.order_by(BookingInstance.start)

    def occupations(
        self,
        side: str,
        start: datetime,
        end: datetime,
        exclude_booking: int | None = None
    ) -> list[Occupation]:

        log.debug('Querying occupied racks on %s between %s and %s',
                  side, start, end)

        return [
            Occupation(
                booking_id=instance.booking_id,
                title=instance.booking.title,
                start=instance.start,
                end=instance.end,
                racks=normalize_racks(instance.racks)
            )
            for instance in self.overlapping_instances(
                side, start, end, exclude_booking=exclude_booking)
        ]

    def loads(
        self,
        side: str,
        start: datetime,
        end: datetime,
        exclude_instances: Collection[int] = ()
    ) -> list[Load]:
        return [
            Load(instance.start, instance.end, instance.capacity or 1)
            for instance in self.overlapping_instances(
                side, start, end, exclude_instances=exclude_instances)
        ]

    def schedule_rules(
        self,
        side: str,
        start: date,
        end: date
    ) -> Query[CapacitySchedule]:
        """ Returns the schedule rules of the side which may apply between
        the given dates (inclusive).

        """
        query = self.session.query(CapacitySchedule)
        query = query.filter(CapacitySchedule.side == side)
        query = query.filter(CapacitySchedule.start_date <= end)
        query = query.filter(or_(
            CapacitySchedule.end_date.is_(None),
            CapacitySchedule.end_date >= start
        ))

        return query.order_by(CapacitySchedule.id)

    def period_type_defaults(self, side: str) -> dict[str, int]:
        query = self.session.query(PeriodTypeDefault)
        query = query.filter(PeriodTypeDefault.side == side)

        return {
            default.period_type: default.capacity
            for default in query
        }

    def period_schedule(
        self,
        side: str,
        start: date,
        end: date
    ) -> PeriodSchedule:
        return PeriodSchedule(
            self.schedule_rules(side, start, end),
            self.period_type_defaults(side)
        )
