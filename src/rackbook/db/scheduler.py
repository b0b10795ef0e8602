from __future__ import annotations

import logging
import sedate

from datetime import datetime, timedelta
from operator import attrgetter
from sqlalchemy.exc import SQLAlchemyError

from rackbook.context.core import ContextServicesMixin
from rackbook.context.notifier import Confirmation
from rackbook.context.notifier import LastMinuteAlert
from rackbook.db.models import ORMBase
from rackbook.db.models import Booking
from rackbook.db.models import BookingInstance
from rackbook.db.models import OccupiedRack
from rackbook.db.queries import Queries
from rackbook.modules import capacity
from rackbook.modules import errors
from rackbook.modules import events
from rackbook.modules import rasterizer
from rackbook.modules import recurrence
from rackbook.modules import window
from rackbook.modules.changes import ProcessedSnapshot
from rackbook.modules.changes import detect_changes
from rackbook.modules.conflicts import ConflictReport
from rackbook.modules.conflicts import find_conflicts
from rackbook.modules.tasks import BookingCreated
from rackbook.modules.tasks import BookingEdited
from rackbook.modules.tasks import CancellationRequested
from rackbook.modules.tasks import LastMinuteChange
from rackbook.modules.utils import localize
from rackbook.modules.utils import pluralize


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from collections.abc import Iterable
    from collections.abc import Mapping
    from collections.abc import Sequence
    from datetime import time
    from sqlalchemy.orm import Query

    from rackbook.context.core import Context
    from rackbook.modules.changes import Change
    from rackbook.modules.recurrence import Occurrence
    from rackbook.modules.tasks import TaskEvent


log = logging.getLogger('rackbook')


#: the statuses a booking may move to from a given status
TRANSITIONS: dict[str, frozenset[str]] = {
    'draft': frozenset(('pending', 'cancelled')),
    'pending': frozenset((
        'processed', 'confirmed', 'pending_cancellation', 'cancelled'
    )),
    'processed': frozenset((
        'pending', 'confirmed', 'completed', 'pending_cancellation',
        'cancelled'
    )),
    'confirmed': frozenset((
        'pending', 'processed', 'completed', 'pending_cancellation',
        'cancelled'
    )),
    'pending_cancellation': frozenset(('pending', 'processed', 'cancelled')),
    'completed': frozenset(),
    'cancelled': frozenset(),
}

#: bookings in these statuses can't be changed anymore
FINAL_STATUSES = frozenset(('completed', 'cancelled'))


class Actor(NamedTuple):
    """ The person submitting or changing a booking. """

    id: str
    #: 'admin', 'bookings_team' or 'coach'
    role: str = 'coach'
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'


class BookingDraft(NamedTuple):
    """ A booking as requested by the user, before it is materialized. """

    title: str
    #: the first session, naive dates are in the timezone of the scheduler
    start: datetime
    end: datetime
    weeks: int
    #: zero based week index -> racks
    racks_by_week: Mapping[int, Sequence[int]]
    #: zero based week index -> athletes
    capacity_by_week: Mapping[int, int] | None = None
    capacity: int = 1
    areas: Sequence[str] = ()
    color: str | None = None
    is_locked: bool = False
    #: required for admins booking within the hard restriction
    override_reason: str | None = None


class Submission(NamedTuple):
    """ The outcome of a successful submission or change. """

    booking: Booking
    instance_count: int
    last_minute: bool = False
    override: bool = False
    #: downstream failures (tasks, alerts) which didn't stop the booking
    warnings: tuple[str, ...] = ()

    @property
    def booking_id(self) -> int:
        return self.booking.id


class Scheduler(ContextServicesMixin):
    """ The Scheduler is responsible for talking to the backend of the given
    context to create bookings on one side of the facility. It is the main
    part of the API.

    """

    def __init__(
        self,
        context: Context,
        side: str,
        timezone: str
    ):
        """ Initializes a new Scheduler instance.

        :context:
            The :class:`rackbook.context.core.Context` this scheduler should
            operate on. Acquire a context by using
            :func:`rackbook.context.registry.Registry.register_context`.

        :side:
            The side of the facility managed by this scheduler. Racks and
            capacity schedules are scoped to the side.

        :timezone:
            The timezone of the facility. Weekly sessions keep their wall
            clock time in this timezone and capacity schedules are defined
            in it.

            Dates passed to the scheduler that are not timezone-aware are
            assumed to be of this timezone!
        """

        assert isinstance(timezone, str)

        self.context = context
        self.queries = Queries(context)

        self.side = side
        self.timezone = timezone

    @property
    def window_settings(self) -> window.WindowSettings:
        return window.WindowSettings.from_context(self.context)

    @property
    def raster(self) -> rasterizer.Raster:
        return self.context.get_setting('raster')  # type: ignore[no-any-return]

    @property
    def capacity_check_interval(self) -> timedelta:
        return timedelta(
            minutes=self.context.get_setting('capacity_check_interval'))

    @property
    def snapshot_date_tolerance(self) -> timedelta:
        return timedelta(
            days=self.context.get_setting('snapshot_date_tolerance'))

    def setup_database(self) -> None:
        """ Creates the tables and indices required for rackbook. This needs
        to be called once per database. Multiple invocations won't hurt but
        they are unnecessary.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def _prepare_range(
        self,
        start: datetime,
        end: datetime
    ) -> tuple[datetime, datetime]:
        return (
            sedate.standardize_date(start, self.timezone),
            sedate.standardize_date(end, self.timezone)
        )

    def managed_bookings(self) -> Query[Booking]:
        """ The bookings managed by this scheduler / side. """
        query = self.session.query(Booking)
        query = query.filter(Booking.side == self.side)

        return query

    def managed_instances(self) -> Query[BookingInstance]:
        """ The booking instances managed by this scheduler / side. """
        query = self.session.query(BookingInstance)
        query = query.filter(BookingInstance.side == self.side)

        return query

    def managed_occupied_racks(self) -> Query[OccupiedRack]:
        """ The occupied racks managed by this scheduler / side. """
        query = self.session.query(OccupiedRack)
        query = query.filter(OccupiedRack.side == self.side)

        return query

    def extinguish_managed_records(self) -> None:
        """ WARNING:
        Completely removes any trace of the records managed by this scheduler.
        That means all bookings, their instances and the occupied racks!

        """
        self.managed_occupied_racks().delete('fetch')
        self.managed_instances().delete('fetch')
        self.managed_bookings().delete('fetch')

    def booking_by_id(self, id: int) -> Booking:
        query = self.managed_bookings()
        query = query.filter(Booking.id == id)

        booking = query.first()

        if booking is None:
            raise errors.UnknownBooking(f'Unknown booking: {id}')

        return booking

    def bookings_by_status(self, *statuses: str) -> Query[Booking]:
        query = self.managed_bookings()
        query = query.filter(Booking.status.in_(statuses))
        query = query.order_by(Booking.start_template)

        return query

    def instances_in_range(
        self,
        start: datetime,
        end: datetime
    ) -> Query[BookingInstance]:

        start, end = self._prepare_range(start, end)

        query = self.managed_instances()
        query = self.queries.instances_in_range(query, start, end)
        query = query.order_by(BookingInstance.start)

        return query

    def check_conflicts(
        self,
        occurrences: Iterable[Occurrence],
        exclude_booking: int | None = None
    ) -> ConflictReport:
        """ Returns the rack conflicts of the given occurrences with the
        bookings stored on this side. The occurrences are checked one week
        at a time.

        """
        report = ConflictReport(self.timezone)

        for occurrence in occurrences:
            existing = self.queries.occupations(
                self.side,
                occurrence.start,
                occurrence.end,
                exclude_booking=exclude_booking
            )
            report.extend(
                find_conflicts(occurrence, existing, exclude_booking))

        return report

    def check_capacity(
        self,
        occurrences: Iterable[Occurrence],
        exclude_instances: Collection[int] = ()
    ) -> capacity.CapacityResult:
        """ Validates the athlete capacity of the given occurrences against
        the capacity schedule of this side.

        """
        occurrences = sorted(occurrences, key=attrgetter('start'))

        if not occurrences:
            return capacity.CapacityResult(True, False, [], 0, None)

        start = occurrences[0].start
        end = max(o.end for o in occurrences)

        existing = self.queries.loads(
            self.side, start, end, exclude_instances=exclude_instances)

        schedule = self.queries.period_schedule(
            self.side,
            localize(start, self.timezone).date(),
            localize(end, self.timezone).date()
        )

        return capacity.validate(
            occurrences,
            existing,
            schedule,
            self.timezone,
            interval=self.capacity_check_interval
        )

    def evaluate_gate(self, session_start: datetime) -> window.GateDecision:
        """ Evaluates the notification window and the hard restriction for
        a session starting at the given time, as of now.

        """
        return window.evaluate(
            session_start,
            self.now(),
            self.window_settings,
            self.timezone
        )

    def validate(
        self,
        occurrences: Sequence[Occurrence],
        actor: Actor,
        override_reason: str | None = None,
        exclude_booking: int | None = None,
        exclude_instances: Collection[int] = ()
    ) -> tuple[window.GateDecision, bool]:
        """ Runs all checks a submission has to pass before anything is
        written. Raises an error describing all violations if one of the
        checks fails.

        Returns the gate decision and True if the actor overrides a
        deadline.

        """
        report = self.check_conflicts(occurrences, exclude_booking)

        if report:
            raise errors.BookingConflictError(report)

        result = self.check_capacity(occurrences, exclude_instances)

        if not result.is_valid:
            raise errors.CapacityExceededError(
                result, result.message(self.timezone))

        decision = self.evaluate_gate(min(o.start for o in occurrences))
        override = decision.authorize(actor.is_admin, override_reason)

        return decision, override

    def _occupy(self, instance: BookingInstance) -> None:
        for rack in recurrence.normalize_racks(instance.racks):
            for start, end in rasterizer.iterate_span(
                instance.start, instance.end, self.raster
            ):
                instance.occupied_racks.append(OccupiedRack(
                    side=self.side,
                    rack=rack,
                    start=start,
                    end=end
                ))

    def _new_instance(
        self,
        booking: Booking,
        occurrence: Occurrence
    ) -> BookingInstance:

        instance = BookingInstance(
            side=self.side,
            start=occurrence.start,
            end=occurrence.end,
            racks=list(occurrence.racks),
            areas=list(occurrence.areas),
            capacity=occurrence.capacity
        )

        booking.instances.append(instance)
        self._occupy(instance)

        return instance

    def _create_or_rollback(
        self,
        booking: Booking,
        occurrences: Sequence[Occurrence]
    ) -> list[BookingInstance]:
        """ Writes the booking first and its instances second. If the
        instances can't be written, the booking is removed again before the
        error is raised. Either both are written, or neither.

        """
        self.session.add(booking)
        self.session.flush()

        try:
            with self.begin_nested():
                instances = [
                    self._new_instance(booking, occurrence)
                    for occurrence in occurrences
                ]
                self.session.flush()
        except SQLAlchemyError as e:
            log.warning(
                'Failed to create the sessions of booking %s, removing it',
                booking.id, exc_info=True
            )
            self.session.delete(booking)
            self.session.flush()

            raise errors.BookingWriteError(
                'Failed to create booking instances. '
                'The booking was not created.'
            ) from e

        return instances

    def submit(self, draft: BookingDraft, actor: Actor) -> Submission:
        """ Creates a new booking with one session per week.

        The template is materialized first, which rejects invalid times and
        weeks without racks before anything else happens. Then the rack
        conflicts and the capacity are checked, then the notification window
        and the hard restriction. Only if all of this passes, the booking and
        its sessions are written.

        Bookings made after the notification window closed are flagged as
        last-minute changes, the configured recipients are alerted and the
        actor receives a confirmation. Failing alerts or tasks are returned
        as warnings, the booking remains.

        Raises a :class:`~.errors.RackbookError` describing what's wrong if
        the booking can't be made.

        """
        if draft.is_locked and not actor.is_admin:
            raise errors.LockedBookingError('Only admins can lock bookings.')

        occurrences = recurrence.materialize(
            start=draft.start,
            end=draft.end,
            weeks=draft.weeks,
            racks_by_week=draft.racks_by_week,
            timezone=self.timezone,
            capacity_by_week=draft.capacity_by_week,
            default_capacity=draft.capacity,
            areas=draft.areas
        )

        decision, override = self.validate(
            occurrences, actor, draft.override_reason)

        first = occurrences[0]

        booking = Booking(
            title=draft.title,
            side=self.side,
            start_template=first.start,
            end_template=first.end,
            weeks=draft.weeks,
            racks=list(first.racks),
            capacity_template=first.capacity,
            areas=list(draft.areas),
            color=draft.color,
            is_locked=draft.is_locked,
            status='pending',
            created_by=actor.id,
            last_minute_change=decision.late,
            cutoff_at=decision.cutoff_at,
            override_by=actor.id if override else None,
            override_reason=draft.override_reason if override else None
        )

        instances = self._create_or_rollback(booking, occurrences)

        log.info(
            'Created booking %s "%s" on %s with %s',
            booking.id, booking.title, self.side,
            pluralize(len(instances), 'session')
        )

        warnings = self._follow_up(
            booking, instances, decision, actor,
            override_reason=booking.override_reason,
            is_edit=False
        )

        submission = Submission(
            booking=booking,
            instance_count=len(instances),
            last_minute=decision.late,
            override=override,
            warnings=tuple(warnings)
        )

        events.on_booking_created(self.context, booking, submission)

        return submission

    def _assert_editable(self, booking: Booking, actor: Actor) -> None:
        if booking.is_locked and not actor.is_admin:
            raise errors.LockedBookingError(
                'This booking is locked and can only be changed by an admin.')

        if booking.status in FINAL_STATUSES:
            raise errors.LockedBookingError(
                f'A {booking.status} booking can no longer be changed.')

    def _selected_instances(
        self,
        booking: Booking,
        instance_ids: Collection[int]
    ) -> list[BookingInstance]:

        selected = [i for i in booking.instances if i.id in instance_ids]
        unknown = set(instance_ids) - {i.id for i in selected}

        if unknown or not selected:
            raise errors.UnknownBooking(
                f'Unknown sessions of booking {booking.id}: '
                f'{", ".join(str(i) for i in sorted(unknown))}'
            )

        return selected

    def _at(self, date: datetime, at: time) -> datetime:
        """ Returns the given time of day on the local date of the given
        date.

        """
        day = localize(date, self.timezone).date()
        return sedate.standardize_date(
            datetime.combine(day, at), self.timezone)

    def _sync_template(self, booking: Booking) -> None:
        """ Updates the template of the booking to match its first
        session.

        """
        instances = sorted(booking.instances, key=attrgetter('start'))

        if instances:
            first = instances[0]
            booking.start_template = first.start
            booking.end_template = first.end
            booking.racks = list(first.racks)
            booking.capacity_template = first.capacity
            booking.weeks = len(instances)

    def _touch(
        self,
        booking: Booking,
        actor: Actor,
        decision: window.GateDecision | None = None,
        override: bool = False,
        override_reason: str | None = None
    ) -> bool:
        """ Records the edit on the booking. Processed bookings need to be
        processed again. Returns True if the booking was processed.

        """
        booking.last_edited_at = self.now()
        booking.last_edited_by = actor.id

        if decision is not None and decision.late:
            booking.last_minute_change = True
            booking.cutoff_at = decision.cutoff_at

        if override:
            booking.override_by = actor.id
            booking.override_reason = override_reason

        self._sync_template(booking)

        if booking.status == 'processed':
            self._set_status(booking, 'pending')
            return True

        return False

    def edit_instances(
        self,
        booking_id: int,
        instance_ids: Collection[int],
        actor: Actor,
        start_time: time | None = None,
        end_time: time | None = None,
        capacity: int | None = None,
        racks: Sequence[int] | None = None,
        override_reason: str | None = None
    ) -> Submission:
        """ Changes the given sessions of a booking. Arguments which are None
        are left as they are on each session.

        :start_time:
        :end_time:
            The new local times of the sessions. The date of each session
            stays the same.

        The changed sessions go through the same checks as a new booking.
        Conflicts with other sessions of the same booking are ignored.

        Processed bookings are moved back to pending, so the bookings team
        sees the change.

        """
        booking = self.booking_by_id(booking_id)
        self._assert_editable(booking, actor)

        selected = self._selected_instances(booking, instance_ids)
        weeks = {
            instance.id: week
            for week, instance in enumerate(
                sorted(booking.instances, key=attrgetter('start')))
        }

        candidates = []
        for instance in selected:
            start = instance.start
            end = instance.end

            if start_time is not None:
                start = self._at(instance.start, start_time)

            if end_time is not None:
                end = self._at(instance.start, end_time)

            if end <= start:
                raise errors.InvalidBookingTime(
                    'End time must be after start time.')

            candidates.append(recurrence.Occurrence(
                week=weeks[instance.id],
                start=start,
                end=end,
                racks=recurrence.normalize_racks(
                    instance.racks if racks is None else racks),
                capacity=instance.capacity if capacity is None else capacity,
                areas=tuple(instance.areas)
            ))

        missing = [c.week for c in candidates if not c.racks]
        if missing:
            raise errors.MissingRacksError(missing)

        if any(c.capacity < 1 for c in candidates):
            raise errors.InvalidCapacity(
                'A session needs at least one athlete.')

        decision, override = self.validate(
            candidates,
            actor,
            override_reason,
            exclude_booking=booking.id,
            exclude_instances=[i.id for i in selected]
        )

        try:
            with self.begin_nested():
                for instance in selected:
                    instance.occupied_racks.clear()

                self.session.flush()

                for instance, candidate in zip(selected, candidates):
                    instance.start = candidate.start
                    instance.end = candidate.end
                    instance.racks = list(candidate.racks)
                    instance.capacity = candidate.capacity
                    self._occupy(instance)

                self.session.flush()
        except SQLAlchemyError as e:
            log.warning(
                'Failed to change the sessions of booking %s',
                booking.id, exc_info=True
            )
            raise errors.BookingWriteError(
                'Failed to change the sessions. No session was changed.'
            ) from e

        was_processed = self._touch(
            booking, actor, decision, override, override_reason)

        log.info(
            'Changed %s of booking %s',
            pluralize(len(selected), 'session'), booking.id
        )

        warnings = self._follow_up(
            booking, selected, decision, actor,
            override_reason=override_reason if override else None,
            is_edit=True,
            was_processed=was_processed
        )

        events.on_booking_changed(self.context, booking, selected)

        return Submission(
            booking=booking,
            instance_count=len(selected),
            last_minute=decision.late,
            override=override,
            warnings=tuple(warnings)
        )

    def extend_booking(
        self,
        booking_id: int,
        weeks: int,
        actor: Actor,
        racks_by_week: Mapping[int, Sequence[int]] | None = None,
        capacity_by_week: Mapping[int, int] | None = None,
        override_reason: str | None = None
    ) -> Submission:
        """ Appends the given number of sessions to the booking.

        The new sessions follow the rhythm of the first two sessions (weekly
        if there's only one) and copy the last session. Racks and capacity
        may be overridden per week, with the week index counting from the
        first session of the booking.

        The capacity is validated cumulatively: each new session counts
        towards the usage of the sessions after it.

        """
        booking = self.booking_by_id(booking_id)
        self._assert_editable(booking, actor)

        instances = sorted(booking.instances, key=attrgetter('start'))

        if not instances:
            raise errors.UnknownBooking(
                f'Booking {booking.id} has no sessions to extend')

        interval = timedelta(weeks=1)
        if len(instances) > 1:
            first = recurrence.wall_clock(instances[0].start, self.timezone)
            second = recurrence.wall_clock(instances[1].start, self.timezone)
            days = round((second - first) / timedelta(days=1))
            interval = timedelta(days=days) if days > 0 else interval

        last = instances[-1]
        first_week = len(instances)
        new_weeks = range(first_week, first_week + weeks)

        overrides = racks_by_week or {}
        occurrences = recurrence.materialize(
            start=recurrence.shift(last.start, interval, self.timezone),
            end=recurrence.shift(last.end, interval, self.timezone),
            weeks=weeks,
            racks_by_week={
                week: overrides.get(week, last.racks) for week in new_weeks
            },
            timezone=self.timezone,
            capacity_by_week=capacity_by_week,
            default_capacity=last.capacity,
            areas=last.areas,
            first_week=first_week,
            interval=interval
        )

        decision, override = self.validate(
            occurrences, actor, override_reason, exclude_booking=booking.id)

        try:
            with self.begin_nested():
                added = [
                    self._new_instance(booking, occurrence)
                    for occurrence in occurrences
                ]
                self.session.flush()
        except SQLAlchemyError as e:
            log.warning(
                'Failed to extend booking %s', booking.id, exc_info=True)
            raise errors.BookingWriteError(
                'Failed to create booking instances. '
                'The booking was not extended.'
            ) from e

        was_processed = self._touch(
            booking, actor, decision, override, override_reason)

        log.info(
            'Extended booking %s by %s',
            booking.id, pluralize(len(added), 'session')
        )

        warnings = self._follow_up(
            booking, added, decision, actor,
            override_reason=override_reason if override else None,
            is_edit=True,
            was_processed=was_processed
        )

        events.on_booking_changed(self.context, booking, added)

        return Submission(
            booking=booking,
            instance_count=len(added),
            last_minute=decision.late,
            override=override,
            warnings=tuple(warnings)
        )

    def remove_instances(
        self,
        booking_id: int,
        instance_ids: Collection[int],
        actor: Actor
    ) -> list[BookingInstance]:
        """ Removes the given sessions of a booking. Removing the last
        session removes the booking as well.

        """
        booking = self.booking_by_id(booking_id)
        self._assert_editable(booking, actor)

        removed = self._selected_instances(booking, instance_ids)

        for instance in removed:
            booking.instances.remove(instance)

        self._delete_instances(removed)

        if booking.instances:
            self._touch(booking, actor)
        else:
            log.info(
                'Removed the last session of booking %s, removing the '
                'booking', booking.id
            )
            self.session.delete(booking)

        self.session.flush()

        events.on_instances_removed(self.context, booking, removed)

        return removed

    def remove_booking(self, booking_id: int, actor: Actor) -> None:
        """ Removes the booking with all its sessions. """

        booking = self.booking_by_id(booking_id)
        self._assert_editable(booking, actor)

        instances = list(booking.instances)

        self._delete_instances(instances)
        self.session.delete(booking)
        self.session.flush()

        log.info('Removed booking %s "%s"', booking.id, booking.title)

        events.on_instances_removed(self.context, booking, instances)

    def _delete_instances(self, instances: Iterable[BookingInstance]) -> None:
        # release the racks before the sessions are gone
        for instance in instances:
            instance.occupied_racks.clear()
            self.session.delete(instance)

    def _set_status(self, booking: Booking, status: str) -> None:
        old = booking.status

        if old == status:
            return

        if status not in TRANSITIONS.get(old, ()):
            raise errors.InvalidStatusTransition(old, status)

        booking.status = status

        events.on_booking_status_changed(self.context, booking, old, status)

    def change_status(
        self,
        booking_id: int,
        status: str,
        actor: Actor
    ) -> Booking:
        """ Moves the booking to the given status, if the workflow allows
        it. Processing and cancelling have their own methods, which are
        used for these statuses.

        """
        if status == 'processed':
            return self.process_booking(booking_id, actor)

        if status == 'pending_cancellation':
            return self.request_cancellation(booking_id, actor)

        if status == 'cancelled':
            return self.cancel_booking(booking_id, actor)

        booking = self.booking_by_id(booking_id)
        self._set_status(booking, status)

        return booking

    def process_booking(self, booking_id: int, actor: Actor) -> Booking:
        """ Marks the booking as processed by the bookings team.

        The current state of the sessions is stored with the booking, later
        changes are compared against it (see :meth:`changes_since_processed`).
        The open tasks of the booking are completed.

        """
        booking = self.booking_by_id(booking_id)
        changes = self.changes_since_processed(booking_id)

        self._set_status(booking, 'processed')

        booking.processed_at = self.now()
        booking.processed_by = actor.id
        booking.processed_snapshot = ProcessedSnapshot.capture(
            booking.instances).to_json()

        self.task_board.resolve(booking.id)
        self.session.flush()

        log.info('Booking %s processed by %s', booking.id, actor.id)

        events.on_booking_processed(self.context, booking, changes)

        return booking

    def request_cancellation(self, booking_id: int, actor: Actor) -> Booking:
        """ Asks the bookings team to cancel the booking. """

        booking = self.booking_by_id(booking_id)

        if booking.is_locked and not actor.is_admin:
            raise errors.LockedBookingError(
                'This booking is locked and can only be changed by an admin.')

        self._set_status(booking, 'pending_cancellation')

        booking.last_edited_at = self.now()
        booking.last_edited_by = actor.id

        self._record_task(CancellationRequested(
            booking_id=booking.id,
            booking_title=booking.title,
            requested_by=actor.id
        ))

        return booking

    def cancel_booking(self, booking_id: int, actor: Actor) -> Booking:
        """ Cancels the booking. The sessions are kept for the history, but
        their racks are released.

        """
        booking = self.booking_by_id(booking_id)
        self._set_status(booking, 'cancelled')

        booking.processed_at = self.now()
        booking.processed_by = actor.id

        for instance in booking.instances:
            instance.occupied_racks.clear()

        self.task_board.resolve(booking.id)
        self.session.flush()

        log.info('Booking %s cancelled by %s', booking.id, actor.id)

        return booking

    def changes_since_processed(self, booking_id: int) -> list[Change]:
        """ Returns what changed since the booking was last processed.
        Bookings which were never processed have no changes.

        """
        booking = self.booking_by_id(booking_id)

        return detect_changes(
            booking.processed_snapshot or None,
            booking.processed_at,
            booking.instances,
            self.timezone,
            self.snapshot_date_tolerance
        )

    def _record_task(self, task: TaskEvent) -> str | None:
        """ Records the task, returning a warning if that fails. """
        try:
            self.task_board.record(task)
        except Exception as e:
            log.warning(
                'Failed to create the %s task of booking %s',
                task.kind, task.booking_id, exc_info=True
            )
            return f'Failed to create tasks: {e}'

        return None

    def _follow_up(
        self,
        booking: Booking,
        instances: Sequence[BookingInstance],
        decision: window.GateDecision,
        actor: Actor,
        override_reason: str | None,
        is_edit: bool,
        was_processed: bool = False
    ) -> list[str]:
        """ Records the tasks and sends the alerts due after a booking was
        created or changed. Returns the warnings of everything that failed.

        """
        task: TaskEvent | None
        if decision.late:
            task = LastMinuteChange(
                booking_id=booking.id,
                booking_title=booking.title,
                actor=actor.id,
                cutoff_at=decision.cutoff_at,
                is_edit=is_edit,
                override_reason=override_reason
            )
        elif is_edit and was_processed:
            task = BookingEdited(
                booking_id=booking.id,
                booking_title=booking.title,
                edited_by=actor.id,
                sessions=len(instances)
            )
        elif not is_edit:
            task = BookingCreated(
                booking_id=booking.id,
                booking_title=booking.title,
                created_by=actor.id
            )
        else:
            task = None

        warnings = []

        if task is not None:
            warning = self._record_task(task)
            if warning:
                warnings.append(warning)

        if decision.late:
            warnings.extend(self._alert(
                booking, instances, actor, override_reason, is_edit))

        return warnings

    def _alert(
        self,
        booking: Booking,
        instances: Sequence[BookingInstance],
        actor: Actor,
        override_reason: str | None,
        is_edit: bool
    ) -> list[str]:

        first = min(instances, key=attrgetter('start'))

        alert = LastMinuteAlert.for_session(
            booking_id=booking.id,
            title=booking.title,
            start=first.start,
            end=first.end,
            side=self.side,
            racks=first.racks,
            athletes=first.capacity,
            creator=booking.created_by,
            timezone=self.timezone,
            is_edit=is_edit,
            override_reason=override_reason
        )

        recipients = self.context.get_setting('last_minute_alert_recipients')

        log.info(
            'Last-minute %s of booking %s after %s',
            'change' if is_edit else 'booking',
            booking.id,
            window.deadline_message(booking.cutoff_at, self.timezone)
        )

        warnings = []

        try:
            self.notifier.send_last_minute_alert(alert, recipients or ())
        except Exception as e:
            log.warning(
                'Failed to send the last-minute alert of booking %s',
                booking.id, exc_info=True
            )
            warnings.append(f'Failed to send the last-minute alert: {e}')

        if actor.email:
            try:
                self.notifier.send_confirmation(
                    Confirmation(actor.email, alert))
            except Exception as e:
                log.warning(
                    'Failed to send the confirmation of booking %s to %s',
                    booking.id, actor.email, exc_info=True
                )
                warnings.append(f'Failed to send the confirmation: {e}')

        return warnings
