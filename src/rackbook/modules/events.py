""" Events are called by the :class:`rackbook.db.scheduler.Scheduler` whenever
something interesting occurs.

The implementation is very simple:

To add an event::

    from rackbook.modules import events

    def on_booking_created(context, booking, submission):
        pass

    events.on_booking_created.append(on_booking_created)

To remove the same event::

    events.on_booking_created.remove(on_booking_created)

Events are called in the order they were added, after the changes have been
flushed, but before they are commited.
"""
from __future__ import annotations


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Sequence
    from typing_extensions import ParamSpec

    from rackbook.context.core import Context
    from rackbook.db.models import Booking, BookingInstance
    from rackbook.db.scheduler import Submission
    from rackbook.modules.changes import Change

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_booking_created: Event[Context, Booking, Submission] = Event()
""" Called when a booking was submitted, with the following arguments:

    :context:
        The :class:`rackbook.context.core.Context` used when submitting.

    :booking:
        The new :class:`rackbook.db.models.Booking`, with its instances.

    :submission:
        The :class:`rackbook.db.scheduler.Submission` describing the
        outcome (last-minute flag, override, warnings).

"""

on_booking_changed: Event[Context, Booking, Sequence[BookingInstance]]
on_booking_changed = Event()
""" Called when the instances of a booking were edited or added, with the
following arguments:

    :context:
        The :class:`rackbook.context.core.Context` used when editing.

    :booking:
        The changed :class:`rackbook.db.models.Booking`.

    :instances:
        The list of :class:`rackbook.db.models.BookingInstance` instances
        that were changed or added.

"""

on_instances_removed: Event[Context, Booking, Sequence[BookingInstance]]
on_instances_removed = Event()
""" Called when instances are removed from a booking, with the following
arguments:

    :context:
        The :class:`rackbook.context.core.Context` used when removing.

    :booking:
        The :class:`rackbook.db.models.Booking` the instances belonged to.
        If the last instance was removed, the booking is removed as well.

    :instances:
        The list of removed :class:`rackbook.db.models.BookingInstance`.

"""

on_booking_processed: Event[Context, Booking, Sequence[Change]] = Event()
""" Called when the bookings team processed a booking, with the following
arguments:

    :context:
        The :class:`rackbook.context.core.Context` used when processing.

    :booking:
        The processed :class:`rackbook.db.models.Booking`.

    :changes:
        The list of :class:`rackbook.modules.changes.Change` changes that
        were acknowledged by processing it again. Empty on first processing.

"""

on_booking_status_changed: Event[Context, Booking, str, str] = Event()
""" Called when the status of a booking changes, with the following
arguments:

    :context:
        The :class:`rackbook.context.core.Context` used.

    :booking:
        The :class:`rackbook.db.models.Booking`.

    :old_status:
        The status before the change.

    :new_status:
        The status after the change.

"""
