from __future__ import annotations

from rackbook.context.core import ContextServicesMixin
from rackbook.db.models import Task


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from rackbook.context.core import Context
    from rackbook.modules.tasks import TaskEvent


class TaskBoard(ContextServicesMixin):
    """ Records tasks for the bookings team as :class:`~.models.Task` rows
    in the session of the context.

    """

    def __init__(self, context: Context):
        self.context = context

    def record(self, event: TaskEvent) -> Task:
        task = Task(
            type=event.kind,
            booking_id=event.booking_id,
            title=event.title,
            message=event.message,
            link=event.link,
            data=event.metadata()
        )

        # a failing task must leave the booking intact
        with self.begin_nested():
            self.session.add(task)

        return task

    def resolve(self, booking_id: int) -> int:
        """ Completes the open tasks of the given booking, returning their
        number.

        """
        query = self.session.query(Task)
        query = query.filter(Task.booking_id == booking_id)
        query = query.filter(Task.completed == False)  # noqa: E712

        return query.update({Task.completed: True})
