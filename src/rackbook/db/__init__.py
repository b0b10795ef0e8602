from __future__ import annotations

from rackbook.db.scheduler import Scheduler


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from rackbook.context.core import Context


def new_scheduler(context: Context, side: str, timezone: str) -> Scheduler:
    """ Returns a new scheduler for the given side of the facility. """
    return Scheduler(context, side, timezone)


__all__ = ('Scheduler', 'new_scheduler')
