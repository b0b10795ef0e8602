from __future__ import annotations

import pytest
import sedate

from datetime import datetime
from rackbook import new_scheduler, registry
from rackbook.db.models import CapacitySchedule
from rackbook.db.models import PeriodTypeDefault
from rackbook.db.models import Task
from testing.postgresql import Postgresql  # type: ignore[import-untyped]
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from rackbook.db.scheduler import Scheduler


class Clock:
    """ A clock standing still, until a test moves it. """

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = sedate.replace_timezone(value, 'UTC')


def new_test_scheduler(
    dsn: str,
    context_name: str | None = None,
    side: str = 'Power',
    clock: Clock | None = None
) -> Scheduler:

    context_name = context_name or new_uuid().hex

    context = registry.register_context(context_name, replace=True)
    context.set_setting('dsn', dsn)

    if clock is not None:
        context.set_service('clock', lambda context: clock)

    return new_scheduler(
        context=context,
        side=side,
        timezone='Europe/London'
    )


@pytest.fixture
def clock() -> Clock:
    # a thursday, well before the sessions booked by the tests
    return Clock(sedate.replace_timezone(datetime(2026, 1, 1, 12), 'UTC'))


@pytest.fixture
def scheduler(
    dsn: str,
    clock: Clock
) -> Generator[Scheduler, None, None]:

    # clear the events before each test
    from rackbook.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    scheduler = new_test_scheduler(dsn, clock=clock)

    yield scheduler

    scheduler.rollback()
    scheduler.extinguish_managed_records()
    scheduler.session.query(CapacitySchedule).delete('fetch')
    scheduler.session.query(PeriodTypeDefault).delete('fetch')
    scheduler.session.query(Task).delete('fetch')
    scheduler.commit()
    scheduler.close()
    scheduler.session_provider.stop_service()


@pytest.fixture(scope="session")
def dsn() -> Generator[str, None, None]:
    postgres = Postgresql()

    scheduler = new_test_scheduler(postgres.url())
    scheduler.setup_database()
    scheduler.commit()

    yield postgres.url()

    scheduler.close()
    scheduler.session_provider.stop_service()

    postgres.stop()
