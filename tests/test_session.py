from __future__ import annotations

import rackbook
import sedate
import time

from datetime import datetime
from rackbook.context.session import SessionProvider
from rackbook.db.models import Booking
from rackbook.db.scheduler import Scheduler
from sqlalchemy import text
from threading import Thread


class SessionId(Thread):
    def __init__(self, dsn: str) -> None:
        Thread.__init__(self)
        self.session_id: int | None = None
        self.dsn = dsn

    def run(self) -> None:
        context = rackbook.registry.register_context(str(id(self)))
        context.set_setting('dsn', self.dsn)
        scheduler = Scheduler(context, 'threading', 'UTC')
        self.session_id = id(scheduler.session)

        # make sure the thread runs long enough for both threads to run
        # at the same time, ids are only unique among living objects
        time.sleep(0.1)


def test_stop_unused_session(dsn: str) -> None:
    provider = SessionProvider(dsn)
    assert provider.backend == 'postgresql'
    provider.stop_service()  # should not throw any exceptions


def test_sessionstore(dsn: str) -> None:
    t1 = SessionId(dsn)
    t2 = SessionId(dsn)

    t1.start()
    t2.start()

    t1.join()
    t2.join()

    assert t1.session_id is not None
    assert t2.session_id is not None
    assert t1.session_id != t2.session_id


def test_released_savepoints_do_not_commit(scheduler: Scheduler) -> None:
    start = sedate.replace_timezone(datetime(2026, 2, 2, 10), 'UTC')
    end = sedate.replace_timezone(datetime(2026, 2, 2, 11), 'UTC')

    with scheduler.begin_nested():
        scheduler.session.add(Booking(
            title='Squat Club',
            side=scheduler.side,
            start_template=start,
            end_template=end,
            weeks=1
        ))

    assert scheduler.managed_bookings().count() == 1

    scheduler.rollback()

    assert scheduler.managed_bookings().count() == 0


def test_sessions_are_serializable(scheduler: Scheduler) -> None:
    query = text('SHOW transaction_isolation')
    assert scheduler.session.execute(query).scalar() == 'serializable'
