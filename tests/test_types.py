from __future__ import annotations

import pytest
import sedate

from datetime import datetime
from rackbook.db.models.types import JSON, JSONList, UTCDateTime
from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from rackbook.db.scheduler import Scheduler


dialect = postgresql.dialect()


def test_utc_datetime_rejects_naive_dates() -> None:
    column = UTCDateTime()

    with pytest.raises(AssertionError):
        column.process_bind_param(datetime(2026, 1, 5, 10), dialect)


def test_utc_datetime_stores_utc() -> None:
    column = UTCDateTime()
    local = sedate.replace_timezone(datetime(2026, 7, 6, 10), 'Europe/London')

    stored = column.process_bind_param(local, dialect)
    assert stored == datetime(2026, 7, 6, 9)

    loaded = column.process_result_value(stored, dialect)
    assert loaded is not None
    assert loaded.tzinfo is not None
    assert loaded == local


def test_json_coerces_none() -> None:
    assert JSON().process_bind_param(None, dialect) == {}
    assert JSON().process_result_value(None, dialect) == {}
    assert JSONList().process_bind_param(None, dialect) == []
    assert JSONList().process_bind_param((1, 2), dialect) == [1, 2]
    assert JSONList().process_result_value(None, dialect) == []


def test_json_uses_jsonb_on_postgres() -> None:
    assert isinstance(JSON().load_dialect_impl(dialect), postgresql.JSONB)

    other = JSONList().load_dialect_impl(sqlite.dialect())
    assert not isinstance(other, postgresql.JSONB)


def test_json_columns_are_jsonb(scheduler: Scheduler) -> None:
    query = text("""
        SELECT table_name, column_name, data_type
          FROM information_schema.columns
         WHERE table_name IN ('bookings', 'booking_instances')
           AND column_name IN ('racks', 'processed_snapshot')
      ORDER BY table_name, column_name
    """)

    assert [tuple(r) for r in scheduler.session.execute(query)] == [
        ('booking_instances', 'racks', 'jsonb'),
        ('bookings', 'processed_snapshot', 'jsonb'),
        ('bookings', 'racks', 'jsonb'),
    ]
