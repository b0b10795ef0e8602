from __future__ import annotations

from datetime import date, time
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import Index

from rackbook.db.models.base import ORMBase
from rackbook.db.models.timestamp import TimestampMixin
from rackbook.db.models.types import JSONList
from rackbook.modules.capacity import PERIOD_TYPES, RECURRENCES


class CapacitySchedule(TimestampMixin, ORMBase):
    """ Assigns a period type (and optionally a capacity) to a time window
    on certain days of a side.

    """

    __tablename__ = 'capacity_schedules'

    id: Mapped[int] = mapped_column(
        types.Integer(),
        primary_key=True,
        autoincrement=True
    )

    side: Mapped[str] = mapped_column(types.String(64), nullable=False)

    period_type: Mapped[str] = mapped_column(
        types.Enum(*PERIOD_TYPES, name='period_type'),
        nullable=False
    )

    #: 0 = Sunday, 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(types.Integer(), nullable=False)

    start_time: Mapped[time] = mapped_column(types.Time(), nullable=False)
    end_time: Mapped[time] = mapped_column(types.Time(), nullable=False)

    #: None to use the default of the period type
    capacity: Mapped[int | None] = mapped_column(types.Integer())

    recurrence: Mapped[str] = mapped_column(
        types.Enum(*RECURRENCES, name='schedule_recurrence'),
        nullable=False,
        default='weekly'
    )

    start_date: Mapped[date] = mapped_column(types.Date(), nullable=False)
    end_date: Mapped[date | None] = mapped_column(types.Date())

    #: iso dates ('2026-01-05') on which the rule doesn't apply
    excluded_dates: Mapped[list[str]] = mapped_column(JSONList, default=list)

    __table_args__ = (
        Index('capacity_schedules_side_ix', 'side', 'day_of_week'),
    )


class PeriodTypeDefault(ORMBase):
    """ The default capacity of a period type on a side. """

    __tablename__ = 'period_type_defaults'

    side: Mapped[str] = mapped_column(
        types.String(64),
        primary_key=True,
        autoincrement=False
    )

    period_type: Mapped[str] = mapped_column(
        types.Enum(*PERIOD_TYPES, name='period_type'),
        primary_key=True
    )

    capacity: Mapped[int] = mapped_column(types.Integer(), nullable=False)
