from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import Index

from rackbook.db.models.base import ORMBase
from rackbook.db.models.timestamp import TimestampMixin
from rackbook.db.models.types import JSON


from typing import Any


class Task(TimestampMixin, ORMBase):
    """ A task for the bookings team, see :mod:`rackbook.modules.tasks`. """

    __tablename__ = 'tasks'

    id: Mapped[int] = mapped_column(
        types.Integer(),
        primary_key=True,
        autoincrement=True
    )

    type: Mapped[str] = mapped_column(types.String(64), nullable=False)
    booking_id: Mapped[int | None] = mapped_column(types.Integer())
    title: Mapped[str] = mapped_column(types.Text(), nullable=False)
    message: Mapped[str] = mapped_column(types.Text(), nullable=False)
    link: Mapped[str | None] = mapped_column(types.Text())
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    completed: Mapped[bool] = mapped_column(
        types.Boolean(),
        nullable=False,
        default=False
    )

    __table_args__ = (
        Index('tasks_booking_ix', 'booking_id', 'completed'),
    )
