from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped

from rackbook.db.models.base import ORMBase
from rackbook.db.models.timestamp import TimestampMixin
from rackbook.db.models.types import JSON, JSONList, UTCDateTime


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName

    from rackbook.db.models.instance import BookingInstance


STATUSES = (
    'draft',
    'pending',
    'pending_cancellation',
    'processed',
    'confirmed',
    'completed',
    'cancelled',
)


class Booking(TimestampMixin, ORMBase):
    """ A recurring booking of racks on one side of the facility.

    The booking holds the template the sessions were created from. The
    sessions themselves are :class:`~.BookingInstance` records which can be
    changed independently of each other.

    """

    __tablename__ = 'bookings'

    id: Mapped[int] = mapped_column(
        types.Integer(),
        primary_key=True,
        autoincrement=True
    )

    title: Mapped[str] = mapped_column(types.Text(), nullable=False)

    side: Mapped[str] = mapped_column(
        types.String(64),
        nullable=False,
        index=True
    )

    #: the first session, all other sessions were created from it
    start_template: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        nullable=False
    )
    end_template: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        nullable=False
    )

    weeks: Mapped[int] = mapped_column(types.Integer(), nullable=False)

    #: the racks of the first week
    racks: Mapped[list[int]] = mapped_column(JSONList, default=list)

    capacity_template: Mapped[int] = mapped_column(
        types.Integer(),
        nullable=False,
        default=1
    )

    areas: Mapped[list[str]] = mapped_column(JSONList, default=list)

    color: Mapped[str | None] = mapped_column(types.String(32))

    #: locked bookings can only be changed by admins
    is_locked: Mapped[bool] = mapped_column(
        types.Boolean(),
        nullable=False,
        default=False
    )

    status: Mapped[str] = mapped_column(
        types.Enum(*STATUSES, name='booking_status'),
        nullable=False,
        default='pending'
    )

    created_by: Mapped[str | None] = mapped_column(types.Text())

    last_edited_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(timezone=False))
    last_edited_by: Mapped[str | None] = mapped_column(types.Text())

    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(timezone=False))
    processed_by: Mapped[str | None] = mapped_column(types.Text())
    processed_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=True)

    #: True if the booking was made or changed after the notification window
    last_minute_change: Mapped[bool] = mapped_column(
        types.Boolean(),
        nullable=False,
        default=False
    )
    cutoff_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(timezone=False))

    #: the admin who made the booking past a deadline
    override_by: Mapped[str | None] = mapped_column(types.Text())
    override_reason: Mapped[str | None] = mapped_column(types.Text())

    instances: Mapped[list[BookingInstance]] = relationship(
        'BookingInstance',
        back_populates='booking',
        order_by='BookingInstance.start',
        cascade='all, delete-orphan'
    )

    def __repr__(self) -> str:
        return f'<Booking {self.id} "{self.title}" ({self.status})>'

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None and self.status == 'processed'

    @property
    def total_capacity(self) -> int:
        return sum(instance.capacity for instance in self.instances)

    def display_start(self, timezone: TzInfoOrName) -> datetime:
        return sedate.to_timezone(self.start_template, timezone)

    def display_end(self, timezone: TzInfoOrName) -> datetime:
        return sedate.to_timezone(self.end_template, timezone)
