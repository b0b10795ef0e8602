from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from rackbook.db.models.base import ORMBase
from rackbook.db.models.timestamp import TimestampMixin
from rackbook.db.models.types import JSONList, UTCDateTime


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName

    from rackbook.db.models.booking import Booking
    from rackbook.db.models.occupied_rack import OccupiedRack


class BookingInstance(TimestampMixin, ORMBase):
    """ One dated session of a booking. """

    __tablename__ = 'booking_instances'

    id: Mapped[int] = mapped_column(
        types.Integer(),
        primary_key=True,
        autoincrement=True
    )

    booking_id: Mapped[int] = mapped_column(
        types.Integer(),
        ForeignKey('bookings.id', ondelete='CASCADE'),
        nullable=False
    )

    booking: Mapped[Booking] = relationship(
        'Booking',
        back_populates='instances'
    )

    side: Mapped[str] = mapped_column(types.String(64), nullable=False)

    start: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        nullable=False
    )

    end: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        nullable=False
    )

    racks: Mapped[list[int]] = mapped_column(JSONList, default=list)

    areas: Mapped[list[str]] = mapped_column(JSONList, default=list)

    capacity: Mapped[int] = mapped_column(
        types.Integer(),
        nullable=False,
        default=1
    )

    occupied_racks: Mapped[list[OccupiedRack]] = relationship(
        'OccupiedRack',
        back_populates='instance',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        Index('booking_instances_range_ix', 'side', 'start', 'end'),
        Index('booking_instances_booking_ix', 'booking_id'),
    )

    def __repr__(self) -> str:
        return f'<BookingInstance {self.id} {self.start:%Y-%m-%d %H:%M}>'

    def display_start(self, timezone: TzInfoOrName) -> datetime:
        return sedate.to_timezone(self.start, timezone)

    def display_end(self, timezone: TzInfoOrName) -> datetime:
        return sedate.to_timezone(self.end, timezone)
