from __future__ import annotations

from datetime import datetime
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from rackbook.db.models.base import ORMBase
from rackbook.db.models.types import UTCDateTime


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from rackbook.db.models.instance import BookingInstance


class OccupiedRack(ORMBase):
    """ Describes a rack occupied by a session during one raster slot.

    The primary key makes sure that no two sessions can occupy the same
    rack in the same slot, even if two bookings pass their conflict checks
    at the same time.

    """

    __tablename__ = 'occupied_racks'

    side: Mapped[str] = mapped_column(
        types.String(64),
        primary_key=True,
        autoincrement=False
    )

    rack: Mapped[int] = mapped_column(
        types.Integer(),
        primary_key=True,
        autoincrement=False
    )

    start: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        primary_key=True,
        autoincrement=False
    )

    end: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        nullable=False
    )

    instance_id: Mapped[int] = mapped_column(
        types.Integer(),
        ForeignKey('booking_instances.id', ondelete='CASCADE'),
        nullable=False
    )

    instance: Mapped[BookingInstance] = relationship(
        'BookingInstance',
        back_populates='occupied_racks'
    )

    __table_args__ = (
        Index('occupied_racks_instance_ix', 'instance_id'),
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OccupiedRack):
            return False

        return (
            self.side == other.side
            and self.rack == other.rack
            and self.start == other.start
        )

    def __hash__(self) -> int:
        return id(self)
