from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped

from rackbook.db.models.types import UTCDateTime


def timestamp() -> datetime:
    return sedate.utcnow()


class TimestampMixin:
    """ Mixin providing created/modified timestamps for all records.

    The columns are deferred loaded as this is primarily for logging and future
    forensics.

    """

    created: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=False),
        default=timestamp,
        deferred=True
    )

    modified: Mapped[datetime | None] = mapped_column(
        UTCDateTime(timezone=False),
        onupdate=timestamp,
        deferred=True
    )
