""" Rack contention between a set of candidate occurrences and the instances
already stored for a side.

The detection itself is pure, the scheduler is responsible for fetching
the overlapping instances (see :meth:`rackbook.db.queries.Queries.
overlapping_instances`).

"""
from __future__ import annotations

from rackbook.modules.utils import format_racks
from rackbook.modules.utils import format_timerange
from rackbook.modules.utils import overlaps


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Iterator
    from datetime import datetime
    from sedate.types import TzInfoOrName

    from rackbook.modules.recurrence import Occurrence


class Occupation(NamedTuple):
    """ An existing instance, as far as rack contention is concerned. """

    booking_id: int
    title: str
    start: datetime
    end: datetime
    racks: tuple[int, ...]


class ConflictRecord(NamedTuple):
    #: zero based week of the candidate
    week: int
    rack: int
    booking_id: int
    title: str
    start: datetime
    end: datetime


def find_conflicts(
    occurrence: Occurrence,
    existing: Iterable[Occupation],
    exclude_booking: int | None = None
) -> list[ConflictRecord]:
    """ Returns a record for each requested rack of the occurrence which is
    used by an overlapping instance of another booking.

    If multiple bookings occupy the same rack, all of them are reported.

    """
    overlapping = [
        other for other in existing
        if other.booking_id != exclude_booking
        and overlaps(occurrence.start, occurrence.end, other.start, other.end)
    ]

    return [
        ConflictRecord(
            week=occurrence.week,
            rack=rack,
            booking_id=other.booking_id,
            title=other.title,
            start=other.start,
            end=other.end
        )
        for rack in occurrence.racks
        for other in overlapping
        if rack in other.racks
    ]


class ConflictReport:
    """ All conflicts of a submission, grouped by week and then by the
    title of the conflicting booking.

    """

    def __init__(
        self,
        timezone: TzInfoOrName,
        records: Iterable[ConflictRecord] = ()
    ):
        self.timezone = timezone
        self.records: list[ConflictRecord] = list(records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ConflictRecord]:
        return iter(self.records)

    def extend(self, records: Iterable[ConflictRecord]) -> None:
        self.records.extend(records)

    @property
    def weeks(self) -> list[int]:
        return sorted({r.week for r in self.records})

    @property
    def racks(self) -> list[int]:
        return sorted({r.rack for r in self.records})

    def grouped(self) -> dict[int, dict[str, list[ConflictRecord]]]:
        """ Returns the records as week -> booking title -> records. """
        groups: dict[int, dict[str, list[ConflictRecord]]] = {}

        for record in sorted(self.records, key=lambda r: (r.week, r.start)):
            by_title = groups.setdefault(record.week, {})
            by_title.setdefault(record.title, []).append(record)

        return groups

    def message(self) -> str:
        lines = ['Booking conflicts detected:', '']

        for week, by_title in self.grouped().items():
            lines.append(f'Week {week + 1}:')

            for title, records in by_title.items():
                by_range: dict[tuple[datetime, datetime], set[int]] = {}
                for record in records:
                    by_range.setdefault(
                        (record.start, record.end), set()).add(record.rack)

                for (start, end), racks in by_range.items():
                    timerange = format_timerange(start, end, self.timezone)
                    lines.append(
                        f'  • "{title}" is using racks '
                        f'{format_racks(racks)} ({timerange})'
                    )

            lines.append('')

        lines.append(
            'Please select different racks or adjust the booking time.')

        return '\n'.join(lines)
