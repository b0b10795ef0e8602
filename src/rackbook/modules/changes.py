""" Detects what changed in a booking since it was processed.

When the bookings team processes a booking, a snapshot of its instances is
stored with it (see :meth:`ProcessedSnapshot.capture`). Later edits are
shown to the team by comparing that snapshot against the live instances.

Snapshots written by older versions only know about the first instance.
For those, the changes are inferred by assuming that all instances looked
like the first one and that sessions repeat at a fixed interval. Every
:class:`Change` carries the tier it was detected with, ``'exact'`` or
``'inferred'``, so callers can tell the two apart.

"""
from __future__ import annotations

from datetime import timedelta
from dateutil.parser import isoparse

from rackbook.modules.recurrence import normalize_racks
from rackbook.modules.utils import format_date
from rackbook.modules.utils import format_racks
from rackbook.modules.utils import format_time
from rackbook.modules.utils import localize
from rackbook.modules.utils import pluralize


from typing import Any
from typing import Literal
from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Sequence
    from datetime import date, datetime
    from sedate.types import TzInfoOrName
    from typing import Protocol
    from typing_extensions import Self, TypeAlias

    class _Instance(Protocol):
        @property
        def start(self) -> datetime: ...
        @property
        def end(self) -> datetime: ...
        @property
        def capacity(self) -> int | None: ...
        @property
        def racks(self) -> Sequence[int] | None: ...

    ChangeKind: TypeAlias = Literal[
        'extended', 'sessions_removed', 'capacity', 'time', 'racks'
    ]
    Tier: TypeAlias = Literal['exact', 'inferred']


class InstanceState(NamedTuple):
    start: datetime
    end: datetime
    capacity: int
    racks: tuple[int, ...]

    @classmethod
    def of(cls, instance: _Instance) -> Self:
        return cls(
            start=instance.start,
            end=instance.end,
            capacity=instance.capacity or 1,
            racks=normalize_racks(instance.racks)
        )


def _dt(value: str | None) -> datetime | None:
    return isoparse(value) if value else None


class ProcessedSnapshot(NamedTuple):
    """ The state of a booking's instances at the time it was processed.

    The ``all_instance_*`` fields are None for legacy snapshots.

    """

    instance_count: int
    first_instance_start: datetime | None
    first_instance_end: datetime | None
    first_instance_capacity: int | None
    first_instance_racks: tuple[int, ...]
    all_racks: tuple[int, ...] = ()
    all_instance_starts: list[datetime] | None = None
    all_instance_times: list[tuple[datetime, datetime]] | None = None
    all_instance_capacities: list[tuple[datetime, int]] | None = None
    all_instance_racks: list[tuple[datetime, tuple[int, ...]]] | None = None

    @property
    def is_legacy(self) -> bool:
        return not self.all_instance_starts

    @classmethod
    def capture(cls, instances: Iterable[_Instance]) -> Self:
        states = sorted(
            (InstanceState.of(i) for i in instances),
            key=lambda s: s.start
        )
        first = states[0] if states else None

        return cls(
            instance_count=len(states),
            first_instance_start=first and first.start,
            first_instance_end=first and first.end,
            first_instance_capacity=first and first.capacity,
            first_instance_racks=first.racks if first else (),
            all_racks=tuple(sorted({r for s in states for r in s.racks})),
            all_instance_starts=[s.start for s in states],
            all_instance_times=[(s.start, s.end) for s in states],
            all_instance_capacities=[(s.start, s.capacity) for s in states],
            all_instance_racks=[(s.start, s.racks) for s in states],
        )

    def to_json(self) -> dict[str, Any]:
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        data: dict[str, Any] = {
            'instance_count': self.instance_count,
            'first_instance_start': iso(self.first_instance_start),
            'first_instance_end': iso(self.first_instance_end),
            'first_instance_capacity': self.first_instance_capacity,
            'first_instance_racks': list(self.first_instance_racks),
            'all_racks': list(self.all_racks),
        }

        if self.all_instance_starts is not None:
            data['all_instance_starts'] = [
                iso(s) for s in self.all_instance_starts
            ]
        if self.all_instance_times is not None:
            data['all_instance_times'] = [
                {'start': iso(s), 'end': iso(e)}
                for s, e in self.all_instance_times
            ]
        if self.all_instance_capacities is not None:
            data['all_instance_capacities'] = [
                {'start': iso(s), 'capacity': c}
                for s, c in self.all_instance_capacities
            ]
        if self.all_instance_racks is not None:
            data['all_instance_racks'] = [
                {'start': iso(s), 'racks': list(r)}
                for s, r in self.all_instance_racks
            ]

        return data

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> Self | None:
        if not data or 'instance_count' not in data:
            return None

        def optional(key: str) -> list[dict[str, Any]] | None:
            return data.get(key) or None

        starts = optional('all_instance_starts')
        times = optional('all_instance_times')
        capacities = optional('all_instance_capacities')
        racks = optional('all_instance_racks')

        return cls(
            instance_count=data['instance_count'],
            first_instance_start=_dt(data.get('first_instance_start')),
            first_instance_end=_dt(data.get('first_instance_end')),
            first_instance_capacity=data.get('first_instance_capacity'),
            first_instance_racks=normalize_racks(
                data.get('first_instance_racks')),
            all_racks=tuple(data.get('all_racks') or ()),
            all_instance_starts=starts and [isoparse(s) for s in starts],
            all_instance_times=times and [
                (isoparse(t['start']), isoparse(t['end'])) for t in times
            ],
            all_instance_capacities=capacities and [
                (isoparse(c['start']), c['capacity']) for c in capacities
            ],
            all_instance_racks=racks and [
                (isoparse(r['start']), normalize_racks(r['racks']))
                for r in racks
            ],
        )


class Change(NamedTuple):
    kind: ChangeKind
    message: str
    old_value: str | int | None = None
    new_value: str | int | None = None
    tier: Tier = 'exact'

    @property
    def title(self) -> str:
        return self.message.split('\n', 1)[0]

    @property
    def details(self) -> list[str]:
        return self.message.split('\n')[1:]


class _Changed(NamedTuple):
    date: str
    old: Any
    new: Any


class ChangeDetector:
    """ Compares a processed snapshot with the current instances.

    The detection is pure, calling :meth:`changes` twice with the same
    input yields the same result.

    """

    def __init__(
        self,
        snapshot: ProcessedSnapshot,
        instances: Iterable[_Instance],
        timezone: TzInfoOrName,
        tolerance: timedelta = timedelta(days=1)
    ):
        self.snapshot = snapshot
        self.current = sorted(
            (InstanceState.of(i) for i in instances),
            key=lambda s: s.start
        )
        self.timezone = timezone
        self.tolerance = tolerance

    def day(self, value: datetime) -> date:
        return localize(value, self.timezone).date()

    def format_date(self, value: datetime) -> str:
        return format_date(value, self.timezone)

    def format_times(self, start: datetime, end: datetime) -> str:
        return (
            f'{format_time(start, self.timezone)}-'
            f'{format_time(end, self.timezone)}'
        )

    def changes(self) -> list[Change]:
        changes = []

        for detect in (
            self.extended,
            self.sessions_removed,
            self.capacity_changed,
            self.time_changed,
            self.racks_changed
        ):
            change = detect()
            if change is not None:
                changes.append(change)

        return changes

    def extended(self) -> Change | None:
        count = self.snapshot.instance_count

        if len(self.current) <= count:
            return None

        new_dates = [self.format_date(s.start) for s in self.current[count:]]
        listed = ', '.join(new_dates[:3])
        if len(new_dates) > 3:
            listed += f' +{len(new_dates) - 3} more'

        return Change(
            kind='extended',
            message=(
                f'Booking extended: {count} → {len(self.current)} sessions. '
                f'New sessions: {listed}'
            ),
            old_value=count,
            new_value=len(self.current)
        )

    def removed_dates(self) -> tuple[list[datetime], Tier]:
        """ Returns the start of each removed session, as precise as the
        snapshot allows.

        """
        if not self.snapshot.is_legacy:
            assert self.snapshot.all_instance_starts is not None
            current = {s.start for s in self.current}
            return [
                start for start in self.snapshot.all_instance_starts
                if start not in current
            ], 'exact'

        first = self.snapshot.first_instance_start
        if not self.current or first is None:
            return [], 'inferred'

        interval = timedelta(days=7)
        if len(self.current) > 1:
            delta = self.current[1].start - self.current[0].start
            interval = timedelta(days=round(delta / timedelta(days=1)))

        current_days = {self.day(s.start) for s in self.current}

        removed = []
        for index in range(self.snapshot.instance_count):
            expected = first + interval * index

            if self.day(expected) in current_days:
                continue

            # tolerate small shifts, e.g. through timezone conversions
            if any(
                abs(s.start - expected) < self.tolerance
                for s in self.current
            ):
                continue

            removed.append(expected)

        return removed, 'inferred'

    def sessions_removed(self) -> Change | None:
        count = self.snapshot.instance_count
        current = len(self.current)

        if current >= count:
            return None

        removed, tier = self.removed_dates()
        removed_count = count - current

        if not removed:
            return Change(
                kind='sessions_removed',
                message=(
                    f'{pluralize(removed_count, "session")} removed: '
                    f'{count} → {current} sessions'
                ),
                old_value=count,
                new_value=current,
                tier=tier
            )

        details = '\n'.join(f'• {self.format_date(d)}' for d in removed)

        if len(removed) == 1:
            title = 'Session removed:'
        else:
            title = f'{removed_count} sessions removed:'

        return Change(
            kind='sessions_removed',
            message=f'{title}\n{details}',
            old_value=count,
            new_value=current,
            tier=tier
        )

    def matched(
        self,
        entries: Sequence[tuple[datetime, Any]] | None
    ) -> list[tuple[InstanceState, Any]]:
        """ Pairs current instances with the snapshot entry on the same
        local date. Instances without a counterpart are new and skipped.

        """
        by_day: dict[date, Any] = {}
        for start, value in entries or ():
            by_day.setdefault(self.day(start), value)

        return [
            (state, by_day[self.day(state.start)])
            for state in self.current
            if self.day(state.start) in by_day
        ]

    def capacity_changed(self) -> Change | None:
        snapshot = self.snapshot

        if snapshot.all_instance_capacities:
            pairs = self.matched(snapshot.all_instance_capacities)
            tier: Tier = 'exact'
        elif snapshot.first_instance_capacity is not None:
            pairs = [(s, snapshot.first_instance_capacity)
                     for s in self.current]
            tier = 'inferred'
        else:
            return None

        changed = [
            _Changed(self.format_date(state.start), old, state.capacity)
            for state, old in pairs
            if state.capacity != old
        ]

        if not changed:
            return None

        uniform = len(changed) == len(self.current) and all(
            c.old == changed[0].old and c.new == changed[0].new
            for c in changed
        )

        if uniform:
            old, new = changed[0].old, changed[0].new

            if len(self.current) == 1:
                message = f'Athletes changed from {old} to {new} athletes'
            else:
                message = (
                    f'Athletes changed: All {len(self.current)} sessions '
                    f'changed from {old} to {new} athletes'
                )

            return Change('capacity', message, old, new, tier)

        details = '\n'.join(
            f'• {c.date}: {c.old} → {c.new} athletes' for c in changed
        )

        return Change(
            kind='capacity',
            message=(
                f'Athletes changed on '
                f'{pluralize(len(changed), "session")}:\n{details}'
            ),
            old_value=', '.join(str(c.old) for c in changed),
            new_value=', '.join(str(c.new) for c in changed),
            tier=tier
        )

    def time_changed(self) -> Change | None:
        snapshot = self.snapshot

        if snapshot.all_instance_times:
            pairs = self.matched([
                (start, self.format_times(start, end))
                for start, end in snapshot.all_instance_times
            ])
            tier: Tier = 'exact'
        elif snapshot.first_instance_start and snapshot.first_instance_end:
            baseline = self.format_times(
                snapshot.first_instance_start,
                snapshot.first_instance_end
            )
            pairs = [(s, baseline) for s in self.current]
            tier = 'inferred'
        else:
            return None

        changed = []
        for state, old in pairs:
            new = self.format_times(state.start, state.end)
            if new != old:
                changed.append(
                    _Changed(self.format_date(state.start), old, new))

        if not changed:
            return None

        if len(changed) == 1:
            change = changed[0]

            if len(self.current) == 1:
                message = f'Time changed from {change.old} to {change.new}'
            else:
                message = (
                    f'Time changed: {change.date} - '
                    f'{change.old} → {change.new}'
                )

            return Change('time', message, change.old, change.new, tier)

        details = '\n'.join(
            f'• {c.date}: {c.old} → {c.new}' for c in changed
        )

        return Change(
            kind='time',
            message=f'Time changed on {len(changed)} sessions:\n{details}',
            old_value=changed[0].old,
            new_value=changed[0].new,
            tier=tier
        )

    def racks_changed(self) -> Change | None:
        snapshot = self.snapshot

        if snapshot.all_instance_racks:
            pairs = self.matched(snapshot.all_instance_racks)
            tier: Tier = 'exact'
        else:
            pairs = [(s, snapshot.first_instance_racks) for s in self.current]
            tier = 'inferred'

        changed = [
            _Changed(
                self.format_date(state.start),
                format_racks(old),
                format_racks(state.racks)
            )
            for state, old in pairs
            if set(state.racks) != set(old)
        ]

        if not changed:
            return None

        if len(changed) == 1:
            change = changed[0]

            if len(self.current) == 1:
                message = f'Racks changed from {change.old} to {change.new}'
            else:
                message = (
                    f'Racks changed: {change.date} - '
                    f'{change.old} → {change.new}'
                )

            return Change('racks', message, change.old, change.new, tier)

        details = '\n'.join(
            f'• {c.date}: {c.old} → {c.new}' for c in changed
        )

        return Change(
            kind='racks',
            message=(
                f'Racks changed on '
                f'{pluralize(len(changed), "session")}:\n{details}'
            ),
            old_value=changed[0].old,
            new_value=', '.join(c.new for c in changed),
            tier=tier
        )


def detect_changes(
    snapshot: ProcessedSnapshot | dict[str, Any] | None,
    processed_at: datetime | None,
    instances: Iterable[_Instance],
    timezone: TzInfoOrName,
    tolerance: timedelta = timedelta(days=1)
) -> list[Change]:
    """ Returns the changes since the booking was processed. Bookings
    which have not been processed have no changes.

    """
    if isinstance(snapshot, dict):
        snapshot = ProcessedSnapshot.from_json(snapshot)

    if snapshot is None or processed_at is None:
        return []

    return ChangeDetector(snapshot, instances, timezone, tolerance).changes()
