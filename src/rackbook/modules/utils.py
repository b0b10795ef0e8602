from __future__ import annotations

import sedate


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from sedate.types import TzInfoOrName


def pluralize(count: int, word: str) -> str:
    return f'{count} {word}' if count == 1 else f'{count} {word}s'


def overlaps(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime
) -> bool:
    """ Half-open overlap test, touching ranges do not overlap. """
    return other_start < end and other_end > start


def format_racks(racks: Iterable[int]) -> str:
    return ', '.join(str(rack) for rack in sorted(racks))


def localize(date: datetime, timezone: TzInfoOrName) -> datetime:
    return sedate.to_timezone(
        sedate.standardize_date(date, timezone), timezone)


def format_date(date: datetime, timezone: TzInfoOrName) -> str:
    """ British style date, e.g. 'Mon 5 Jan 2026'. """
    local = localize(date, timezone)
    return f'{local:%a} {local.day} {local:%b %Y}'


def format_time(date: datetime, timezone: TzInfoOrName) -> str:
    return f'{localize(date, timezone):%H:%M}'


def format_datetime(date: datetime, timezone: TzInfoOrName) -> str:
    local = localize(date, timezone)
    return f'{local:%a} {local.day} {local:%b}, {local:%H:%M}'


def format_timerange(
    start: datetime,
    end: datetime,
    timezone: TzInfoOrName
) -> str:
    return (
        f'{format_datetime(start, timezone)} - '
        f'{format_datetime(end, timezone)}'
    )
