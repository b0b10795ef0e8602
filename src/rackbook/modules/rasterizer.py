""" Slots of a fixed length (the raster) used to record which racks are
occupied when.

Rasterized spans are inclusive, they start at the beginning of the first
slot and end a microsecond before the end of the last slot.

"""
from __future__ import annotations

from datetime import timedelta


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime
    from typing_extensions import TypeAlias

    Raster: TypeAlias = Literal[5, 10, 15, 20, 30, 60]

MIN_RASTER: Raster = 5
VALID_RASTERS = (5, 10, 15, 20, 30, 60)


def rasterize_start(date: datetime, raster: Raster) -> datetime:
    assert raster in VALID_RASTERS

    return date.replace(
        minute=date.minute - date.minute % raster,
        second=0,
        microsecond=0
    )


def rasterize_end(date: datetime, raster: Raster) -> datetime:
    return (
        rasterize_start(date, raster)
        + timedelta(minutes=raster, microseconds=-1)
    )


def rasterize_span(
    start: datetime,
    end: datetime,
    raster: Raster
) -> tuple[datetime, datetime]:
    return rasterize_start(start, raster), rasterize_end(end, raster)


def iterate_span(
    start: datetime,
    end: datetime,
    raster: Raster
) -> Iterator[tuple[datetime, datetime]]:
    """ Yields the slots touched by the given half-open span. """

    # the end itself is not part of the span
    start, end = rasterize_span(start, end - timedelta(microseconds=1), raster)

    step = timedelta(minutes=raster)
    current = start

    while current < end:
        yield current, current + step - timedelta(microseconds=1)
        current += step
