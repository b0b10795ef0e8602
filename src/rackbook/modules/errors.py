from __future__ import annotations

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection

    from rackbook.modules.capacity import CapacityResult
    from rackbook.modules.conflicts import ConflictReport


class RackbookError(Exception):
    pass


class ContextAlreadyExists(RackbookError):
    pass


class UnknownContext(RackbookError):
    pass


class ContextIsLocked(RackbookError):
    pass


class UnknownService(RackbookError):
    pass


class UnknownBooking(RackbookError):
    pass


class InvalidBookingTime(RackbookError):
    pass


class InvalidCapacity(RackbookError):
    pass


class InvalidWeekCount(RackbookError):
    pass


class MissingRacksError(RackbookError):

    __slots__ = ('weeks',)

    def __init__(self, weeks: Collection[int]):
        self.weeks = sorted(weeks)

        lines = [
            f'Week {week + 1} has no racks selected.'
            for week in self.weeks
        ]
        lines.append('Please select at least one rack for each week.')
        super().__init__('\n'.join(lines))


class BookingConflictError(RackbookError):

    __slots__ = ('report',)

    def __init__(self, report: ConflictReport):
        self.report = report
        super().__init__(report.message())


class CapacityExceededError(RackbookError):

    __slots__ = ('result',)

    def __init__(self, result: CapacityResult, message: str):
        self.result = result
        super().__init__(message)


class HardRestrictionError(RackbookError):
    """ Raised when a session starts within the hard restriction period
    and the booking may not (or not without a reason) be overridden.

    """

    __slots__ = ('hours', 'override_possible')

    def __init__(self, hours: float, override_possible: bool):
        self.hours = hours
        self.override_possible = override_possible

        message = (
            f'Hard Restriction: Bookings cannot be created or edited within '
            f'{hours:g} hours of the session start time.\n\n'
            'Bookings within this window must be handled in person. '
            'Please speak to staff.'
        )

        if override_possible:
            message += (
                '\n\n(Admin: please provide a reason for this emergency '
                'booking to proceed.)'
            )

        super().__init__(message)


class BookingWriteError(RackbookError):
    pass


class LockedBookingError(RackbookError):
    pass


class InvalidStatusTransition(RackbookError):

    __slots__ = ('old', 'new')

    def __init__(self, old: str, new: str):
        self.old = old
        self.new = new
        super().__init__(f'A {old} booking cannot become {new}')
