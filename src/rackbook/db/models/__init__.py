from rackbook.db.models.base import ORMBase
from rackbook.db.models.booking import Booking
from rackbook.db.models.instance import BookingInstance
from rackbook.db.models.occupied_rack import OccupiedRack
from rackbook.db.models.capacity_schedule import CapacitySchedule
from rackbook.db.models.capacity_schedule import PeriodTypeDefault
from rackbook.db.models.task import Task


__all__ = [
    'ORMBase',
    'Booking',
    'BookingInstance',
    'OccupiedRack',
    'CapacitySchedule',
    'PeriodTypeDefault',
    'Task',
]
