"""Master schedules: ownership index and group-scoped persistence."""

from shiftswap.schedules.index_builder import build_ownership_index
from shiftswap.schedules.service import create_master_schedule, get_active_master_schedule
from shiftswap.schedules.types import GeneratedSchedule, IndexedUnit, MasterScheduleSnapshot

__all__ = [
    "GeneratedSchedule",
    "IndexedUnit",
    "MasterScheduleSnapshot",
    "build_ownership_index",
    "create_master_schedule",
    "get_active_master_schedule",
]
