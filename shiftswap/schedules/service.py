"""Master schedule service.

Commits a generated schedule as a group's master schedule and reads the
group's active one.
"""

from collections.abc import Mapping

from loguru import logger

from shiftswap.core.errors import NotFoundError
from shiftswap.core.permissions import require_group_admin
from shiftswap.db.session import get_session
from shiftswap.schedules.index_builder import build_ownership_index, index_to_document, parse_generated_schedule
from shiftswap.schedules.repository import create_master_schedule_record, get_active_master_schedule as _get_active, to_snapshot
from shiftswap.schedules.types import GeneratedSchedule, MasterScheduleSnapshot


def create_master_schedule(
    schedule: GeneratedSchedule | Mapping,
    group_id: str,
    requesting_user_id: str,
) -> MasterScheduleSnapshot:
    """Commit a generated schedule as the group's master schedule.

    Flow:
    1. Group must exist and the caller must be one of its admins
    2. Build the ownership index
    3. Persist schedule, index and an empty ledger

    The new schedule becomes the group's active one; older schedules are kept.

    Args:
        schedule: Generator output
        group_id: Owning group
        requesting_user_id: Verified id of the caller

    Returns:
        Snapshot of the persisted master schedule

    Raises:
        NotFoundError: If the group does not exist
        UnauthorizedError: If the caller is not a group admin
        InvalidRequestError: If the schedule is malformed
        CorruptScheduleError: If the schedule repeats a unit id
    """
    parsed = parse_generated_schedule(schedule)
    index = build_ownership_index(parsed)

    with get_session() as db:
        require_group_admin(db, group_id, requesting_user_id)
        record = create_master_schedule_record(
            db,
            group_id=group_id,
            schedule=parsed.to_document(),
            unit_index=index_to_document(index),
        )
        snapshot = to_snapshot(record)

    logger.info(
        "Master schedule created",
        schedule_id=snapshot.id,
        group_id=group_id,
        user_id=requesting_user_id,
        unit_count=len(index),
    )
    return snapshot


def get_active_master_schedule(group_id: str) -> MasterScheduleSnapshot:
    """Return the group's most recently created master schedule.

    Raises:
        NotFoundError: If the group has no master schedule
    """
    with get_session() as db:
        record = _get_active(db, group_id)
        if record is None:
            raise NotFoundError(f"no master schedule for group {group_id}")
        return to_snapshot(record)
