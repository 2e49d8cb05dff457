"""Repository functions for master schedule persistence.

Single responsibility: database operations only.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftswap.core.errors import NotFoundError
from shiftswap.db.models import MasterSchedule, as_utc
from shiftswap.schedules.index_builder import index_from_document
from shiftswap.schedules.types import MasterScheduleSnapshot


def create_master_schedule_record(
    session: Session,
    *,
    group_id: str,
    schedule: dict,
    unit_index: dict,
) -> MasterSchedule:
    """Insert a master schedule with an empty ledger.

    Args:
        session: Database session
        group_id: Owning group
        schedule: JSON nested schedule
        unit_index: JSON ownership index

    Returns:
        Created MasterSchedule instance (flushed, id assigned)
    """
    record = MasterSchedule(
        group_id=group_id,
        schedule=schedule,
        unit_index=unit_index,
        ledger_size=0,
        created_at=datetime.now(timezone.utc),
    )
    session.add(record)
    session.flush()
    return record


def get_master_schedule(session: Session, schedule_id: str) -> MasterSchedule | None:
    return session.get(MasterSchedule, schedule_id)


def require_master_schedule(session: Session, schedule_id: str) -> MasterSchedule:
    """Get a master schedule by id.

    Raises:
        NotFoundError: If the schedule does not exist
    """
    record = get_master_schedule(session, schedule_id)
    if record is None:
        raise NotFoundError(f"schedule {schedule_id} not found")
    return record


def get_active_master_schedule(session: Session, group_id: str) -> MasterSchedule | None:
    """Most recently created master schedule of a group, or None."""
    query = (
        select(MasterSchedule)
        .where(MasterSchedule.group_id == group_id)
        .order_by(MasterSchedule.created_at.desc())
        .limit(1)
    )
    return session.execute(query).scalar_one_or_none()


def to_snapshot(record: MasterSchedule) -> MasterScheduleSnapshot:
    return MasterScheduleSnapshot(
        id=record.id,
        group_id=record.group_id,
        created_at=as_utc(record.created_at),
        version=record.version,
        ledger_size=record.ledger_size,
        schedule=record.schedule,
        unit_index=index_from_document(record.unit_index),
    )
