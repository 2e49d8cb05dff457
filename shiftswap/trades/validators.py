"""Trade creation rules.

create_trade only reads: it checks the request against the master schedule,
its group and the ownership index, then returns a new open Trade. Appending
it to the ledger is the service's job.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger
from sqlalchemy.orm import Session

from shiftswap.config.settings import settings
from shiftswap.core.errors import InvalidRequestError, UnauthorizedError
from shiftswap.core.permissions import has_member
from shiftswap.db.models import MasterSchedule
from shiftswap.groups.repository import require_group
from shiftswap.schedules.repository import require_master_schedule
from shiftswap.trades.types import Trade, TradeRequest
from shiftswap.users.repository import require_user_by_email


def check_unit_ownership(
    schedule: MasterSchedule,
    units: Iterable[str],
    owner_email: str,
    *,
    allow_unindexed: bool,
) -> None:
    """Require that every indexed unit is owned by owner_email.

    Raises:
        InvalidRequestError: If a unit is owned by someone else, or is not in
            the index and allow_unindexed is False
    """
    index = schedule.unit_index or {}
    for unit_id in units:
        entry = index.get(unit_id)
        if entry is None:
            if allow_unindexed:
                logger.bind(schedule_id=schedule.id, unit_id=unit_id).debug("Accepting unit absent from ownership index")
                continue
            raise InvalidRequestError(f"{unit_id} is not part of schedule {schedule.id}")
        if entry.get("owner") != owner_email:
            raise InvalidRequestError(f"{unit_id} not owned by {owner_email}")


def create_trade(session: Session, request: TradeRequest, requesting_user_id: str) -> Trade:
    """Validate a trade request and build an open Trade.

    Flow:
    1. Master schedule must exist
    2. Initiator and executor must exist
    3. Caller must be the initiator
    4. Both users must belong to the schedule's group
    5. Each side must own the units it offers
    6. Build the trade (not persisted)

    Args:
        session: Database session
        request: Trade request (unit ids already normalized)
        requesting_user_id: Verified id of the caller

    Returns:
        New Trade with status OPEN

    Raises:
        NotFoundError: If the schedule, a user or the group does not exist
        UnauthorizedError: If the caller is not the initiator
        InvalidRequestError: If membership or ownership rules are violated
    """
    schedule = require_master_schedule(session, request.schedule_id)

    initiator = require_user_by_email(session, request.initiator_email)
    executor = require_user_by_email(session, request.executor_email)

    if requesting_user_id != initiator.id:
        logger.bind(schedule_id=schedule.id, user_id=requesting_user_id).warning("Trade proposed on behalf of another user")
        raise UnauthorizedError("trade must be made by initiator")

    if initiator.id == executor.id:
        raise InvalidRequestError("cannot trade with yourself")

    group = require_group(session, schedule.group_id)
    if not (has_member(group, initiator.id) and has_member(group, executor.id)):
        raise InvalidRequestError("one trade member does not belong to group")

    overlap = set(request.initiator_units) & set(request.executor_units)
    if overlap:
        raise InvalidRequestError(f"{sorted(overlap)[0]} cannot be on both sides of a trade")

    allow_unindexed = settings.allow_unindexed_trade_units
    check_unit_ownership(schedule, request.initiator_units, initiator.email, allow_unindexed=allow_unindexed)
    check_unit_ownership(schedule, request.executor_units, executor.email, allow_unindexed=allow_unindexed)

    trade = Trade(
        initiator_email=initiator.email,
        executor_email=executor.email,
        initiator_units=list(request.initiator_units),
        executor_units=list(request.executor_units),
    )
    logger.debug(f"Validated trade {trade.id} on schedule {schedule.id}")
    return trade
