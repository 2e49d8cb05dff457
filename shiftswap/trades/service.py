"""Trade service.

Request-level trade flows. Each write runs under the schedule's lock and
inside run_with_retry, so an attempt that lost an optimistic version check
is re-run from scratch against the committed state.
"""

from __future__ import annotations

from loguru import logger

from shiftswap.core.concurrency import run_with_retry, schedule_lock
from shiftswap.core.errors import InvalidRequestError
from shiftswap.core.permissions import require_group_member
from shiftswap.db.session import get_session
from shiftswap.notifications.dispatcher import TRADE_PROPOSED, TradeEvent, dispatch_trade_event
from shiftswap.schedules.repository import get_active_master_schedule, require_master_schedule
from shiftswap.trades.executor import execute_trade
from shiftswap.trades.repository import append_trade, list_ledger, list_ledger_for_user, require_ledger_trade, to_trade
from shiftswap.trades.state_machine import resolve_transition, role_for
from shiftswap.trades.types import GroupTrades, Trade, TradeAction, TradeRequest
from shiftswap.trades.validators import create_trade
from shiftswap.users.repository import require_user_by_id


def propose_trade(request: TradeRequest, requesting_user_id: str) -> Trade:
    """Validate a trade request and append it to the schedule's ledger.

    Args:
        request: Trade request
        requesting_user_id: Verified id of the caller (must be the initiator)

    Returns:
        The open trade as stored

    Raises:
        NotFoundError: If the schedule, a user or the group does not exist
        UnauthorizedError: If the caller is not the initiator
        InvalidRequestError: If membership or ownership rules are violated
        PersistenceTimeoutError: If the schedule lock or the database timed out
        ConcurrentModificationError: If every attempt lost a concurrent write
    """

    def _attempt() -> Trade:
        with get_session() as db:
            trade = create_trade(db, request, requesting_user_id)
            schedule = require_master_schedule(db, request.schedule_id)
            row = append_trade(db, schedule, trade)
            return to_trade(row)

    with schedule_lock(request.schedule_id):
        trade = run_with_retry(_attempt, description="propose trade")

    logger.info(
        "Trade proposed",
        trade_id=trade.id,
        schedule_id=request.schedule_id,
        user_id=requesting_user_id,
    )
    dispatch_trade_event(TradeEvent.from_trade(TRADE_PROPOSED, trade, request.schedule_id))
    return trade


def finalize_trade(
    trade_id: str,
    schedule_id: str,
    requesting_user_id: str,
    action: TradeAction | int | str,
) -> Trade:
    """Accept, decline or cancel an open trade.

    The executor accepts (ownership swap, conflicting trades voided) or
    declines (void); the initiator cancels with a decline action.

    Args:
        trade_id: Trade to finalize
        schedule_id: Master schedule whose ledger holds the trade
        requesting_user_id: Verified id of the caller
        action: TradeAction, or wire code 1 (accept) / 0 (decline)

    Returns:
        The trade with its new status

    Raises:
        InvalidRequestError: If the action is unknown, the trade is not open,
            or the initiator tries to accept
        NotFoundError: If the user, schedule or trade does not exist
        UnauthorizedError: If the caller is not part of the trade
        ConsistencyError: If the stored schedule and index disagree
        PersistenceTimeoutError: If the schedule lock or the database timed out
        ConcurrentModificationError: If every attempt lost a concurrent write
    """
    resolved_action = _parse_action(action)

    def _attempt() -> tuple[Trade, str]:
        with get_session() as db:
            user = require_user_by_id(db, requesting_user_id)
            schedule = require_master_schedule(db, schedule_id)
            row = require_ledger_trade(db, schedule_id, trade_id)
            trade = to_trade(row)

            transition = resolve_transition(trade.status, role_for(trade, user.email), resolved_action)
            if transition.requires_execution:
                execute_trade(db, schedule, row)
            else:
                row.status = transition.new_status.value
                db.flush()
            return to_trade(row), transition.reason

    with schedule_lock(schedule_id):
        trade, reason = run_with_retry(_attempt, description="finalize trade")

    logger.info(
        "Trade finalized",
        trade_id=trade.id,
        schedule_id=schedule_id,
        user_id=requesting_user_id,
        status=trade.status.value,
    )
    dispatch_trade_event(TradeEvent.from_trade(reason, trade, schedule_id))
    return trade


def _parse_action(action: TradeAction | int | str) -> TradeAction:
    if isinstance(action, TradeAction):
        return action
    try:
        if isinstance(action, int) and not isinstance(action, bool):
            return TradeAction.from_code(action)
        return TradeAction(action)
    except ValueError as e:
        raise InvalidRequestError(f"invalid trade action: {action!r}") from e


def list_trade_ledger(schedule_id: str, requesting_user_id: str | None = None) -> list[Trade]:
    """Trades of a master schedule in insertion order.

    Args:
        schedule_id: Master schedule id
        requesting_user_id: When given, the caller must be a member of the schedule's group

    Raises:
        NotFoundError: If the schedule does not exist
        UnauthorizedError: If the caller is not a group member
    """
    with get_session() as db:
        schedule = require_master_schedule(db, schedule_id)
        if requesting_user_id is not None:
            require_group_member(db, schedule.group_id, requesting_user_id)
        return [to_trade(row) for row in list_ledger(db, schedule_id)]


def list_user_trades(user_id: str) -> dict[str, GroupTrades]:
    """A user's trades on the active schedule of each of their groups.

    Groups without a master schedule are left out.

    Raises:
        NotFoundError: If the user does not exist
    """
    result: dict[str, GroupTrades] = {}
    with get_session() as db:
        user = require_user_by_id(db, user_id)
        for group_id in user.group_ids or []:
            schedule = get_active_master_schedule(db, group_id)
            if schedule is None:
                logger.debug(f"Group {group_id} has no master schedule")
                continue
            rows = list_ledger_for_user(db, schedule.id, user.email)
            result[group_id] = GroupTrades(
                schedule_id=schedule.id,
                group_id=group_id,
                trades=[to_trade(row) for row in rows],
            )
    return result
