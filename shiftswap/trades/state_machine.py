"""Trade state machine.

open → executed   executor accepts (ownership is swapped, conflicts are voided)
open → void       executor declines
open → cancelled  initiator withdraws
Every other (status, role, action) combination is rejected without mutation.
"""

from dataclasses import dataclass
from enum import Enum

from shiftswap.core.errors import InvalidRequestError, UnauthorizedError
from shiftswap.trades.types import Trade, TradeAction, TradeStatus


class TradeRole(str, Enum):
    INITIATOR = "initiator"
    EXECUTOR = "executor"
    OUTSIDER = "outsider"


@dataclass(frozen=True)
class TradeTransition:
    """Outcome of a finalize request.

    Attributes:
        previous_status: Status before the transition (always OPEN)
        new_status: Status after the transition
        requires_execution: True if ownership must be reassigned (executor accept)
        reason: Short machine-readable reason, used for events and logs
    """

    previous_status: TradeStatus
    new_status: TradeStatus
    requires_execution: bool
    reason: str


# (role, action) -> (new status, reason). OUTSIDER never reaches this table.
_TRANSITIONS: dict[tuple[TradeRole, TradeAction], tuple[TradeStatus, str] | None] = {
    (TradeRole.EXECUTOR, TradeAction.ACCEPT): (TradeStatus.EXECUTED, "trade_executed"),
    (TradeRole.EXECUTOR, TradeAction.DECLINE): (TradeStatus.VOID, "trade_declined"),
    (TradeRole.INITIATOR, TradeAction.ACCEPT): None,
    (TradeRole.INITIATOR, TradeAction.DECLINE): (TradeStatus.CANCELLED, "trade_cancelled"),
}


def role_for(trade: Trade, email: str) -> TradeRole:
    """Role of the user with this email in the trade.

    The executor check comes first, matching the finalize rules.
    """
    if email == trade.executor_email:
        return TradeRole.EXECUTOR
    if email == trade.initiator_email:
        return TradeRole.INITIATOR
    return TradeRole.OUTSIDER


def resolve_transition(status: TradeStatus, role: TradeRole, action: TradeAction) -> TradeTransition:
    """Resolve the transition for a finalize request.

    Args:
        status: Current trade status
        role: Caller's role in the trade
        action: Requested action

    Returns:
        TradeTransition describing the new status

    Raises:
        InvalidRequestError: If the trade is no longer open, or the initiator tries to accept
        UnauthorizedError: If the caller is neither initiator nor executor
    """
    if status.is_terminal:
        raise InvalidRequestError("trade is void or cancelled")

    if role is TradeRole.OUTSIDER:
        raise UnauthorizedError("requestor not involved in trade")

    outcome = _TRANSITIONS[(role, action)]
    if outcome is None:
        raise InvalidRequestError("initiator cannot perform this action")

    new_status, reason = outcome
    return TradeTransition(
        previous_status=status,
        new_status=new_status,
        requires_execution=new_status is TradeStatus.EXECUTED,
        reason=reason,
    )
