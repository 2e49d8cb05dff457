"""Trade execution and conflict resolution.

Runs inside the caller's transaction. Nothing is committed here: the
caller's session commits or rolls back the whole execution.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.orm import Session

from shiftswap.config.settings import settings
from shiftswap.core.errors import ConsistencyError
from shiftswap.db.models import LedgerTrade, MasterSchedule
from shiftswap.trades.repository import list_ledger, to_trade
from shiftswap.trades.types import Trade, TradeStatus


@dataclass
class ExecutionResult:
    """What an execution changed."""

    trade_id: str
    voided_trade_ids: list[str] = field(default_factory=list)
    reassigned_units: dict[str, str] = field(default_factory=dict)  # unit id -> new owner
    skipped_units: list[str] = field(default_factory=list)


def _locate_unit(schedule_doc: dict, unit_id: str, coordinates: object) -> dict:
    """Return the nested unit addressed by coordinates.

    Raises:
        ConsistencyError: If coordinates are malformed or address a different unit
    """
    if (
        not isinstance(coordinates, list | tuple)
        or len(coordinates) != 3
        or not all(isinstance(c, int) and not isinstance(c, bool) for c in coordinates)
    ):
        raise ConsistencyError("schedule map unit indices corrupt")

    i, j, k = coordinates
    try:
        if min(i, j, k) < 0:
            raise IndexError
        unit = schedule_doc["seasons"][i]["blocks"][j]["units"][k]
    except (KeyError, IndexError, TypeError) as e:
        raise ConsistencyError("schedule map unit indices corrupt") from e

    if not isinstance(unit, dict) or unit.get("id") != unit_id:
        raise ConsistencyError(f"schedule map unit indices corrupt: {unit_id} not at {list(coordinates)}")
    return unit


def reassign_ownership(
    schedule_doc: dict,
    index_doc: dict,
    trade: Trade,
    *,
    allow_unindexed: bool = False,
) -> tuple[dict, dict, ExecutionResult]:
    """Swap ownership of a trade's units.

    Initiator units go to the executor, executor units go to the initiator,
    in both the ownership index and the nested schedule. Inputs are not
    modified.

    Args:
        schedule_doc: Stored nested schedule
        index_doc: Stored ownership index
        trade: Trade being executed
        allow_unindexed: Skip unit ids missing from the index instead of failing

    Returns:
        (new schedule, new index, result)

    Raises:
        ConsistencyError: If a unit is missing from the index (strict mode) or
            its coordinates do not address it
    """
    new_schedule = copy.deepcopy(schedule_doc)
    new_index = copy.deepcopy(index_doc)
    result = ExecutionResult(trade_id=trade.id)

    moves = [(unit_id, trade.executor_email) for unit_id in trade.initiator_units]
    moves += [(unit_id, trade.initiator_email) for unit_id in trade.executor_units]

    # Resolve every unit before writing any of them
    resolved: list[tuple[str, str, dict, dict]] = []
    for unit_id, new_owner in moves:
        entry = new_index.get(unit_id)
        if entry is None:
            if not allow_unindexed:
                raise ConsistencyError(f"{unit_id} missing from schedule ownership index")
            logger.bind(trade_id=trade.id, unit_id=unit_id).warning("Skipping unit absent from ownership index")
            result.skipped_units.append(unit_id)
            continue
        unit = _locate_unit(new_schedule, unit_id, entry.get("coordinates"))
        resolved.append((unit_id, new_owner, entry, unit))

    for unit_id, new_owner, entry, unit in resolved:
        entry["owner"] = new_owner
        unit["participant"] = new_owner
        result.reassigned_units[unit_id] = new_owner

    return new_schedule, new_index, result


def void_conflicting_trades(session: Session, schedule: MasterSchedule, trade_row: LedgerTrade) -> list[str]:
    """Void every other ledger trade that shares a unit with trade_row.

    Status is overwritten regardless of its current value.

    Returns:
        Ids of the trades that changed status
    """
    accepted = to_trade(trade_row)
    voided: list[str] = []
    for other in list_ledger(session, schedule.id):
        if not accepted.conflicts_with(to_trade(other)):
            continue
        if other.status != TradeStatus.VOID.value:
            other.status = TradeStatus.VOID.value
            voided.append(other.id)
    return voided


def execute_trade(session: Session, schedule: MasterSchedule, trade_row: LedgerTrade) -> ExecutionResult:
    """Execute an accepted trade.

    Steps:
    1. Void competing trades sharing any unit
    2. Reassign ownership in the index and the nested schedule
    3. Mark the trade executed

    Args:
        session: Database session (transaction owned by the caller)
        schedule: Master schedule row, loaded in this session
        trade_row: Trade being accepted, loaded in this session

    Returns:
        ExecutionResult

    Raises:
        ConsistencyError: If the stored index and schedule disagree
    """
    trade = to_trade(trade_row)

    # Computed first: a corrupt index fails before any row is touched
    new_schedule, new_index, result = reassign_ownership(
        schedule.schedule,
        schedule.unit_index,
        trade,
        allow_unindexed=settings.allow_unindexed_trade_units,
    )

    result.voided_trade_ids = void_conflicting_trades(session, schedule, trade_row)

    # New objects so the JSON columns are flagged dirty
    schedule.schedule = new_schedule
    schedule.unit_index = new_index
    trade_row.status = TradeStatus.EXECUTED.value
    session.flush()

    logger.info(
        "Trade executed",
        trade_id=trade.id,
        schedule_id=schedule.id,
        voided=len(result.voided_trade_ids),
        reassigned=len(result.reassigned_units),
    )
    return result
