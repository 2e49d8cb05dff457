"""Repository functions for the trade ledger.

Single responsibility: database operations only.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftswap.core.errors import NotFoundError
from shiftswap.db.models import LedgerTrade, MasterSchedule, as_utc
from shiftswap.trades.types import Trade, TradeStatus


def append_trade(session: Session, schedule: MasterSchedule, trade: Trade) -> LedgerTrade:
    """Append a trade to a master schedule's ledger.

    The ledger position is the schedule's current ledger size. Incrementing
    ledger_size bumps the schedule version, so two concurrent appends to the
    same schedule cannot both commit.

    Args:
        session: Database session
        schedule: Master schedule the trade belongs to
        trade: Validated trade

    Returns:
        Created LedgerTrade instance (flushed)
    """
    row = LedgerTrade(
        id=trade.id,
        schedule_id=schedule.id,
        ledger_position=schedule.ledger_size,
        initiator_email=trade.initiator_email,
        executor_email=trade.executor_email,
        initiator_units=list(trade.initiator_units),
        executor_units=list(trade.executor_units),
        status=trade.status.value,
        created_at=trade.created_at,
    )
    session.add(row)
    schedule.ledger_size = schedule.ledger_size + 1
    session.flush()
    return row


def get_ledger_trade(session: Session, schedule_id: str, trade_id: str) -> LedgerTrade | None:
    query = select(LedgerTrade).where(LedgerTrade.schedule_id == schedule_id, LedgerTrade.id == trade_id)
    return session.execute(query).scalar_one_or_none()


def require_ledger_trade(session: Session, schedule_id: str, trade_id: str) -> LedgerTrade:
    """Get a trade from a schedule's ledger.

    Raises:
        NotFoundError: If the trade is not in this schedule's ledger
    """
    row = get_ledger_trade(session, schedule_id, trade_id)
    if row is None:
        raise NotFoundError(f"trade {trade_id} not found in schedule {schedule_id}")
    return row


def list_ledger(session: Session, schedule_id: str) -> list[LedgerTrade]:
    """All trades of a schedule in insertion order."""
    query = select(LedgerTrade).where(LedgerTrade.schedule_id == schedule_id).order_by(LedgerTrade.ledger_position)
    return list(session.execute(query).scalars().all())


def list_ledger_for_user(session: Session, schedule_id: str, email: str) -> list[LedgerTrade]:
    """Trades of a schedule where the user is initiator or executor."""
    query = (
        select(LedgerTrade)
        .where(
            LedgerTrade.schedule_id == schedule_id,
            (LedgerTrade.initiator_email == email) | (LedgerTrade.executor_email == email),
        )
        .order_by(LedgerTrade.ledger_position)
    )
    return list(session.execute(query).scalars().all())


def to_trade(row: LedgerTrade) -> Trade:
    return Trade(
        id=row.id,
        created_at=as_utc(row.created_at),
        initiator_email=row.initiator_email,
        executor_email=row.executor_email,
        initiator_units=list(row.initiator_units),
        executor_units=list(row.executor_units),
        status=TradeStatus(row.status),
    )
