"""Trades on a master schedule.

Proposal, the accept/decline/cancel state machine and execution with
conflict voiding.
"""

from shiftswap.trades.types import GroupTrades, Trade, TradeAction, TradeRequest, TradeStatus
from shiftswap.trades.state_machine import TradeRole, TradeTransition, resolve_transition, role_for
from shiftswap.trades.executor import ExecutionResult, execute_trade, reassign_ownership
from shiftswap.trades.validators import create_trade
from shiftswap.trades.service import finalize_trade, list_trade_ledger, list_user_trades, propose_trade

__all__ = [
    "ExecutionResult",
    "GroupTrades",
    "Trade",
    "TradeAction",
    "TradeRequest",
    "TradeRole",
    "TradeStatus",
    "TradeTransition",
    "create_trade",
    "execute_trade",
    "finalize_trade",
    "list_trade_ledger",
    "list_user_trades",
    "propose_trade",
    "reassign_ownership",
    "resolve_transition",
    "role_for",
]
