"""Trade event dispatch.

Events are dispatched only after the trade's transaction committed, on a
daemon thread. Delivery (email, push) is done by registered sinks; a failing
sink is logged and never affects the trade.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger

from shiftswap.config.settings import settings

if TYPE_CHECKING:
    from shiftswap.trades.types import Trade

TRADE_PROPOSED = "trade_proposed"
TRADE_EXECUTED = "trade_executed"
TRADE_DECLINED = "trade_declined"
TRADE_CANCELLED = "trade_cancelled"


@dataclass(frozen=True)
class TradeEvent:
    event_type: str
    trade_id: str
    schedule_id: str
    initiator_email: str
    executor_email: str
    status: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_trade(cls, event_type: str, trade: Trade, schedule_id: str) -> "TradeEvent":
        return cls(
            event_type=event_type,
            trade_id=trade.id,
            schedule_id=schedule_id,
            initiator_email=trade.initiator_email,
            executor_email=trade.executor_email,
            status=trade.status.value,
        )


TradeEventSink = Callable[[TradeEvent], None]

_sinks: list[TradeEventSink] = []
_sinks_lock = threading.Lock()


def log_sink(event: TradeEvent) -> None:
    logger.info(
        "Trade event",
        event_type=event.event_type,
        trade_id=event.trade_id,
        schedule_id=event.schedule_id,
        status=event.status,
    )


def register_sink(sink: TradeEventSink) -> None:
    with _sinks_lock:
        _sinks.append(sink)


def clear_sinks() -> None:
    """Remove every sink, including the default log sink."""
    with _sinks_lock:
        _sinks.clear()


def reset_sinks() -> None:
    """Restore the default sink list."""
    with _sinks_lock:
        _sinks.clear()
        _sinks.append(log_sink)


def _deliver(event: TradeEvent, sinks: list[TradeEventSink]) -> None:
    for sink in sinks:
        try:
            sink(event)
        except Exception as e:
            logger.bind(event_type=event.event_type, trade_id=event.trade_id).warning(
                f"Trade event sink {getattr(sink, '__name__', sink)!r} failed: {e}"
            )


def dispatch_trade_event(event: TradeEvent) -> threading.Thread | None:
    """Deliver an event to all sinks on a background thread.

    Call only after the transaction that produced the event committed.

    Returns:
        The started thread, or None when notifications are disabled or no
        sink is registered
    """
    if not settings.notifications_enabled:
        logger.debug(f"Notifications disabled, dropping {event.event_type} for trade {event.trade_id}")
        return None

    with _sinks_lock:
        sinks = list(_sinks)
    if not sinks:
        return None

    thread = threading.Thread(target=_deliver, args=(event, sinks), daemon=True, name=f"trade-event-{event.trade_id}")
    thread.start()
    logger.debug(f"Dispatched {event.event_type} for trade {event.trade_id}")
    return thread


reset_sinks()
