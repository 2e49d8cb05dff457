"""Trade types.

Trade is the value the validator produces and the service returns. The
ledger row (LedgerTrade) is its persisted form.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shiftswap.schedules.types import normalize_unit_id


class TradeStatus(str, Enum):
    """Lifecycle status of a trade. Everything but OPEN is terminal."""

    OPEN = "open"
    EXECUTED = "executed"  # Accepted by the executor, ownership swapped
    VOID = "void"  # Declined by the executor, or invalidated by a conflicting execution
    CANCELLED = "cancelled"  # Withdrawn by the initiator

    @property
    def is_terminal(self) -> bool:
        return self is not TradeStatus.OPEN


class TradeAction(str, Enum):
    """Finalize action. The request layer's wire codes are 1 (accept) and 0 (decline/cancel)."""

    ACCEPT = "accept"
    DECLINE = "decline"

    @classmethod
    def from_code(cls, code: int) -> "TradeAction":
        if code == 1:
            return cls.ACCEPT
        if code == 0:
            return cls.DECLINE
        raise ValueError("action should be 0 (decline/cancel) or 1 (accept)")


def _normalize_unit_list(values: list[str], label: str) -> list[str]:
    if not values:
        raise ValueError(f"must have at least one {label} unit")
    normalized: list[str] = []
    for value in values:
        unit_id = normalize_unit_id(value)
        if unit_id not in normalized:
            normalized.append(unit_id)
    return normalized


class TradeRequest(BaseModel):
    """Request to open a trade on a master schedule.

    Attributes:
        schedule_id: Master schedule the units belong to
        initiator_email: Member proposing the trade (gives away initiator_units)
        executor_email: Counter-party (gives away executor_units)
        initiator_units: Unit ids the initiator offers
        executor_units: Unit ids the initiator asks for
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    schedule_id: str = Field(..., min_length=1)
    initiator_email: str = Field(..., min_length=1)
    executor_email: str = Field(..., min_length=1)
    initiator_units: list[str]
    executor_units: list[str]

    @field_validator("initiator_units")
    @classmethod
    def validate_initiator_units(cls, value: list[str]) -> list[str]:
        return _normalize_unit_list(value, "initiator")

    @field_validator("executor_units")
    @classmethod
    def validate_executor_units(cls, value: list[str]) -> list[str]:
        return _normalize_unit_list(value, "executor")


class Trade(BaseModel):
    """Bilateral exchange of unit ownership between two group members.

    Immutable value read from or written to the ledger; status changes go
    through the LedgerTrade row.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    initiator_email: str
    executor_email: str
    initiator_units: list[str]
    executor_units: list[str]
    status: TradeStatus = TradeStatus.OPEN

    @model_validator(mode="after")
    def validate_unit_sets(self) -> "Trade":
        if not self.initiator_units or not self.executor_units:
            raise ValueError("both sides of a trade must offer at least one unit")
        return self

    def unit_ids(self) -> set[str]:
        """All units referenced by either side."""
        return set(self.initiator_units) | set(self.executor_units)

    def conflicts_with(self, other: "Trade") -> bool:
        """True if both trades reference at least one common unit."""
        return other.id != self.id and bool(self.unit_ids() & other.unit_ids())


class GroupTrades(BaseModel):
    """A user's trades on one group's active schedule."""

    schedule_id: str
    group_id: str
    trades: list[Trade] = Field(default_factory=list)
