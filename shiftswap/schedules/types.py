"""Schedule types.

The nested schedule is produced by an external generator and stored as-is.
These models give the engine typed access to the parts it reads (unit id,
start, participant) and keep every other generator field untouched.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_unit_id(value: str) -> str:
    """Return the canonical (lowercase, hyphenated) form of a unit UUID.

    Raises:
        ValueError: If value is not a UUID
    """
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"invalid unit id: {value!r}") from e


class ScheduleUnit(BaseModel):
    """Smallest assignable slot of a generated schedule.

    Attributes:
        id: Stable unique unit id (UUID)
        start: Start time of the slot
        participant: Owner email
    """

    model_config = ConfigDict(extra="allow")

    id: str
    start: datetime
    participant: str

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value: object) -> str:
        return normalize_unit_id(str(value))


class ScheduleBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    units: list[ScheduleUnit] = Field(default_factory=list)


class ScheduleSeason(BaseModel):
    model_config = ConfigDict(extra="allow")

    blocks: list[ScheduleBlock] = Field(default_factory=list)


class GeneratedSchedule(BaseModel):
    """Generator output: ordered seasons → blocks → units."""

    model_config = ConfigDict(extra="allow")

    seasons: list[ScheduleSeason] = Field(default_factory=list)

    def to_document(self) -> dict:
        """JSON-compatible form stored on the master schedule."""
        return self.model_dump(mode="json")


class IndexedUnit(BaseModel):
    """Ownership index entry.

    Attributes:
        owner: Current owner email, always equal to the nested unit's participant
        start: Start time of the unit
        coordinates: [season index, block index, unit index] into the nested schedule
    """

    owner: str
    start: datetime
    coordinates: list[int]


class MasterScheduleSnapshot(BaseModel):
    """Detached, read-only view of a master schedule."""

    id: str
    group_id: str
    created_at: datetime
    version: int
    ledger_size: int
    schedule: dict
    unit_index: dict[str, IndexedUnit]

    def owner_of(self, unit_id: str) -> str | None:
        entry = self.unit_index.get(normalize_unit_id(unit_id))
        return entry.owner if entry else None
