"""Ownership index builder.

Flattens a generated nested schedule into unit id → {owner, start,
coordinates}. The coordinates let execution find the nested unit again in
O(1) when ownership changes.
"""

from collections.abc import Mapping

from loguru import logger
from pydantic import ValidationError

from shiftswap.core.errors import CorruptScheduleError, InvalidRequestError
from shiftswap.schedules.types import GeneratedSchedule, IndexedUnit


def parse_generated_schedule(schedule: GeneratedSchedule | Mapping) -> GeneratedSchedule:
    """Coerce raw generator output into a GeneratedSchedule.

    Raises:
        InvalidRequestError: If the mapping is not a seasons → blocks → units structure
    """
    if isinstance(schedule, GeneratedSchedule):
        return schedule
    try:
        return GeneratedSchedule.model_validate(schedule)
    except ValidationError as e:
        raise InvalidRequestError(f"malformed schedule: {e.error_count()} validation error(s): {e.errors()[0]['msg']}") from e


def build_ownership_index(schedule: GeneratedSchedule | Mapping) -> dict[str, IndexedUnit]:
    """Build the ownership index of a generated schedule.

    Args:
        schedule: Generated schedule (model or raw mapping)

    Returns:
        Mapping of unit id to IndexedUnit

    Raises:
        InvalidRequestError: If the schedule is malformed
        CorruptScheduleError: If two units share an id
    """
    parsed = parse_generated_schedule(schedule)

    index: dict[str, IndexedUnit] = {}
    for i, season in enumerate(parsed.seasons):
        for j, block in enumerate(season.blocks):
            for k, unit in enumerate(block.units):
                if unit.id in index:
                    logger.error(
                        "Duplicate unit id in generated schedule",
                        unit_id=unit.id,
                        first=index[unit.id].coordinates,
                        second=[i, j, k],
                    )
                    raise CorruptScheduleError(unit.id)
                index[unit.id] = IndexedUnit(owner=unit.participant, start=unit.start, coordinates=[i, j, k])

    logger.debug(f"Built ownership index with {len(index)} units")
    return index


def index_to_document(index: Mapping[str, IndexedUnit]) -> dict:
    """JSON-compatible form of an ownership index."""
    return {unit_id: entry.model_dump(mode="json") for unit_id, entry in index.items()}


def index_from_document(document: Mapping) -> dict[str, IndexedUnit]:
    """Load a stored ownership index."""
    return {unit_id: IndexedUnit.model_validate(entry) for unit_id, entry in document.items()}
