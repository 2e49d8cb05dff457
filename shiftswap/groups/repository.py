"""Repository functions for group lookups."""

from __future__ import annotations

from sqlalchemy.orm import Session

from shiftswap.core.errors import NotFoundError
from shiftswap.db.models import Group


def get_group(session: Session, group_id: str) -> Group | None:
    return session.get(Group, group_id)


def require_group(session: Session, group_id: str) -> Group:
    """Get a group by id.

    Raises:
        NotFoundError: If the group does not exist
    """
    group = get_group(session, group_id)
    if group is None:
        raise NotFoundError(f"group {group_id} not found")
    return group
