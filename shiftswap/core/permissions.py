"""Permission guards for group-scoped access control.

Admins may commit a group's master schedule and invite members. Members
(admins included) may take part in trades on the group's schedule. No
implicit permissions: membership is read from the group record only.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from shiftswap.core.errors import UnauthorizedError
from shiftswap.db.models import Group
from shiftswap.groups.repository import require_group


def has_admin(group: Group, user_id: str) -> bool:
    """Return True if user_id is in the group's admin set."""
    return user_id in (group.admin_ids or [])


def has_member(group: Group, user_id: str) -> bool:
    """Return True if user_id is a member of the group.

    Admins are always members, even if a record lists them only as admins.
    """
    return user_id in (group.member_ids or []) or has_admin(group, user_id)


def require_group_admin(session: Session, group_id: str, user_id: str) -> Group:
    """Require that a user administers a group.

    Args:
        session: Database session
        group_id: Group ID
        user_id: Verified id of the requesting user

    Returns:
        The group record

    Raises:
        NotFoundError: If the group does not exist
        UnauthorizedError: If the user is not an admin of the group
    """
    group = require_group(session, group_id)
    if not has_admin(group, user_id):
        logger.bind(group_id=group_id, user_id=user_id).warning("Group admin check failed")
        raise UnauthorizedError("not authorized for this group")
    return group


def require_group_member(session: Session, group_id: str, user_id: str) -> Group:
    """Require that a user belongs to a group.

    Raises:
        NotFoundError: If the group does not exist
        UnauthorizedError: If the user is not a member of the group
    """
    group = require_group(session, group_id)
    if not has_member(group, user_id):
        logger.bind(group_id=group_id, user_id=user_id).warning("Group membership check failed")
        raise UnauthorizedError("not authorized for this group")
    return group
