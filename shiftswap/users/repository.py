"""Repository functions for user lookups.

Accounts are provisioned elsewhere; the trade engine only reads them.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftswap.core.errors import NotFoundError
from shiftswap.db.models import User


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.execute(select(User).where(User.email == email)).scalar_one_or_none()


def get_user_by_id(session: Session, user_id: str) -> User | None:
    return session.get(User, user_id)


def require_user_by_email(session: Session, email: str) -> User:
    """Get a user by email.

    Raises:
        NotFoundError: If no user has this email
    """
    user = get_user_by_email(session, email)
    if user is None:
        raise NotFoundError(f"user {email} not found")
    return user


def require_user_by_id(session: Session, user_id: str) -> User:
    """Get a user by id.

    Raises:
        NotFoundError: If the user does not exist
    """
    user = get_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    return user
