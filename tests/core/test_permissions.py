"""Tests for group permission guards."""

import pytest

from shiftswap.core.errors import NotFoundError, UnauthorizedError
from shiftswap.core.permissions import has_admin, has_member, require_group_admin, require_group_member
from shiftswap.db.models import Group
from shiftswap.db.session import get_session


def test_admin_is_member_even_if_not_listed():
    group = Group(name="g", admin_ids=["a"], member_ids=["m"])

    assert has_admin(group, "a")
    assert has_member(group, "a")
    assert has_member(group, "m")
    assert not has_admin(group, "m")
    assert not has_member(group, "x")


def test_require_group_admin(members):
    with get_session() as db:
        group = require_group_admin(db, members.group_id, members.alice_id)
        assert group.id == members.group_id

        with pytest.raises(UnauthorizedError, match="not authorized for this group"):
            require_group_admin(db, members.group_id, members.bob_id)


def test_require_group_member(members):
    with get_session() as db:
        assert require_group_member(db, members.group_id, members.carol_id).id == members.group_id

        with pytest.raises(UnauthorizedError, match="not authorized for this group"):
            require_group_member(db, members.group_id, members.dave_id)


def test_missing_group_is_not_found(members):
    with get_session() as db, pytest.raises(NotFoundError):
        require_group_member(db, "missing-group", members.alice_id)
