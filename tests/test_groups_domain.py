"""Tests for membership role ordering."""

import pytest

from slatehub_db.domain.groups import MemberRole, roles_at_least


def test_role_hierarchy() -> None:
    assert MemberRole.OWNER.at_least(MemberRole.ADMIN)
    assert not MemberRole.VIEWER.at_least(MemberRole.EDITOR)
    assert roles_at_least(MemberRole.ADMIN) == ["owner", "admin"]
    assert roles_at_least(MemberRole.VIEWER) == ["owner", "admin", "editor", "viewer"]


def test_parse_role() -> None:
    assert MemberRole.parse(" Editor ") is MemberRole.EDITOR
    with pytest.raises(ValueError):
        MemberRole.parse("director")
