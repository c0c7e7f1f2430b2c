"""Tests for the role catalog and person roles."""

import asyncio

import pytest

from slatehub_db.errors import DataAccessError, InvalidInputError
from slatehub_db.services.catalog import parse_role
from slatehub_db.services.roles import RoleService

CAMERA = {"id": "department:camera", "name": "Camera", "slug": "camera"}
DP_ROW = {
    "id": "role:dp",
    "name": "Director of Photography",
    "slug": "director-of-photography",
    "departments": [CAMERA],
}


def test_parse_role_accepts_both_department_shapes() -> None:
    linked = parse_role(DP_ROW)
    legacy = parse_role(
        {"id": "role:grip", "name": "Grip", "department": "Grip & Electric"}
    )
    aliased = parse_role({"id": "role:ac", "name": "1st AC", "department": [CAMERA]})

    assert [dept.name for dept in linked.departments] == ["Camera"]
    assert linked.department is None
    assert legacy.department == "Grip & Electric"
    assert legacy.departments == []
    assert aliased.departments[0].id == "department:camera"


def test_get_all_roles(signed_in_session, surreal_client) -> None:
    surreal_client.results.append([[DP_ROW]])

    roles = asyncio.run(RoleService(signed_in_session).get_all_roles())

    assert roles[0].slug == "director-of-photography"
    assert "->belongs_to_department->department" in surreal_client.queries[0][0]


def test_get_roles_by_department(signed_in_session, surreal_client) -> None:
    surreal_client.results.append([[DP_ROW]])

    roles = asyncio.run(
        RoleService(signed_in_session).get_roles_by_department("department:camera")
    )

    assert len(roles) == 1
    assert surreal_client.queries[0][1] == {"department_id": "department:camera"}


def test_get_roles_by_department_rejects_other_tables(
    signed_in_session, surreal_client
) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(RoleService(signed_in_session).get_roles_by_department("role:dp"))

    assert surreal_client.queries == []


def test_get_person_roles(signed_in_session, surreal_client) -> None:
    surreal_client.results.append(
        [
            [
                {
                    "person_has_role_id": "person_has_role:1",
                    "role": DP_ROW,
                    "priority": 2,
                    "expertise_level": "senior",
                    "created_at": "2024-05-01T10:00:00Z",
                }
            ]
        ]
    )

    person_roles = asyncio.run(RoleService(signed_in_session).get_person_roles())

    assert person_roles[0].role.name == "Director of Photography"
    assert person_roles[0].priority == 2
    assert person_roles[0].expertise_level == "senior"
    assert surreal_client.queries[0][1] == {"user_id": "person:alice"}


def test_add_role_to_person(signed_in_session, surreal_client) -> None:
    surreal_client.results.append(
        [
            None,
            None,
            [{"id": "person_has_role:2"}],
            {
                "person_has_role_id": "person_has_role:2",
                "role": DP_ROW,
                "priority": 1,
            },
        ]
    )

    person_role = asyncio.run(
        RoleService(signed_in_session).add_role_to_person(
            "role:dp", priority=1, expertise_level="mid"
        )
    )

    assert person_role.person_has_role_id == "person_has_role:2"
    statement, variables = surreal_client.queries[0]
    assert "Role is already assigned to you" in statement
    assert variables == {
        "user_id": "person:alice",
        "role_id": "role:dp",
        "priority": 1,
        "expertise_level": "mid",
    }


def test_remove_role_is_scoped_to_current_person(
    signed_in_session, surreal_client
) -> None:
    assert asyncio.run(
        RoleService(signed_in_session).remove_role_from_person("person_has_role:2")
    ) is True

    statement, variables = surreal_client.queries[0]
    assert "WHERE in = type::record($user_id)" in statement
    assert variables["person_role_id"] == "person_has_role:2"


def test_person_roles_require_signin(session) -> None:
    with pytest.raises(DataAccessError, match="Failed to fetch person roles"):
        asyncio.run(RoleService(session).get_person_roles())
