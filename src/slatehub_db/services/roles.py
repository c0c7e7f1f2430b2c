"""Production role catalog and the roles assigned to the current person."""

from dataclasses import dataclass

from slatehub_db.domain.catalog import PersonRole, Role
from slatehub_db.services.catalog import parse_person_role, parse_role
from slatehub_db.services.records import (
    expect_many,
    record_id,
    require_one,
    reraise_with_context,
)
from slatehub_db.services.session import SessionManager

_ROLE_FIELDS = "*, ->belongs_to_department->department.* AS departments"
_PERSON_ROLE_FIELDS = """
    id AS person_has_role_id, out.* AS role, priority, expertise_level, created_at
"""


@dataclass
class RoleService:
    session: SessionManager

    async def get_all_roles(self) -> list[Role]:
        """Return every role with its linked departments."""
        with reraise_with_context("fetch roles"):
            results = await self.session.query(
                f"SELECT {_ROLE_FIELDS} FROM role ORDER BY name;"
            )
            return [parse_role(row) for row in expect_many(results)]

    async def get_roles_by_department(self, department_id: str) -> list[Role]:
        with reraise_with_context("fetch roles"):
            results = await self.session.query(
                f"""
                SELECT {_ROLE_FIELDS} FROM role
                WHERE id IN (
                    SELECT VALUE in FROM belongs_to_department
                    WHERE out = type::record($department_id)
                )
                ORDER BY name;
                """,
                {"department_id": record_id(department_id, "department")},
            )
            return [parse_role(row) for row in expect_many(results)]

    async def get_person_roles(self) -> list[PersonRole]:
        with reraise_with_context("fetch person roles"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                SELECT {_PERSON_ROLE_FIELDS}
                FROM person_has_role
                WHERE in = type::record($user_id)
                ORDER BY priority DESC, created_at;
                """,
                {"user_id": user_id},
            )
            return [parse_person_role(row) for row in expect_many(results)]

    async def add_role_to_person(
        self,
        role_id: str,
        priority: int = 0,
        expertise_level: str | None = None,
    ) -> PersonRole:
        """Assign a role to the current person once."""
        with reraise_with_context("add role"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $person = type::record($user_id);
                LET $role = type::record($role_id);
                IF (SELECT id FROM $role)[0] == NONE THEN
                    THROW "Role not found";
                END;
                IF (
                    SELECT id FROM person_has_role WHERE in = $person AND out = $role
                )[0] != NONE THEN
                    THROW "Role is already assigned to you";
                END;
                LET $edge = (
                    RELATE $person->person_has_role->$role SET
                        priority = $priority,
                        expertise_level = $expertise_level,
                        created_at = time::now()
                )[0];
                LET $edge_id = $edge.id;
                RETURN (SELECT {_PERSON_ROLE_FIELDS} FROM $edge_id)[0];
                COMMIT TRANSACTION;
                """,
                {
                    "user_id": user_id,
                    "role_id": record_id(role_id, "role"),
                    "priority": priority,
                    "expertise_level": expertise_level,
                },
            )
            return parse_person_role(
                require_one(results, "Failed to add role to person")
            )

    async def remove_role_from_person(self, person_role_id: str) -> bool:
        """Delete one of the current person's role assignments."""
        with reraise_with_context("remove role"):
            user_id = self.session.require_user_id()
            await self.session.query(
                """
                DELETE type::record($person_role_id)
                WHERE in = type::record($user_id);
                """,
                {
                    "user_id": user_id,
                    "person_role_id": record_id(person_role_id, "person_has_role"),
                },
            )
            return True
