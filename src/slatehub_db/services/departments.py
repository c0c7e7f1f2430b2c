"""Department catalog and the current person's department specializations."""

from dataclasses import dataclass

from slatehub_db.domain.catalog import Department, PersonDepartment, Role
from slatehub_db.services.catalog import (
    parse_department,
    parse_person_department,
    parse_role,
)
from slatehub_db.services.records import (
    expect_many,
    record_id,
    require_one,
    reraise_with_context,
)
from slatehub_db.services.session import SessionManager

_SPECIALIZATION_FIELDS = """
    id, in, out, added_at, priority,
    (SELECT id, name, slug, description, created_at, updated_at
     FROM department WHERE id = $parent.out)[0] AS department
"""


@dataclass
class DepartmentService:
    session: SessionManager

    async def get_all_departments(self) -> list[Department]:
        with reraise_with_context("fetch departments"):
            results = await self.session.query(
                """
                SELECT id, name, slug, description, created_at, updated_at
                FROM department
                ORDER BY name;
                """
            )
            return [parse_department(row) for row in expect_many(results)]

    async def get_departments_for_role(self, role_id: str) -> list[Department]:
        with reraise_with_context("fetch departments for role"):
            results = await self.session.query(
                """
                SELECT * FROM department
                WHERE id IN (
                    SELECT VALUE out FROM belongs_to_department
                    WHERE in = type::record($role_id)
                )
                ORDER BY name;
                """,
                {"role_id": record_id(role_id, "role")},
            )
            return [parse_department(row) for row in expect_many(results)]

    async def get_roles_for_department(self, department_id: str) -> list[Role]:
        with reraise_with_context("fetch roles for department"):
            results = await self.session.query(
                """
                SELECT * FROM role
                WHERE id IN (
                    SELECT VALUE in FROM belongs_to_department
                    WHERE out = type::record($department_id)
                )
                ORDER BY name;
                """,
                {"department_id": record_id(department_id, "department")},
            )
            return [parse_role(row) for row in expect_many(results)]

    async def get_user_specialized_departments(self) -> list[PersonDepartment]:
        """Return the current person's specializations, highest priority first."""
        with reraise_with_context("fetch user departments"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                SELECT {_SPECIALIZATION_FIELDS}
                FROM person_specializes_in
                WHERE in = type::record($user_id)
                ORDER BY priority DESC, added_at DESC;
                """,
                {"user_id": user_id},
            )
            return [parse_person_department(row) for row in expect_many(results)]

    async def add_user_department_specialization(
        self, department_id: str, priority: int = 0
    ) -> PersonDepartment:
        """Link the current person to a department; higher priority sorts first."""
        with reraise_with_context("add department"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $person = type::record($user_id);
                LET $department = type::record($department_id);
                IF (SELECT id FROM $department)[0] == NONE THEN
                    THROW "Department not found";
                END;
                IF (
                    SELECT id FROM person_specializes_in
                    WHERE in = $person AND out = $department
                )[0] != NONE THEN
                    THROW "Department is already one of your specializations";
                END;
                LET $edge = (
                    RELATE $person->person_specializes_in->$department
                        SET priority = $priority, added_at = time::now()
                )[0];
                LET $edge_id = $edge.id;
                RETURN (SELECT {_SPECIALIZATION_FIELDS} FROM $edge_id)[0];
                COMMIT TRANSACTION;
                """,
                {
                    "user_id": user_id,
                    "department_id": record_id(department_id, "department"),
                    "priority": priority,
                },
            )
            return parse_person_department(
                require_one(results, "Failed to add department specialization")
            )

    async def update_department_priority(
        self, specialization_id: str, priority: int
    ) -> PersonDepartment:
        with reraise_with_context("update priority"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $updated = (
                    UPDATE type::record($specialization_id)
                    SET priority = $priority
                    WHERE in = type::record($user_id)
                )[0];
                IF $updated == NONE THEN
                    THROW "Specialization not found";
                END;
                LET $edge_id = $updated.id;
                RETURN (SELECT {_SPECIALIZATION_FIELDS} FROM $edge_id)[0];
                COMMIT TRANSACTION;
                """,
                {
                    "user_id": user_id,
                    "specialization_id": record_id(
                        specialization_id, "person_specializes_in"
                    ),
                    "priority": priority,
                },
            )
            return parse_person_department(
                require_one(results, "Failed to update department priority")
            )

    async def remove_department_specialization(self, specialization_id: str) -> bool:
        with reraise_with_context("remove specialization"):
            user_id = self.session.require_user_id()
            await self.session.query(
                """
                DELETE type::record($specialization_id)
                WHERE in = type::record($user_id);
                """,
                {
                    "user_id": user_id,
                    "specialization_id": record_id(
                        specialization_id, "person_specializes_in"
                    ),
                },
            )
            return True
