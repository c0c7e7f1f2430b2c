"""Row parsers shared by the role and department accessors."""

from slatehub_db.domain.catalog import Department, PersonDepartment, PersonRole, Role
from slatehub_db.services.records import optional_str, parse_datetime


def parse_department(row: dict[str, object]) -> Department:
    return Department(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        slug=optional_str(row.get("slug")),
        description=optional_str(row.get("description")),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


def parse_role(row: dict[str, object]) -> Role:
    """Parse a role row.

    Accepts both the flat `department` name and linked department records,
    which may arrive as `departments` or as a list under `department`.
    """
    legacy = row.get("department")
    linked = row.get("departments")
    if isinstance(legacy, list) and not linked:
        linked, legacy = legacy, None
    return Role(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        slug=optional_str(row.get("slug")),
        description=optional_str(row.get("description")),
        department=legacy if isinstance(legacy, str) else None,
        departments=[
            parse_department(item)
            for item in linked or []
            if isinstance(item, dict) and item.get("id")
        ],
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


def parse_person_role(row: dict[str, object]) -> PersonRole:
    role = row.get("role")
    if isinstance(role, list):
        role = role[0] if role else None
    if not isinstance(role, dict):
        raise ValueError("person_has_role row is missing its role")
    return PersonRole(
        person_has_role_id=str(row["person_has_role_id"]),
        role=parse_role(role),
        priority=int(row.get("priority") or 0),
        expertise_level=optional_str(row.get("expertise_level")),
        created_at=parse_datetime(row.get("created_at")),
    )


def parse_person_department(row: dict[str, object]) -> PersonDepartment:
    department = row.get("department")
    return PersonDepartment(
        id=str(row["id"]),
        person_id=str(row.get("in", "")),
        department_id=str(row.get("out", "")),
        priority=int(row.get("priority") or 0),
        added_at=parse_datetime(row.get("added_at")),
        department=parse_department(department)
        if isinstance(department, dict) and department.get("id")
        else None,
    )
