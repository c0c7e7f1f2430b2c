"""Domain models for the role and department catalog."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Department:
    """A grouping of production roles."""

    id: str
    name: str
    slug: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Role:
    """A production job role.

    `department` holds the legacy flat department name; `departments` holds the
    records linked through `belongs_to_department`.
    """

    id: str
    name: str
    slug: str | None = None
    description: str | None = None
    department: str | None = None
    departments: list[Department] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PersonRole:
    """A role assigned to the current person."""

    person_has_role_id: str
    role: Role
    priority: int = 0
    expertise_level: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PersonDepartment:
    """A department the current person specializes in."""

    id: str
    person_id: str
    department_id: str
    priority: int
    added_at: datetime | None
    department: Department | None
