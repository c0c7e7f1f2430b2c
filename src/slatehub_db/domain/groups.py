"""Domain models for organizations, productions and their memberships."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class MemberRole(Enum):
    """Membership roles, ordered from most to least privileged."""

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, other: "MemberRole") -> bool:
        """Return True when this role is as privileged as `other` or more."""
        return self.rank >= other.rank

    @classmethod
    def parse(cls, raw: object) -> "MemberRole":
        """Parse a role name, raising ValueError for unknown roles."""
        return cls(str(raw).strip().lower())


_RANKS = {
    MemberRole.OWNER: 4,
    MemberRole.ADMIN: 3,
    MemberRole.EDITOR: 2,
    MemberRole.VIEWER: 1,
}


def roles_at_least(minimum: MemberRole) -> list[str]:
    """Return role names with at least the given privilege, highest first."""
    return [role.value for role in MemberRole if role.at_least(minimum)]


@dataclass(frozen=True)
class Organization:
    """An organization the current user belongs to."""

    id: str
    name: str
    slug: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Production:
    """A production the current user belongs to."""

    id: str
    title: str
    slug: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class MemberPerson:
    username: str
    email: str | None = None


@dataclass(frozen=True)
class Member:
    """A membership edge between a person and a group."""

    id: str
    person_id: str
    group_id: str
    role: MemberRole
    joined_at: datetime | None = None
    person: MemberPerson | None = None
