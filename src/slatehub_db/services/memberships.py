"""Shared data access for groups with role-based membership edges.

Organizations and productions differ only in table, edge and title field
names. Every permission rule runs inside the server transaction, checked in
the order: existence, permission, role escalation, self action.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar

from slatehub_db.domain.groups import Member, MemberPerson, MemberRole, roles_at_least
from slatehub_db.errors import InvalidInputError
from slatehub_db.services.records import (
    expect_many,
    expect_one,
    looks_like_record_id,
    parse_datetime,
    record_id,
    require_one,
    reraise_with_context,
)
from slatehub_db.services.session import SessionManager

G = TypeVar("G")

_MEMBER_FIELDS = """
    id, in, out, role, joined_at,
    { username: in.username, email: in.email, emails: in.emails } AS person
"""

# Lowest to highest; array::find_index gives the rank.
_HIERARCHY = [role.value for role in reversed(MemberRole)]


@dataclass(frozen=True)
class GroupSchema(Generic[G]):
    """Names that bind the shared statements to one group table."""

    table: str
    edge: str
    title_field: str
    label: str
    parse: Callable[[dict[str, object]], G]


@dataclass
class MembershipGroupService(Generic[G]):
    """Data access for a group table and its membership edge."""

    session: SessionManager
    schema: ClassVar[GroupSchema]

    async def list_for_current_user(self) -> list[G]:
        """Return every group the current user is a member of."""
        schema = self.schema
        with reraise_with_context(f"fetch {schema.label}s"):
            results = await self.session.query(
                f"""
                SELECT * FROM {schema.table}
                WHERE id IN (SELECT VALUE out FROM {schema.edge} WHERE in = $auth.id)
                ORDER BY {schema.title_field};
                """
            )
            return [schema.parse(row) for row in expect_many(results)]

    async def create(self, title: str) -> G:
        """Create a group and make the current user its owner atomically."""
        schema = self.schema
        if not title or not title.strip():
            raise InvalidInputError(
                f"{schema.label.capitalize()} {schema.title_field} is required"
            )
        with reraise_with_context(f"create {schema.label}"):
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $group = (CREATE {schema.table} CONTENT {{
                    {schema.title_field}: $title
                }})[0];
                LET $group_id = $group.id;
                LET $person = $auth.id;
                RELATE $person->{schema.edge}->$group_id
                    SET role = $owner, joined_at = time::now();
                RETURN $group;
                COMMIT TRANSACTION;
                """,
                {"title": title.strip(), "owner": MemberRole.OWNER.value},
            )
            return schema.parse(
                require_one(results, f"No {schema.label} returned from create")
            )

    async def get_by_slug(self, slug_or_id: str) -> G | None:
        """Return a group by slug or record id, if the current user is a member."""
        schema = self.schema
        membership_filter = (
            f"id IN (SELECT VALUE out FROM {schema.edge} WHERE in = $auth.id)"
        )
        with reraise_with_context(f"fetch {schema.label} '{slug_or_id}'"):
            if looks_like_record_id(slug_or_id):
                statement = (
                    f"SELECT * FROM type::record($id) WHERE {membership_filter};"
                )
                variables = {"id": record_id(slug_or_id, schema.table)}
            else:
                statement = (
                    f"SELECT * FROM {schema.table} "
                    f"WHERE slug = $slug AND {membership_filter};"
                )
                variables = {"slug": slug_or_id.strip().lower()}
            row = expect_one(await self.session.query(statement, variables))
            return schema.parse(row) if row else None

    async def update(self, group_id: str, title: str) -> G:
        """Rename a group; only owners and admins match the update."""
        schema = self.schema
        if not title or not title.strip():
            raise InvalidInputError(
                f"{schema.label.capitalize()} {schema.title_field} is required"
            )
        with reraise_with_context(f"update {schema.label}"):
            results = await self.session.query(
                f"""
                UPDATE type::record($id) SET
                    {schema.title_field} = $title,
                    updated_at = time::now()
                WHERE id IN (
                    SELECT VALUE out FROM {schema.edge}
                    WHERE in = $auth.id AND role IN $managers
                )
                RETURN AFTER;
                """,
                {
                    "id": record_id(group_id, schema.table),
                    "title": title.strip(),
                    "managers": roles_at_least(MemberRole.ADMIN),
                },
            )
            return schema.parse(
                require_one(
                    results,
                    f"Failed to update {schema.label} or you lack permission",
                )
            )

    async def delete(self, group_id: str) -> bool:
        """Delete a group and its memberships; owners only."""
        schema = self.schema
        with reraise_with_context(f"delete {schema.label}"):
            await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $group_id = type::record($id);
                IF (SELECT id FROM $group_id)[0] == NONE THEN
                    THROW "{schema.label.capitalize()} not found";
                END;
                LET $actor = (
                    SELECT * FROM {schema.edge}
                    WHERE in = $auth.id AND out = $group_id AND role = $owner
                )[0];
                IF $actor == NONE THEN
                    THROW "Only {schema.label} owners can delete {schema.label}s";
                END;
                DELETE {schema.edge} WHERE out = $group_id;
                DELETE $group_id;
                COMMIT TRANSACTION;
                """,
                {
                    "id": record_id(group_id, schema.table),
                    "owner": MemberRole.OWNER.value,
                },
            )
            return True

    async def list_members(self, group_id: str) -> list[Member]:
        """Return the memberships of a group with person details."""
        schema = self.schema
        with reraise_with_context(f"fetch {schema.label} members"):
            results = await self.session.query(
                f"""
                SELECT {_MEMBER_FIELDS}
                FROM {schema.edge}
                WHERE out = type::record($id)
                ORDER BY joined_at;
                """,
                {"id": record_id(group_id, schema.table)},
            )
            return [parse_member(row) for row in expect_many(results)]

    async def add_member(self, group_id: str, username: str, role: str) -> Member:
        """Add an existing person to a group; owners and admins only."""
        schema = self.schema
        if not group_id:
            raise InvalidInputError(f"{schema.label.capitalize()} ID is required")
        if not username or not username.strip():
            raise InvalidInputError("Username is required")
        member_role = _parse_role(role)
        if member_role is MemberRole.OWNER:
            raise InvalidInputError("Members cannot be added with the owner role")
        with reraise_with_context("add member"):
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $group_id = type::record($id);
                LET $actor = (
                    SELECT * FROM {schema.edge}
                    WHERE in = $auth.id AND out = $group_id AND role IN $managers
                )[0];
                IF $actor == NONE THEN
                    THROW "You must be an owner or admin to add members";
                END;
                LET $person = (SELECT id FROM person WHERE username = $username)[0];
                IF $person == NONE THEN
                    THROW "User not found";
                END;
                LET $person_id = $person.id;
                LET $existing = (
                    SELECT id FROM {schema.edge}
                    WHERE in = $person_id AND out = $group_id
                )[0];
                IF $existing != NONE THEN
                    THROW "User is already a member of this {schema.label}";
                END;
                LET $member = (
                    RELATE $person_id->{schema.edge}->$group_id
                        SET role = $role, joined_at = time::now()
                )[0];
                LET $member_id = $member.id;
                RETURN (SELECT {_MEMBER_FIELDS} FROM $member_id)[0];
                COMMIT TRANSACTION;
                """,
                {
                    "id": record_id(group_id, schema.table),
                    "username": username.strip(),
                    "role": member_role.value,
                    "managers": roles_at_least(MemberRole.ADMIN),
                },
            )
            return parse_member(require_one(results, "No member returned from add"))

    async def change_member_role(self, member_id: str, new_role: str) -> Member:
        """Change a member's role; only owners may grant or revoke ownership."""
        schema = self.schema
        if not member_id:
            raise InvalidInputError("Member ID is required")
        member_role = _parse_role(new_role)
        with reraise_with_context("update member role"):
            results = await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $membership = (SELECT * FROM type::record($member_id))[0];
                IF $membership == NONE THEN
                    THROW "Membership not found";
                END;
                LET $group_id = $membership.out;
                LET $actor = (
                    SELECT * FROM {schema.edge}
                    WHERE in = $auth.id AND out = $group_id AND role IN $managers
                )[0];
                IF $actor == NONE THEN
                    THROW "You must be an owner or admin to change member roles";
                END;
                IF $new_role == $owner AND $actor.role != $owner THEN
                    THROW "Only {schema.label} owners can assign owner role";
                END;
                IF $membership.role == $owner AND $actor.role != $owner THEN
                    THROW "Only {schema.label} owners can change an owner's role";
                END;
                LET $member_ref = $membership.id;
                UPDATE $member_ref SET role = $new_role;
                RETURN (SELECT {_MEMBER_FIELDS} FROM $member_ref)[0];
                COMMIT TRANSACTION;
                """,
                {
                    "member_id": record_id(member_id, schema.edge),
                    "new_role": member_role.value,
                    "owner": MemberRole.OWNER.value,
                    "managers": roles_at_least(MemberRole.ADMIN),
                },
            )
            return parse_member(
                require_one(results, "No member returned from role update")
            )

    async def remove_member(self, member_id: str) -> bool:
        """Remove a membership; members cannot remove themselves."""
        schema = self.schema
        if not member_id:
            raise InvalidInputError("Member ID is required")
        with reraise_with_context("remove member"):
            await self.session.query(
                f"""
                BEGIN TRANSACTION;
                LET $membership = (SELECT * FROM type::record($member_id))[0];
                IF $membership == NONE THEN
                    THROW "Membership not found";
                END;
                LET $group_id = $membership.out;
                LET $actor = (
                    SELECT * FROM {schema.edge}
                    WHERE in = $auth.id AND out = $group_id AND role IN $managers
                )[0];
                IF $actor == NONE THEN
                    THROW "You must be an owner or admin to remove members";
                END;
                IF $membership.role == $owner AND $actor.role != $owner THEN
                    THROW "Only {schema.label} owners can remove other owners";
                END;
                IF $actor.role != $owner
                    AND array::find_index($hierarchy, $membership.role)
                        >= array::find_index($hierarchy, $actor.role) THEN
                    THROW "You cannot remove a member with an equal or higher role";
                END;
                IF $membership.in == $auth.id THEN
                    THROW "You cannot remove yourself from this {schema.label}";
                END;
                LET $member_ref = $membership.id;
                DELETE $member_ref;
                COMMIT TRANSACTION;
                """,
                {
                    "member_id": record_id(member_id, schema.edge),
                    "owner": MemberRole.OWNER.value,
                    "managers": roles_at_least(MemberRole.ADMIN),
                    "hierarchy": _HIERARCHY,
                },
            )
            return True


def parse_member(row: dict[str, object]) -> Member:
    """Parse a membership edge row into a domain model."""
    person_raw = row.get("person")
    if isinstance(person_raw, list):
        person_raw = person_raw[0] if person_raw else None
    person = None
    if isinstance(person_raw, dict) and person_raw.get("username"):
        person = MemberPerson(
            username=str(person_raw["username"]),
            email=_person_email(person_raw),
        )
    return Member(
        id=str(row["id"]),
        person_id=str(row.get("in", "")),
        group_id=str(row.get("out", "")),
        role=MemberRole.parse(row.get("role")),
        joined_at=parse_datetime(row.get("joined_at") or row.get("created_at")),
        person=person,
    )


def _person_email(person: dict[str, object]) -> str | None:
    email = person.get("email")
    if isinstance(email, str) and email:
        return email
    emails = person.get("emails")
    if not isinstance(emails, list):
        return None
    addresses = [item for item in emails if isinstance(item, dict)]
    for item in addresses:
        if item.get("is_primary"):
            return str(item.get("address"))
    return str(addresses[0].get("address")) if addresses else None


def _parse_role(raw: str) -> MemberRole:
    if not raw:
        raise InvalidInputError("Role is required")
    try:
        return MemberRole.parse(raw)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown role: {raw}") from exc
