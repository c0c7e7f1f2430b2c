"""Organization data access."""

from dataclasses import dataclass

from slatehub_db.domain.groups import Member, Organization
from slatehub_db.services.memberships import GroupSchema, MembershipGroupService
from slatehub_db.services.records import parse_datetime


def _parse_organization(row: dict[str, object]) -> Organization:
    return Organization(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        slug=str(row.get("slug") or ""),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


ORGANIZATIONS = GroupSchema(
    table="organization",
    edge="member_of_org",
    title_field="name",
    label="organization",
    parse=_parse_organization,
)


@dataclass
class OrganizationService(MembershipGroupService[Organization]):
    """Organizations and their `member_of_org` memberships."""

    schema = ORGANIZATIONS

    async def get_user_organizations(self) -> list[Organization]:
        return await self.list_for_current_user()

    async def create_organization(self, name: str) -> Organization:
        return await self.create(name)

    async def get_organization_by_slug(self, slug_or_id: str) -> Organization | None:
        return await self.get_by_slug(slug_or_id)

    async def update_organization(self, org_id: str, name: str) -> Organization:
        return await self.update(org_id, name)

    async def delete_organization(self, org_id: str) -> bool:
        return await self.delete(org_id)

    async def get_organization_members(self, org_id: str) -> list[Member]:
        return await self.list_members(org_id)

    async def add_organization_member(
        self, org_id: str, username: str, role: str
    ) -> Member:
        return await self.add_member(org_id, username, role)

    async def update_member_role(self, member_id: str, new_role: str) -> Member:
        return await self.change_member_role(member_id, new_role)
