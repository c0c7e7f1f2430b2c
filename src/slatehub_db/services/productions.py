"""Production data access."""

from dataclasses import dataclass

from slatehub_db.domain.groups import Member, Production
from slatehub_db.services.memberships import GroupSchema, MembershipGroupService
from slatehub_db.services.records import parse_datetime


def _parse_production(row: dict[str, object]) -> Production:
    return Production(
        id=str(row["id"]),
        title=str(row.get("title", "")),
        slug=str(row.get("slug") or ""),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


PRODUCTIONS = GroupSchema(
    table="production",
    edge="membership",
    title_field="title",
    label="production",
    parse=_parse_production,
)


@dataclass
class ProductionService(MembershipGroupService[Production]):
    """Productions and their `membership` edges."""

    schema = PRODUCTIONS

    async def get_user_productions(self) -> list[Production]:
        return await self.list_for_current_user()

    async def create_production(self, title: str) -> Production:
        return await self.create(title)

    async def get_production_by_slug(self, slug_or_id: str) -> Production | None:
        return await self.get_by_slug(slug_or_id)

    async def update_production(self, production_id: str, title: str) -> Production:
        return await self.update(production_id, title)

    async def delete_production(self, production_id: str) -> bool:
        return await self.delete(production_id)

    async def get_production_members(self, production_id: str) -> list[Member]:
        return await self.list_members(production_id)

    async def add_production_member(
        self, production_id: str, username: str, role: str
    ) -> Member:
        return await self.add_member(production_id, username, role)

    async def update_member_role(self, member_id: str, new_role: str) -> Member:
        return await self.change_member_role(member_id, new_role)
