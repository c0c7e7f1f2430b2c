"""Dependency container wiring for the data-access layer."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from slatehub_db.adapters.surreal_client import HttpxSurrealClient, SurrealClient
from slatehub_db.adapters.token_store import (
    InMemoryLocalStorage,
    JsonFileLocalStorage,
    LocalStorage,
)
from slatehub_db.config import Settings
from slatehub_db.services.departments import DepartmentService
from slatehub_db.services.organizations import OrganizationService
from slatehub_db.services.productions import ProductionService
from slatehub_db.services.profile import ProfileService
from slatehub_db.services.roles import RoleService
from slatehub_db.services.session import SessionManager


@dataclass
class AppContainer:
    """Holds the session and every domain accessor sharing it."""

    settings: Settings
    client: SurrealClient
    storage: LocalStorage
    session: SessionManager
    organizations: OrganizationService
    productions: ProductionService
    profile: ProfileService
    roles: RoleService
    departments: DepartmentService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    client = HttpxSurrealClient.create(
        base_url=resolved_settings.surreal_url,
        timeout=resolved_settings.http_timeout_seconds,
    )
    storage: LocalStorage = (
        JsonFileLocalStorage(resolved_settings.token_store_path)
        if resolved_settings.token_store_path
        else InMemoryLocalStorage()
    )
    session = SessionManager.from_settings(resolved_settings, client, storage)

    async def close_resources() -> None:
        await session.close()

    return AppContainer(
        settings=resolved_settings,
        client=client,
        storage=storage,
        session=session,
        organizations=OrganizationService(session),
        productions=ProductionService(session),
        profile=ProfileService(session),
        roles=RoleService(session),
        departments=DepartmentService(session),
        close_resources=close_resources,
    )
