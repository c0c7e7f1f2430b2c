"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from slatehub_db.adapters.surreal_client import SurrealClient
from slatehub_db.adapters.token_store import InMemoryLocalStorage
from slatehub_db.config import Settings
from slatehub_db.errors import AuthenticationError, SurrealConnectionError
from slatehub_db.services.session import SessionManager

ScriptedResult = list[object] | Exception | Callable[[str, dict[str, object]], object]


def profile_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": "person:alice",
        "username": "alice",
        "emails": [{"address": "alice@example.com", "is_primary": True}],
        "full_name": "Alice Liddell",
        "location": None,
        "phone": None,
        "social": None,
        "global_role": "user",
        "profile_images": [],
        "profile_image_active": None,
        "created_at": "2024-05-01T10:00:00.123456789Z",
        "updated_at": "2024-05-02T10:00:00Z",
    }
    row.update(overrides)
    return row


@dataclass
class FakeSurrealClient(SurrealClient):
    """Fake client replaying scripted query results in order.

    A scripted entry may be a result list, an exception to raise, or a
    callable receiving `(statement, variables)` that returns either.
    """

    results: list[ScriptedResult] = field(default_factory=list)
    queries: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    identity: dict[str, object] | None = field(
        default_factory=lambda: {"id": "person:alice", "username": "alice"}
    )
    issued_token: str | None = "token-1"
    signin_error: Exception | None = None
    fail_connect: bool = False
    fail_authenticate: bool = False
    fail_invalidate: bool = False
    fail_info: bool = False
    connected_to: list[str] = field(default_factory=list)
    namespace: str | None = None
    database: str | None = None
    signups: list[dict[str, object]] = field(default_factory=list)
    signins: list[dict[str, object]] = field(default_factory=list)
    token: str | None = None
    invalidated: int = 0
    closed: bool = False

    async def connect(self, url: str) -> None:
        if self.closed:
            raise RuntimeError(
                "Cannot send a request, as the client has been closed."
            )
        if self.fail_connect:
            raise SurrealConnectionError(f"Failed to connect to database at {url}")
        self.connected_to.append(url)

    async def use(self, namespace: str, database: str) -> None:
        self.namespace = namespace
        self.database = database

    async def signup(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        self.signups.append(
            {"ns": namespace, "db": database, "ac": access, **variables}
        )
        return self.issued_token

    async def signin(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        self.signins.append(
            {"ns": namespace, "db": database, "ac": access, **variables}
        )
        if self.signin_error is not None:
            raise self.signin_error
        return self.issued_token

    async def authenticate(self, token: str) -> None:
        if self.fail_authenticate:
            raise AuthenticationError("The token has expired", code=401)
        self.token = token

    async def invalidate(self) -> None:
        self.invalidated += 1
        self.token = None
        if self.fail_invalidate:
            raise SurrealConnectionError("Server went away")

    async def info(self) -> dict[str, object] | None:
        if self.fail_info:
            raise SurrealConnectionError("Connection reset during info")
        return self.identity if self.token else None

    async def query(
        self, statement: str, variables: dict[str, object] | None = None
    ) -> list[object]:
        resolved = dict(variables or {})
        self.queries.append((statement, resolved))
        if not self.results:
            return []
        entry = self.results.pop(0)
        if callable(entry):
            entry = entry(statement, resolved)
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        surreal_url="http://surreal.test/rpc",
        surreal_ns="test_ns",
        surreal_db="test_db",
        _env_file=None,
    )


@pytest.fixture
def surreal_client() -> FakeSurrealClient:
    return FakeSurrealClient()


@pytest.fixture
def storage() -> InMemoryLocalStorage:
    return InMemoryLocalStorage()


@pytest.fixture
def session(
    settings: Settings,
    surreal_client: FakeSurrealClient,
    storage: InMemoryLocalStorage,
) -> SessionManager:
    return SessionManager.from_settings(settings, surreal_client, storage)


@pytest.fixture
def signed_in_session(
    session: SessionManager, surreal_client: FakeSurrealClient
) -> SessionManager:
    asyncio.run(session.signin("alice", "secret"))
    surreal_client.queries.clear()
    return session
