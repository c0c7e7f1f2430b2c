"""SurrealDB HTTP client adapter."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from slatehub_db.config import normalize_base_url
from slatehub_db.errors import (
    AuthenticationError,
    ResultShapeError,
    SurrealConnectionError,
    SurrealError,
    SurrealQueryError,
)

_AUTH_METHODS = {"authenticate", "signin", "signup"}
_CANCELLED_TRANSACTION = "not executed due to a failed transaction"


class SurrealClient(Protocol):
    """Interface for SurrealDB interactions."""

    async def connect(self, url: str) -> None:
        """Point the client at a server and verify it is reachable."""

    async def use(self, namespace: str, database: str) -> None:
        """Select the namespace and database for later requests."""

    async def signup(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        """Create a record user through an access method and return its token."""

    async def signin(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        """Sign in through an access method and return a session token."""

    async def authenticate(self, token: str) -> None:
        """Attach a session token to the client, rejecting invalid tokens."""

    async def invalidate(self) -> None:
        """Invalidate the current session."""

    async def info(self) -> dict[str, object] | None:
        """Return the authenticated record, if any."""

    async def query(
        self, statement: str, variables: dict[str, object] | None = None
    ) -> list[object]:
        """Run SurrealQL and return one result per statement."""

    async def close(self) -> None:
        """Release the underlying transport."""


@dataclass
class HttpxSurrealClient(SurrealClient):
    """SurrealDB client speaking the HTTP auth endpoints and HTTP RPC."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0
    namespace: str | None = None
    database: str | None = None
    token: str | None = None
    http_client_factory: Callable[[], httpx.AsyncClient] = httpx.AsyncClient
    _request_id: int = field(default=0, init=False)

    @classmethod
    def create(cls, base_url: str, timeout: float = 10.0) -> "HttpxSurrealClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=normalize_base_url(base_url),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def connect(self, url: str) -> None:
        """Check the server health endpoint."""
        self.base_url = normalize_base_url(url)
        if self.http_client.is_closed:
            self.http_client = self.http_client_factory()
        try:
            response = await self.http_client.get(
                f"{self.base_url}/health", timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            raise SurrealConnectionError(
                f"Failed to connect to database at {self.base_url}: {exc}"
            ) from exc
        if response.status_code >= 400:
            raise SurrealConnectionError(
                f"Database at {self.base_url} is unhealthy "
                f"(HTTP {response.status_code})",
                code=response.status_code,
            )

    async def use(self, namespace: str, database: str) -> None:
        """Remember the namespace and database sent as request headers."""
        self.namespace = namespace
        self.database = database

    async def signup(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        """Sign up using the `/signup` endpoint."""
        return await self._auth_request(
            "/signup", {"ns": namespace, "db": database, "ac": access, **variables}
        )

    async def signin(
        self,
        namespace: str,
        database: str,
        access: str,
        variables: dict[str, object],
    ) -> str | None:
        """Sign in using the `/signin` endpoint."""
        return await self._auth_request(
            "/signin", {"ns": namespace, "db": database, "ac": access, **variables}
        )

    async def authenticate(self, token: str) -> None:
        """Validate a token with the server and use it for later requests."""
        self.token = token
        try:
            await self._rpc("authenticate", [token])
        except SurrealError:
            self.token = None
            raise

    async def invalidate(self) -> None:
        """Invalidate the session server-side and forget the token."""
        try:
            await self._rpc("invalidate", [])
        finally:
            self.token = None

    async def info(self) -> dict[str, object] | None:
        """Return the record of the authenticated user."""
        result = await self._rpc("info", [])
        if isinstance(result, list):
            result = result[0] if result else None
        return result if isinstance(result, dict) else None

    async def query(
        self, statement: str, variables: dict[str, object] | None = None
    ) -> list[object]:
        """Run statements and unwrap each `{status, result}` envelope."""
        envelopes = await self._rpc("query", [statement, variables or {}])
        if not isinstance(envelopes, list):
            raise ResultShapeError("Unexpected query response from database")
        results: list[object] = []
        failures: list[str] = []
        for envelope in envelopes:
            if not isinstance(envelope, dict) or "status" not in envelope:
                results.append(envelope)
                continue
            if envelope["status"] != "OK":
                failures.append(str(envelope.get("result", "Query failed")))
                continue
            results.append(envelope.get("result"))
        if failures:
            raise SurrealQueryError(_first_cause(failures))
        return results

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.namespace:
            headers["Surreal-NS"] = self.namespace
        if self.database:
            headers["Surreal-DB"] = self.database
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _auth_request(self, path: str, payload: dict[str, object]) -> str | None:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise SurrealConnectionError(f"Request to {path} failed: {exc}") from exc
        body = _json_body(response)
        if response.status_code >= 400:
            raise AuthenticationError(
                str(
                    body.get("information")
                    or body.get("details")
                    or f"HTTP {response.status_code}"
                ),
                code=_int_or_none(body.get("code")) or response.status_code,
                description=_str_or_none(body.get("description")),
                information=_str_or_none(body.get("information")),
            )
        token = body.get("token")
        return token if isinstance(token, str) and token else None

    async def _rpc(self, method: str, params: list[object]) -> object:
        self._request_id += 1
        try:
            response = await self.http_client.post(
                f"{self.base_url}/rpc",
                json={"id": self._request_id, "method": method, "params": params},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise SurrealConnectionError(f"RPC {method} failed: {exc}") from exc
        body = _json_body(response)
        error = body.get("error")
        if isinstance(error, dict):
            error_cls = (
                AuthenticationError if method in _AUTH_METHODS else SurrealQueryError
            )
            raise error_cls(
                str(error.get("message", f"RPC {method} failed")),
                code=_int_or_none(error.get("code")),
            )
        if response.status_code >= 400:
            raise SurrealError(
                f"RPC {method} failed with HTTP {response.status_code}",
                code=response.status_code,
            )
        return body.get("result")


def _first_cause(failures: list[str]) -> str:
    """Pick the statement error that aborted a transaction.

    Every other statement in a failed transaction reports the same
    cancellation notice, which says nothing about the cause.
    """
    for message in failures:
        if _CANCELLED_TRANSACTION not in message:
            return message
    return failures[0]


def _json_body(response: httpx.Response) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _int_or_none(value: object) -> int | None:
    return value if isinstance(value, int) else None


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) else None
