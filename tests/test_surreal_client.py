"""Tests for the httpx SurrealDB adapter."""

import asyncio
import json

import httpx
import pytest

from slatehub_db.adapters.surreal_client import HttpxSurrealClient
from slatehub_db.errors import (
    AuthenticationError,
    ResultShapeError,
    SurrealConnectionError,
    SurrealError,
    SurrealQueryError,
)

CANCELLED = "The query was not executed due to a failed transaction"


def _client(handler) -> HttpxSurrealClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxSurrealClient(
        base_url="http://surreal.test",
        http_client=httpx.AsyncClient(transport=transport),
        http_client_factory=lambda: httpx.AsyncClient(transport=transport),
    )


def test_create_strips_rpc_path() -> None:
    client = HttpxSurrealClient.create("http://surreal.test/rpc/")

    assert client.base_url == "http://surreal.test"
    asyncio.run(client.close())


def test_connect_checks_health_endpoint() -> None:
    seen_paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_paths.append(request.url.path)
        return httpx.Response(200)

    client = _client(handler)
    asyncio.run(client.connect("http://other.test/rpc"))

    assert client.base_url == "http://other.test"
    assert seen_paths == ["/health"]


def test_connect_after_close_opens_new_session() -> None:
    seen_paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_paths.append(request.url.path)
        return httpx.Response(200)

    client = _client(handler)
    asyncio.run(client.connect("http://surreal.test"))
    asyncio.run(client.close())

    asyncio.run(client.connect("http://surreal.test"))

    assert seen_paths == ["/health", "/health"]
    assert client.http_client.is_closed is False


def test_connect_raises_when_unhealthy() -> None:
    client = _client(lambda request: httpx.Response(503))

    with pytest.raises(SurrealConnectionError) as excinfo:
        asyncio.run(client.connect("http://surreal.test"))

    assert excinfo.value.code == 503


def test_connect_raises_when_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(SurrealConnectionError, match="connection refused"):
        asyncio.run(client.connect("http://surreal.test"))


def test_signin_posts_access_payload() -> None:
    payloads: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/signin"
        payloads.append(json.loads(request.content.decode()))
        return httpx.Response(
            200,
            json={"code": 200, "details": "Authentication succeeded", "token": "jwt"},
        )

    client = _client(handler)
    token = asyncio.run(
        client.signin(
            "seceda", "core", "user_access", {"username": "alice", "password": "pw"}
        )
    )

    assert token == "jwt"
    assert payloads == [
        {
            "ns": "seceda",
            "db": "core",
            "ac": "user_access",
            "username": "alice",
            "password": "pw",
        }
    ]


def test_signup_failure_keeps_structured_fields() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/signup"
        return httpx.Response(
            400,
            json={
                "code": 400,
                "details": "Request problems detected",
                "description": "There is a problem with your request.",
                "information": "Username already taken",
            },
        )

    client = _client(handler)

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(
            client.signup("seceda", "core", "user_access", {"username": "alice"})
        )

    assert excinfo.value.message == "Username already taken"
    assert excinfo.value.code == 400
    assert excinfo.value.description == "There is a problem with your request."
    assert excinfo.value.information == "Username already taken"


def test_query_sends_session_headers_and_unwraps_envelopes() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content.decode())
        if body["method"] == "authenticate":
            return httpx.Response(200, json={"id": body["id"], "result": None})
        assert body["method"] == "query"
        assert body["params"] == ["SELECT * FROM role;", {"limit": 1}]
        return httpx.Response(
            200,
            json={
                "id": body["id"],
                "result": [
                    {"status": "OK", "time": "1ms", "result": [{"id": "role:dp"}]}
                ],
            },
        )

    client = _client(handler)
    asyncio.run(client.use("seceda", "core"))
    asyncio.run(client.authenticate("jwt"))
    result = asyncio.run(client.query("SELECT * FROM role;", {"limit": 1}))

    assert result == [[{"id": "role:dp"}]]
    headers = requests[-1].headers
    assert headers["Surreal-NS"] == "seceda"
    assert headers["Surreal-DB"] == "core"
    assert headers["Authorization"] == "Bearer jwt"


def test_query_raises_on_statement_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": 1,
                "result": [
                    {"status": "OK", "result": None},
                    {"status": "ERR", "result": "An error occurred: User not found"},
                ],
            },
        )

    client = _client(handler)

    with pytest.raises(SurrealQueryError, match="User not found"):
        asyncio.run(client.query("BEGIN; THROW 'User not found'; COMMIT;"))


def test_failed_transaction_reports_the_thrown_message() -> None:
    thrown = "An error occurred: Only organization owners can delete organizations"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": 1,
                "result": [
                    {"status": "ERR", "result": CANCELLED},
                    {"status": "ERR", "result": CANCELLED},
                    {"status": "ERR", "result": CANCELLED},
                    {"status": "ERR", "result": thrown},
                    {"status": "ERR", "result": CANCELLED},
                ],
            },
        )

    client = _client(handler)

    with pytest.raises(SurrealQueryError) as excinfo:
        asyncio.run(client.query("BEGIN TRANSACTION; ... COMMIT TRANSACTION;"))

    assert excinfo.value.message == thrown


def test_failed_transaction_without_cause_reports_cancellation() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": 1,
                "result": [
                    {"status": "ERR", "result": CANCELLED},
                    {"status": "ERR", "result": CANCELLED},
                ],
            },
        )

    client = _client(handler)

    with pytest.raises(SurrealQueryError, match="failed transaction"):
        asyncio.run(client.query("BEGIN TRANSACTION; COMMIT TRANSACTION;"))


def test_query_rejects_unexpected_shape() -> None:
    client = _client(
        lambda request: httpx.Response(200, json={"id": 1, "result": "ok"})
    )

    with pytest.raises(ResultShapeError):
        asyncio.run(client.query("INFO FOR DB;"))


def test_rpc_error_maps_to_query_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"id": 1, "error": {"code": -32000, "message": "Parse error"}}
        )

    client = _client(handler)

    with pytest.raises(SurrealQueryError) as excinfo:
        asyncio.run(client.query("SELEC"))

    assert excinfo.value.code == -32000


def test_rpc_http_failure_raises_surreal_error() -> None:
    client = _client(lambda request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(SurrealError, match="HTTP 502"):
        asyncio.run(client.query("SELECT * FROM role;"))


def test_authenticate_rejection_clears_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"id": 1, "error": {"code": -32000, "message": "Token expired"}},
        )

    client = _client(handler)

    with pytest.raises(AuthenticationError, match="Token expired"):
        asyncio.run(client.authenticate("stale"))

    assert client.token is None


def test_invalidate_forgets_token_even_on_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler)
    client.token = "jwt"

    with pytest.raises(SurrealConnectionError):
        asyncio.run(client.invalidate())

    assert client.token is None


def test_info_unwraps_single_record() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"id": 1, "result": [{"id": "person:alice", "username": "alice"}]},
        )

    client = _client(handler)

    assert asyncio.run(client.info()) == {"id": "person:alice", "username": "alice"}
