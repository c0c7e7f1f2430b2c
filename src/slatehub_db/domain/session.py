"""Domain models for the connection and auth session."""

from dataclasses import dataclass
from enum import Enum


class ConnectionState(Enum):
    """Lifecycle of the database connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionConfig:
    """Endpoint, namespace and database to connect to."""

    url: str
    namespace: str
    database: str


@dataclass(frozen=True)
class AuthState:
    """Snapshot of the client-side authentication state."""

    is_authenticated: bool = False
    user: dict[str, object] | None = None
    token: str | None = None


@dataclass(frozen=True)
class ErrorDetails:
    """Structured description of the last failure."""

    message: str | None = None
    code: int | None = None
    details: str | None = None
    raw: BaseException | None = None
