"""Connection and authentication session management."""

import logging
from dataclasses import dataclass, field, replace

from slatehub_db.adapters.surreal_client import SurrealClient
from slatehub_db.adapters.token_store import LocalStorage
from slatehub_db.config import Settings
from slatehub_db.domain.session import (
    AuthState,
    ConnectionConfig,
    ConnectionState,
    ErrorDetails,
)
from slatehub_db.errors import (
    AuthenticationError,
    NotAuthenticatedError,
    SlatehubError,
    SurrealConnectionError,
)
from slatehub_db.services.state import Observable

TOKEN_STORAGE_KEY = "surrealToken"

_logger = logging.getLogger(__name__)


@dataclass
class SessionManager:
    """Owns the database handle and the observable connection/auth state."""

    client: SurrealClient
    storage: LocalStorage
    default_config: ConnectionConfig
    access: str = "user_access"
    connection_state: Observable[ConnectionState] = field(
        default_factory=lambda: Observable(ConnectionState.DISCONNECTED)
    )
    auth_state: Observable[AuthState] = field(
        default_factory=lambda: Observable(AuthState())
    )
    error_message: Observable[str | None] = field(
        default_factory=lambda: Observable(None)
    )
    error_details: Observable[ErrorDetails] = field(
        default_factory=lambda: Observable(ErrorDetails())
    )
    _active_config: ConnectionConfig | None = field(default=None, init=False)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: SurrealClient, storage: LocalStorage
    ) -> "SessionManager":
        """Build a session manager using the configured endpoint."""
        return cls(
            client=client,
            storage=storage,
            default_config=ConnectionConfig(
                url=settings.surreal_url,
                namespace=settings.surreal_ns,
                database=settings.surreal_db,
            ),
            access=settings.surreal_access,
        )

    async def connect(self, config: ConnectionConfig | None = None) -> bool:
        """Connect and try to restore a persisted session.

        Returns False instead of raising when the server is unreachable.
        """
        resolved = config or self.default_config
        if (
            self.get_connection_state() is ConnectionState.CONNECTED
            and self._active_config == resolved
        ):
            return True

        self.connection_state.set(ConnectionState.CONNECTING)
        self.error_message.set(None)
        _logger.info("Connecting to SurrealDB at %s", resolved.url)
        try:
            await self.client.connect(resolved.url)
            await self.client.use(resolved.namespace, resolved.database)
        except Exception as exc:
            _logger.error("Connection error: %s", exc)
            message = str(exc) or "Failed to connect to database"
            self._active_config = None
            self.connection_state.set(ConnectionState.ERROR)
            self.error_message.set(message)
            self.error_details.set(
                ErrorDetails(
                    message=message,
                    details=(
                        "Check that SurrealDB is running and accessible "
                        "at the configured URL"
                    ),
                    raw=exc,
                )
            )
            return False

        self._active_config = resolved
        self.connection_state.set(ConnectionState.CONNECTED)
        _logger.info(
            "Connected to SurrealDB (NS: %s, DB: %s)",
            resolved.namespace,
            resolved.database,
        )
        await self._restore_session()
        return True

    async def signup(self, username: str, email: str, password: str) -> AuthState:
        """Create an account through the access method, then sign in."""
        self.error_message.set(None)
        try:
            await self._ensure_connected()
            _logger.info("Attempting signup for user: %s", username)
            await self.client.signup(
                self._config.namespace,
                self._config.database,
                self.access,
                {"username": username, "email": email, "password": password},
            )
        except Exception as exc:
            _logger.error("Signup error: %s", exc)
            self._record_failure(
                exc,
                message="Failed to sign up",
                code=400,
                details="Unknown error during signup",
            )
            raise
        return await self.signin(username, password)

    async def signin(self, username: str, password: str) -> AuthState:
        """Sign in, persist the token and populate the auth state."""
        self.error_message.set(None)
        try:
            await self._ensure_connected()
            _logger.info("Attempting signin for user: %s", username)
            token = await self.client.signin(
                self._config.namespace,
                self._config.database,
                self.access,
                {"username": username, "password": password},
            )
            if not token:
                raise AuthenticationError("No authentication token returned")
            await self.client.authenticate(token)
            try:
                info = await self.client.info() or {}
            except Exception:
                await self._drop_client_token()
                raise
            self.storage.set(TOKEN_STORAGE_KEY, token)
        except Exception as exc:
            _logger.error("Signin error: %s", exc)
            self._record_failure(
                exc,
                message="Failed to sign in",
                code=400,
                details="Unknown error during signin",
            )
            raise

        state = AuthState(
            is_authenticated=True,
            user={"username": username, **info},
            token=token,
        )
        self.auth_state.set(state)
        _logger.info("Signin successful for user: %s", username)
        return state

    async def signout(self) -> bool:
        """Sign out; local state is always cleared even if the server call fails."""
        try:
            await self.client.invalidate()
        except Exception as exc:
            _logger.warning("Server-side signout failed: %s", exc)
        self.storage.remove(TOKEN_STORAGE_KEY)
        self.auth_state.set(AuthState())
        return True

    async def query(
        self, statement: str, variables: dict[str, object] | None = None
    ) -> list[object]:
        """Run a statement verbatim, connecting first if needed."""
        self.error_message.set(None)
        try:
            await self._ensure_connected()
            return await self.client.query(statement, variables or {})
        except Exception as exc:
            _logger.error("Query error: %s", exc)
            self._record_failure(
                exc,
                message="Query failed",
                code=0,
                details="Unknown error during database query",
            )
            raise

    async def close(self) -> bool:
        """Close the database connection."""
        try:
            await self.client.close()
        except Exception as exc:
            _logger.error("Error closing connection: %s", exc)
            return False
        self._active_config = None
        self.connection_state.set(ConnectionState.DISCONNECTED)
        return True

    def get_connection_state(self) -> ConnectionState:
        return self.connection_state.get()

    def is_authenticated(self) -> bool:
        return self.auth_state.get().is_authenticated

    def get_current_user(self) -> dict[str, object] | None:
        return self.auth_state.get().user

    def require_user_id(self) -> str:
        """Return the signed-in person's record id."""
        state = self.auth_state.get()
        if not state.is_authenticated or state.user is None:
            raise NotAuthenticatedError("User not authenticated")
        user_id = state.user.get("id")
        if not user_id:
            raise NotAuthenticatedError("User ID not found")
        return str(user_id)

    def update_user(self, changes: dict[str, object]) -> None:
        """Merge `changes` into the cached user snapshot."""
        self.auth_state.update(
            lambda state: state
            if state.user is None
            else replace(state, user={**state.user, **changes})
        )

    @property
    def _config(self) -> ConnectionConfig:
        return self._active_config or self.default_config

    async def _ensure_connected(self) -> None:
        if self.get_connection_state() is ConnectionState.CONNECTED:
            return
        if not await self.connect():
            raise SurrealConnectionError(
                self.error_message.get() or "Failed to connect to database"
            )

    async def _restore_session(self) -> None:
        token = self.storage.get(TOKEN_STORAGE_KEY)
        if not token:
            return
        try:
            await self.client.authenticate(token)
            info = await self.client.info()
            if info is None:
                raise AuthenticationError("Stored token has no identity")
        except SlatehubError as exc:
            _logger.warning("Invalid stored token, removing it: %s", exc)
            await self._drop_client_token()
            self.storage.remove(TOKEN_STORAGE_KEY)
            self.auth_state.set(AuthState())
            return
        self.auth_state.set(AuthState(is_authenticated=True, user=info, token=token))
        _logger.info("Successfully restored previous session")

    async def _drop_client_token(self) -> None:
        try:
            await self.client.invalidate()
        except Exception as exc:
            _logger.warning("Failed to invalidate rejected session: %s", exc)

    def _record_failure(
        self, exc: BaseException, *, message: str, code: int, details: str
    ) -> None:
        error = describe_error(exc, message=message, code=code, details=details)
        self.error_message.set(error.message)
        self.error_details.set(error)


def describe_error(
    exc: BaseException, *, message: str, code: int, details: str
) -> ErrorDetails:
    """Decompose an exception into message, numeric code and details."""
    resolved_message = str(exc) or message
    resolved_code = code
    resolved_details = details
    exc_code = getattr(exc, "code", None)
    if isinstance(exc_code, int):
        resolved_code = exc_code
    description = getattr(exc, "description", None)
    if description:
        resolved_details = str(description)
    information = getattr(exc, "information", None)
    if information:
        resolved_details = f"{resolved_details}: {information}"
    return ErrorDetails(
        message=resolved_message,
        code=resolved_code,
        details=resolved_details,
        raw=exc,
    )
