"""
Exception hierarchy for the data-access layer.

Remote-engine failures keep the fields SurrealDB reports (code, description,
information) so the session manager can decompose them into ErrorDetails.
Domain accessors wrap everything they catch in DataAccessError.
"""


class SlatehubError(Exception):
    """Base exception for all data-access errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SurrealError(SlatehubError):
    """Error reported by the remote database engine."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        description: str | None = None,
        information: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.description = description
        self.information = information


class SurrealConnectionError(SurrealError):
    """The database engine could not be reached."""


class AuthenticationError(SurrealError):
    """Credentials or session token were rejected."""


class SurrealQueryError(SurrealError):
    """A statement returned an ERR status, e.g. an inline THROW."""


class NotAuthenticatedError(SlatehubError):
    """An identity-scoped operation was called without a signed-in user."""


class DataAccessError(SlatehubError):
    """A domain operation failed; wraps the underlying cause."""


class InvalidInputError(DataAccessError):
    """Caller-supplied input failed client-side validation."""


class ResultShapeError(DataAccessError):
    """The result envelope was empty or had an unexpected shape."""
