"""Helpers for SurrealDB result envelopes, record ids and timestamps.

A query returns one result per statement. Depending on the statement the
payload is a list of rows, a single wrapped row, a bare object, or None for
LET/BEGIN/COMMIT. Callers pick the helper matching the arity they expect and
never inspect the raw shape themselves.
"""

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from slatehub_db.errors import DataAccessError, InvalidInputError, ResultShapeError

_logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d{6})\d+")
_UNEXPECTED_SHAPE = "Unexpected result shape from database"


def statement_payload(results: object) -> object:
    """Return the payload of the last statement that produced a value."""
    if isinstance(results, dict):
        return results
    if not isinstance(results, list):
        return results
    for result in reversed(results):
        if result is not None:
            return result
    return None


def expect_many(results: object) -> list[dict[str, object]]:
    """Normalize a payload into a list of rows."""
    payload = statement_payload(results)
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if not isinstance(payload, list):
        raise ResultShapeError(_UNEXPECTED_SHAPE)
    rows: list[dict[str, object]] = []
    for item in payload:
        if isinstance(item, list):
            rows.extend(row for row in item if isinstance(row, dict))
        elif isinstance(item, dict):
            rows.append(item)
    return rows


def expect_one(results: object) -> dict[str, object] | None:
    """Normalize a payload into a single row, or None when empty."""
    rows = expect_many(results)
    return rows[0] if rows else None


def require_one(results: object, message: str) -> dict[str, object]:
    """Like `expect_one`, raising ResultShapeError with `message` when empty."""
    row = expect_one(results)
    if row is None:
        raise ResultShapeError(message)
    return row


def expect_value(results: object) -> object:
    """Return a scalar payload such as the value of `RETURN <expr>`."""
    payload = statement_payload(results)
    if isinstance(payload, list):
        return payload[0] if payload else None
    return payload


def record_id(value: str, table: str) -> str:
    """Validate that `value` is a record id on `table` and return it."""
    cleaned = (value or "").strip().replace("/", ":", 1)
    prefix, sep, key = cleaned.partition(":")
    if not sep or not key or prefix != table:
        raise InvalidInputError(f"Invalid {table} id: {value!r}")
    return cleaned


def looks_like_record_id(value: str) -> bool:
    """Return True for `table:key` or `table/key` style values."""
    return ":" in value or "/" in value


def parse_datetime(value: object) -> datetime | None:
    """Parse a SurrealDB datetime string (nanosecond precision, `Z` suffix)."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    cleaned = _FRACTION.sub(r".\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        return None


def optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


@contextmanager
def reraise_with_context(action: str) -> Iterator[None]:
    """Log a failure and re-raise it as a DataAccessError naming `action`."""
    try:
        yield
    except Exception as exc:
        _logger.error("Failed to %s: %s", action, exc)
        error_cls = type(exc) if isinstance(exc, DataAccessError) else DataAccessError
        raise error_cls(f"Failed to {action}: {exc}") from exc
