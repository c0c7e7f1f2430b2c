"""Observable state cells shared between the session manager and the UI."""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class Observable(Generic[T]):
    """A synchronously readable value that notifies subscribers on change."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: list[Callable[[T], None]] = []

    def get(self) -> T:
        """Return the current value."""
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify subscribers."""
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                _logger.exception("State subscriber failed")

    def update(self, func: Callable[[T], T]) -> None:
        """Replace the value with `func(current)`."""
        self.set(func(self._value))

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Call `callback` with the current value and on every change.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)
        callback(self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
