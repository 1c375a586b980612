"""
Latest-value observable.

Subscribers are called synchronously with the current value as soon as they
subscribe, then once per published change. There is no window in which a
subscriber can miss the initial state.
"""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class Observable(Generic[T]):
    """Single-writer value holder with change notification."""

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._subscribers.append(callback)
        callback(self._value)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def publish(self, value: T) -> None:
        """Swap in the new value, then notify. Equal values are not re-published."""
        if value == self._value:
            return
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception(
                    "Observable subscriber failed",
                    extra={"subscriber": getattr(callback, "__qualname__", repr(callback))},
                )

    def subscriber_count(self) -> int:
        return len(self._subscribers)
