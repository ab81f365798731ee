"""Observable value cells.

A :class:`Signal` holds one value and a list of subscribers. Assigning a new
value that differs from the current one calls every subscriber synchronously,
in subscription order, before the assignment returns. Assigning an equal
value notifies nobody.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class Signal:
    """Mutable value cell with change notification."""

    def __init__(self, value: Any = None, name: Optional[str] = None) -> None:
        self._value = value
        self.name = name
        self._subscribers: List[Subscriber] = []

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        self.set(new_value)

    def set(self, new_value: Any) -> None:
        """Replace the value, notifying subscribers when it changed."""
        previous = self._value
        self._value = new_value
        if previous == new_value:
            return
        logger.debug("signal %s: %r -> %r", self.name, previous, new_value)
        # Copy so a subscriber that (un)subscribes does not disturb this pass.
        for subscriber in list(self._subscribers):
            subscriber(new_value)

    def subscribe(self, subscriber: Subscriber) -> None:
        if not callable(subscriber):
            raise TypeError("subscriber must be callable")
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        return tuple(self._subscribers)

    def __repr__(self) -> str:
        return f"Signal({self._value!r}, name={self.name!r})"


__all__ = ["Signal", "Subscriber"]
