"""
Event payloads, listener priorities and listener records.

Priorities decide both order and concurrency when an event is published:

- CRITICAL, HIGH: run one after another, awaited, with a timeout
- NORMAL: run together with ``asyncio.gather`` and awaited
- LOW: scheduled as background tasks, never awaited by the publisher

Engine events are camelCase names (``challengeResult``, ``guildReward``).
A listener subscribes to one name or to a ``*`` pattern (``guild*``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Optional, Union

EventPayload = dict[str, Any]

Callback = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(IntEnum):
    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100

    @property
    def is_sequential(self) -> bool:
        return self <= ListenerPriority.HIGH


@dataclass(frozen=True)
class Listener:
    """One subscription: a callback bound to an event name or pattern."""

    pattern: str
    callback: Callback
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.pattern

    def matches(self, event_name: str) -> bool:
        if not self.is_wildcard:
            return event_name == self.pattern
        return fnmatchcase(event_name, self.pattern)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (int(self.priority), self.identifier)

    @staticmethod
    def default_identifier(pattern: str, callback: Callback) -> str:
        """``module.qualname@pattern`` so re-subscribing the same function is detected."""
        module = getattr(callback, "__module__", None) or "unknown"
        name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", "callback")
        return f"{module}.{name}@{pattern}"

    @classmethod
    def create(
        cls,
        pattern: str,
        callback: Callback,
        priority: ListenerPriority,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> "Listener":
        return cls(
            pattern=pattern,
            callback=callback,
            priority=priority,
            identifier=identifier or cls.default_identifier(pattern, callback),
            once=once,
        )
