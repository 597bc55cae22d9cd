"""
Subscription table for the EventBus.

Exact names are indexed for direct lookup; ``*`` patterns are scanned on
every publish. Lookups return listeners in ``(priority, identifier)`` order
and drop ``once`` listeners from the table as they are handed out.
"""

from __future__ import annotations

from collections import defaultdict

from valor.core.event.types import Listener


class ListenerRegistry:
    def __init__(self) -> None:
        self._exact: defaultdict[str, list[Listener]] = defaultdict(list)
        self._patterns: list[Listener] = []

    def _bucket(self, pattern: str) -> list[Listener]:
        if "*" in pattern:
            return self._patterns
        return self._exact[pattern]

    def add(self, listener: Listener, *, allow_duplicates: bool = False) -> bool:
        """Register ``listener``; False if its identifier is already on that pattern."""
        bucket = self._bucket(listener.pattern)
        if not allow_duplicates and any(
            existing.pattern == listener.pattern and existing.identifier == listener.identifier
            for existing in bucket
        ):
            return False
        bucket.append(listener)
        bucket.sort(key=lambda lst: lst.sort_key)
        return True

    def remove(self, pattern: str, identifier: str) -> bool:
        bucket = self._bucket(pattern)
        kept = [
            lst for lst in bucket if not (lst.pattern == pattern and lst.identifier == identifier)
        ]
        removed = len(kept) < len(bucket)
        bucket[:] = kept
        if not kept and pattern in self._exact:
            del self._exact[pattern]
        return removed

    def clear(self) -> int:
        total = self.count()
        self._exact.clear()
        self._patterns.clear()
        return total

    def take(self, event_name: str) -> list[Listener]:
        """Listeners for ``event_name``; ``once`` listeners are removed here."""
        matched = list(self._exact.get(event_name, ()))
        matched.extend(lst for lst in self._patterns if lst.matches(event_name))

        spent = {id(lst) for lst in matched if lst.once}
        if spent:
            if event_name in self._exact:
                self._exact[event_name] = [
                    lst for lst in self._exact[event_name] if id(lst) not in spent
                ]
                if not self._exact[event_name]:
                    del self._exact[event_name]
            self._patterns = [lst for lst in self._patterns if id(lst) not in spent]

        matched.sort(key=lambda lst: lst.sort_key)
        return matched

    def count(self, event_name: str | None = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._exact.values()) + len(self._patterns)
        exact = len(self._exact.get(event_name, ()))
        return exact + sum(1 for lst in self._patterns if lst.matches(event_name))

    def patterns(self) -> list[str]:
        names = set(self._exact)
        names.update(lst.pattern for lst in self._patterns)
        return sorted(names)
