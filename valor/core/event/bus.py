"""
EventBus - the engine's outbound notification hook.

Purpose
-------
Services announce state changes with ``publish(event, payload)``: a
challenge resolved, a guild bank credited, an auction ended. Whatever
delivers those to players (SSE, WebSocket, a chat bot) subscribes here; the
engine never holds transport handles.

Responsibilities
----------------
- Subscriptions by exact name or ``*`` pattern, with priorities and ``once``
- Tiered execution (see ``valor.core.event.types``)
- Listener isolation: an exception or timeout in one listener is logged and
  that listener's result is ``None``; the publishing service never sees it
- Publish counters for status reports and tests

Configuration
-------------
``core.event.listener_timeout.critical_seconds`` and ``high_seconds``
bound the sequential tiers. Constructor arguments override the config.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import Counter
from typing import Any, Optional

from valor.core.config.manager import ConfigManager
from valor.core.event.registry import ListenerRegistry
from valor.core.event.types import Callback, EventPayload, Listener, ListenerPriority
from valor.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LISTENER_TIMEOUT = 5.0


def _accepts_single_payload(callback: Callback) -> bool:
    try:
        params = inspect.signature(callback).parameters.values()
    except (TypeError, ValueError):
        return True
    if any(p.kind == p.VAR_POSITIONAL for p in params):
        return True
    positional = [p for p in params if p.kind not in (p.VAR_KEYWORD, p.KEYWORD_ONLY)]
    return len(positional) == 1


class EventBus:
    """
    Instance-based pub/sub; the ServiceContainer hands one bus to every service.

    >>> bus = EventBus()
    >>> bus.subscribe("challengeResult", on_result, priority=ListenerPriority.HIGH)
    >>> await bus.publish("challengeResult", {"recipientId": "a1", "won": True})
    """

    def __init__(
        self,
        config_manager: Optional[type[ConfigManager]] = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._registry = ListenerRegistry()
        self._published: Counter[str] = Counter()
        self._detached: set[asyncio.Task[Any]] = set()

        def timeout(key: str, override: Optional[float]) -> float:
            if override is not None:
                return float(override)
            if config_manager is None:
                return DEFAULT_LISTENER_TIMEOUT
            return float(config_manager.get(key, DEFAULT_LISTENER_TIMEOUT))

        self._timeouts = {
            ListenerPriority.CRITICAL: timeout(
                "core.event.listener_timeout.critical_seconds", critical_timeout_seconds
            ),
            ListenerPriority.HIGH: timeout(
                "core.event.listener_timeout.high_seconds", high_timeout_seconds
            ),
        }

    # ========================================================================
    # SUBSCRIPTIONS
    # ========================================================================

    def subscribe(
        self,
        event_name: str,
        callback: Callback,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Register ``callback`` for ``event_name`` (or a ``*`` pattern).

        Returns the listener identifier for ``unsubscribe``. The callback
        must take exactly one argument, the payload dict.
        """
        if not _accepts_single_payload(callback):
            raise ValueError(
                f"Listener for '{event_name}' must take exactly one argument (the payload)"
            )

        listener = Listener.create(event_name, callback, priority, identifier, once)
        if self._registry.add(listener, allow_duplicates=allow_duplicates):
            logger.debug(
                "Listener subscribed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                },
            )
        else:
            logger.warning(
                "Duplicate listener ignored",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        return self._registry.remove(event_name, identifier)

    def clear(self) -> None:
        dropped = self._registry.clear()
        logger.info("Event listeners cleared", extra={"listener_count": dropped})

    # ========================================================================
    # PUBLISHING
    # ========================================================================

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver ``data`` to every matching listener.

        Returns the results of the awaited tiers in execution order
        (CRITICAL, HIGH, NORMAL). LOW listeners contribute nothing.
        """
        self._published[event_name] += 1
        listeners = self._registry.take(event_name)
        if not listeners:
            return []

        results: list[Any] = []
        gathered: list[Listener] = []
        for listener in listeners:
            if listener.priority.is_sequential:
                results.append(
                    await self._invoke(listener, event_name, data, self._timeouts[listener.priority])
                )
            elif listener.priority is ListenerPriority.NORMAL:
                gathered.append(listener)
            else:
                task = asyncio.get_running_loop().create_task(
                    self._invoke(listener, event_name, data),
                    name=f"event-{event_name}-{listener.identifier}",
                )
                self._detached.add(task)
                task.add_done_callback(self._detached.discard)

        if gathered:
            results.extend(
                await asyncio.gather(*(self._invoke(lst, event_name, data) for lst in gathered))
            )
        return results

    async def _invoke(
        self,
        listener: Listener,
        event_name: str,
        data: EventPayload,
        timeout: Optional[float] = None,
    ) -> Any:
        async def call() -> Any:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            if timeout and timeout > 0:
                return await asyncio.wait_for(call(), timeout=timeout)
            return await call()
        except asyncio.TimeoutError:
            logger.error(
                "Event listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
        except Exception as exc:
            logger.error(
                "Event listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
        return None

    async def drain(self) -> None:
        """Wait for detached LOW listeners (shutdown and tests)."""
        if self._detached:
            await asyncio.gather(*list(self._detached), return_exceptions=True)

    # ========================================================================
    # INTROSPECTION
    # ========================================================================

    def get_publish_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(self._published.values())
        return self._published[event_name]

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        return self._registry.count(event_name)

    def get_all_events(self) -> list[str]:
        return self._registry.patterns()
