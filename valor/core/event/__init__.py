"""
Valor event subsystem.

Services receive an EventBus through the ServiceContainer; there is no
module-level singleton.
"""

from valor.core.event.bus import EventBus
from valor.core.event.types import Callback, EventPayload, Listener, ListenerPriority

__all__ = [
    "EventBus",
    "Listener",
    "EventPayload",
    "Callback",
    "ListenerPriority",
]
