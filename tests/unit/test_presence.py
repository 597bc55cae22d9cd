"""
Unit Tests for InMemoryPresenceService
"""

import pytest

from valor.modules.presence import InMemoryPresenceService, PresenceService


@pytest.mark.unit
class TestInMemoryPresence:
    async def test_online_among_keeps_order(self):
        presence = InMemoryPresenceService()
        await presence.mark_online("c")
        await presence.mark_online("a")

        assert await presence.online_among(["a", "b", "c"]) == ["a", "c"]

    async def test_mark_offline(self):
        presence = InMemoryPresenceService()
        await presence.mark_online("a")
        await presence.mark_offline("a")
        await presence.mark_offline("never-seen")

        assert not await presence.is_online("a")

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryPresenceService(), PresenceService)
