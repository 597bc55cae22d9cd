"""
Unit Tests for the EventBus
===========================

Test Coverage
-------------
- Subscription validation and duplicate prevention
- Tiered execution: ordered CRITICAL/HIGH, gathered NORMAL, detached LOW
- Pattern matching and ``once`` listeners
- Error isolation and publish counters
"""

import pytest

from valor.core.event.bus import EventBus
from valor.core.event.types import Listener, ListenerPriority


@pytest.fixture
def bus(mock_config_manager) -> EventBus:
    return EventBus(config_manager=mock_config_manager)


# ============================================================================
# PATTERNS
# ============================================================================


@pytest.mark.unit
class TestPatterns:
    @pytest.mark.parametrize(
        "event_name, pattern, expected",
        [
            ("guildReward", "guild*", True),
            ("guildBattleComplete", "guild*", True),
            ("auctionBid", "guild*", False),
            ("auctionBid", "*", True),
            ("auctionBid", "auctionBid", True),
            ("auctionBid", "auction*Bid", True),
            ("auctionEnded", "*Bid", False),
            ("ab", "ab*b", False),
        ],
    )
    def test_matches(self, event_name, pattern, expected):
        listener = Listener.create(pattern, lambda payload: None, ListenerPriority.NORMAL)
        assert listener.matches(event_name) is expected


# ============================================================================
# SUBSCRIPTION
# ============================================================================


@pytest.mark.unit
class TestSubscription:
    def test_callback_must_take_one_argument(self, bus):
        def no_args():
            return None

        with pytest.raises(ValueError):
            bus.subscribe("playerUpdate", no_args)

    def test_duplicate_identifier_is_ignored(self, bus):
        def on_update(payload):
            return payload

        bus.subscribe("playerUpdate", on_update)
        bus.subscribe("playerUpdate", on_update)

        assert bus.get_listener_count("playerUpdate") == 1

    def test_unsubscribe(self, bus):
        listener_id = bus.subscribe("playerUpdate", lambda payload: None, identifier="x")

        assert bus.unsubscribe("playerUpdate", listener_id)
        assert bus.get_listener_count() == 0


# ============================================================================
# PUBLISH
# ============================================================================


@pytest.mark.unit
class TestPublish:
    async def test_results_follow_priority_order(self, bus):
        # Arrange
        bus.subscribe("npcBattle", lambda p: "normal", identifier="n")
        bus.subscribe("npcBattle", lambda p: "high", identifier="h", priority=ListenerPriority.HIGH)
        bus.subscribe(
            "npcBattle", lambda p: "critical", identifier="c", priority=ListenerPriority.CRITICAL
        )

        # Act
        results = await bus.publish("npcBattle", {"won": True})

        # Assert
        assert results == ["critical", "high", "normal"]

    async def test_async_listeners_are_awaited(self, bus):
        async def on_result(payload):
            return payload["won"]

        bus.subscribe("challengeResult", on_result)

        assert await bus.publish("challengeResult", {"won": True}) == [True]

    async def test_low_priority_runs_detached(self, bus):
        seen = []
        bus.subscribe(
            "auctionEnded", lambda p: seen.append(p), identifier="audit", priority=ListenerPriority.LOW
        )

        results = await bus.publish("auctionEnded", {"auctionId": "a1"})
        await bus.drain()

        assert results == []
        assert seen == [{"auctionId": "a1"}]

    async def test_failing_listener_is_isolated(self, bus):
        def explode(payload):
            raise RuntimeError("boom")

        bus.subscribe("guildReward", explode, identifier="a-explode")
        bus.subscribe("guildReward", lambda p: "ok", identifier="b-ok")

        assert await bus.publish("guildReward", {}) == [None, "ok"]

    async def test_wildcard_listener(self, bus):
        received = []
        bus.subscribe("guild*", lambda p: received.append(p["n"]), identifier="guild-feed")

        await bus.publish("guildDeposit", {"n": 1})
        await bus.publish("auctionBid", {"n": 2})
        await bus.publish("guildBattleComplete", {"n": 3})

        assert received == [1, 3]

    async def test_once_listener_runs_a_single_time(self, bus):
        calls = []
        bus.subscribe("leaderboardRefreshed", lambda p: calls.append(p), identifier="o", once=True)

        await bus.publish("leaderboardRefreshed", {})
        await bus.publish("leaderboardRefreshed", {})

        assert len(calls) == 1

    async def test_publish_counts(self, bus):
        await bus.publish("playerUpdate", {})
        await bus.publish("playerUpdate", {})
        await bus.publish("npcBattle", {})

        assert bus.get_publish_count("playerUpdate") == 2
        assert bus.get_publish_count() == 3
        assert bus.get_publish_count("auctionBid") == 0

    async def test_no_listeners(self, bus):
        assert await bus.publish("petEvolved", {"petId": "p"}) == []
