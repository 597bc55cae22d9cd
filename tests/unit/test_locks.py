"""
Unit Tests for Per-Entity Locks
===============================

Test Coverage
-------------
- Key helpers
- Mutual exclusion on a shared key
- Sorted multi-key acquisition (no deadlock on reversed order)
- Lock entries are dropped once free
"""

import asyncio

import pytest

from valor.core.concurrency.locks import account_key, guild_key


@pytest.mark.unit
class TestEntityLockRegistry:
    def test_key_helpers(self):
        assert account_key("a1") == "account:a1"
        assert guild_key("g1") == "guild:g1"

    async def test_hold_marks_keys_locked(self, locks):
        async with locks.hold(account_key("b"), None, account_key("a")):
            assert locks.is_locked("account:a")
            assert locks.is_locked("account:b")
            assert list(locks.active_keys()) == ["account:a", "account:b"]

        assert not locks.is_locked("account:a")
        assert list(locks.active_keys()) == []

    async def test_same_key_serializes(self, locks):
        # Arrange
        order = []
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first():
            async with locks.hold("account:x"):
                order.append("first-in")
                entered.set()
                await release.wait()
                order.append("first-out")

        async def second():
            await entered.wait()
            async with locks.hold("account:x"):
                order.append("second-in")

        # Act
        tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
        await entered.wait()
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(*tasks)

        # Assert
        assert order == ["first-in", "first-out", "second-in"]

    async def test_reversed_key_order_does_not_deadlock(self, locks):
        async def touch(*keys):
            async with locks.hold(*keys):
                await asyncio.sleep(0)

        await asyncio.wait_for(
            asyncio.gather(
                touch("account:a", "account:b"),
                touch("account:b", "account:a"),
                touch("account:a", "account:b"),
            ),
            timeout=2,
        )

        assert list(locks.active_keys()) == []

    async def test_lock_released_when_block_raises(self, locks):
        with pytest.raises(RuntimeError):
            async with locks.hold("guild:g"):
                raise RuntimeError("fail")

        assert not locks.is_locked("guild:g")
        assert list(locks.active_keys()) == []
