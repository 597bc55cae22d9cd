"""
Integration Tests for GuildService
==================================

Test Coverage
-------------
- Creation, joining up to capacity, leaving and disbanding
- Bank deposits and all-or-nothing distributions
- Level-up requirements
"""

import pytest

from tests.conftest import published
from valor.database.models import Account, Guild
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


async def guild_with_members(container, factory, count: int = 1):
    master = await factory.account()
    guild = await container.guilds.create_guild(master, "Ironclad")
    members = []
    for _ in range(count):
        member = await factory.account()
        await container.guilds.join(guild["id"], member)
        members.append(member)
    return guild["id"], master, members


# ============================================================================
# MEMBERSHIP
# ============================================================================


@pytest.mark.integration
class TestMembership:
    async def test_create(self, container, factory, mock_event_bus):
        master = await factory.account()

        guild = await container.guilds.create_guild(master, "  Ironclad ")

        assert guild["name"] == "Ironclad"
        assert guild["masterId"] == master
        assert guild["level"] == 1
        assert guild["capacity"] == 5
        assert guild["members"] == [{"accountId": master, "role": "master"}]
        assert guild["bank"]["gold"] == 0
        event = published(mock_event_bus, "guildUpdate")[0]
        assert event["action"] == "created"
        assert event["guildId"] == guild["id"]
        assert event["actorId"] == master

    @pytest.mark.parametrize("name", ["ab", "x" * 31, "   "])
    async def test_name_length(self, container, factory, name):
        master = await factory.account()

        with pytest.raises(ValidationError):
            await container.guilds.create_guild(master, name)

    async def test_name_taken(self, container, factory):
        await container.guilds.create_guild(await factory.account(), "Ironclad")

        with pytest.raises(ValidationError):
            await container.guilds.create_guild(await factory.account(), "Ironclad")

    async def test_one_guild_per_account(self, container, factory):
        guild_id, master, [member] = await guild_with_members(container, factory)

        with pytest.raises(InvalidStateError):
            await container.guilds.create_guild(member, "Second")
        with pytest.raises(InvalidStateError):
            await container.guilds.join(guild_id, member)

    async def test_capacity(self, container, factory):
        # Arrange: level 1 holds five
        guild_id, _, members = await guild_with_members(container, factory, count=4)

        # Act / Assert
        with pytest.raises(InvalidStateError):
            await container.guilds.join(guild_id, await factory.account())
        assert len((await container.guilds.get_guild(guild_id))["members"]) == 5

    async def test_member_leaves(self, container, factory):
        guild_id, master, [member] = await guild_with_members(container, factory)

        result = await container.guilds.leave(guild_id, member)

        assert result == {"disbanded": False}
        snapshot = await container.guilds.get_guild(guild_id)
        assert [m["accountId"] for m in snapshot["members"]] == [master]

    async def test_join_and_leave_publish_updates(self, container, factory, mock_event_bus):
        guild_id, _, [member] = await guild_with_members(container, factory)

        await container.guilds.leave(guild_id, member)

        events = [e for e in published(mock_event_bus, "guildUpdate") if e["actorId"] == member]
        assert [e["action"] for e in events] == ["joined", "left"]
        assert {"accountId": member, "role": "member"} in events[0]["guild"]["members"]
        assert published(mock_event_bus, "guildDisbanded") == []

    async def test_master_leaving_disbands(self, container, factory, mock_event_bus):
        guild_id, master, [member] = await guild_with_members(container, factory)

        result = await container.guilds.leave(guild_id, master)

        assert result == {"disbanded": True}
        assert await factory.get(Guild, guild_id) is None
        event = published(mock_event_bus, "guildDisbanded")[0]
        assert set(event["memberIds"]) == {master, member}
        # Former members are free to start over
        await container.guilds.create_guild(member, "Phoenix")

    async def test_outsider_cannot_leave(self, container, factory):
        guild_id, _, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(ForbiddenError):
            await container.guilds.leave(guild_id, await factory.account())

    async def test_unknown_guild(self, container):
        with pytest.raises(NotFoundError) as exc_info:
            await container.guilds.get_guild("missing")

        assert exc_info.value.error_code == "GUILD_NOT_FOUND"


# ============================================================================
# BANK
# ============================================================================


@pytest.mark.integration
class TestBank:
    async def test_deposit(self, container, factory, mock_event_bus):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)

        result = await container.guilds.deposit(guild_id, master, "gold", 4_000)

        assert result["bank"]["gold"] == 4_000
        assert result["player"]["gold"] == 6_000
        assert published(mock_event_bus, "guildDeposit")[0]["amount"] == 4_000

    async def test_deposit_shortfall(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(InsufficientResourcesError):
            await container.guilds.deposit(guild_id, master, "rubies", 1)

        assert (await container.guilds.get_guild(guild_id))["bank"]["rubies"] == 0

    async def test_training_points_cannot_be_deposited(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(ValidationError):
            await container.guilds.deposit(guild_id, master, "trainingPoints", 1)

    async def test_non_member_cannot_deposit(self, container, factory):
        guild_id, _, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(ForbiddenError):
            await container.guilds.deposit(guild_id, await factory.account(), "gold", 1)

    async def test_distribute(self, container, factory, mock_event_bus):
        # Arrange
        guild_id, master, [member] = await guild_with_members(container, factory)
        await factory.set_guild(guild_id, bank={"gold": 1_000, "runes": 5})

        # Act
        result = await container.guilds.distribute(
            guild_id,
            master,
            [{"accountId": member, "gold": 600, "runes": 5}, {"accountId": master, "gold": 400}],
        )

        # Assert
        assert result["bank"]["gold"] == 0
        assert result["bank"]["runes"] == 0
        member_row = await factory.get(Account, member)
        assert member_row.gold == 10_600
        assert member_row.runes == 5
        assert len(published(mock_event_bus, "guildReward")) == 2

    async def test_distribution_over_bank_changes_nothing(self, container, factory):
        guild_id, master, [member] = await guild_with_members(container, factory)
        await factory.set_guild(guild_id, bank={"gold": 500})

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.guilds.distribute(
                guild_id,
                master,
                [{"accountId": member, "gold": 300}, {"accountId": master, "gold": 300}],
            )

        assert exc_info.value.resource == "guild_gold"
        assert (await factory.get(Account, member)).gold == 10_000
        assert (await container.guilds.get_guild(guild_id))["bank"]["gold"] == 500

    async def test_only_master_distributes(self, container, factory):
        guild_id, _, [member] = await guild_with_members(container, factory)

        with pytest.raises(ForbiddenError):
            await container.guilds.distribute(guild_id, member, [{"accountId": member, "gold": 1}])

    @pytest.mark.parametrize(
        "distributions",
        [
            [],
            [{"gold": 1}],
            [{"accountId": "x", "petExp": 1}],
            [{"accountId": "x", "gold": -1}],
        ],
    )
    async def test_malformed_distributions(self, container, factory, distributions):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(ValidationError):
            await container.guilds.distribute(guild_id, master, distributions)

    async def test_recipient_must_be_a_member(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)
        await factory.set_guild(guild_id, bank={"gold": 500})

        with pytest.raises(ValidationError):
            await container.guilds.distribute(
                guild_id, master, [{"accountId": await factory.account(), "gold": 1}]
            )


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.integration
class TestLevelUp:
    async def test_level_up(self, container, factory, mock_event_bus):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)
        await factory.set_guild(guild_id, bank={"gold": 1_200_000_000})

        guild = await container.guilds.level_up(guild_id, master)

        assert guild["level"] == 2
        assert guild["capacity"] == 8
        assert guild["bank"]["gold"] == 200_000_000
        assert published(mock_event_bus, "guildLevelUp")[0]["level"] == 2

    async def test_needs_bank_gold(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.guilds.level_up(guild_id, master)

        assert exc_info.value.resource == "guild_gold"

    async def test_needs_dungeon_progress(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)
        await factory.set_guild(guild_id, level=2, bank={"gold": 10**10})

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.guilds.level_up(guild_id, master)

        assert exc_info.value.resource == "dungeon_floor"

    async def test_max_level(self, container, factory):
        guild_id, master, _ = await guild_with_members(container, factory, count=0)
        await factory.set_guild(guild_id, level=10)

        with pytest.raises(InvalidStateError):
            await container.guilds.level_up(guild_id, master)

    async def test_only_master(self, container, factory):
        guild_id, _, [member] = await guild_with_members(container, factory)

        with pytest.raises(ForbiddenError):
            await container.guilds.level_up(guild_id, member)
