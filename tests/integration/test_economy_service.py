"""
Integration Tests for EconomyService
====================================

Test Coverage
-------------
- Base stat boosts: cost, ownership, validation, all-or-nothing debit
- Training: cheaper rate, Def allowed
- Item boosts: rank ceiling clamp, only applied points charged
- Rates read from configuration overrides
- Concurrent spends on one account are serialized
"""

import asyncio

import pytest

from tests.conftest import published
from valor.database.models import Account, Item
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.integration
class TestBoostBaseStat:
    async def test_spends_training_points(self, container, factory, mock_event_bus):
        # Arrange
        actor = await factory.account(training_points=5_000)

        # Act
        result = await container.economy.boost_base_stat(actor, actor, "Luck", 3)

        # Assert
        assert result["tpSpent"] == 3_000
        assert result["stats"]["Luck"] == 13
        assert result["player"]["trainingPoints"] == 2_000
        assert published(mock_event_bus, "playerUpdate")[0]["actorId"] == actor

    async def test_only_the_owner_may_boost(self, container, factory):
        actor = await factory.account(training_points=5_000)
        other = await factory.account()

        with pytest.raises(ForbiddenError):
            await container.economy.boost_base_stat(actor, other, "Str", 1)

    async def test_shortfall_changes_nothing(self, container, factory):
        actor = await factory.account(training_points=999)

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.economy.boost_base_stat(actor, actor, "Str", 1)

        assert exc_info.value.resource == "trainingPoints"
        account = await factory.get(Account, actor)
        assert account.training_points == 999
        assert account.stats["Str"] == 10

    @pytest.mark.parametrize("stat, amount", [("Def", 1), ("Str", 0), ("Str", 101)])
    async def test_validation(self, container, factory, stat, amount):
        actor = await factory.account(training_points=10**9)

        with pytest.raises(ValidationError):
            await container.economy.boost_base_stat(actor, actor, stat, amount)

    async def test_rate_comes_from_config(self, container, factory, config_manager):
        config_manager.set_override("economy.base_boost_tp_per_point", 10)
        actor = await factory.account(training_points=100)

        result = await container.economy.boost_base_stat(actor, actor, "Pot", 5)

        assert result["tpSpent"] == 50
        assert result["stats"]["Pot"] == 5


@pytest.mark.integration
class TestTrainStat:
    async def test_defense_can_be_trained(self, container, factory):
        actor = await factory.account(training_points=1_000)

        result = await container.economy.train_stat(actor, "Def", 25)

        assert result["tpSpent"] == 250
        assert result["stats"]["Def"] == 35

    async def test_potential_cannot_be_trained(self, container, factory):
        actor = await factory.account(training_points=1_000)

        with pytest.raises(ValidationError):
            await container.economy.train_stat(actor, "Pot", 1)

    async def test_unknown_account(self, container):
        with pytest.raises(NotFoundError):
            await container.economy.train_stat("missing", "Str", 1)


@pytest.mark.integration
class TestBoostItemStat:
    async def test_boost(self, container, factory):
        actor = await factory.account(training_points=1_000)
        item_id = await factory.item(actor, stats={"Str": 5})

        result = await container.economy.boost_item_stat(actor, item_id, "Str", 10)

        assert result["applied"] == 10
        assert result["tpSpent"] == 100
        assert result["stats"]["Str"] == 15
        assert result["maxBoost"] == 999
        assert (await factory.get(Item, item_id)).stats["Str"] == 15

    async def test_clamped_to_rank_ceiling(self, container, factory):
        # Arrange
        actor = await factory.account(training_points=100_000)
        item_id = await factory.item(actor, stats={"Int": 995})

        # Act
        result = await container.economy.boost_item_stat(actor, item_id, "Int", 1_000)

        # Assert
        assert result["applied"] == 4
        assert result["tpSpent"] == 40
        assert result["stats"]["Int"] == 999
        assert (await factory.get(Account, actor)).training_points == 100_000 - 40

    async def test_higher_rank_raises_the_ceiling(self, container, factory):
        actor = await factory.account(training_points=100_000, rank="Apprentice")
        item_id = await factory.item(actor, stats={"Int": 999})

        result = await container.economy.boost_item_stat(actor, item_id, "Int", 1)

        assert result["maxBoost"] == 9_999
        assert result["stats"]["Int"] == 1_000

    async def test_stat_at_ceiling(self, container, factory):
        actor = await factory.account(training_points=1_000)
        item_id = await factory.item(actor, stats={"Luck": 999})

        with pytest.raises(InvalidStateError):
            await container.economy.boost_item_stat(actor, item_id, "Luck", 1)

    async def test_item_must_be_owned(self, container, factory):
        actor = await factory.account(training_points=1_000)
        item_id = await factory.item(await factory.account())

        with pytest.raises(ForbiddenError):
            await container.economy.boost_item_stat(actor, item_id, "Str", 1)

    async def test_defense_is_not_an_item_stat(self, container, factory):
        actor = await factory.account(training_points=1_000)
        item_id = await factory.item(actor)

        with pytest.raises(ValidationError):
            await container.economy.boost_item_stat(actor, item_id, "Def", 1)


@pytest.mark.integration
class TestConcurrentSpending:
    async def test_only_one_training_fits_the_budget(self, container, factory):
        # Arrange: 150 TP pays for one 10-point training (100 TP), not two
        actor = await factory.account(training_points=150)

        # Act
        outcomes = await asyncio.gather(
            container.economy.train_stat(actor, "Str", 10),
            container.economy.train_stat(actor, "Str", 10),
            return_exceptions=True,
        )

        # Assert
        succeeded = [o for o in outcomes if not isinstance(o, BaseException)]
        failed = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], InsufficientResourcesError)
        assert failed[0].resource == "trainingPoints"
        account = await factory.get(Account, actor)
        assert account.training_points == 50
        assert account.stats["Str"] == 20

    async def test_repeated_training_never_overdraws(self, container, factory):
        actor = await factory.account(training_points=1_000)

        outcomes = await asyncio.gather(
            *(container.economy.train_stat(actor, "Spd", 30) for _ in range(5)),
            return_exceptions=True,
        )

        # 300 TP each: three fit, the last two find 100 TP left
        assert sum(1 for o in outcomes if isinstance(o, InsufficientResourcesError)) == 2
        account = await factory.get(Account, actor)
        assert account.training_points == 100
        assert account.stats["Spd"] == 100
