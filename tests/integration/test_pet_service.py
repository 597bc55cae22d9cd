"""
Integration Tests for PetService
================================

Test Coverage
-------------
- Feeding with food and from the pet EXP pool
- Evolution gates, cost and stat scaling
- Mythic merge: child egg, consumed parents, unequip
- Soul-shard stat boosts
"""

import pytest

from tests.conftest import published
from valor.database.models import Account, Pet
from valor.modules.shared.constants import DEFAULT_PET_STATS
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    ValidationError,
)

MYTHIC_A = {"Str": 64, "Spd": 32, "Luck": 10, "ElementalPower": 33}
MYTHIC_B = {"Str": 32, "Spd": 32, "Luck": 11, "ElementalPower": 0}


async def assert_merge_untouched(factory, actor_id, gold, first_id, second_id):
    """A rejected merge keeps both parents as they were and charges nothing."""
    first = await factory.get(Pet, first_id)
    second = await factory.get(Pet, second_id)
    assert first is not None and first.stats == MYTHIC_A
    assert second is not None and second.stats == MYTHIC_B
    assert (await factory.get(Account, actor_id)).gold == gold


# ============================================================================
# FEEDING
# ============================================================================


@pytest.mark.integration
class TestFeeding:
    async def test_feed_food(self, container, factory):
        actor = await factory.account(gold=1_000)
        pet_id = await factory.pet(actor)

        result = await container.pets.feed_food(actor, pet_id, "basic_treat", 3)

        assert result["expGained"] == 30
        assert result["goldSpent"] == 300
        assert result["pet"]["exp"] == 30
        assert (await factory.get(Account, actor)).gold == 700

    async def test_feed_food_needs_gold(self, container, factory):
        actor = await factory.account(gold=99)
        pet_id = await factory.pet(actor)

        with pytest.raises(InsufficientResourcesError):
            await container.pets.feed_food(actor, pet_id, "basic_treat")

        assert (await factory.get(Pet, pet_id)).exp == 0

    async def test_unknown_food(self, container, factory):
        actor = await factory.account()
        pet_id = await factory.pet(actor)

        with pytest.raises(ValidationError):
            await container.pets.feed_food(actor, pet_id, "cake")

    async def test_feed_exp_from_pool(self, container, factory):
        actor = await factory.account(pet_exp=500)
        pet_id = await factory.pet(actor)

        result = await container.pets.feed_exp(actor, pet_id, 200)

        assert result["pet"]["exp"] == 200
        assert (await factory.get(Account, actor)).pet_exp == 300

    async def test_cannot_feed_someone_elses_pet(self, container, factory):
        actor = await factory.account(gold=1_000)
        pet_id = await factory.pet(await factory.account())

        with pytest.raises(ForbiddenError):
            await container.pets.feed_food(actor, pet_id, "basic_treat")


# ============================================================================
# EVOLUTION
# ============================================================================


@pytest.mark.integration
class TestEvolve:
    async def test_egg_to_baby(self, container, factory, mock_event_bus):
        # Arrange
        actor = await factory.account(gold=20_000)
        pet_id = await factory.pet(
            actor, exp=100, stats={"Str": 3, "Spd": 1, "Luck": 1, "ElementalPower": 2}
        )

        # Act
        result = await container.pets.evolve(actor, pet_id)

        # Assert
        assert result["previousTier"] == "egg"
        assert result["goldSpent"] == 10_000
        assert result["pet"]["tier"] == "baby"
        assert result["pet"]["exp"] == 0
        assert result["pet"]["stats"] == {"Str": 6, "Spd": 2, "Luck": 2, "ElementalPower": 4}
        assert (await factory.get(Account, actor)).gold == 10_000
        assert published(mock_event_bus, "petEvolved")[0]["pet"]["id"] == pet_id

    async def test_needs_full_exp(self, container, factory):
        actor = await factory.account(gold=20_000)
        pet_id = await factory.pet(actor, exp=99)

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.pets.evolve(actor, pet_id)

        assert exc_info.value.resource == "pet_exp"
        pet = await factory.get(Pet, pet_id)
        assert pet.tier == "egg"
        assert pet.exp == 99
        assert pet.stats == DEFAULT_PET_STATS
        assert (await factory.get(Account, actor)).gold == 20_000

    async def test_needs_gold(self, container, factory):
        actor = await factory.account(gold=9_999)
        pet_id = await factory.pet(actor, exp=100)

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await container.pets.evolve(actor, pet_id)

        assert exc_info.value.resource == "gold"
        pet = await factory.get(Pet, pet_id)
        assert pet.tier == "egg"
        assert pet.exp == 100
        assert pet.stats == DEFAULT_PET_STATS
        assert (await factory.get(Account, actor)).gold == 9_999

    async def test_mythic_cannot_evolve(self, container, factory):
        actor = await factory.account(gold=10**12)
        pet_id = await factory.pet(actor, tier="mythic", exp=10**9)

        with pytest.raises(InvalidStateError):
            await container.pets.evolve(actor, pet_id)


# ============================================================================
# MERGE
# ============================================================================


@pytest.mark.integration
class TestMerge:
    async def test_two_mythics_become_an_egg(self, container, factory, mock_event_bus):
        # Arrange
        actor = await factory.account(gold=1_500_000_000)
        first = await factory.pet(actor, name="Blaze", tier="mythic", stats=MYTHIC_A, elements=["Fire", "Ice"])
        second = await factory.pet(actor, name="Tide", tier="mythic", stats=MYTHIC_B, elements=["Water", "Fire"])
        await factory.update(Account, actor, equipped_pet_id=first)

        # Act
        result = await container.pets.merge(actor, first, second)

        # Assert
        child = result["pet"]
        assert child["name"] == "Merged Blaze & Tide"
        assert child["tier"] == "egg"
        assert child["stats"] == {"Str": 48, "Spd": 32, "Luck": 10, "ElementalPower": 16}
        assert result["combinedElements"] == ["Fire", "Ice", "Water"]
        assert result["consumed"] == [first, second]
        assert await factory.get(Pet, first) is None
        assert await factory.get(Pet, second) is None
        account = await factory.get(Account, actor)
        assert account.gold == 500_000_000
        assert account.equipped_pet_id is None
        assert len(published(mock_event_bus, "petMerged")) == 1

    async def test_both_must_be_mythic(self, container, factory):
        actor = await factory.account(gold=1_500_000_000)
        first = await factory.pet(actor, tier="mythic", stats=MYTHIC_A)
        second = await factory.pet(actor, tier="legend", stats=MYTHIC_B)

        with pytest.raises(InvalidStateError):
            await container.pets.merge(actor, first, second)

        await assert_merge_untouched(factory, actor, 1_500_000_000, first, second)

    async def test_same_pet_twice(self, container, factory):
        actor = await factory.account()
        pet_id = await factory.pet(actor, tier="mythic")

        with pytest.raises(ValidationError):
            await container.pets.merge(actor, pet_id, pet_id)

        assert (await factory.get(Pet, pet_id)).tier == "mythic"

    async def test_merge_needs_gold(self, container, factory):
        actor = await factory.account(gold=999_999_999)
        first = await factory.pet(actor, tier="mythic", stats=MYTHIC_A)
        second = await factory.pet(actor, tier="mythic", stats=MYTHIC_B)
        await factory.update(Account, actor, equipped_pet_id=first)

        with pytest.raises(InsufficientResourcesError):
            await container.pets.merge(actor, first, second)

        assert len(await container.pets.list_pets(actor)) == 2
        await assert_merge_untouched(factory, actor, 999_999_999, first, second)
        assert (await factory.get(Account, actor)).equipped_pet_id == first


# ============================================================================
# STAT BOOSTS
# ============================================================================


@pytest.mark.integration
class TestBoostPetStat:
    async def test_spends_soul_shards(self, container, factory):
        actor = await factory.account(soul_shards=100)
        pet_id = await factory.pet(actor)

        result = await container.pets.boost_pet_stat(actor, pet_id, "ElementalPower", 5)

        assert result["shardsSpent"] == 50
        assert result["pet"]["stats"]["ElementalPower"] == 6
        assert (await factory.get(Account, actor)).soul_shards == 50

    async def test_defense_is_not_a_pet_stat(self, container, factory):
        actor = await factory.account(soul_shards=100)
        pet_id = await factory.pet(actor)

        with pytest.raises(ValidationError):
            await container.pets.boost_pet_stat(actor, pet_id, "Def", 1)
