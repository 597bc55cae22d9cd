"""
TowerService - NPC tower battles against the account's ladder pointer.

Purpose
-------
Load the actor, its equipped items and pet, run the pure tower resolver,
and on victory apply rewards and advance the ladder in one transaction.

Responsibilities
----------------
- Rank gate before any mutation (``RankTooLowError``)
- Rewards: gold, training points and soul shards to the account; runes on
  boss levels; pet EXP to the equipped pet (dropped when none is equipped)
- Every credit goes through the ledger cap
- ``npcBattle`` and ``playerUpdate`` events after commit

Concurrency
-----------
Holds ``account:<id>`` for the whole transaction. Pet mutations always hold
the owner's account lock as well, so the equipped pet is covered too.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Any, Dict, Optional

from valor.core.concurrency.locks import account_key
from valor.core.database.service import DatabaseService
from valor.modules.economy import ledger
from valor.modules.player.repository import AccountRepository
from valor.modules.player.views import account_snapshot
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import (
    ROLE_PLAYER,
    TOWER_BOSS_MULTIPLIER,
    TOWER_LEVELS_PER_FLOOR,
    TOWER_MAX_FLOOR,
)
from valor.modules.shared.exceptions import NotFoundError, RankTooLowError
from valor.modules.tower import engine

if TYPE_CHECKING:
    from logging import Logger

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.modules.power.service import PowerService


class TowerService(BaseService):
    """Single-player NPC ladder."""

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
        power: PowerService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self._power = power
        self.accounts = AccountRepository()

    async def battle_npc(
        self, actor_id: str, rng: Optional[random.Random] = None
    ) -> Dict[str, Any]:
        """
        Fight the NPC at the actor's current floor and level.

        Returns:
            Battle result. ``won`` is False on a loss, which changes nothing.

        Raises:
            NotFoundError: If the actor does not exist or is not a player
            RankTooLowError: If the actor's rank is below the gate
        """
        boss_multiplier = float(
            self.get_config("tower.boss_multiplier", TOWER_BOSS_MULTIPLIER)
        )

        async with self._locks.hold(account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None or account.role != ROLE_PLAYER:
                    raise NotFoundError("Player", actor_id)

                floor, level = account.npc_floor, account.npc_level
                gl = engine.global_level(floor, level)
                required = engine.required_rank(gl)
                if not engine.rank_allows(account.rank, required):
                    raise RankTooLowError(required or "", account.rank, gl)

                pet = await self._power.equipped_pet(session, account, for_update=True)
                items = await self._power.equipped_item_stats(session, account)

                outcome = engine.resolve_npc_battle(
                    floor,
                    level,
                    account.stats,
                    items,
                    pet.stats if pet is not None else None,
                    pet.elements if pet is not None else None,
                    rng=rng,
                    boss_multiplier=boss_multiplier,
                )

                if outcome.won:
                    rewards = outcome.rewards
                    ledger.credit(account, "gold", rewards["gold"])
                    ledger.credit(account, "trainingPoints", rewards["trainingPoints"])
                    ledger.credit(account, "soulShards", rewards["soulShards"])
                    if rewards["runes"]:
                        ledger.credit(account, "runes", rewards["runes"])
                    if pet is not None:
                        pet.exp = ledger.cap(pet.exp + rewards["petExp"])
                    account.npc_floor = outcome.next_floor
                    account.npc_level = outcome.next_level

                snapshot = account_snapshot(account)

        result = self._result(outcome, pet)

        self.log_operation(
            "battle_npc",
            actor_id=actor_id,
            floor=floor,
            level=level,
            won=outcome.won,
            player_power=outcome.player_power,
            npc_power=outcome.npc_power,
        )

        await self.emit_event("npcBattle", {"actorId": actor_id, **result})
        if outcome.won:
            await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    def describe_npc(self, floor: int, level: int) -> Dict[str, Any]:
        """
        Preview of the NPC at ``(floor, level)``.

        Raises:
            ValidationError: If floor or level is off the ladder
        """
        self.validate_range(floor, "floor", 1, TOWER_MAX_FLOOR)
        self.validate_range(level, "level", 1, TOWER_LEVELS_PER_FLOOR)
        return engine.describe_npc(floor, level)

    @staticmethod
    def _result(outcome: engine.NpcBattleOutcome, pet: Any) -> Dict[str, Any]:
        equipped_pet = None
        if pet is not None:
            equipped_pet = {
                "id": pet.id,
                "name": pet.name,
                "elements": list(pet.elements or []),
            }
        return {
            "won": outcome.won,
            "floor": outcome.floor,
            "level": outcome.level,
            "globalLevel": outcome.global_level,
            "npcName": outcome.npc_name,
            "isBoss": outcome.is_boss,
            "bossAbility": outcome.boss_ability,
            "npcImmunities": list(outcome.npc_immunities),
            "petElementImmune": outcome.pet_element_immune,
            "equippedPet": equipped_pet,
            "playerPower": math.floor(outcome.effective_player_power),
            "npcPower": math.floor(outcome.effective_npc_power),
            "rewards": dict(outcome.rewards),
            "newFloor": outcome.next_floor,
            "newLevel": outcome.next_level,
        }
