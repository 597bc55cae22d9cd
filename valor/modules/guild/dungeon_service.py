"""
GuildDungeonService - cooperative dungeon runs for a guild.

Purpose
-------
Gather the guild's online members, hand their stats (and, on Demon Lord
floors, their equipped pets) to the pure dungeon resolver, and on victory
credit the guild bank and advance the guild's dungeon pointer.

Responsibilities
----------------
- Membership check before anything else (``ForbiddenError``)
- Online members come from the presence service; nobody online means the
  run cannot start (``InvalidStateError``)
- Rewards go to the guild bank only, capped per currency
- ``dungeonVictory`` to every member, online or not

Concurrency
-----------
Holds ``guild:<id>`` for the transaction. Member accounts and pets are only
read, so their locks are not taken.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from valor.core.concurrency.locks import guild_key
from valor.core.database.service import DatabaseService
from valor.modules.economy import ledger
from valor.modules.guild import dungeon
from valor.modules.guild.repository import GuildMemberRepository, GuildRepository
from valor.modules.player.repository import AccountRepository, PetRepository
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import DUNGEON_POWER_GATE
from valor.modules.shared.exceptions import ForbiddenError, InvalidStateError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.modules.presence.service import PresenceService


class GuildDungeonService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
        presence: PresenceService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self._presence = presence
        self.accounts = AccountRepository()
        self.pets = PetRepository()
        self.guilds = GuildRepository()
        self.members = GuildMemberRepository()

    async def describe_dungeon(self, guild_id: str) -> Dict[str, Any]:
        """NPC preview at the guild's pointer plus who is online right now."""
        async with DatabaseService.get_session() as session:
            guild = await self.guilds.get(session, guild_id)
            if guild is None:
                raise NotFoundError("Guild", guild_id)
            member_ids = [m.account_id for m in await self.members.for_guild(session, guild_id)]
            preview = dungeon.describe_dungeon_level(
                guild.dungeon_floor, guild.dungeon_level, guild.level
            )

        online = await self._presence.online_among(member_ids)
        preview["onlineMembers"] = online
        preview["memberCount"] = len(member_ids)
        return preview

    async def fight(
        self, guild_id: str, actor_id: str, rng: Optional[random.Random] = None
    ) -> Dict[str, Any]:
        """
        Fight the dungeon NPC with every online member.

        Returns:
            ``victory`` plus the powers involved; ``rewards``, ``newFloor``
            and ``newLevel`` on a victory; ``message`` when the party was too
            weak to attempt the fight.

        Raises:
            NotFoundError: Unknown guild
            ForbiddenError: Actor is not a member of this guild
            InvalidStateError: No member is online
        """
        gate = float(self.get_config("guild.dungeon.power_gate", DUNGEON_POWER_GATE))

        async with self._locks.hold(guild_key(guild_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self.guilds.get(session, guild_id, for_update=True)
                if guild is None:
                    raise NotFoundError("Guild", guild_id)
                member_ids = [m.account_id for m in await self.members.for_guild(session, guild_id)]
                if actor_id not in member_ids:
                    raise ForbiddenError("dungeon_fight", "not a member of this guild")

                online = await self._presence.online_among(member_ids)
                if not online:
                    raise InvalidStateError("dungeon_fight", "no guild members are online")

                fighters = await self._fighters(session, online)
                outcome = dungeon.resolve_dungeon_fight(
                    guild.dungeon_floor,
                    guild.dungeon_level,
                    fighters,
                    guild_level=guild.level,
                    rng=rng,
                    power_gate=gate,
                )
                if outcome.victory:
                    bank = ledger.normalize_bank(guild.bank)
                    for currency, amount in outcome.rewards.items():
                        if amount:
                            bank = ledger.credit_bank(bank, currency, amount)
                    guild.bank = bank
                    guild.dungeon_floor = outcome.next_floor
                    guild.dungeon_level = outcome.next_level

        result = self._result(outcome)
        self.log_operation(
            "dungeon_fight",
            guild_id=guild_id,
            actor_id=actor_id,
            floor=outcome.floor,
            level=outcome.level,
            participants=outcome.participants,
            attempted=outcome.attempted,
            victory=outcome.victory,
        )
        if outcome.victory:
            for member_id in member_ids:
                await self.emit_event(
                    "dungeonVictory",
                    {
                        "recipientId": member_id,
                        "guildId": guild_id,
                        "rewards": dict(outcome.rewards),
                        "newFloor": outcome.next_floor,
                        "newLevel": outcome.next_level,
                        "participants": outcome.participants,
                    },
                )
        return result

    async def _fighters(
        self, session: AsyncSession, online: List[str]
    ) -> List[dungeon.DungeonFighter]:
        accounts = await self.accounts.get_many(session, online)
        pet_ids = [a.equipped_pet_id for a in accounts if a.equipped_pet_id]
        pets = {pet.id: pet for pet in await self.pets.get_many(session, pet_ids)}

        fighters = []
        for account in accounts:
            pet = pets.get(account.equipped_pet_id or "")
            if pet is not None and pet.account_id != account.id:
                pet = None
            fighters.append(
                dungeon.DungeonFighter(
                    actor_id=account.id,
                    stats=account.stats or {},
                    pet_stats=pet.stats if pet is not None else None,
                    pet_elements=tuple(pet.elements or ()) if pet is not None else (),
                )
            )
        return fighters

    @staticmethod
    def _result(outcome: dungeon.DungeonOutcome) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "victory": outcome.victory,
            "attempted": outcome.attempted,
            "floor": outcome.floor,
            "level": outcome.level,
            "isBoss": outcome.is_boss,
            "petsUsed": outcome.pets_allowed,
            "participants": outcome.participants,
            "combinedStats": dict(outcome.combined_stats),
            "npcStats": dict(outcome.npc_stats),
            "immunities": list(outcome.immunities),
            "elementBonus": outcome.element_bonus,
            "playerPower": math.floor(outcome.player_power),
            "npcPower": outcome.npc_power,
            "powerRatio": math.floor(outcome.power_ratio * 100),
        }
        if outcome.message:
            result["message"] = outcome.message
        if outcome.victory:
            result["rewards"] = dict(outcome.rewards)
            result["newFloor"] = outcome.next_floor
            result["newLevel"] = outcome.next_level
        return result
