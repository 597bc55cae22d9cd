"""
GuildService - guild lifecycle and the shared bank.

Purpose
-------
Create and disband guilds, manage membership, move currency between members
and the guild bank, and level the guild up.

Responsibilities
----------------
- ``create_guild``: unique 3-30 character name; the creator becomes master
  and first member; an account belongs to at most one guild
- ``join`` / ``leave``: capacity is ``2 + level * 3``; the master leaving
  disbands the guild
- ``deposit``: gold, rubies, soul shards or focused shards from a member's
  balance into the bank
- ``distribute``: master-only payout to members; every bank total is checked
  before any account is credited
- ``level_up``: master-only; needs the dungeon floor prerequisite and pays the
  gold cost from the bank

Locking
-------
Bank writes hold ``guild:<id>`` plus the account lock of everyone whose
balance changes, for the whole transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Sequence

from sqlalchemy import delete, or_

from valor.core.concurrency.locks import account_key, guild_key
from valor.core.database.service import DatabaseService
from valor.database.models import Guild, GuildBattle, GuildMember, GuildRole
from valor.modules.economy import ledger
from valor.modules.guild.repository import GuildMemberRepository, GuildRepository
from valor.modules.player.repository import AccountRepository
from valor.modules.player.views import account_snapshot
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import (
    GUILD_BANK_CURRENCIES,
    GUILD_BASE_CAPACITY,
    GUILD_CAPACITY_PER_LEVEL,
    GUILD_DEPOSIT_CURRENCIES,
    GUILD_LEVEL_REQUIREMENTS,
    GUILD_MAX_LEVEL,
    GUILD_NAME_MAX_LENGTH,
    GUILD_NAME_MIN_LENGTH,
)
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus


def guild_capacity(level: int) -> int:
    return GUILD_BASE_CAPACITY + level * GUILD_CAPACITY_PER_LEVEL


def guild_snapshot(guild: Guild, members: Sequence[GuildMember] = ()) -> Dict[str, Any]:
    return {
        "id": guild.id,
        "name": guild.name,
        "masterId": guild.master_id,
        "level": guild.level,
        "capacity": guild_capacity(guild.level),
        "bank": ledger.normalize_bank(guild.bank),
        "dungeonFloor": guild.dungeon_floor,
        "dungeonLevel": guild.dungeon_level,
        "wins": guild.wins,
        "members": [
            {"accountId": member.account_id, "role": member.role} for member in members
        ],
    }


class GuildService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self.accounts = AccountRepository()
        self.guilds = GuildRepository()
        self.members = GuildMemberRepository()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def create_guild(self, master_id: str, name: str) -> Dict[str, Any]:
        """
        Create a guild with ``master_id`` as master and only member.

        Raises:
            ValidationError: Name length out of range or name taken
            NotFoundError: Unknown account
            InvalidStateError: The account is already in a guild
        """
        clean = (name or "").strip()
        if not (GUILD_NAME_MIN_LENGTH <= len(clean) <= GUILD_NAME_MAX_LENGTH):
            raise ValidationError(
                "name",
                f"guild name must be {GUILD_NAME_MIN_LENGTH}-{GUILD_NAME_MAX_LENGTH} characters",
            )

        async with self._locks.hold(account_key(master_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, master_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", master_id)
                if await self.members.membership_of(session, master_id) is not None:
                    raise InvalidStateError("create_guild", "already a member of a guild")
                if await self.guilds.get_by_name(session, clean) is not None:
                    raise ValidationError("name", f"guild name {clean!r} is already taken")

                guild = self.guilds.add(session, Guild(name=clean, master_id=master_id))
                await self.guilds.flush(session)
                member = self.members.add(
                    session,
                    GuildMember(
                        guild_id=guild.id, account_id=master_id, role=GuildRole.MASTER.value
                    ),
                )
                await self.members.flush(session)
                snapshot = guild_snapshot(guild, [member])

        self.log_operation("create_guild", guild_id=snapshot["id"], actor_id=master_id, guild_name=clean)
        await self.emit_event(
            "guildUpdate",
            {"guildId": snapshot["id"], "actorId": master_id, "action": "created", "guild": snapshot},
        )
        return snapshot

    async def join(self, guild_id: str, actor_id: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: Unknown guild or account
            InvalidStateError: Already in a guild, or the guild is full
        """
        async with self._locks.hold(guild_key(guild_id), account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self._guild(session, guild_id)
                if await self.accounts.get(session, actor_id) is None:
                    raise NotFoundError("Account", actor_id)
                if await self.members.membership_of(session, actor_id) is not None:
                    raise InvalidStateError("join_guild", "already a member of a guild")
                current = await self.members.count(session, GuildMember.guild_id == guild_id)
                if current >= guild_capacity(guild.level):
                    raise InvalidStateError("join_guild", "guild is full")

                self.members.add(session, GuildMember(guild_id=guild_id, account_id=actor_id))
                await self.members.flush(session)
                snapshot = guild_snapshot(guild, await self.members.for_guild(session, guild_id))

        self.log_operation("join_guild", guild_id=guild_id, actor_id=actor_id)
        await self.emit_event(
            "guildUpdate",
            {"guildId": guild_id, "actorId": actor_id, "action": "joined", "guild": snapshot},
        )
        return snapshot

    async def leave(self, guild_id: str, actor_id: str) -> Dict[str, Any]:
        """
        Leave a guild. When the master leaves, the guild is disbanded.

        Returns ``{"disbanded": bool}``.

        Raises:
            NotFoundError: Unknown guild
            ForbiddenError: Not a member
        """
        async with self._locks.hold(guild_key(guild_id), account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self._guild(session, guild_id)
                membership = await self.members.find_one_where(
                    session,
                    GuildMember.guild_id == guild_id,
                    GuildMember.account_id == actor_id,
                )
                if membership is None:
                    raise ForbiddenError("leave_guild", "not a member of this guild")

                disbanded = guild.master_id == actor_id
                if disbanded:
                    member_ids = [m.account_id for m in await self.members.for_guild(session, guild_id)]
                    await session.execute(delete(GuildMember).where(GuildMember.guild_id == guild_id))
                    await session.execute(
                        delete(GuildBattle).where(
                            or_(
                                GuildBattle.challenger_guild_id == guild_id,
                                GuildBattle.challenged_guild_id == guild_id,
                            )
                        )
                    )
                    await self.guilds.delete(session, guild)
                else:
                    member_ids = [actor_id]
                    await self.members.delete(session, membership)

        self.log_operation("leave_guild", guild_id=guild_id, actor_id=actor_id, disbanded=disbanded)
        if disbanded:
            await self.emit_event(
                "guildDisbanded", {"guildId": guild_id, "memberIds": member_ids}
            )
        else:
            await self.emit_event(
                "guildUpdate", {"guildId": guild_id, "actorId": actor_id, "action": "left"}
            )
        return {"disbanded": disbanded}

    async def get_guild(self, guild_id: str) -> Dict[str, Any]:
        async with DatabaseService.get_session() as session:
            guild = await self._guild(session, guild_id)
            return guild_snapshot(guild, await self.members.for_guild(session, guild_id))

    # ========================================================================
    # BANK
    # ========================================================================

    async def deposit(
        self, guild_id: str, actor_id: str, resource: str, amount: int
    ) -> Dict[str, Any]:
        """
        Move ``amount`` of ``resource`` from a member's balance to the bank.

        Raises:
            ValidationError: Resource cannot be deposited or amount < 1
            NotFoundError: Unknown guild or account
            ForbiddenError: Not a member of this guild
            InsufficientResourcesError: Member balance too low
        """
        self.validate_choice(resource, "resource", GUILD_DEPOSIT_CURRENCIES)
        self.validate_positive_int(amount, "amount")

        async with self._locks.hold(guild_key(guild_id), account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self._guild(session, guild_id, for_update=True)
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                if not await self.members.is_member(session, guild_id, actor_id):
                    raise ForbiddenError("guild_deposit", "not a member of this guild")

                ledger.debit(account, resource, amount)
                guild.bank = ledger.credit_bank(guild.bank, resource, amount)
                bank = ledger.normalize_bank(guild.bank)
                snapshot = account_snapshot(account)

        self.log_operation(
            "guild_deposit", guild_id=guild_id, actor_id=actor_id, resource=resource, amount=amount
        )
        await self.emit_event(
            "guildDeposit",
            {
                "guildId": guild_id,
                "actorId": actor_id,
                "resource": resource,
                "amount": amount,
                "bank": bank,
            },
        )
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return {"bank": bank, "player": snapshot}

    async def distribute(
        self,
        guild_id: str,
        master_id: str,
        distributions: Sequence[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Pay out bank currency to members.

        Each distribution is ``{"accountId": ..., "<currency>": amount, ...}``
        with any of the bank currencies. Totals are checked against the bank
        before anything is written; the whole payout applies or none of it.

        Raises:
            ValidationError: Empty list, duplicate recipient, unknown or
                negative amounts, or a recipient who is not a member
            NotFoundError: Unknown guild or recipient
            ForbiddenError: Caller is not the guild master
            InsufficientResourcesError: A bank total is too low
        """
        payouts = self._parse_distributions(distributions)
        recipient_ids = list(payouts)

        async with self._locks.hold(
            guild_key(guild_id), *(account_key(rid) for rid in recipient_ids)
        ):
            async with DatabaseService.get_transaction() as session:
                guild = await self._guild(session, guild_id, for_update=True)
                if guild.master_id != master_id:
                    raise ForbiddenError("guild_distribute", "only the guild master can distribute")

                member_ids = {m.account_id for m in await self.members.for_guild(session, guild_id)}
                for rid in recipient_ids:
                    if rid not in member_ids:
                        raise ValidationError("distributions", f"{rid} is not a member of this guild")

                bank = ledger.normalize_bank(guild.bank)
                for currency in GUILD_BANK_CURRENCIES:
                    total = sum(payout.get(currency, 0) for payout in payouts.values())
                    if total:
                        bank = ledger.debit_bank(bank, currency, total)

                accounts = {
                    a.id: a for a in await self.accounts.get_many(session, recipient_ids, for_update=True)
                }
                for rid in recipient_ids:
                    if rid not in accounts:
                        raise NotFoundError("Account", rid)

                for rid, payout in payouts.items():
                    for currency, amount in payout.items():
                        if amount:
                            ledger.credit(accounts[rid], currency, amount)
                guild.bank = bank
                snapshots = {rid: account_snapshot(accounts[rid]) for rid in recipient_ids}

        self.log_operation(
            "guild_distribute",
            guild_id=guild_id,
            actor_id=master_id,
            recipients=len(recipient_ids),
        )
        for rid, payout in payouts.items():
            await self.emit_event(
                "guildReward",
                {"recipientId": rid, "guildId": guild_id, "rewards": dict(payout)},
            )
            await self.emit_event("playerUpdate", {"actorId": rid, "player": snapshots[rid]})
        return {"bank": bank, "distributed": {rid: dict(p) for rid, p in payouts.items()}}

    # ========================================================================
    # LEVELS
    # ========================================================================

    async def level_up(self, guild_id: str, master_id: str) -> Dict[str, Any]:
        """
        Raises:
            ForbiddenError: Caller is not the guild master
            InvalidStateError: Guild is at the maximum level
            InsufficientResourcesError: Dungeon floor too low
                (``dungeon_floor``) or bank gold too low (``guild_gold``)
        """
        async with self._locks.hold(guild_key(guild_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self._guild(session, guild_id, for_update=True)
                if guild.master_id != master_id:
                    raise ForbiddenError("guild_level_up", "only the guild master can level up")
                if guild.level >= GUILD_MAX_LEVEL:
                    raise InvalidStateError("guild_level_up", "guild is at maximum level")

                target = guild.level + 1
                min_floor, gold_cost = GUILD_LEVEL_REQUIREMENTS[target]
                if guild.dungeon_floor < min_floor:
                    raise InsufficientResourcesError("dungeon_floor", min_floor, guild.dungeon_floor)
                guild.bank = ledger.debit_bank(guild.bank, "gold", gold_cost)
                guild.level = target
                snapshot = guild_snapshot(guild, await self.members.for_guild(session, guild_id))

        self.log_operation("guild_level_up", guild_id=guild_id, level=target, gold_spent=gold_cost)
        await self.emit_event(
            "guildLevelUp",
            {"guildId": guild_id, "level": target, "goldSpent": gold_cost, "guild": snapshot},
        )
        return snapshot

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _guild(self, session: AsyncSession, guild_id: str, for_update: bool = False) -> Guild:
        guild = await self.guilds.get(session, guild_id, for_update=for_update)
        if guild is None:
            raise NotFoundError("Guild", guild_id)
        return guild

    def _parse_distributions(
        self, distributions: Sequence[Mapping[str, Any]]
    ) -> Dict[str, Dict[str, int]]:
        if not distributions:
            raise ValidationError("distributions", "at least one distribution is required")
        payouts: Dict[str, Dict[str, int]] = {}
        for entry in distributions:
            rid = entry.get("accountId")
            if not rid:
                raise ValidationError("distributions", "every distribution needs an accountId")
            if rid in payouts:
                raise ValidationError("distributions", f"{rid} appears more than once")
            payout: Dict[str, int] = {}
            for key, value in entry.items():
                if key == "accountId":
                    continue
                if key not in GUILD_BANK_CURRENCIES:
                    raise ValidationError("distributions", f"unknown currency {key!r}")
                self.validate_non_negative_int(value, key)
                payout[key] = value
            payouts[rid] = payout
        return payouts
