"""
GuildBattleService - guild-vs-guild tournaments.

Purpose
-------
Run the guild battle lifecycle: a master challenges another guild with a
roster, the target master accepts with a roster of their own (or declines),
and an adjudicator names each round's winner until one side runs out of
fighters.

Responsibilities
----------------
- Rosters: 1-5 distinct members of the fielding guild, fixed once the
  battle starts
- ``set_round_winner`` applies the pure tournament rule from
  ``tournament.engine``
- On a decisive result the winning guild's win counter goes up and the
  ``guild_wins`` leaderboard is rebuilt in the same transaction
- A draw (equal scores when a roster runs out) completes with no winner and
  changes no counters

Locking
-------
Round decisions hold ``battle:<id>``, both guilds and the ``guild_wins``
leaderboard key. Guild ids are read up front; they never change for a
battle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from valor.core.concurrency.locks import battle_key, guild_key, leaderboard_key
from valor.core.database.base import utc_now
from valor.core.database.service import DatabaseService
from valor.database.models import GuildBattle, GuildBattleStatus, LeaderboardType
from valor.modules.guild.repository import GuildMemberRepository, GuildRepository
from valor.modules.player.repository import AccountRepository
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import GUILD_BATTLE_MAX_FIGHTERS
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from valor.modules.tournament import engine
from valor.modules.tournament.repository import GuildBattleRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.modules.leaderboard.service import LeaderboardService
    from valor.modules.power.service import PowerService

GUILD_WINS_BOARD = LeaderboardType.GUILD_WINS.value


def battle_snapshot(battle: GuildBattle) -> Dict[str, Any]:
    state = state_of(battle)
    challenger, challenged = state.current_fighters()
    return {
        "id": battle.id,
        "challengerGuildId": battle.challenger_guild_id,
        "challengedGuildId": battle.challenged_guild_id,
        "status": battle.status,
        "challengerFighters": list(battle.challenger_fighters or []),
        "challengedFighters": list(battle.challenged_fighters or []),
        "currentRound": battle.current_round,
        "challengerScore": battle.challenger_score,
        "challengedScore": battle.challenged_score,
        "challengerCurrentIndex": battle.challenger_index,
        "challengedCurrentIndex": battle.challenged_index,
        "currentFighters": {"challenger": challenger, "challenged": challenged},
        "rounds": list(battle.rounds or []),
        "winnerGuildId": battle.winner_guild_id,
        "isDraw": battle.is_draw,
    }


def state_of(battle: GuildBattle) -> engine.TournamentState:
    return engine.TournamentState(
        challenger_fighters=tuple(battle.challenger_fighters or ()),
        challenged_fighters=tuple(battle.challenged_fighters or ()),
        challenger_index=battle.challenger_index,
        challenged_index=battle.challenged_index,
        challenger_score=battle.challenger_score,
        challenged_score=battle.challenged_score,
        current_round=battle.current_round,
        completed=battle.status == GuildBattleStatus.COMPLETED.value,
    )


class GuildBattleService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
        power: PowerService,
        leaderboards: LeaderboardService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self._power = power
        self._leaderboards = leaderboards
        self.battles = GuildBattleRepository()
        self.guilds = GuildRepository()
        self.members = GuildMemberRepository()
        self.accounts = AccountRepository()

    # ========================================================================
    # CHALLENGE / RESPOND
    # ========================================================================

    async def challenge(
        self,
        guild_id: str,
        master_id: str,
        target_guild_id: str,
        fighters: Sequence[str],
    ) -> Dict[str, Any]:
        """
        Challenge another guild with an ordered roster.

        Raises:
            NotFoundError: Unknown guild or target guild
            ForbiddenError: Caller is not the guild master
            ValidationError: Target is the same guild, or the roster is invalid
            InvalidStateError: An open battle between the two guilds exists
        """
        if guild_id == target_guild_id:
            raise ValidationError("target_guild_id", "a guild cannot challenge itself")

        async with self._locks.hold(guild_key(guild_id), guild_key(target_guild_id)):
            async with DatabaseService.get_transaction() as session:
                guild = await self.guilds.get(session, guild_id)
                if guild is None:
                    raise NotFoundError("Guild", guild_id)
                if guild.master_id != master_id:
                    raise ForbiddenError(
                        "guild_battle_challenge", "only the guild master can challenge"
                    )
                target = await self.guilds.get(session, target_guild_id)
                if target is None:
                    raise NotFoundError("Guild", target_guild_id)
                roster = await self._validated_roster(session, guild_id, fighters)
                if await self.battles.open_between(session, guild_id, target_guild_id):
                    raise InvalidStateError(
                        "guild_battle_challenge", "these guilds already have an open battle"
                    )

                battle = self.battles.add(
                    session,
                    GuildBattle(
                        challenger_guild_id=guild_id,
                        challenged_guild_id=target_guild_id,
                        status=GuildBattleStatus.PENDING.value,
                        challenger_fighters=roster,
                        challenged_fighters=[],
                        rounds=[],
                    ),
                )
                await self.battles.flush(session)
                snapshot = battle_snapshot(battle)
                recipients = await self._member_ids(session, target_guild_id)
                challenger_name = guild.name

        self.log_operation(
            "guild_battle_challenge",
            battle_id=snapshot["id"],
            guild_id=guild_id,
            target_guild_id=target_guild_id,
            fighters=len(roster),
        )
        for recipient in recipients:
            await self.emit_event(
                "guildBattleChallenge",
                {
                    "recipientId": recipient,
                    "battle": snapshot,
                    "challengerGuildName": challenger_name,
                },
            )
        return snapshot

    async def respond(
        self,
        battle_id: str,
        master_id: str,
        accept: bool,
        fighters: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """
        Accept (with a roster) or decline a pending battle.

        Raises:
            NotFoundError: Unknown battle
            InvalidStateError: Battle is not pending
            ForbiddenError: Caller is not the challenged guild's master
            ValidationError: Accepting without a valid roster
        """
        async with self._locks.hold(battle_key(battle_id)):
            async with DatabaseService.get_transaction() as session:
                battle = await self._require(session, battle_id)
                if battle.status != GuildBattleStatus.PENDING.value:
                    raise InvalidStateError("guild_battle_respond", f"battle is {battle.status}")
                target = await self.guilds.get(session, battle.challenged_guild_id)
                if target is None or target.master_id != master_id:
                    raise ForbiddenError(
                        "guild_battle_respond", "only the challenged guild's master can respond"
                    )

                if accept:
                    roster = await self._validated_roster(session, target.id, fighters or ())
                    battle.challenged_fighters = roster
                    battle.status = GuildBattleStatus.IN_PROGRESS.value
                    battle.current_round = 1
                    battle.challenger_index = 0
                    battle.challenged_index = 0
                    battle.challenger_score = 0
                    battle.challenged_score = 0
                else:
                    battle.status = GuildBattleStatus.DECLINED.value
                snapshot = battle_snapshot(battle)
                challenger = await self.guilds.get(session, battle.challenger_guild_id)
                challenger_master = challenger.master_id if challenger is not None else None

        self.log_operation(
            "guild_battle_respond", battle_id=battle_id, actor_id=master_id, accepted=accept
        )
        if accept:
            await self.emit_event("guildBattleStarted", {"battle": snapshot})
        else:
            await self.emit_event(
                "guildBattleDeclined", {"recipientId": challenger_master, "battle": snapshot}
            )
        return snapshot

    # ========================================================================
    # ROUNDS
    # ========================================================================

    async def set_round_winner(
        self, battle_id: str, winner_actor_id: str, admin_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record the winner of the current round.

        When ``admin_id`` is given the adjudicator must hold the admin role;
        trusted callers such as an internal match runner may omit it.

        Raises:
            NotFoundError: Unknown battle
            InvalidStateError: Battle is not in progress
            ForbiddenError: Winner is not one of the two current fighters, or
                ``admin_id`` is not an admin
        """
        challenger_guild_id, challenged_guild_id = await self._guild_ids(battle_id)

        async with self._locks.hold(
            battle_key(battle_id),
            guild_key(challenger_guild_id),
            guild_key(challenged_guild_id),
            leaderboard_key(GUILD_WINS_BOARD),
        ):
            async with DatabaseService.get_transaction() as session:
                if admin_id is not None:
                    admin = await self.accounts.get(session, admin_id)
                    if admin is None or not admin.is_admin:
                        raise ForbiddenError("guild_battle_round", "admin role required")
                battle = await self._require(session, battle_id)
                if battle.status != GuildBattleStatus.IN_PROGRESS.value:
                    raise InvalidStateError("guild_battle_round", f"battle is {battle.status}")

                before = state_of(battle)
                challenger_fighter, challenged_fighter = before.current_fighters()
                if winner_actor_id not in (challenger_fighter, challenged_fighter):
                    raise ForbiddenError(
                        "guild_battle_round", "winner must be one of the current round fighters"
                    )
                after = engine.apply_round_winner(before, winner_actor_id)

                battle.challenger_index = after.challenger_index
                battle.challenged_index = after.challenged_index
                battle.challenger_score = after.challenger_score
                battle.challenged_score = after.challenged_score
                battle.current_round = after.current_round
                battle.rounds = [
                    *(battle.rounds or []),
                    {
                        "round": before.current_round,
                        "challengerFighterId": challenger_fighter,
                        "challengedFighterId": challenged_fighter,
                        "winnerId": winner_actor_id,
                    },
                ]

                winner_guild_id: Optional[str] = None
                recipients: List[str] = []
                refreshed = False
                if after.completed:
                    battle.status = GuildBattleStatus.COMPLETED.value
                    battle.completed_at = utc_now()
                    battle.is_draw = after.is_draw
                    if after.winner_side == engine.CHALLENGER:
                        winner_guild_id = battle.challenger_guild_id
                    elif after.winner_side == engine.CHALLENGED:
                        winner_guild_id = battle.challenged_guild_id
                    battle.winner_guild_id = winner_guild_id

                    if winner_guild_id is not None:
                        winner = await self.guilds.get(session, winner_guild_id, for_update=True)
                        if winner is not None:
                            winner.wins = winner.wins + 1
                            await self.guilds.flush(session)
                        await self._leaderboards.rebuild(session, GUILD_WINS_BOARD)
                        refreshed = True
                    recipients = await self._member_ids(
                        session, battle.challenger_guild_id
                    ) + await self._member_ids(session, battle.challenged_guild_id)
                snapshot = battle_snapshot(battle)

        self.log_operation(
            "guild_battle_round",
            battle_id=battle_id,
            round=before.current_round,
            winner_id=winner_actor_id,
            admin_id=admin_id,
            completed=after.completed,
            winner_guild_id=winner_guild_id,
        )
        await self.emit_event(
            "guildBattleRound",
            {"battle": snapshot, "round": before.current_round, "winnerId": winner_actor_id},
        )
        if after.completed:
            for recipient in recipients:
                await self.emit_event(
                    "guildBattleComplete",
                    {
                        "recipientId": recipient,
                        "battle": snapshot,
                        "winnerGuildId": winner_guild_id,
                        "isDraw": after.is_draw,
                    },
                )
        if refreshed:
            await self.emit_event("leaderboardRefreshed", {"type": GUILD_WINS_BOARD})
        return snapshot

    async def describe_battle(self, battle_id: str) -> Dict[str, Any]:
        """Battle snapshot with every fighter's strength."""
        async with DatabaseService.get_session() as session:
            battle = await self.battles.get(session, battle_id)
            if battle is None:
                raise NotFoundError("GuildBattle", battle_id)
            snapshot = battle_snapshot(battle)
            fighter_ids = snapshot["challengerFighters"] + snapshot["challengedFighters"]
            strengths = await self._power.strengths_for(session, fighter_ids)
            names = {a.id: a.username for a in await self.accounts.get_many(session, fighter_ids)}

        def fighter(actor_id: Optional[str]) -> Optional[Dict[str, Any]]:
            if actor_id is None:
                return None
            return {
                "id": actor_id,
                "username": names.get(actor_id),
                "strength": strengths.get(actor_id, 0),
            }

        snapshot["allChallengerFighters"] = [fighter(f) for f in snapshot["challengerFighters"]]
        snapshot["allChallengedFighters"] = [fighter(f) for f in snapshot["challengedFighters"]]
        current = snapshot["currentFighters"]
        snapshot["currentFighters"] = {
            "challenger": fighter(current["challenger"]),
            "challenged": fighter(current["challenged"]),
        }
        return snapshot

    async def list_in_progress(self) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            return [battle_snapshot(b) for b in await self.battles.in_progress(session)]

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _guild_ids(self, battle_id: str) -> Tuple[str, str]:
        async with DatabaseService.get_session() as session:
            battle = await self.battles.get(session, battle_id)
            if battle is None:
                raise NotFoundError("GuildBattle", battle_id)
            return battle.challenger_guild_id, battle.challenged_guild_id

    async def _require(self, session: AsyncSession, battle_id: str) -> GuildBattle:
        battle = await self.battles.get(session, battle_id, for_update=True)
        if battle is None:
            raise NotFoundError("GuildBattle", battle_id)
        return battle

    async def _member_ids(self, session: AsyncSession, guild_id: str) -> List[str]:
        return [m.account_id for m in await self.members.for_guild(session, guild_id)]

    async def _validated_roster(
        self, session: AsyncSession, guild_id: str, fighters: Sequence[str]
    ) -> List[str]:
        roster = list(fighters)
        max_fighters = int(self.get_config("guild.battle.max_fighters", GUILD_BATTLE_MAX_FIGHTERS))
        problem = engine.roster_problem(
            roster, await self._member_ids(session, guild_id), max_fighters
        )
        if problem is not None:
            raise ValidationError("fighters", problem)
        return roster
