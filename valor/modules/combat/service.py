"""
ChallengeService - PvP challenge lifecycle and turn-based combat.

Purpose
-------
Drive a challenge through ``pending -> accepted -> completed`` (or
``declined`` / ``cancelled``) and run its combat one round at a time on top
of the pure resolver in ``combat.engine``.

Responsibilities
----------------
- Create, accept, decline and cancel challenges
- Build the canonical ``CombatState`` from combat stats (on accept, or
  lazily on first access for an accepted challenge without one)
- Accept one action per participant per round; draw the action of an
  automated opponent; resolve the round when both are locked in
- On completion: status, winner, win/loss counters, ``challengeResult`` to
  each participant
- Admin override of an automated participant's action

Concurrency
-----------
Every mutation holds ``challenge:<id>`` and both participants'
``account:<id>`` keys for the whole transaction, so two actions on the same
challenge can never both read the same stale state.

Events (emitted after commit)
-----------------------------
``challengeCreated``, ``challengeAccepted``, ``challengeDeclined``,
``challengeCancelled``, ``combatRound``, ``challengeResult``. Events aimed at
one player carry ``recipientId``.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from valor.core.concurrency.locks import account_key, challenge_key
from valor.core.database.base import utc_now
from valor.core.database.service import DatabaseService
from valor.database.models import Challenge, ChallengeStatus
from valor.domain.models.combat_state import CombatState
from valor.modules.combat import engine
from valor.modules.combat.repository import ChallengeRepository
from valor.modules.player.repository import AccountRepository
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import COMBAT_ACTIONS
from valor.modules.shared.exceptions import (
    ForbiddenError,
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
    from valor.database.models import Account
    from valor.modules.power.service import PowerService


def challenge_snapshot(challenge: Challenge) -> Dict[str, Any]:
    return {
        "id": challenge.id,
        "challengerId": challenge.challenger_id,
        "challengedId": challenge.challenged_id,
        "status": challenge.status,
        "winnerId": challenge.winner_id,
        "isDraw": challenge.is_draw,
    }


class ChallengeService(BaseService):
    """PvP challenges and their combat."""

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
        self.challenges = ChallengeRepository()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def create_challenge(self, challenger_id: str, challenged_id: str) -> Dict[str, Any]:
        """
        Challenge another actor. A challenge to an automated actor is
        accepted on the spot.

        Raises:
            ValidationError: If an actor challenges themselves
            NotFoundError: If either actor does not exist
        """
        if challenger_id == challenged_id:
            raise ValidationError("challenged_id", "cannot challenge yourself")

        async with self._locks.hold(account_key(challenger_id), account_key(challenged_id)):
            async with DatabaseService.get_transaction() as session:
                challenger = await self.accounts.get(session, challenger_id)
                if challenger is None:
                    raise NotFoundError("Account", challenger_id)
                challenged = await self.accounts.get(session, challenged_id)
                if challenged is None:
                    raise NotFoundError("Account", challenged_id)

                challenge = self.challenges.add(
                    session,
                    Challenge(
                        challenger_id=challenger_id,
                        challenged_id=challenged_id,
                        status=ChallengeStatus.PENDING.value,
                    ),
                )
                await self.challenges.flush(session)

                auto_accepted = bool(challenged.is_automated)
                if auto_accepted:
                    await self._accept(session, challenge, challenger, challenged)
                snapshot = challenge_snapshot(challenge)

        self.log_operation(
            "create_challenge",
            challenge_id=snapshot["id"],
            challenger_id=challenger_id,
            challenged_id=challenged_id,
            auto_accepted=auto_accepted,
        )
        await self.emit_event(
            "challengeCreated", {"recipientId": challenged_id, "challenge": snapshot}
        )
        if auto_accepted:
            await self.emit_event(
                "challengeAccepted", {"recipientId": challenger_id, "challenge": snapshot}
            )
        return snapshot

    async def respond(self, challenge_id: str, actor_id: str, accept: bool) -> Dict[str, Any]:
        """
        Accept or decline a pending challenge.

        Raises:
            NotFoundError: Unknown challenge
            ForbiddenError: The actor is not the challenged party
            InvalidStateError: The challenge is no longer pending
        """
        ids = await self._participants(challenge_id)
        async with self._locks.hold(challenge_key(challenge_id), *map(account_key, ids)):
            async with DatabaseService.get_transaction() as session:
                challenge = await self._require(session, challenge_id)
                if actor_id != challenge.challenged_id:
                    raise ForbiddenError(
                        "respond_challenge", "only the challenged player can respond"
                    )
                if challenge.status != ChallengeStatus.PENDING.value:
                    raise InvalidStateError(
                        "respond_challenge", f"challenge is {challenge.status}"
                    )

                if accept:
                    challenger = await self._require_account(session, challenge.challenger_id)
                    challenged = await self._require_account(session, challenge.challenged_id)
                    await self._accept(session, challenge, challenger, challenged)
                else:
                    challenge.status = ChallengeStatus.DECLINED.value
                snapshot = challenge_snapshot(challenge)

        self.log_operation(
            "respond_challenge", challenge_id=challenge_id, actor_id=actor_id, accepted=accept
        )
        await self.emit_event(
            "challengeAccepted" if accept else "challengeDeclined",
            {"recipientId": snapshot["challengerId"], "challenge": snapshot},
        )
        return snapshot

    async def cancel(self, challenge_id: str, actor_id: str) -> Dict[str, Any]:
        """Withdraw a pending challenge. Only the challenger may do this."""
        async with self._locks.hold(challenge_key(challenge_id)):
            async with DatabaseService.get_transaction() as session:
                challenge = await self._require(session, challenge_id)
                if actor_id != challenge.challenger_id:
                    raise ForbiddenError(
                        "cancel_challenge", "only the challenger can cancel a challenge"
                    )
                if challenge.status != ChallengeStatus.PENDING.value:
                    raise InvalidStateError(
                        "cancel_challenge", "can only cancel pending challenges"
                    )
                challenge.status = ChallengeStatus.CANCELLED.value
                snapshot = challenge_snapshot(challenge)

        self.log_operation("cancel_challenge", challenge_id=challenge_id, actor_id=actor_id)
        await self.emit_event(
            "challengeCancelled", {"recipientId": snapshot["challengedId"], "challenge": snapshot}
        )
        return snapshot

    async def list_open(self, actor_id: str) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            return [
                challenge_snapshot(challenge)
                for challenge in await self.challenges.open_for(session, actor_id)
            ]

    # ========================================================================
    # COMBAT
    # ========================================================================

    async def get_combat_state(self, challenge_id: str) -> Optional[Dict[str, Any]]:
        """
        Current combat state, created on first access once the challenge is
        accepted. ``None`` for a challenge that never reached combat.
        """
        ids = await self._participants(challenge_id)
        async with self._locks.hold(challenge_key(challenge_id), *map(account_key, ids)):
            async with DatabaseService.get_transaction() as session:
                challenge = await self._require(session, challenge_id)
                if challenge.combat_state is not None:
                    return CombatState.from_dict(challenge.combat_state).to_dict()
                if challenge.status != ChallengeStatus.ACCEPTED.value:
                    return None
                state = await self._initial_state(session, challenge)
                challenge.combat_state = state.to_dict()
                return state.to_dict()

    async def submit_combat_action(
        self,
        challenge_id: str,
        actor_id: str,
        action: str,
        rng: Optional[random.Random] = None,
    ) -> Dict[str, Any]:
        """
        Lock in the actor's action for the current round.

        Returns:
            ``{"combatState", "finished", "winnerId", "isDraw", "waiting"}``

        Raises:
            ValidationError: Unknown action
            NotFoundError: Unknown challenge
            InvalidStateError: Not accepted, already completed, or the actor
                already acted this round
            ForbiddenError: The actor is not a participant
        """
        self.validate_choice(action, "action", COMBAT_ACTIONS)
        rng = rng or random.Random()

        ids = await self._participants(challenge_id)
        async with self._locks.hold(challenge_key(challenge_id), *map(account_key, ids)):
            async with DatabaseService.get_transaction() as session:
                challenge = await self._require(session, challenge_id)
                if challenge.status == ChallengeStatus.COMPLETED.value:
                    raise InvalidStateError("submit_combat_action", "challenge already completed")
                if challenge.status != ChallengeStatus.ACCEPTED.value:
                    raise InvalidStateError(
                        "submit_combat_action", "challenge must be accepted for combat"
                    )
                if not challenge.is_participant(actor_id):
                    raise ForbiddenError(
                        "submit_combat_action", "you are not a participant in this challenge"
                    )

                state = await self._load_state(session, challenge)
                if state.finished:
                    raise InvalidStateError("submit_combat_action", "combat already finished")
                if state.combatant(actor_id).action is not None:
                    raise InvalidStateError(
                        "submit_combat_action", "action already submitted this round"
                    )

                state = state.with_action(actor_id, action)
                opponent_id = state.opponent(actor_id).actor_id
                opponent = await self._require_account(session, opponent_id)
                if opponent.is_automated and state.combatant(opponent_id).action is None:
                    stats = await self._power.combat_stats_for(session, opponent)
                    state = state.with_action(opponent_id, engine.choose_npc_action(stats, rng))

                state, resolved = await self._resolve_if_ready(session, challenge, state, rng)
                challenge.combat_state = state.to_dict()
                names = await self._names(session, challenge)

        self.log_operation(
            "submit_combat_action",
            challenge_id=challenge_id,
            actor_id=actor_id,
            action=action,
            resolved=resolved,
            finished=state.finished,
        )
        await self._announce(challenge_id, state, resolved, names)
        return {
            "combatState": state.to_dict(),
            "finished": state.finished,
            "winnerId": state.winner_id,
            "isDraw": state.is_draw,
            "waiting": not resolved,
        }

    async def set_npc_action(
        self,
        challenge_id: str,
        admin_id: str,
        action: str,
        rng: Optional[random.Random] = None,
    ) -> Dict[str, Any]:
        """
        Admin override of the automated participant's action for the
        current round.

        Raises:
            ForbiddenError: The requester is not an admin
            NotFoundError: Unknown challenge
            InvalidStateError: Not accepted, no automated participant, or
                combat has not started or is over
        """
        self.validate_choice(action, "action", COMBAT_ACTIONS)
        rng = rng or random.Random()

        ids = await self._participants(challenge_id)
        async with self._locks.hold(challenge_key(challenge_id), *map(account_key, ids)):
            async with DatabaseService.get_transaction() as session:
                admin = await self.accounts.get(session, admin_id)
                if admin is None or not admin.is_admin:
                    raise ForbiddenError("set_npc_action", "admin role required")

                challenge = await self._require(session, challenge_id)
                if challenge.status != ChallengeStatus.ACCEPTED.value:
                    raise InvalidStateError("set_npc_action", "challenge is not in combat")

                challenger = await self._require_account(session, challenge.challenger_id)
                challenged = await self._require_account(session, challenge.challenged_id)
                if challenged.is_automated:
                    npc = challenged
                elif challenger.is_automated:
                    npc = challenger
                else:
                    raise InvalidStateError("set_npc_action", "No NPC in this challenge")

                if challenge.combat_state is None:
                    raise InvalidStateError("set_npc_action", "combat has not started")
                state = CombatState.from_dict(challenge.combat_state)
                if state.finished:
                    raise InvalidStateError("set_npc_action", "combat already finished")

                state = state.with_action(npc.id, action)
                state, resolved = await self._resolve_if_ready(session, challenge, state, rng)
                challenge.combat_state = state.to_dict()
                names = await self._names(session, challenge)

        self.log_operation(
            "set_npc_action", challenge_id=challenge_id, admin_id=admin_id, npc_id=npc.id, action=action
        )
        await self._announce(challenge_id, state, resolved, names)
        return state.to_dict()

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _participants(self, challenge_id: str) -> Tuple[str, ...]:
        """Participant ids, read up front so their locks can be taken in order."""
        async with DatabaseService.get_session() as session:
            challenge = await self.challenges.get(session, challenge_id)
            if challenge is None:
                raise NotFoundError("Challenge", challenge_id)
            return (challenge.challenger_id, challenge.challenged_id)

    async def _require(self, session: AsyncSession, challenge_id: str) -> Challenge:
        challenge = await self.challenges.get(session, challenge_id, for_update=True)
        if challenge is None:
            raise NotFoundError("Challenge", challenge_id)
        return challenge

    async def _require_account(self, session: AsyncSession, actor_id: str) -> Account:
        account = await self.accounts.get(session, actor_id, for_update=True)
        if account is None:
            raise NotFoundError("Account", actor_id)
        return account

    async def _accept(
        self,
        session: AsyncSession,
        challenge: Challenge,
        challenger: Account,
        challenged: Account,
    ) -> None:
        challenge.status = ChallengeStatus.ACCEPTED.value
        challenge.accepted_at = utc_now()
        challenge.combat_state = (
            await self._build_state(session, challenge, challenger, challenged)
        ).to_dict()

    async def _initial_state(self, session: AsyncSession, challenge: Challenge) -> CombatState:
        challenger = await self._require_account(session, challenge.challenger_id)
        challenged = await self._require_account(session, challenge.challenged_id)
        return await self._build_state(session, challenge, challenger, challenged)

    async def _build_state(
        self,
        session: AsyncSession,
        challenge: Challenge,
        challenger: Account,
        challenged: Account,
    ) -> CombatState:
        challenger_hp = engine.combat_hp(await self._power.combat_stats_for(session, challenger))
        challenged_hp = engine.combat_hp(await self._power.combat_stats_for(session, challenged))
        self.log.debug(
            "Combat state created",
            extra={
                "challenge_id": challenge.id,
                "challenger_hp": challenger_hp,
                "challenged_hp": challenged_hp,
            },
        )
        return CombatState.start(
            challenger.id,
            challenger.username,
            challenger_hp,
            challenged.id,
            challenged.username,
            challenged_hp,
        )

    async def _load_state(self, session: AsyncSession, challenge: Challenge) -> CombatState:
        if challenge.combat_state is None:
            return await self._initial_state(session, challenge)
        return CombatState.from_dict(challenge.combat_state)

    async def _resolve_if_ready(
        self,
        session: AsyncSession,
        challenge: Challenge,
        state: CombatState,
        rng: random.Random,
    ) -> Tuple[CombatState, bool]:
        if not state.both_locked:
            return state, False

        challenger = await self._require_account(session, challenge.challenger_id)
        challenged = await self._require_account(session, challenge.challenged_id)
        result = engine.resolve_round(
            state,
            await self._power.combat_stats_for(session, challenger),
            await self._power.combat_stats_for(session, challenged),
            rng,
            crit_multiplier=float(
                self.get_config("combat.pvp.crit_multiplier", engine.DEFAULT_CRIT_MULTIPLIER)
            ),
            crit_cap=float(self.get_config("combat.pvp.crit_cap", engine.DEFAULT_CRIT_CAP)),
        )
        state = result.state

        if state.finished:
            challenge.status = ChallengeStatus.COMPLETED.value
            challenge.completed_at = utc_now()
            challenge.winner_id = state.winner_id
            challenge.is_draw = state.is_draw
            if state.winner_id is not None:
                winner = challenger if state.winner_id == challenger.id else challenged
                loser = challenged if winner is challenger else challenger
                winner.wins = (winner.wins or 0) + 1
                loser.losses = (loser.losses or 0) + 1
        return state, True

    async def _names(self, session: AsyncSession, challenge: Challenge) -> Dict[str, str]:
        accounts = await self.accounts.get_many(
            session, [challenge.challenger_id, challenge.challenged_id]
        )
        return {account.id: account.username for account in accounts}

    async def _announce(
        self,
        challenge_id: str,
        state: CombatState,
        resolved: bool,
        names: Dict[str, str],
    ) -> None:
        if not resolved:
            return
        payload = state.to_dict()
        if not state.finished:
            for recipient in state.participant_ids:
                await self.emit_event(
                    "combatRound",
                    {"recipientId": recipient, "challengeId": challenge_id, "combatState": payload},
                )
            return

        for recipient in state.participant_ids:
            other = names.get(state.opponent(recipient).actor_id, "your opponent")
            if state.is_draw:
                result, message = "draw", f"Your battle against {other} ended in a draw."
            elif state.winner_id == recipient:
                result, message = "won", f"You won the battle against {other}!"
            else:
                result, message = "lost", f"You lost the battle against {other}."
            await self.emit_event(
                "challengeResult",
                {
                    "recipientId": recipient,
                    "challengeId": challenge_id,
                    "result": result,
                    "message": message,
                    "combatState": payload,
                },
            )
