"""
Canonical PvP combat state.

Purpose
-------
One tagged, immutable representation of a live PvP fight. The challenge row
stores ``CombatState.to_dict()`` as JSON; every read goes back through
``CombatState.from_dict`` so a stored document with a missing or unexpected
field is rejected instead of silently reinterpreted.

Shape
-----
- ``round``: 1-based round counter
- ``challenger`` / ``challenged``: ``Combatant`` records (id, name, hp,
  max_hp, pending action)
- ``log``: chronological round summaries, starting with the opening line
- ``finished`` / ``winner_id`` / ``is_draw``: terminal outcome

Transitions return new instances; nothing here mutates in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from valor.domain.models.base import (
    DomainValidationError,
    validate_not_empty,
    validate_positive,
)
from valor.modules.shared.constants import COMBAT_ACTIONS, COMBAT_OPENING_LOG

STATE_VERSION = 1


@dataclass(frozen=True)
class Combatant:
    """
    One side of a fight.

    ``hp`` may go below zero on the final round; the resolver compares the
    raw values for the knockout tie-break.
    """

    actor_id: str
    name: str
    hp: int
    max_hp: int
    action: Optional[str] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.actor_id, "actor_id")
        validate_positive(self.max_hp, "max_hp")
        if self.action is not None and self.action not in COMBAT_ACTIONS:
            raise DomainValidationError(f"unknown action {self.action!r}", field="action")

    @property
    def is_down(self) -> bool:
        return self.hp <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actorId": self.actor_id,
            "name": self.name,
            "hp": self.hp,
            "maxHp": self.max_hp,
            "action": self.action,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Combatant:
        try:
            return cls(
                actor_id=str(data["actorId"]),
                name=str(data["name"]),
                hp=int(data["hp"]),
                max_hp=int(data["maxHp"]),
                action=data.get("action"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DomainValidationError(f"malformed combatant: {exc}", field="combatant") from exc


@dataclass(frozen=True)
class CombatState:
    """Immutable snapshot of a PvP fight between challenger and challenged."""

    challenger: Combatant
    challenged: Combatant
    round: int = 1
    log: Tuple[str, ...] = field(default_factory=lambda: (COMBAT_OPENING_LOG,))
    finished: bool = False
    winner_id: Optional[str] = None
    is_draw: bool = False

    def __post_init__(self) -> None:
        validate_positive(self.round, "round")
        if self.challenger.actor_id == self.challenged.actor_id:
            raise DomainValidationError("combatants must differ", field="challenged")
        if self.winner_id is not None and self.winner_id not in self.participant_ids:
            raise DomainValidationError("winner must be a participant", field="winner_id")
        if self.is_draw and self.winner_id is not None:
            raise DomainValidationError("a draw has no winner", field="is_draw")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def start(
        cls,
        challenger_id: str,
        challenger_name: str,
        challenger_hp: int,
        challenged_id: str,
        challenged_name: str,
        challenged_hp: int,
    ) -> CombatState:
        """Opening state: round 1, full HP, no actions, opening log line."""
        return cls(
            challenger=Combatant(challenger_id, challenger_name, challenger_hp, challenger_hp),
            challenged=Combatant(challenged_id, challenged_name, challenged_hp, challenged_hp),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def participant_ids(self) -> Tuple[str, str]:
        return (self.challenger.actor_id, self.challenged.actor_id)

    @property
    def both_locked(self) -> bool:
        return self.challenger.action is not None and self.challenged.action is not None

    def combatant(self, actor_id: str) -> Combatant:
        if actor_id == self.challenger.actor_id:
            return self.challenger
        if actor_id == self.challenged.actor_id:
            return self.challenged
        raise DomainValidationError(f"{actor_id} is not in this fight", field="actor_id")

    def opponent(self, actor_id: str) -> Combatant:
        if actor_id == self.challenger.actor_id:
            return self.challenged
        if actor_id == self.challenged.actor_id:
            return self.challenger
        raise DomainValidationError(f"{actor_id} is not in this fight", field="actor_id")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def with_action(self, actor_id: str, action: str) -> CombatState:
        """Return a copy with ``actor_id``'s pending action set."""
        if actor_id == self.challenger.actor_id:
            return replace(self, challenger=replace(self.challenger, action=action))
        if actor_id == self.challenged.actor_id:
            return replace(self, challenged=replace(self.challenged, action=action))
        raise DomainValidationError(f"{actor_id} is not in this fight", field="actor_id")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "round": self.round,
            "challenger": self.challenger.to_dict(),
            "challenged": self.challenged.to_dict(),
            "log": list(self.log),
            "finished": self.finished,
            "winnerId": self.winner_id,
            "isDraw": self.is_draw,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CombatState:
        if not isinstance(data, dict):
            raise DomainValidationError("combat state must be a mapping", field="combat_state")
        version = data.get("version")
        if version != STATE_VERSION:
            raise DomainValidationError(
                f"unsupported combat state version {version!r}", field="version"
            )
        try:
            return cls(
                challenger=Combatant.from_dict(data["challenger"]),
                challenged=Combatant.from_dict(data["challenged"]),
                round=int(data["round"]),
                log=tuple(str(line) for line in data["log"]),
                finished=bool(data["finished"]),
                winner_id=data.get("winnerId"),
                is_draw=bool(data.get("isDraw", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DomainValidationError(f"malformed combat state: {exc}", field="combat_state") from exc
