"""
Guild tournament rules - pure functions, no I/O.

A guild battle is a king-of-the-hill series between two ordered rosters.
Each round an adjudicator names the winner among the two fighters at the
sides' cursors:

- the winner's side scores a point and its fighter stays
- the loser's side advances its cursor; that fighter is out
- the battle ends when either cursor runs past the end of its roster;
  the side with more points wins and equal points is a draw (no winner)

So a side's score always equals the opposing cursor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from valor.modules.shared.constants import GUILD_BATTLE_MAX_FIGHTERS

CHALLENGER = "challenger"
CHALLENGED = "challenged"


@dataclass(frozen=True)
class TournamentState:
    challenger_fighters: Tuple[str, ...]
    challenged_fighters: Tuple[str, ...]
    challenger_index: int = 0
    challenged_index: int = 0
    challenger_score: int = 0
    challenged_score: int = 0
    current_round: int = 1
    completed: bool = False
    winner_side: Optional[str] = None

    @property
    def is_draw(self) -> bool:
        return self.completed and self.winner_side is None

    def current_fighters(self) -> Tuple[Optional[str], Optional[str]]:
        return (
            _at(self.challenger_fighters, self.challenger_index),
            _at(self.challenged_fighters, self.challenged_index),
        )


def _at(roster: Sequence[str], index: int) -> Optional[str]:
    return roster[index] if 0 <= index < len(roster) else None


def roster_problem(
    fighters: Sequence[str],
    member_ids: Sequence[str],
    max_fighters: int = GUILD_BATTLE_MAX_FIGHTERS,
) -> Optional[str]:
    """Why a roster is invalid, or ``None`` when it is fine."""
    if not fighters:
        return "at least one fighter is required"
    if len(fighters) > max_fighters:
        return f"at most {max_fighters} fighters are allowed"
    if len(set(fighters)) != len(fighters):
        return "a fighter cannot appear twice"
    members = set(member_ids)
    if any(fighter not in members for fighter in fighters):
        return "all fighters must be guild members"
    return None


def apply_round_winner(state: TournamentState, winner_id: str) -> TournamentState:
    """
    Record one round.

    Raises
    ------
    ValueError
        If the battle is already over or ``winner_id`` is not one of the two
        current fighters.
    """
    if state.completed:
        raise ValueError("battle is already completed")
    challenger, challenged = state.current_fighters()
    if winner_id == challenger:
        nxt = replace(
            state,
            challenger_score=state.challenger_score + 1,
            challenged_index=state.challenged_index + 1,
        )
    elif winner_id == challenged:
        nxt = replace(
            state,
            challenged_score=state.challenged_score + 1,
            challenger_index=state.challenger_index + 1,
        )
    else:
        raise ValueError("winner must be one of the current round fighters")

    finished = nxt.challenger_index >= len(nxt.challenger_fighters) or nxt.challenged_index >= len(
        nxt.challenged_fighters
    )
    if not finished:
        return replace(nxt, current_round=nxt.current_round + 1)

    if nxt.challenger_score > nxt.challenged_score:
        winner_side: Optional[str] = CHALLENGER
    elif nxt.challenged_score > nxt.challenger_score:
        winner_side = CHALLENGED
    else:
        winner_side = None
    return replace(nxt, completed=True, winner_side=winner_side)
