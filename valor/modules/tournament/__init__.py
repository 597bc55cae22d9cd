from valor.modules.tournament.engine import TournamentState, apply_round_winner, roster_problem
from valor.modules.tournament.service import GuildBattleService, battle_snapshot

__all__ = [
    "GuildBattleService",
    "TournamentState",
    "apply_round_winner",
    "battle_snapshot",
    "roster_problem",
]
