from valor.modules.combat.engine import RoundResult, Strike, resolve_round
from valor.modules.combat.service import ChallengeService, challenge_snapshot

__all__ = ["ChallengeService", "RoundResult", "Strike", "challenge_snapshot", "resolve_round"]
