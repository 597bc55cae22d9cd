from valor.modules.leaderboard.service import LeaderboardService, cache_snapshot

__all__ = ["LeaderboardService", "cache_snapshot"]
