from .leaderboard import LeaderboardCache

__all__ = ["LeaderboardCache"]
