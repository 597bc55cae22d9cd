from valor.core.concurrency.locks import (
    AUCTION_CLOCK_KEY,
    EntityLockRegistry,
    account_key,
    auction_key,
    battle_key,
    challenge_key,
    guild_key,
    leaderboard_key,
    pet_key,
)

__all__ = [
    "AUCTION_CLOCK_KEY",
    "EntityLockRegistry",
    "account_key",
    "auction_key",
    "battle_key",
    "challenge_key",
    "guild_key",
    "leaderboard_key",
    "pet_key",
]
