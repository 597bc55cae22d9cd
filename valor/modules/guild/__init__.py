from valor.modules.guild.dungeon import DungeonFighter, DungeonOutcome, resolve_dungeon_fight
from valor.modules.guild.dungeon_service import GuildDungeonService
from valor.modules.guild.service import GuildService, guild_capacity, guild_snapshot

__all__ = [
    "DungeonFighter",
    "DungeonOutcome",
    "GuildDungeonService",
    "GuildService",
    "guild_capacity",
    "guild_snapshot",
    "resolve_dungeon_fight",
]
