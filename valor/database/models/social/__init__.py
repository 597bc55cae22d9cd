from .guild import Guild
from .guild_battle import GuildBattle
from .guild_member import GuildMember

__all__ = ["Guild", "GuildBattle", "GuildMember"]
