from valor.modules.player.service import PlayerService
from valor.modules.player.views import account_snapshot, pet_snapshot

__all__ = ["PlayerService", "account_snapshot", "pet_snapshot"]
