from valor.modules.tower.engine import NpcBattleOutcome, describe_npc, resolve_npc_battle
from valor.modules.tower.service import TowerService

__all__ = ["NpcBattleOutcome", "TowerService", "describe_npc", "resolve_npc_battle"]
