from valor.modules.economy import ledger
from valor.modules.economy.service import EconomyService

__all__ = ["EconomyService", "ledger"]
