"""
Background tick for the auction clock.

Every interval the sweeper calls ``AuctionService.sweep``: an expired
auction is finalized and an idle clock picks up the next queued skill.
The interval never exceeds one minute.

A failed sweep is retried on the next tick. Retryable failures are logged
as warnings; anything else is logged at the error's own severity.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from valor.core.logging.logger import get_logger
from valor.core.tasks.periodic import PeriodicTask
from valor.modules.shared.constants import AUCTION_SWEEP_INTERVAL_SECONDS
from valor.modules.shared.exceptions import ErrorSeverity, get_error_severity, is_transient_error

if TYPE_CHECKING:
    from valor.modules.auction.service import AuctionService

logger = get_logger(__name__)

SEVERITY_LOG_LEVELS: Dict[ErrorSeverity, int] = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class AuctionSweeper(PeriodicTask):
    name = "auction-sweeper"

    def __init__(
        self, auctions: AuctionService, interval_seconds: float = AUCTION_SWEEP_INTERVAL_SECONDS
    ) -> None:
        super().__init__(min(float(interval_seconds), float(AUCTION_SWEEP_INTERVAL_SECONDS)))
        self._auctions = auctions

    async def run_once(self) -> Dict[str, Optional[str]]:
        result = await self._auctions.sweep()
        if result["finalized"] or result["started"]:
            logger.info("Auction clock advanced", extra=result)
        return result

    def handle_tick_error(self, exc: Exception) -> None:
        extra = {"error": str(exc), "error_type": type(exc).__name__}
        if is_transient_error(exc):
            logger.warning("Auction sweep failed, retrying next tick", extra=extra)
            return
        level = SEVERITY_LOG_LEVELS[get_error_severity(exc)]
        logger.log(level, "Auction sweep failed", extra=extra, exc_info=level >= logging.ERROR)

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status["component"] = "auctions"
        return status
