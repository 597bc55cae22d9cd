from valor.modules.auction.service import AuctionService, auction_snapshot, bid_snapshot
from valor.modules.auction.sweeper import AuctionSweeper

__all__ = ["AuctionService", "AuctionSweeper", "auction_snapshot", "bid_snapshot"]
