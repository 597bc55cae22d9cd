"""
AuctionService - the skill auction clock.

Purpose
-------
Run a single-lane auction house for skills: admins queue skills, one auction
at a time is active for a fixed window (8 hours by default), players place
strictly increasing gold bids, and the highest bidder pays and receives the
skill when the auction is finalized.

Responsibilities
----------------
- At most one auction is ``active``; starting requires an empty clock
- Bids must exceed the current highest and the bidder must hold the gold
  at bid time; gold is only taken at finalize
- Finalize re-checks the winner's gold. A winner who can no longer pay
  defaults and the auction completes without a winner
- After every finalize the next queued auction starts immediately
- ``sweep`` finalizes an expired auction and fills an idle clock; running
  it twice, or alongside a manual finalize, changes nothing the second time

Concurrency
-----------
Everything that reads or moves the clock holds ``auction:clock``. Finalize
then takes the winner's account lock for the gold debit. No operation waits
on an auction key while holding an account key.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from valor.core.concurrency.locks import AUCTION_CLOCK_KEY, account_key, auction_key
from valor.core.database.base import as_utc, utc_now
from valor.core.database.service import DatabaseService
from valor.database.models import (
    AuctionStatus,
    PlayerSkill,
    SkillAuction,
    SkillBid,
    SkillSource,
)
from valor.modules.auction.repository import (
    PlayerSkillRepository,
    SkillAuctionRepository,
    SkillBidRepository,
)
from valor.modules.economy import ledger
from valor.modules.player.repository import AccountRepository
from valor.modules.player.views import account_snapshot
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import AUCTION_DURATION_HOURS
from valor.modules.shared.exceptions import (
    BidTooLowError,
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus

SKILL_ID_MAX_LENGTH = 64


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def auction_snapshot(auction: SkillAuction) -> Dict[str, Any]:
    return {
        "id": auction.id,
        "skillId": auction.skill_id,
        "status": auction.status,
        "startAt": _iso(auction.start_at),
        "endAt": _iso(auction.end_at),
        "winningBidId": auction.winning_bid_id,
        "winnerId": auction.winner_id,
        "finalizedAt": _iso(auction.finalized_at),
    }


def bid_snapshot(bid: SkillBid) -> Dict[str, Any]:
    return {
        "id": bid.id,
        "auctionId": bid.auction_id,
        "bidderId": bid.bidder_id,
        "amount": bid.amount,
        "createdAt": _iso(bid.created_at),
    }


class AuctionService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self._clock = clock
        self.accounts = AccountRepository()
        self.auctions = SkillAuctionRepository()
        self.bids = SkillBidRepository()
        self.skills = PlayerSkillRepository()

    @property
    def _duration(self) -> timedelta:
        hours = float(self.get_config("auction.duration_hours", AUCTION_DURATION_HOURS))
        return timedelta(hours=hours)

    # ========================================================================
    # QUEUE
    # ========================================================================

    async def enqueue(self, admin_id: str, skill_id: str) -> Dict[str, Any]:
        """
        Add a skill to the back of the queue.

        Raises:
            ForbiddenError: Caller is not an admin
            ValidationError: Empty or over-long skill id
        """
        skill = (skill_id or "").strip()
        if not skill or len(skill) > SKILL_ID_MAX_LENGTH:
            raise ValidationError(
                "skill_id", f"skill id must be 1-{SKILL_ID_MAX_LENGTH} characters"
            )
        async with DatabaseService.get_transaction() as session:
            await self._require_admin(session, admin_id, "enqueue_auction")
            auction = self.auctions.add(
                session, SkillAuction(skill_id=skill, status=AuctionStatus.QUEUED.value)
            )
            await self.auctions.flush(session)
            snapshot = auction_snapshot(auction)

        self.log_operation("enqueue_auction", auction_id=snapshot["id"], skill_id=skill)
        return snapshot

    async def remove_queued(self, admin_id: str, auction_id: str) -> None:
        """
        Raises:
            ForbiddenError: Caller is not an admin
            NotFoundError: Unknown auction
            InvalidStateError: Auction is not queued
        """
        async with self._locks.hold(AUCTION_CLOCK_KEY, auction_key(auction_id)):
            async with DatabaseService.get_transaction() as session:
                await self._require_admin(session, admin_id, "remove_auction")
                auction = await self.auctions.get(session, auction_id, for_update=True)
                if auction is None:
                    raise NotFoundError("Auction", auction_id)
                if auction.status != AuctionStatus.QUEUED.value:
                    raise InvalidStateError(
                        "remove_auction", f"only queued auctions can be removed, this one is {auction.status}"
                    )
                await self.auctions.delete(session, auction)

        self.log_operation("remove_auction", auction_id=auction_id, actor_id=admin_id)

    async def list_queue(self) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            return [auction_snapshot(a) for a in await self.auctions.queued(session)]

    # ========================================================================
    # CLOCK
    # ========================================================================

    async def start_next(self, admin_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Start the oldest queued auction.

        Raises:
            ForbiddenError: ``admin_id`` given and not an admin
            InvalidStateError: An auction is already active, or the queue is empty
        """
        async with self._locks.hold(AUCTION_CLOCK_KEY):
            async with DatabaseService.get_transaction() as session:
                if admin_id is not None:
                    await self._require_admin(session, admin_id, "start_auction")
                if await self.auctions.active(session, for_update=True) is not None:
                    raise InvalidStateError("start_auction", "there is already an active auction")
                started = await self._start_next_locked(session)
                if started is None:
                    raise InvalidStateError("start_auction", "no skills in queue")

        self.log_operation("start_auction", auction_id=started["id"], skill_id=started["skillId"])
        await self.emit_event("auctionStarted", {"auction": started})
        return started

    async def get_active(self) -> Dict[str, Any]:
        """Active auction with its bids, highest first; all empty when idle."""
        async with DatabaseService.get_session() as session:
            auction = await self.auctions.active(session)
            if auction is None:
                return {"auction": None, "bids": [], "highestBid": None}
            bids = [bid_snapshot(b) for b in await self.bids.for_auction(session, auction.id)]
            return {
                "auction": auction_snapshot(auction),
                "bids": bids,
                "highestBid": bids[0] if bids else None,
            }

    # ========================================================================
    # BIDS
    # ========================================================================

    async def place_bid(self, auction_id: str, actor_id: str, amount: int) -> Dict[str, Any]:
        """
        Bid on the active auction.

        Raises:
            ValidationError: Amount is not a positive integer
            NotFoundError: Unknown auction or account
            InvalidStateError: Auction is not active or its window has passed
            InsufficientResourcesError: Bidder holds less gold than ``amount``
            BidTooLowError: ``amount`` does not exceed the current highest bid
        """
        self.validate_positive_int(amount, "amount")

        async with self._locks.hold(AUCTION_CLOCK_KEY, auction_key(auction_id)):
            async with DatabaseService.get_transaction() as session:
                auction = await self.auctions.get(session, auction_id, for_update=True)
                if auction is None:
                    raise NotFoundError("Auction", auction_id)
                if auction.status != AuctionStatus.ACTIVE.value:
                    raise InvalidStateError("place_bid", "auction is not active")
                end_at = as_utc(auction.end_at)
                if end_at is not None and self._clock() >= end_at:
                    raise InvalidStateError("place_bid", "auction has ended")

                account = await self.accounts.get(session, actor_id)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                gold = ledger.balance(account, "gold")
                if gold < amount:
                    raise InsufficientResourcesError("gold", amount, gold)
                highest = await self.bids.highest_for(session, auction_id)
                if highest is not None and amount <= highest.amount:
                    raise BidTooLowError(amount, highest.amount)

                bid = self.bids.add(
                    session, SkillBid(auction_id=auction_id, bidder_id=actor_id, amount=amount)
                )
                await self.bids.flush(session)
                snapshot = bid_snapshot(bid)
                bidder_name = account.username

        self.log_operation("place_bid", auction_id=auction_id, actor_id=actor_id, amount=amount)
        await self.emit_event(
            "auctionBid",
            {
                "auctionId": auction_id,
                "bidderId": actor_id,
                "bidderName": bidder_name,
                "amount": amount,
            },
        )
        return snapshot

    # ========================================================================
    # FINALIZE
    # ========================================================================

    async def finalize_active(
        self, admin_id: Optional[str] = None, force: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        Close the active auction and start the next queued one.

        With ``force=False`` only an auction whose window has passed is
        closed. Returns ``None`` when there was nothing to close, which is
        also what a second concurrent call sees.

        Raises:
            ForbiddenError: ``admin_id`` given and not an admin
        """
        async with self._locks.hold(AUCTION_CLOCK_KEY):
            async with DatabaseService.get_transaction() as session:
                if admin_id is not None:
                    await self._require_admin(session, admin_id, "finalize_auction")
                auction = await self.auctions.active(session, for_update=True)
                if auction is None:
                    return None
                end_at = as_utc(auction.end_at)
                if not force and end_at is not None and self._clock() < end_at:
                    return None

                outcome = await self._close_locked(session, auction)
                outcome["next"] = await self._start_next_locked(session)

        self.log_operation(
            "finalize_auction",
            auction_id=outcome["auction"]["id"],
            winner_id=outcome["winnerId"],
            amount=outcome["amount"],
            defaulted=outcome["defaulted"],
            next_auction_id=(outcome["next"] or {}).get("id"),
        )
        await self.emit_event(
            "auctionEnded",
            {
                "auctionId": outcome["auction"]["id"],
                "skillId": outcome["auction"]["skillId"],
                "winnerId": outcome["winnerId"],
                "winnerName": outcome["winnerName"],
                "amount": outcome["amount"],
                "defaulted": outcome["defaulted"],
            },
        )
        if outcome["player"] is not None:
            await self.emit_event(
                "playerUpdate", {"actorId": outcome["winnerId"], "player": outcome["player"]}
            )
        if outcome["next"] is not None:
            await self.emit_event("auctionStarted", {"auction": outcome["next"]})
        return outcome

    async def sweep(self) -> Dict[str, Optional[str]]:
        """
        Periodic tick: close an expired auction, then make sure the clock is
        not idle while the queue has work.
        """
        finalized = await self.finalize_active(force=False)
        started: Optional[str] = None
        if finalized is not None and finalized["next"] is not None:
            started = finalized["next"]["id"]
        else:
            started = await self._fill_idle_clock()
        return {
            "finalized": finalized["auction"]["id"] if finalized is not None else None,
            "started": started,
        }

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _fill_idle_clock(self) -> Optional[str]:
        async with self._locks.hold(AUCTION_CLOCK_KEY):
            async with DatabaseService.get_transaction() as session:
                if await self.auctions.active(session) is not None:
                    return None
                started = await self._start_next_locked(session)
        if started is not None:
            self.log_operation("start_auction", auction_id=started["id"], skill_id=started["skillId"])
            await self.emit_event("auctionStarted", {"auction": started})
            return started["id"]
        return None

    async def _start_next_locked(self, session: AsyncSession) -> Optional[Dict[str, Any]]:
        """Caller holds the clock and has checked that nothing is active."""
        auction = await self.auctions.next_queued(session)
        if auction is None:
            return None
        now = self._clock()
        auction.status = AuctionStatus.ACTIVE.value
        auction.start_at = now
        auction.end_at = now + self._duration
        await self.auctions.flush(session)
        return auction_snapshot(auction)

    async def _close_locked(self, session: AsyncSession, auction: SkillAuction) -> Dict[str, Any]:
        winner_id: Optional[str] = None
        winner_name: Optional[str] = None
        amount: Optional[int] = None
        defaulted = False
        player: Optional[Dict[str, Any]] = None

        highest = await self.bids.highest_for(session, auction.id)
        if highest is not None:
            async with self._locks.hold(account_key(highest.bidder_id)):
                bidder = await self.accounts.get(session, highest.bidder_id, for_update=True)
                if bidder is not None and ledger.balance(bidder, "gold") >= highest.amount:
                    ledger.debit(bidder, "gold", highest.amount)
                    self.skills.add(
                        session,
                        PlayerSkill(
                            account_id=bidder.id,
                            skill_id=auction.skill_id,
                            source=SkillSource.AUCTION.value,
                        ),
                    )
                    auction.winning_bid_id = highest.id
                    auction.winner_id = bidder.id
                    winner_id = bidder.id
                    winner_name = bidder.username
                    amount = highest.amount
                    player = account_snapshot(bidder)
                else:
                    defaulted = True
                auction.status = AuctionStatus.COMPLETED.value
                auction.finalized_at = self._clock()
                await self.auctions.flush(session)
        else:
            auction.status = AuctionStatus.COMPLETED.value
            auction.finalized_at = self._clock()
            await self.auctions.flush(session)

        return {
            "auction": auction_snapshot(auction),
            "winnerId": winner_id,
            "winnerName": winner_name,
            "amount": amount,
            "defaulted": defaulted,
            "player": player,
        }

    async def _require_admin(self, session: AsyncSession, admin_id: str, action: str) -> None:
        admin = await self.accounts.get(session, admin_id)
        if admin is None or not admin.is_admin:
            raise ForbiddenError(action, "admin only")
