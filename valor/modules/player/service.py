"""
PlayerService - account registration, removal and equipment.

Purpose
-------
Owns the account lifecycle the rest of the engine assumes: accounts are
created with default stats and currencies, equip items and one pet, and are
removed only explicitly (never for admins).

Responsibilities
----------------
- ``register``: new account with defaults; ``is_automated`` marks NPC actors
- ``delete_account``: removes the account and everything it owns in one
  transaction; admins cannot be removed, guild masters must hand over or
  disband first
- ``equip_pet`` / ``equip_item``: ownership-checked slot changes
- ``get_player``: public snapshot plus strength
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import delete, or_, select

from valor.core.concurrency.locks import account_key
from valor.core.database.service import DatabaseService
from valor.database.models import (
    Account,
    AccountRole,
    Bird,
    Challenge,
    Guild,
    GuildMember,
    Item,
    Pet,
    PlayerSkill,
    SkillBid,
)
from valor.modules.player.repository import AccountRepository, ItemRepository, PetRepository
from valor.modules.player.views import account_snapshot
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import EQUIPMENT_SLOTS
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.modules.power.service import PowerService

USERNAME_MAX_LENGTH = 50


class PlayerService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
        power: PowerService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self._power = power
        self.accounts = AccountRepository()
        self.items = ItemRepository()
        self.pets = PetRepository()

    async def register(
        self,
        username: str,
        role: str = AccountRole.PLAYER.value,
        is_automated: bool = False,
    ) -> Dict[str, Any]:
        """
        Create an account with default stats and currencies.

        Raises:
            ValidationError: Empty, too long or taken username, or unknown role
        """
        name = (username or "").strip()
        if not name or len(name) > USERNAME_MAX_LENGTH:
            raise ValidationError(
                "username", f"username must be 1-{USERNAME_MAX_LENGTH} characters"
            )
        self.validate_choice(role, "role", [r.value for r in AccountRole])

        async with DatabaseService.get_transaction() as session:
            if await self.accounts.get_by_username(session, name) is not None:
                raise ValidationError("username", f"username {name!r} is already taken")
            account = self.accounts.add(
                session, Account(username=name, role=role, is_automated=is_automated)
            )
            await self.accounts.flush(session)
            snapshot = account_snapshot(account)

        self.log_operation(
            "register", actor_id=snapshot["id"], username=name, role=role, is_automated=is_automated
        )
        await self.emit_event("playerUpdate", {"actorId": snapshot["id"], "player": snapshot})
        return snapshot

    async def get_player(self, actor_id: str) -> Dict[str, Any]:
        async with DatabaseService.get_session() as session:
            account = await self.accounts.get(session, actor_id)
            if account is None:
                raise NotFoundError("Account", actor_id)
            snapshot = account_snapshot(account)
            snapshot["strength"] = await self._power.strength_for(session, account)
            return snapshot

    async def delete_account(self, actor_id: str, requester_id: str) -> None:
        """
        Remove an account and everything it owns.

        Raises:
            NotFoundError: Unknown account
            ForbiddenError: Requester is neither the owner nor an admin, or
                the target is an admin
            InvalidStateError: The account is a guild master
        """
        async with self._locks.hold(account_key(actor_id), account_key(requester_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                if requester_id != actor_id:
                    requester = await self.accounts.get(session, requester_id)
                    if requester is None or not requester.is_admin:
                        raise ForbiddenError("delete_account", "only the owner or an admin")
                if account.is_admin:
                    raise ForbiddenError("delete_account", "admin accounts cannot be deleted")

                masters = await session.execute(
                    select(Guild.id).where(Guild.master_id == actor_id)
                )
                if masters.first() is not None:
                    raise InvalidStateError(
                        "delete_account", "guild masters must leave their guild first"
                    )

                # Explicit deletes so SQLite without FK enforcement ends up
                # in the same state as PostgreSQL's cascades.
                for model, condition in (
                    (Item, Item.account_id == actor_id),
                    (Pet, Pet.account_id == actor_id),
                    (Bird, Bird.account_id == actor_id),
                    (GuildMember, GuildMember.account_id == actor_id),
                    (SkillBid, SkillBid.bidder_id == actor_id),
                    (PlayerSkill, PlayerSkill.account_id == actor_id),
                    (
                        Challenge,
                        or_(Challenge.challenger_id == actor_id, Challenge.challenged_id == actor_id),
                    ),
                ):
                    await session.execute(delete(model).where(condition))
                await self.accounts.delete(session, account)

        self.log_operation("delete_account", actor_id=actor_id, requester_id=requester_id)
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": None, "deleted": True})

    async def equip_pet(self, actor_id: str, pet_id: Optional[str]) -> Dict[str, Any]:
        """Equip an owned pet, or unequip with ``pet_id=None``."""
        async with self._locks.hold(account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                if pet_id is not None:
                    pet = await self.pets.get(session, pet_id)
                    if pet is None:
                        raise NotFoundError("Pet", pet_id)
                    if pet.account_id != actor_id:
                        raise ForbiddenError("equip_pet", "you do not own this pet")
                account.equipped_pet_id = pet_id
                snapshot = account_snapshot(account)

        self.log_operation("equip_pet", actor_id=actor_id, pet_id=pet_id)
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return snapshot

    async def equip_item(self, actor_id: str, slot: str, item_id: Optional[str]) -> Dict[str, Any]:
        """Put an owned item in an equipment slot, or clear it with ``item_id=None``."""
        self.validate_choice(slot, "slot", EQUIPMENT_SLOTS)
        async with self._locks.hold(account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                if item_id is not None:
                    item = await self.items.get(session, item_id)
                    if item is None:
                        raise NotFoundError("Item", item_id)
                    if item.account_id != actor_id:
                        raise ForbiddenError("equip_item", "you do not own this item")
                equipment = {slot_name: None for slot_name in EQUIPMENT_SLOTS}
                equipment.update(account.equipment or {})
                for slot_name, equipped in equipment.items():
                    if item_id is not None and equipped == item_id:
                        equipment[slot_name] = None
                equipment[slot] = item_id
                account.equipment = equipment
                snapshot = account_snapshot(account)

        self.log_operation("equip_item", actor_id=actor_id, slot=slot, item_id=item_id)
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return snapshot
