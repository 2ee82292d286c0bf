from __future__ import annotations

import logging

from sqlalchemy.orm import Session as DBSession

from ..core.errors import EntryNotFound, InvalidInput, NotFound, SessionStateError
from ..models.db import MenuItem
from ..models.entities import LedgerEntryDraft, LedgerEntryEntity, OrderStatus
from .ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


class OrderService:
    """Menu and ad-hoc item orders on a session's ledger."""

    @staticmethod
    def place_order(
        db: DBSession,
        session_id: str,
        menu_id: str | None = None,
        item_name: str | None = None,
        quantity: int = 1,
        amount: int | None = None,
        session_guest_id: str | None = None,
    ) -> LedgerEntryEntity:
        repo = LedgerRepository(db)
        s = repo.get_session_row(session_id)
        if s.status != "active":
            raise SessionStateError(f"Session {session_id} is not active")

        if menu_id is not None:
            menu = db.query(MenuItem).filter(MenuItem.id == menu_id).first()
            if not menu or menu.venue_id != s.venue_id:
                raise NotFound(f"Menu item {menu_id} not found")
            item_name = item_name or menu.name
            amount = menu.price if amount is None else amount
        elif not (item_name or "").strip():
            raise InvalidInput("An ad-hoc order needs an item name")

        guest_id = None
        if session_guest_id is not None:
            link = repo.get_guest_link(session_id, session_guest_id)
            if link is None:
                raise NotFound(f"Guest {session_guest_id} is not on session {session_id}")
            session_guest_id, guest_id = link.id, link.guest_id

        entry = repo.insert_entry(
            LedgerEntryDraft(
                session_id=session_id,
                menu_id=menu_id,
                item_name=item_name.strip(),
                quantity=quantity,
                amount=amount or 0,
                guest_id=guest_id,
                session_guest_id=session_guest_id,
            )
        )
        repo.commit()
        logger.info(f"Order {entry.id} placed on session {session_id}: {entry.item_name} x{quantity}")
        return entry

    @staticmethod
    def update_order(
        db: DBSession,
        session_id: str,
        entry_id: str,
        quantity: int | None = None,
        amount: int | None = None,
        status: OrderStatus | None = None,
    ) -> LedgerEntryEntity:
        repo = LedgerRepository(db)
        entry = repo.get_entry(entry_id)
        if entry.session_id != session_id or entry.category is not None or entry.engagement_status is not None:
            raise EntryNotFound(entry_id)

        fields: dict = {}
        if quantity is not None:
            fields["quantity"] = quantity
        if amount is not None:
            fields["amount"] = amount
        if status is not None:
            fields["status"] = status
        if not fields:
            return entry

        updated = repo.update_entry(entry_id, **fields)
        repo.commit()
        return updated

    @staticmethod
    def delete_order(db: DBSession, session_id: str, entry_id: str) -> None:
        repo = LedgerRepository(db)
        if repo.get_entry(entry_id).session_id != session_id:
            raise EntryNotFound(entry_id)
        repo.delete_entry(entry_id)
        repo.commit()
