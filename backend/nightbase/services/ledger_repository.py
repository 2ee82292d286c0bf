from __future__ import annotations

import datetime as dt
from typing import Any, Iterable

from sqlalchemy.orm import Session as DBSession, selectinload

from ..core.errors import EntryNotFound, SessionNotFound
from ..models.db import BillSettings, LedgerEntry, PricingPolicy, Session, SessionGuest
from ..models.entities import (
    BillSettingsEntity,
    FeeCategory,
    GuestLinkEntity,
    LedgerEntryDraft,
    LedgerEntryEntity,
    PricingPolicyEntity,
    SessionEntity,
)

_UPDATABLE_ENTRY_FIELDS = frozenset(
    {
        "item_name",
        "category",
        "quantity",
        "amount",
        "status",
        "start_time",
        "end_time",
        "engagement_status",
        "session_guest_id",
        "guest_id",
    }
)


def _plain(value: Any) -> Any:
    # Enum members are stored by value
    return getattr(value, "value", value)


class LedgerRepository:
    """Read/insert/update/delete access to sessions, policies and ledger rows.

    Every read returns validated entities. Writes are flushed but never
    committed here: the calling service owns the transaction.
    """

    def __init__(self, db: DBSession):
        self.db = db

    # -- sessions ---------------------------------------------------------

    def _session_query(self):
        return self.db.query(Session).options(
            selectinload(Session.pricing_policy),
            selectinload(Session.guests),
            selectinload(Session.entries),
        )

    def list_active_session_ids(self) -> list[str]:
        rows = (
            self.db.query(Session.id)
            .filter(Session.status == "active")
            .order_by(Session.start_time.asc())
            .all()
        )
        return [r.id for r in rows]

    def get_session_row(self, session_id: str) -> Session:
        row = self.db.query(Session).filter(Session.id == session_id).first()
        if row is None:
            raise SessionNotFound(session_id)
        return row

    def load_session(self, session_id: str) -> SessionEntity:
        row = self._session_query().filter(Session.id == session_id).first()
        if row is None:
            raise SessionNotFound(session_id)
        return SessionEntity.model_validate(row)

    # -- reference data ---------------------------------------------------

    def get_pricing_policy(self, policy_id: str | None) -> PricingPolicyEntity | None:
        if not policy_id:
            return None
        row = self.db.query(PricingPolicy).filter(PricingPolicy.id == policy_id).first()
        return PricingPolicyEntity.model_validate(row) if row else None

    def get_default_pricing_policy(self, venue_id: int) -> PricingPolicyEntity | None:
        row = (
            self.db.query(PricingPolicy)
            .filter(PricingPolicy.venue_id == venue_id, PricingPolicy.is_default.is_(True))
            .first()
        )
        return PricingPolicyEntity.model_validate(row) if row else None

    def get_bill_settings(self, venue_id: int) -> BillSettingsEntity | None:
        row = self.db.query(BillSettings).filter(BillSettings.venue_id == venue_id).first()
        return BillSettingsEntity.model_validate(row) if row else None

    # -- guest links ------------------------------------------------------

    def list_guest_links(self, session_id: str) -> list[GuestLinkEntity]:
        rows = (
            self.db.query(SessionGuest)
            .filter(SessionGuest.session_id == session_id)
            .order_by(SessionGuest.created_at.asc())
            .all()
        )
        return [GuestLinkEntity.model_validate(r) for r in rows]

    def get_guest_link(self, session_id: str, link_or_guest_id: str) -> GuestLinkEntity | None:
        """Find a link by its own id or by the profile id it points at."""
        row = (
            self.db.query(SessionGuest)
            .filter(
                SessionGuest.session_id == session_id,
                (SessionGuest.id == link_or_guest_id) | (SessionGuest.guest_id == link_or_guest_id),
            )
            .first()
        )
        return GuestLinkEntity.model_validate(row) if row else None

    def insert_guest_link(self, session_id: str, guest_id: str | None, guest_name: str | None) -> GuestLinkEntity:
        row = SessionGuest(session_id=session_id, guest_id=guest_id, guest_name=guest_name)
        self.db.add(row)
        self.db.flush()
        return GuestLinkEntity.model_validate(row)

    def delete_guest_link(self, link_id: str) -> None:
        self.db.query(SessionGuest).filter(SessionGuest.id == link_id).delete()

    def count_guest_links(self, session_id: str) -> int:
        return self.db.query(SessionGuest).filter(SessionGuest.session_id == session_id).count()

    # -- ledger -----------------------------------------------------------

    def list_entries(self, session_id: str) -> list[LedgerEntryEntity]:
        rows = (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.session_id == session_id)
            .order_by(LedgerEntry.created_at.asc())
            .all()
        )
        return [LedgerEntryEntity.model_validate(r) for r in rows]

    def get_entry(self, entry_id: str) -> LedgerEntryEntity:
        row = self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()
        if row is None:
            raise EntryNotFound(entry_id)
        return LedgerEntryEntity.model_validate(row)

    def insert_entry(self, draft: LedgerEntryDraft, created_at: dt.datetime | None = None) -> LedgerEntryEntity:
        values = {k: _plain(v) for k, v in draft.model_dump().items()}
        row = LedgerEntry(**values)
        if created_at is not None:
            row.created_at = created_at
        self.db.add(row)
        self.db.flush()
        return LedgerEntryEntity.model_validate(row)

    def update_entry(self, entry_id: str, **fields: Any) -> LedgerEntryEntity:
        unknown = set(fields) - _UPDATABLE_ENTRY_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ledger fields: {sorted(unknown)}")
        row = self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()
        if row is None:
            raise EntryNotFound(entry_id)
        for key, value in fields.items():
            setattr(row, key, _plain(value))
        self.db.flush()
        return LedgerEntryEntity.model_validate(row)

    def delete_entry(self, entry_id: str) -> None:
        deleted = self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).delete()
        if not deleted:
            raise EntryNotFound(entry_id)

    def delete_guest_fee_entries(self, session_id: str, link_id: str, categories: Iterable[FeeCategory]) -> int:
        return (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.session_id == session_id,
                LedgerEntry.session_guest_id == link_id,
                LedgerEntry.category.in_([c.value for c in categories]),
            )
            .delete()
        )

    def detach_guest_entries(self, session_id: str, link_id: str) -> int:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.session_id == session_id, LedgerEntry.session_guest_id == link_id)
            .update({LedgerEntry.session_guest_id: None})
        )

    def end_open_engagements(self, session_id: str, now: dt.datetime) -> int:
        rows = (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.session_id == session_id,
                LedgerEntry.staff_id.isnot(None),
                LedgerEntry.engagement_status.isnot(None),
                LedgerEntry.engagement_status != "ended",
            )
            .all()
        )
        for row in rows:
            row.engagement_status = "ended"
            if row.end_time is None:
                row.end_time = now
        self.db.flush()
        return len(rows)

    # -- transaction ------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
