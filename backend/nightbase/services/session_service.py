from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from ..core.clock import to_naive_utc
from ..core.errors import BillSettingsMissing, NotFound, SessionStateError
from ..core.locks import session_locks
from ..models.db import FloorTable, LedgerEntry, Profile, Session, SessionGuest
from ..models.entities import FeeCategory, GuestLinkEntity, SessionEntity
from .bill_calculator import BillBreakdown, calculate_bill
from .ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)

_EDITABLE_SESSION_FIELDS = ("table_id", "guest_count", "start_time", "end_time", "pricing_policy_id", "main_guest_id")


class SessionService:
    @staticmethod
    def create_session(
        db: DBSession,
        venue_id: int,
        table_id: int | None = None,
        main_guest_id: str | None = None,
        pricing_policy_id: str | None = None,
        start_time: dt.datetime | None = None,
    ) -> SessionEntity:
        repo = LedgerRepository(db)
        if table_id is not None:
            table = db.query(FloorTable).filter(FloorTable.id == table_id).first()
            if not table or table.venue_id != venue_id:
                raise NotFound(f"Table {table_id} not found")

        if pricing_policy_id is None:
            default = repo.get_default_pricing_policy(venue_id)
            pricing_policy_id = default.id if default else None
        elif repo.get_pricing_policy(pricing_policy_id) is None:
            raise NotFound(f"Pricing policy {pricing_policy_id} not found")

        s = Session(
            venue_id=venue_id,
            table_id=table_id,
            main_guest_id=main_guest_id,
            guest_count=0,
            pricing_policy_id=pricing_policy_id,
            start_time=start_time or dt.datetime.utcnow(),
            status="active",
        )
        db.add(s)
        db.commit()
        logger.info(f"Session {s.id} opened at venue {venue_id} (table={table_id})")
        return repo.load_session(s.id)

    @staticmethod
    def get_session(db: DBSession, session_id: str) -> SessionEntity:
        return LedgerRepository(db).load_session(session_id)

    @staticmethod
    def list_sessions(db: DBSession, venue_id: int | None = None, status: str | None = None) -> list[SessionEntity]:
        repo = LedgerRepository(db)
        q = db.query(Session)
        if venue_id is not None:
            q = q.filter(Session.venue_id == venue_id)
        if status is not None:
            q = q.filter(Session.status == status)
        return [repo.load_session(s.id) for s in q.order_by(Session.start_time.asc()).all()]

    @staticmethod
    def update_session(db: DBSession, session_id: str, **updates: Any) -> SessionEntity:
        repo = LedgerRepository(db)
        s = repo.get_session_row(session_id)
        for key in _EDITABLE_SESSION_FIELDS:
            if key in updates:
                setattr(s, key, updates[key])
        if s.status == "active" and s.end_time is not None:
            db.rollback()
            raise SessionStateError("An active session cannot have an end time")
        db.commit()
        return repo.load_session(session_id)

    @staticmethod
    def compute_bill(db: DBSession, session_id: str, now: dt.datetime | None = None) -> BillBreakdown:
        repo = LedgerRepository(db)
        session = repo.load_session(session_id)
        bill_settings = repo.get_bill_settings(session.venue_id)
        return calculate_bill(session, session.entries, bill_settings, now=to_naive_utc(now))

    @staticmethod
    def checkout(db: DBSession, session_id: str, now: dt.datetime | None = None) -> SessionEntity:
        now = now or dt.datetime.utcnow()
        repo = LedgerRepository(db)

        with session_locks.hold(session_id):
            s = repo.get_session_row(session_id)
            if s.status != "active":
                raise SessionStateError(f"Session {session_id} is already {s.status}")

            session = repo.load_session(session_id)
            try:
                closed = session.model_copy(update={"end_time": now})
                total = calculate_bill(closed, session.entries, repo.get_bill_settings(session.venue_id)).total
            except BillSettingsMissing as e:
                total = sum(x.line_total for x in session.entries if not x.is_cancelled)
                logger.warning(f"{e}; freezing plain ledger sum {total} for session {session_id}")

            s.status = "completed"
            s.end_time = now
            s.total_amount = total
            ended = repo.end_open_engagements(session_id, now)
            db.commit()

        logger.info(f"Session {session_id} checked out: total={total}, engagements ended={ended}")
        return repo.load_session(session_id)

    @staticmethod
    def reopen(db: DBSession, session_id: str) -> SessionEntity:
        repo = LedgerRepository(db)
        s = repo.get_session_row(session_id)
        if s.status == "active":
            raise SessionStateError(f"Session {session_id} is already active")
        s.status = "active"
        s.end_time = None
        db.commit()
        return repo.load_session(session_id)

    @staticmethod
    def delete_session(db: DBSession, session_id: str) -> None:
        repo = LedgerRepository(db)
        repo.get_session_row(session_id)
        with session_locks.hold(session_id):
            db.query(LedgerEntry).filter(LedgerEntry.session_id == session_id).delete()
            db.query(SessionGuest).filter(SessionGuest.session_id == session_id).delete()
            db.query(Session).filter(Session.id == session_id).delete()
            db.commit()
        logger.info(f"Session {session_id} deleted")

    # -- guests -------------------------------------------------------------

    @staticmethod
    def _sync_guest_count(db: DBSession, session_id: str) -> None:
        repo = LedgerRepository(db)
        s = repo.get_session_row(session_id)
        s.guest_count = repo.count_guest_links(session_id)

    @staticmethod
    def add_guest(db: DBSession, session_id: str, guest_id: str) -> GuestLinkEntity:
        repo = LedgerRepository(db)
        s = repo.get_session_row(session_id)
        profile = db.query(Profile).filter(Profile.id == guest_id).first()
        if not profile or profile.venue_id != s.venue_id:
            raise NotFound(f"Guest {guest_id} not found")

        existing = repo.get_guest_link(session_id, guest_id)
        if existing:
            return existing

        try:
            link = repo.insert_guest_link(session_id, guest_id, None)
        except IntegrityError:
            # A concurrent add won the unique (session, guest) slot
            db.rollback()
            existing = repo.get_guest_link(session_id, guest_id)
            if existing is None:
                raise
            return existing

        SessionService._sync_guest_count(db, session_id)
        db.commit()
        return link

    @staticmethod
    def add_guest_by_name(db: DBSession, session_id: str, guest_name: str | None = None) -> GuestLinkEntity:
        repo = LedgerRepository(db)
        repo.get_session_row(session_id)
        name = (guest_name or "").strip()
        if not name:
            name = f"Guest {repo.count_guest_links(session_id) + 1}"
        link = repo.insert_guest_link(session_id, None, name)
        SessionService._sync_guest_count(db, session_id)
        db.commit()
        return link

    @staticmethod
    def remove_guest(db: DBSession, session_id: str, link_or_guest_id: str) -> int:
        """Drop a guest and its fee rows; returns how many fee rows were deleted."""
        repo = LedgerRepository(db)
        repo.get_session_row(session_id)
        link = repo.get_guest_link(session_id, link_or_guest_id)
        if link is None:
            raise NotFound(f"Guest {link_or_guest_id} is not on session {session_id}")

        with session_locks.hold(session_id):
            removed = repo.delete_guest_fee_entries(session_id, link.id, list(FeeCategory))
            repo.detach_guest_entries(session_id, link.id)
            repo.delete_guest_link(link.id)
            SessionService._sync_guest_count(db, session_id)
            db.commit()

        logger.info(f"Guest {link.id} removed from session {session_id} with {removed} fee entries")
        return removed
