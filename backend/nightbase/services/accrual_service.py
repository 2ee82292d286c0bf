"""Automatic fee accrual.

A pass looks at every active session and writes the fee rows that have
become due since the previous pass:

* one table-seat extension fee per guest for each extension block started
  after the set time,
* one more nomination/companion/escort fee for each extension block a staff
  member keeps serving the same guest past the category's set time.

The due count only grows with elapsed time and the existing count only grows
with inserts, so running a pass again with the same ``now`` inserts nothing.
"""
from __future__ import annotations

import datetime as dt
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from ..core.clock import to_naive_utc
from ..core.config import settings
from ..core.errors import SessionNotFound
from ..core.locks import SessionLockRegistry, session_locks
from ..models.entities import (
    STAFF_FEE_CATEGORIES,
    EngagementTag,
    FeeCategory,
    LedgerEntryDraft,
    LedgerEntryEntity,
    PricingPolicyEntity,
    SessionEntity,
)
from .ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccrualResult:
    session_id: str
    category: FeeCategory
    amount: int
    session_guest_id: str | None = None
    guest_id: str | None = None
    staff_id: str | None = None


@dataclass
class AccrualReport:
    success: bool
    added_fees: list[AccrualResult] = field(default_factory=list)
    sessions_processed: int = 0
    failed_sessions: list[str] = field(default_factory=list)
    error: str | None = None


def elapsed_minutes(start: dt.datetime, now: dt.datetime) -> int:
    return math.floor((now - start).total_seconds() / 60)


def extension_blocks(overtime_minutes: int, block_minutes: int) -> int:
    """Number of extension blocks started; a partial block counts as a whole one."""
    if overtime_minutes <= 0:
        return 0
    return math.ceil(overtime_minutes / block_minutes)


def _extension_duration(policy: PricingPolicyEntity) -> int:
    return int(policy.extension_duration_minutes or settings.DEFAULT_EXTENSION_DURATION_MINUTES)


def due_table_seat_fees(session: SessionEntity, now: dt.datetime) -> list[LedgerEntryDraft]:
    policy = session.pricing_policy
    if policy is None or not session.guests:
        return []

    set_duration = policy.duration_for(FeeCategory.TABLE_SEAT, settings.DEFAULT_SET_DURATION_MINUTES)
    fee = policy.fee_for(FeeCategory.TABLE_SEAT)
    elapsed = elapsed_minutes(session.start_time, now)
    if elapsed <= set_duration or fee <= 0:
        return []

    due = extension_blocks(elapsed - set_duration, _extension_duration(policy))

    drafts: list[LedgerEntryDraft] = []
    for link in session.guests:
        existing = sum(
            1
            for e in session.entries
            if e.category is FeeCategory.TABLE_SEAT and e.session_guest_id == link.id
        )
        for _ in range(due - existing):
            drafts.append(
                LedgerEntryDraft(
                    session_id=session.id,
                    item_name=FeeCategory.TABLE_SEAT.label,
                    category=FeeCategory.TABLE_SEAT,
                    amount=fee,
                    guest_id=link.guest_id,
                    session_guest_id=link.id,
                )
            )
    return drafts


def staff_fee_groups(entries: list[LedgerEntryEntity]) -> dict[tuple, list[LedgerEntryEntity]]:
    groups: dict[tuple, list[LedgerEntryEntity]] = defaultdict(list)
    for e in entries:
        if e.category in STAFF_FEE_CATEGORIES and e.staff_id is not None:
            groups[(e.staff_id, e.session_guest_id or e.guest_id, e.category)].append(e)
    return groups


def due_staff_fees(session: SessionEntity, now: dt.datetime) -> list[LedgerEntryDraft]:
    policy = session.pricing_policy
    if policy is None:
        return []

    extension = _extension_duration(policy)
    drafts: list[LedgerEntryDraft] = []

    for (_staff, _guest, category), group in staff_fee_groups(session.entries).items():
        if all(e.engagement_status is EngagementTag.ENDED for e in group):
            continue

        fee = policy.fee_for(category)
        if fee <= 0:
            continue

        anchor = min(group, key=lambda e: e.anchor_time)
        set_duration = policy.duration_for(category, settings.DEFAULT_SET_DURATION_MINUTES)
        elapsed = elapsed_minutes(anchor.anchor_time, now)
        expected = 1 + extension_blocks(elapsed - set_duration, extension)

        for _ in range(expected - len(group)):
            drafts.append(
                LedgerEntryDraft(
                    session_id=session.id,
                    item_name=category.label,
                    category=category,
                    amount=fee,
                    guest_id=anchor.guest_id,
                    session_guest_id=anchor.session_guest_id,
                    staff_id=anchor.staff_id,
                    start_time=now,
                    engagement_status=EngagementTag.SERVING,
                )
            )
    return drafts


def plan_session(session: SessionEntity, now: dt.datetime) -> list[LedgerEntryDraft]:
    return due_table_seat_fees(session, now) + due_staff_fees(session, now)


def _to_result(draft: LedgerEntryDraft) -> AccrualResult:
    assert draft.category is not None
    return AccrualResult(
        session_id=draft.session_id,
        category=draft.category,
        amount=draft.amount,
        session_guest_id=draft.session_guest_id,
        guest_id=draft.guest_id,
        staff_id=draft.staff_id,
    )


class AccrualEngine:
    def __init__(self, repo: LedgerRepository, locks: SessionLockRegistry = session_locks):
        self.repo = repo
        self.locks = locks

    def load_sessions(self, session_ids: list[str]) -> tuple[list[SessionEntity], list[str]]:
        """Load each session on its own; returns the loaded ones and the ids that failed."""
        sessions: list[SessionEntity] = []
        failed: list[str] = []
        for session_id in session_ids:
            try:
                sessions.append(self.repo.load_session(session_id))
            except SessionNotFound:
                # deleted after the id list was read
                continue
            except (SQLAlchemyError, ValidationError) as e:
                self.repo.rollback()
                logger.error(f"Cannot load session {session_id} for accrual: {e}")
                failed.append(session_id)
        return sessions, failed

    def accrue_session(self, session: SessionEntity, now: dt.datetime) -> list[AccrualResult]:
        """Insert the fees due for one session and commit them together."""
        with self.locks.hold(session.id):
            try:
                # The ledger may have moved since the session list was read
                current = session.model_copy(update={"entries": self.repo.list_entries(session.id)})
                drafts = plan_session(current, now)
                for draft in drafts:
                    self.repo.insert_entry(draft)
                self.repo.commit()
            except (SQLAlchemyError, ValidationError):
                self.repo.rollback()
                raise

        results = [_to_result(d) for d in drafts]
        for r in results:
            logger.info(
                "Accrued %s %s for session %s (guest=%s staff=%s)",
                r.category.value, r.amount, r.session_id, r.session_guest_id, r.staff_id,
            )
        return results

    def run_accrual_pass(self, now: dt.datetime, active_sessions: list[SessionEntity]) -> AccrualReport:
        report = AccrualReport(success=True)
        for session in active_sessions:
            if session.pricing_policy is None:
                continue
            try:
                report.added_fees.extend(self.accrue_session(session, now))
            except (SQLAlchemyError, ValidationError) as e:
                logger.error(f"Accrual failed for session {session.id}: {e}")
                report.failed_sessions.append(session.id)
                continue
            report.sessions_processed += 1
        return report


def process_auto_fees(db: DBSession, now: dt.datetime | None = None) -> AccrualReport:
    now = to_naive_utc(now) or dt.datetime.utcnow()
    repo = LedgerRepository(db)
    try:
        session_ids = repo.list_active_session_ids()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching sessions for auto fees: {e}")
        return AccrualReport(success=False, error=str(e))

    engine = AccrualEngine(repo)
    sessions, unreadable = engine.load_sessions(session_ids)
    report = engine.run_accrual_pass(now, sessions)
    report.failed_sessions = unreadable + report.failed_sessions
    logger.info(
        f"Accrual pass at {now.isoformat()}: {len(report.added_fees)} fees added, "
        f"{report.sessions_processed} sessions processed, {len(report.failed_sessions)} failed"
    )
    return report
