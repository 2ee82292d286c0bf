from __future__ import annotations

import datetime as dt
import logging
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from ..core.config import settings
from ..core.errors import InvalidTransition, SessionStateError
from ..core.locks import SessionLockRegistry, session_locks
from ..models.entities import (
    EngagementTag,
    LedgerEntryDraft,
    LedgerEntryEntity,
    PricingPolicyEntity,
)
from .ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


class TransitionKind(str, Enum):
    NOOP = "noop"
    RETAG_IN_PLACE = "retag_in_place"
    CLOSE_AND_REOPEN = "close_and_reopen"
    STATUS_IN_PLACE = "status_in_place"


def parse_tag(value: str | EngagementTag) -> EngagementTag:
    if isinstance(value, EngagementTag):
        return value
    try:
        return EngagementTag(value)
    except ValueError:
        raise InvalidTransition(f"Unknown engagement tag: {value!r}")


def classify_transition(current: EngagementTag, new: EngagementTag) -> TransitionKind:
    if current is new:
        return TransitionKind.NOOP
    if current is EngagementTag.WAITING and new.is_fee:
        return TransitionKind.RETAG_IN_PLACE
    if new.is_fee or current.is_fee:
        return TransitionKind.CLOSE_AND_REOPEN
    return TransitionKind.STATUS_IN_PLACE


def _fee_amount(tag: EngagementTag, policy: PricingPolicyEntity | None) -> int:
    category = tag.fee_category
    if category is None or policy is None:
        return 0
    return policy.fee_for(category)


class EngagementService:
    """Staff engagement tagging on ledger entries.

    Tag changes for one session are serialized and each change is committed
    as a single transaction, so a close-and-reopen never leaves a closed entry
    without its successor.
    """

    def __init__(self, db: DBSession, locks: SessionLockRegistry = session_locks):
        self.repo = LedgerRepository(db)
        self.locks = locks

    def _policy_for(self, session_id: str, pricing_policy_id: str | None) -> PricingPolicyEntity | None:
        if pricing_policy_id:
            policy = self.repo.get_pricing_policy(pricing_policy_id)
            if policy is None:
                raise InvalidTransition(f"Pricing policy {pricing_policy_id} not found")
            return policy
        session = self.repo.get_session_row(session_id)
        return self.repo.get_pricing_policy(session.pricing_policy_id)

    def add_engagement(
        self,
        session_id: str,
        staff_id: str,
        session_guest_id: str | None = None,
        tag: str | EngagementTag | None = None,
        pricing_policy_id: str | None = None,
        now: dt.datetime | None = None,
    ) -> LedgerEntryEntity:
        now = now or dt.datetime.utcnow()
        new_tag = parse_tag(tag or settings.DEFAULT_ENGAGEMENT_TAG)
        if new_tag is EngagementTag.ENDED:
            raise InvalidTransition("A new engagement cannot start as ended")

        session = self.repo.get_session_row(session_id)
        if session.status != "active":
            raise SessionStateError(f"Session {session_id} is not active")

        guest_id = None
        if session_guest_id is not None:
            link = self.repo.get_guest_link(session_id, session_guest_id)
            if link is None:
                raise InvalidTransition(f"Guest {session_guest_id} is not on session {session_id}")
            session_guest_id, guest_id = link.id, link.guest_id

        with self.locks.hold(session_id):
            policy = self._policy_for(session_id, pricing_policy_id) if new_tag.is_fee else None
            entry = self.repo.insert_entry(
                LedgerEntryDraft(
                    session_id=session_id,
                    item_name=new_tag.label,
                    category=new_tag.fee_category,
                    amount=_fee_amount(new_tag, policy),
                    guest_id=guest_id,
                    session_guest_id=session_guest_id,
                    staff_id=staff_id,
                    start_time=now,
                    engagement_status=new_tag,
                )
            )
            self.repo.commit()
        logger.info(f"Staff {staff_id} tagged {new_tag.value} on session {session_id}")
        return entry

    def change_engagement_tag(
        self,
        entry_id: str,
        new_tag: str | EngagementTag,
        pricing_policy_id: str | None = None,
        now: dt.datetime | None = None,
    ) -> LedgerEntryEntity:
        """Move an entry to ``new_tag`` and return the entry that now carries it."""
        now = now or dt.datetime.utcnow()
        tag = parse_tag(new_tag)
        entry = self.repo.get_entry(entry_id)

        with self.locks.hold(entry.session_id):
            entry = self.repo.get_entry(entry_id)
            current = entry.engagement_status
            if current is None or entry.staff_id is None:
                raise InvalidTransition(f"Entry {entry_id} is not a staff engagement")

            kind = classify_transition(current, tag)
            if kind is TransitionKind.NOOP:
                return entry

            policy = None
            if tag.is_fee:
                policy = self._policy_for(entry.session_id, pricing_policy_id)

            try:
                result = self._apply(kind, entry, tag, policy, now)
                self.repo.commit()
            except SQLAlchemyError:
                self.repo.rollback()
                logger.error(f"Tag change {current.value} -> {tag.value} failed for entry {entry_id}")
                raise

        logger.info(f"Entry {entry_id}: {current.value} -> {tag.value} ({kind.value})")
        return result

    def _apply(
        self,
        kind: TransitionKind,
        entry: LedgerEntryEntity,
        tag: EngagementTag,
        policy: PricingPolicyEntity | None,
        now: dt.datetime,
    ) -> LedgerEntryEntity:
        entry_id = entry.id
        if kind is TransitionKind.RETAG_IN_PLACE:
            return self.repo.update_entry(
                entry_id,
                category=tag.fee_category,
                item_name=tag.label,
                amount=_fee_amount(tag, policy),
                engagement_status=tag,
            )

        if kind is TransitionKind.CLOSE_AND_REOPEN:
            self.repo.update_entry(entry_id, end_time=now, engagement_status=EngagementTag.ENDED)
            return self.repo.insert_entry(
                LedgerEntryDraft(
                    session_id=entry.session_id,
                    item_name=tag.label,
                    category=tag.fee_category,
                    amount=_fee_amount(tag, policy),
                    guest_id=entry.guest_id,
                    session_guest_id=entry.session_guest_id,
                    staff_id=entry.staff_id,
                    start_time=now,
                    engagement_status=tag,
                )
            )

        # Pure statuses carry no charge
        fields = dict(engagement_status=tag, item_name=tag.label, amount=0, category=None)
        if tag is EngagementTag.ENDED:
            fields["end_time"] = now
        return self.repo.update_entry(entry_id, **fields)

    def remove_engagement(self, entry_id: str) -> None:
        entry = self.repo.get_entry(entry_id)
        if entry.staff_id is None:
            raise InvalidTransition(f"Entry {entry_id} is not a staff engagement")
        with self.locks.hold(entry.session_id):
            self.repo.delete_entry(entry_id)
            self.repo.commit()

    def update_engagement_times(
        self,
        entry_id: str,
        start_time: dt.datetime | None = None,
        end_time: dt.datetime | None = None,
        clear_end_time: bool = False,
    ) -> LedgerEntryEntity:
        fields: dict = {}
        if start_time is not None:
            fields["start_time"] = start_time
        if end_time is not None:
            fields["end_time"] = end_time
        elif clear_end_time:
            fields["end_time"] = None
        if not fields:
            return self.repo.get_entry(entry_id)

        entry = self.repo.get_entry(entry_id)
        with self.locks.hold(entry.session_id):
            result = self.repo.update_entry(entry_id, **fields)
            self.repo.commit()
        return result
