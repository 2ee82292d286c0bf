from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session as DBSession

from ..core.deps import get_db, http_error
from ..core.errors import FloorError
from ..models.schemas import EngagementCreateIn, EngagementTagIn, EngagementTimesIn, LedgerEntryOut
from ..services.engagement_service import EngagementService

router = APIRouter(prefix="/api/engagements", tags=["engagements"])


@router.post("", response_model=LedgerEntryOut)
def add_engagement(payload: EngagementCreateIn, db: DBSession = Depends(get_db)):
    try:
        entry = EngagementService(db).add_engagement(
            session_id=payload.session_id,
            staff_id=payload.staff_id,
            session_guest_id=payload.session_guest_id,
            tag=payload.tag,
            pricing_policy_id=payload.pricing_policy_id,
        )
    except FloorError as e:
        raise http_error(e)
    return LedgerEntryOut.model_validate(entry)


@router.post("/{entry_id}/tag", response_model=LedgerEntryOut)
def change_tag(entry_id: str, payload: EngagementTagIn, db: DBSession = Depends(get_db)):
    """Returns the entry carrying the new tag, which is a new row after a close-and-reopen."""
    try:
        entry = EngagementService(db).change_engagement_tag(entry_id, payload.tag, payload.pricing_policy_id)
    except FloorError as e:
        raise http_error(e)
    return LedgerEntryOut.model_validate(entry)


@router.patch("/{entry_id}/times", response_model=LedgerEntryOut)
def update_times(entry_id: str, payload: EngagementTimesIn, db: DBSession = Depends(get_db)):
    try:
        entry = EngagementService(db).update_engagement_times(
            entry_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            clear_end_time=payload.clear_end_time,
        )
    except FloorError as e:
        raise http_error(e)
    return LedgerEntryOut.model_validate(entry)


@router.delete("/{entry_id}", status_code=204)
def remove_engagement(entry_id: str, db: DBSession = Depends(get_db)):
    try:
        EngagementService(db).remove_engagement(entry_id)
    except FloorError as e:
        raise http_error(e)
    return Response(status_code=204)
