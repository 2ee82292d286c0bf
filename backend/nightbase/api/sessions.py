from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session as DBSession

from ..core.deps import get_db, http_error
from ..core.errors import FloorError
from ..models.schemas import (
    BillOut,
    CastFeesOut,
    GuestAddIn,
    GuestByNameIn,
    GuestLinkOut,
    GuestRemovedOut,
    LedgerEntryOut,
    OrderCreateIn,
    OrderLinesOut,
    OrderUpdateIn,
    SessionCreateIn,
    SessionDetailOut,
    SessionOut,
    SessionStatus,
    SessionUpdateIn,
    TimeChargeOut,
)
from ..services.order_service import OrderService
from ..services.session_service import SessionService

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionDetailOut)
def create_session(payload: SessionCreateIn, db: DBSession = Depends(get_db)):
    try:
        s = SessionService.create_session(
            db,
            venue_id=payload.venue_id,
            table_id=payload.table_id,
            main_guest_id=payload.main_guest_id,
            pricing_policy_id=payload.pricing_policy_id,
            start_time=payload.start_time,
        )
    except FloorError as e:
        raise http_error(e)
    return SessionDetailOut.model_validate(s)


@router.get("", response_model=list[SessionOut])
def list_sessions(
    venue_id: int | None = Query(default=None),
    status: SessionStatus | None = Query(default=None),
    db: DBSession = Depends(get_db),
):
    return [SessionOut.model_validate(s) for s in SessionService.list_sessions(db, venue_id, status)]


@router.get("/{session_id}", response_model=SessionDetailOut)
def get_session(session_id: str, db: DBSession = Depends(get_db)):
    try:
        return SessionDetailOut.model_validate(SessionService.get_session(db, session_id))
    except FloorError as e:
        raise http_error(e)


@router.patch("/{session_id}", response_model=SessionDetailOut)
def update_session(session_id: str, payload: SessionUpdateIn, db: DBSession = Depends(get_db)):
    try:
        s = SessionService.update_session(db, session_id, **payload.model_dump(exclude_unset=True))
    except FloorError as e:
        raise http_error(e)
    return SessionDetailOut.model_validate(s)


@router.post("/{session_id}/checkout", response_model=SessionDetailOut)
def checkout_session(session_id: str, db: DBSession = Depends(get_db)):
    try:
        return SessionDetailOut.model_validate(SessionService.checkout(db, session_id))
    except FloorError as e:
        raise http_error(e)


@router.post("/{session_id}/reopen", response_model=SessionDetailOut)
def reopen_session(session_id: str, db: DBSession = Depends(get_db)):
    try:
        return SessionDetailOut.model_validate(SessionService.reopen(db, session_id))
    except FloorError as e:
        raise http_error(e)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, db: DBSession = Depends(get_db)):
    try:
        SessionService.delete_session(db, session_id)
    except FloorError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.get("/{session_id}/bill", response_model=BillOut)
def get_bill(
    session_id: str,
    at: dt.datetime | None = Query(default=None, description="Bill an open session as of this time"),
    db: DBSession = Depends(get_db),
):
    try:
        b = SessionService.compute_bill(db, session_id, now=at)
    except FloorError as e:
        raise http_error(e)

    return BillOut(
        session_id=session_id,
        time_charge=TimeChargeOut.model_validate(b.time_charge),
        cast_fees=CastFeesOut.model_validate(b.cast_fees),
        orders=OrderLinesOut(
            items=[LedgerEntryOut.model_validate(x) for x in b.orders.items],
            total=b.orders.total,
        ),
        subtotal=b.subtotal,
        service_charge=b.service_charge,
        tax=b.tax,
        total_before_rounding=b.total_before_rounding,
        rounding_adjustment=b.rounding_adjustment,
        total=b.total,
    )


# -- guests -----------------------------------------------------------------


@router.post("/{session_id}/guests", response_model=GuestLinkOut)
def add_guest(session_id: str, payload: GuestAddIn, db: DBSession = Depends(get_db)):
    try:
        return GuestLinkOut.model_validate(SessionService.add_guest(db, session_id, payload.guest_id))
    except FloorError as e:
        raise http_error(e)


@router.post("/{session_id}/guests/by-name", response_model=GuestLinkOut)
def add_guest_by_name(session_id: str, payload: GuestByNameIn, db: DBSession = Depends(get_db)):
    try:
        return GuestLinkOut.model_validate(SessionService.add_guest_by_name(db, session_id, payload.guest_name))
    except FloorError as e:
        raise http_error(e)


@router.delete("/{session_id}/guests/{guest_id}", response_model=GuestRemovedOut)
def remove_guest(session_id: str, guest_id: str, db: DBSession = Depends(get_db)):
    try:
        removed = SessionService.remove_guest(db, session_id, guest_id)
    except FloorError as e:
        raise http_error(e)
    return GuestRemovedOut(removed_fee_entries=removed)


# -- orders -----------------------------------------------------------------


@router.post("/{session_id}/orders", response_model=LedgerEntryOut)
def place_order(session_id: str, payload: OrderCreateIn, db: DBSession = Depends(get_db)):
    try:
        entry = OrderService.place_order(
            db,
            session_id,
            menu_id=payload.menu_id,
            item_name=payload.item_name,
            quantity=payload.quantity,
            amount=payload.amount,
            session_guest_id=payload.session_guest_id,
        )
    except FloorError as e:
        raise http_error(e)
    return LedgerEntryOut.model_validate(entry)


@router.patch("/{session_id}/orders/{entry_id}", response_model=LedgerEntryOut)
def update_order(session_id: str, entry_id: str, payload: OrderUpdateIn, db: DBSession = Depends(get_db)):
    try:
        entry = OrderService.update_order(db, session_id, entry_id, **payload.model_dump(exclude_unset=True))
    except FloorError as e:
        raise http_error(e)
    return LedgerEntryOut.model_validate(entry)


@router.delete("/{session_id}/orders/{entry_id}", status_code=204)
def delete_order(session_id: str, entry_id: str, db: DBSession = Depends(get_db)):
    try:
        OrderService.delete_order(db, session_id, entry_id)
    except FloorError as e:
        raise http_error(e)
    return Response(status_code=204)
