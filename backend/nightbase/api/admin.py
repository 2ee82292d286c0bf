from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DBSession

from ..core.deps import get_db
from ..models.db import BillSettings, FloorTable, MenuItem, PricingPolicy, Profile, Venue
from ..models.schemas import (
    BillSettingsIn,
    BillSettingsOut,
    MenuCreateIn,
    MenuOut,
    PricingPolicyCreateIn,
    PricingPolicyOut,
    PricingPolicyUpdateIn,
    ProfileCreateIn,
    ProfileOut,
    ProfileRole,
    TableCreateIn,
    TableOut,
    VenueCreateIn,
    VenueOut,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])

# staff durations may be cleared back to the venue default
_NULLABLE_POLICY_FIELDS = frozenset(
    {"nomination_set_duration_minutes", "companion_set_duration_minutes", "escort_set_duration_minutes"}
)


def _normalize_name(v: str) -> str:
    return v.strip()


def _get_venue(db: DBSession, venue_id: int) -> Venue:
    v = db.query(Venue).filter(Venue.id == venue_id).first()
    if not v:
        raise HTTPException(status_code=404, detail="Venue not found")
    return v


def _clear_default_policy(db: DBSession, venue_id: int, exclude_id: str | None = None) -> None:
    """Unset the current default so a venue keeps at most one."""
    q = db.query(PricingPolicy).filter(PricingPolicy.venue_id == venue_id, PricingPolicy.is_default.is_(True))
    if exclude_id is not None:
        q = q.filter(PricingPolicy.id != exclude_id)
    for p in q.all():
        p.is_default = False


# -- venues -----------------------------------------------------------------


@router.get("/venues", response_model=list[VenueOut])
def list_venues(db: DBSession = Depends(get_db)):
    return [VenueOut.model_validate(v) for v in db.query(Venue).order_by(Venue.id.asc()).all()]


@router.post("/venues", response_model=VenueOut)
def create_venue(payload: VenueCreateIn, db: DBSession = Depends(get_db)) -> VenueOut:
    name = _normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Venue name is required")
    if db.query(Venue).filter(Venue.name == name).first():
        raise HTTPException(status_code=400, detail="Venue name already exists")

    v = Venue(name=name)
    db.add(v)
    db.commit()
    db.refresh(v)
    return VenueOut.model_validate(v)


# -- tables -----------------------------------------------------------------


@router.get("/venues/{venue_id}/tables", response_model=list[TableOut])
def list_tables(venue_id: int, db: DBSession = Depends(get_db)):
    _get_venue(db, venue_id)
    tables = db.query(FloorTable).filter(FloorTable.venue_id == venue_id).order_by(FloorTable.id.asc()).all()
    return [TableOut.model_validate(t) for t in tables]


@router.post("/venues/{venue_id}/tables", response_model=TableOut)
def create_table(venue_id: int, payload: TableCreateIn, db: DBSession = Depends(get_db)) -> TableOut:
    _get_venue(db, venue_id)
    name = _normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Table name is required")

    existing = db.query(FloorTable).filter(FloorTable.venue_id == venue_id, FloorTable.name == name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Table name already exists")

    t = FloorTable(venue_id=venue_id, name=name)
    db.add(t)
    db.commit()
    db.refresh(t)
    return TableOut.model_validate(t)


# -- profiles ---------------------------------------------------------------


@router.get("/venues/{venue_id}/profiles", response_model=list[ProfileOut])
def list_profiles(
    venue_id: int,
    role: ProfileRole | None = Query(default=None),
    db: DBSession = Depends(get_db),
):
    _get_venue(db, venue_id)
    q = db.query(Profile).filter(Profile.venue_id == venue_id)
    if role is not None:
        q = q.filter(Profile.role == role)
    return [ProfileOut.model_validate(p) for p in q.order_by(Profile.created_at.asc()).all()]


@router.post("/venues/{venue_id}/profiles", response_model=ProfileOut)
def create_profile(venue_id: int, payload: ProfileCreateIn, db: DBSession = Depends(get_db)) -> ProfileOut:
    _get_venue(db, venue_id)
    name = _normalize_name(payload.display_name)
    if not name:
        raise HTTPException(status_code=400, detail="Display name is required")

    p = Profile(venue_id=venue_id, display_name=name, role=payload.role)
    db.add(p)
    db.commit()
    db.refresh(p)
    return ProfileOut.model_validate(p)


# -- menus ------------------------------------------------------------------


@router.get("/venues/{venue_id}/menus", response_model=list[MenuOut])
def list_menus(
    venue_id: int,
    include_hidden: bool = Query(default=False),
    db: DBSession = Depends(get_db),
):
    _get_venue(db, venue_id)
    q = db.query(MenuItem).filter(MenuItem.venue_id == venue_id)
    if not include_hidden:
        q = q.filter(MenuItem.is_hidden.is_(False))
    return [MenuOut.model_validate(m) for m in q.order_by(MenuItem.name.asc()).all()]


@router.post("/venues/{venue_id}/menus", response_model=MenuOut)
def create_menu(venue_id: int, payload: MenuCreateIn, db: DBSession = Depends(get_db)) -> MenuOut:
    _get_venue(db, venue_id)
    name = _normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Menu name is required")

    m = MenuItem(venue_id=venue_id, name=name, price=payload.price, is_hidden=payload.is_hidden)
    db.add(m)
    db.commit()
    db.refresh(m)
    return MenuOut.model_validate(m)


# -- pricing policies -------------------------------------------------------


@router.get("/venues/{venue_id}/pricing-policies", response_model=list[PricingPolicyOut])
def list_pricing_policies(venue_id: int, db: DBSession = Depends(get_db)):
    _get_venue(db, venue_id)
    policies = (
        db.query(PricingPolicy)
        .filter(PricingPolicy.venue_id == venue_id)
        .order_by(PricingPolicy.created_at.asc())
        .all()
    )
    return [PricingPolicyOut.model_validate(p) for p in policies]


@router.post("/venues/{venue_id}/pricing-policies", response_model=PricingPolicyOut)
def create_pricing_policy(
    venue_id: int, payload: PricingPolicyCreateIn, db: DBSession = Depends(get_db)
) -> PricingPolicyOut:
    _get_venue(db, venue_id)
    data = payload.model_dump()
    data["name"] = _normalize_name(data["name"])
    if not data["name"]:
        raise HTTPException(status_code=400, detail="Pricing policy name is required")

    if payload.is_default:
        _clear_default_policy(db, venue_id)

    p = PricingPolicy(venue_id=venue_id, **data)
    db.add(p)
    db.commit()
    db.refresh(p)
    return PricingPolicyOut.model_validate(p)


@router.patch("/pricing-policies/{policy_id}", response_model=PricingPolicyOut)
def update_pricing_policy(
    policy_id: str, payload: PricingPolicyUpdateIn, db: DBSession = Depends(get_db)
) -> PricingPolicyOut:
    p = db.query(PricingPolicy).filter(PricingPolicy.id == policy_id).first()
    if not p:
        raise HTTPException(status_code=404, detail="Pricing policy not found")

    updates = payload.model_dump(exclude_unset=True)
    if "name" in updates:
        updates["name"] = _normalize_name(updates["name"] or "")
        if not updates["name"]:
            raise HTTPException(status_code=400, detail="Pricing policy name is required")
    if updates.get("is_default"):
        _clear_default_policy(db, p.venue_id, exclude_id=p.id)

    for key, value in updates.items():
        if value is None and key not in _NULLABLE_POLICY_FIELDS:
            continue
        setattr(p, key, value)

    db.commit()
    db.refresh(p)
    return PricingPolicyOut.model_validate(p)


# -- bill settings ----------------------------------------------------------


@router.get("/venues/{venue_id}/bill-settings", response_model=BillSettingsOut)
def get_bill_settings(venue_id: int, db: DBSession = Depends(get_db)) -> BillSettingsOut:
    _get_venue(db, venue_id)
    bs = db.query(BillSettings).filter(BillSettings.venue_id == venue_id).first()
    if not bs:
        raise HTTPException(status_code=404, detail="Bill settings not configured")
    return BillSettingsOut.model_validate(bs)


@router.put("/venues/{venue_id}/bill-settings", response_model=BillSettingsOut)
def put_bill_settings(venue_id: int, payload: BillSettingsIn, db: DBSession = Depends(get_db)) -> BillSettingsOut:
    _get_venue(db, venue_id)
    bs = db.query(BillSettings).filter(BillSettings.venue_id == venue_id).first()
    if not bs:
        bs = BillSettings(venue_id=venue_id)
        db.add(bs)
    for key, value in payload.model_dump().items():
        setattr(bs, key, value)
    db.commit()
    db.refresh(bs)
    return BillSettingsOut.model_validate(bs)
