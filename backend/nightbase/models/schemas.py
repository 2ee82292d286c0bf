from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field, model_validator

from ..core.clock import to_naive_utc
from .entities import EngagementTag, FeeCategory, OrderStatus


ProfileRole = Literal["guest", "cast"]
SessionStatus = Literal["active", "completed"]
RoundingMethod = Literal["round", "ceil", "floor"]

# incoming timestamps may carry an offset (e.g. a trailing Z)
UtcDateTime = Annotated[dt.datetime, AfterValidator(to_naive_utc)]


class VenueCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class VenueOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class TableCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class TableOut(BaseModel):
    id: int
    venue_id: int
    name: str

    class Config:
        from_attributes = True


class ProfileCreateIn(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)
    role: ProfileRole


class ProfileOut(BaseModel):
    id: str
    venue_id: int
    display_name: str
    role: ProfileRole

    class Config:
        from_attributes = True


class MenuCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    is_hidden: bool = False


class MenuOut(BaseModel):
    id: str
    venue_id: int
    name: str
    price: int
    is_hidden: bool

    class Config:
        from_attributes = True


class _PricingFields(BaseModel):
    set_fee: int = Field(default=0, ge=0)
    set_duration_minutes: int = Field(default=60, ge=0)
    extension_fee: int = Field(default=0, ge=0)
    extension_duration_minutes: int = Field(default=30, ge=0)
    nomination_fee: int = Field(default=0, ge=0)
    nomination_set_duration_minutes: int | None = Field(default=None, ge=0)
    companion_fee: int = Field(default=0, ge=0)
    companion_set_duration_minutes: int | None = Field(default=None, ge=0)
    escort_fee: int = Field(default=0, ge=0)
    escort_set_duration_minutes: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _priced_durations_positive(self):
        checks = [
            ("extension_fee", "extension_duration_minutes"),
            ("set_fee", "set_duration_minutes"),
        ] + [(c.fee_field, c.duration_field) for c in FeeCategory if c.is_staff_fee]
        for fee_name, duration_name in checks:
            fee = getattr(self, fee_name)
            duration = getattr(self, duration_name)
            # an unset staff duration falls back to the venue default
            if fee and duration is not None and duration <= 0:
                raise ValueError(f"{duration_name} must be positive when {fee_name} is set")
        return self


class PricingPolicyCreateIn(_PricingFields):
    name: str = Field(min_length=1, max_length=120)
    is_default: bool = False


class PricingPolicyUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    set_fee: int | None = Field(default=None, ge=0)
    set_duration_minutes: int | None = Field(default=None, gt=0)
    extension_fee: int | None = Field(default=None, ge=0)
    extension_duration_minutes: int | None = Field(default=None, gt=0)
    nomination_fee: int | None = Field(default=None, ge=0)
    nomination_set_duration_minutes: int | None = Field(default=None, gt=0)
    companion_fee: int | None = Field(default=None, ge=0)
    companion_set_duration_minutes: int | None = Field(default=None, gt=0)
    escort_fee: int | None = Field(default=None, ge=0)
    escort_set_duration_minutes: int | None = Field(default=None, gt=0)
    is_default: bool | None = None


class PricingPolicyOut(_PricingFields):
    id: str
    venue_id: int
    name: str
    is_default: bool

    class Config:
        from_attributes = True


class BillSettingsIn(BaseModel):
    service_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    rounding_enabled: bool = False
    rounding_method: RoundingMethod = "round"
    rounding_unit: int = Field(default=10, gt=0)


class BillSettingsOut(BillSettingsIn):
    venue_id: int

    class Config:
        from_attributes = True


class SessionCreateIn(BaseModel):
    venue_id: int
    table_id: int | None = None
    main_guest_id: str | None = None
    pricing_policy_id: str | None = None  # falls back to the venue default
    start_time: UtcDateTime | None = None


class SessionUpdateIn(BaseModel):
    table_id: int | None = None
    guest_count: int | None = Field(default=None, ge=0)
    start_time: UtcDateTime | None = None
    end_time: UtcDateTime | None = None
    pricing_policy_id: str | None = None
    main_guest_id: str | None = None


class GuestLinkOut(BaseModel):
    id: str
    session_id: str
    guest_id: str | None = None
    guest_name: str | None = None

    class Config:
        from_attributes = True


class LedgerEntryOut(BaseModel):
    id: str
    session_id: str
    menu_id: str | None = None
    item_name: str | None = None
    category: FeeCategory | None = None
    quantity: int
    amount: int
    status: OrderStatus
    guest_id: str | None = None
    session_guest_id: str | None = None
    staff_id: str | None = None
    start_time: dt.datetime | None = None
    end_time: dt.datetime | None = None
    engagement_status: EngagementTag | None = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class SessionOut(BaseModel):
    id: str
    venue_id: int
    table_id: int | None = None
    guest_count: int
    start_time: dt.datetime
    end_time: dt.datetime | None = None
    status: SessionStatus
    pricing_policy_id: str | None = None
    total_amount: int

    class Config:
        from_attributes = True


class SessionDetailOut(SessionOut):
    guests: list[GuestLinkOut] = []
    entries: list[LedgerEntryOut] = []


class GuestAddIn(BaseModel):
    guest_id: str


class GuestByNameIn(BaseModel):
    guest_name: str | None = Field(default=None, max_length=255)


class GuestRemovedOut(BaseModel):
    removed_fee_entries: int


class OrderCreateIn(BaseModel):
    menu_id: str | None = None
    item_name: str | None = Field(default=None, max_length=255)
    quantity: int = Field(default=1, ge=1)
    amount: int | None = Field(default=None, ge=0)  # defaults to the menu price
    session_guest_id: str | None = None

    @model_validator(mode="after")
    def _menu_or_name(self):
        if self.menu_id is None and not (self.item_name or "").strip():
            raise ValueError("Either menu_id or item_name is required")
        return self


class OrderUpdateIn(BaseModel):
    quantity: int | None = Field(default=None, ge=1)
    amount: int | None = Field(default=None, ge=0)
    status: OrderStatus | None = None


class EngagementCreateIn(BaseModel):
    session_id: str
    staff_id: str
    session_guest_id: str | None = None
    tag: EngagementTag | None = None  # DEFAULT_ENGAGEMENT_TAG when omitted
    pricing_policy_id: str | None = None


class EngagementTagIn(BaseModel):
    tag: str = Field(..., description="waiting | serving | ended | nomination | companion | escort")
    pricing_policy_id: str | None = None


class EngagementTimesIn(BaseModel):
    start_time: UtcDateTime | None = None
    end_time: UtcDateTime | None = None
    clear_end_time: bool = False


class AccrualRunIn(BaseModel):
    now: UtcDateTime | None = None


class AccrualResultOut(BaseModel):
    session_id: str
    category: FeeCategory
    amount: int
    session_guest_id: str | None = None
    guest_id: str | None = None
    staff_id: str | None = None

    class Config:
        from_attributes = True


class AccrualReportOut(BaseModel):
    success: bool
    added_fees: list[AccrualResultOut] = []
    sessions_processed: int = 0
    failed_sessions: list[str] = []
    error: str | None = None

    class Config:
        from_attributes = True


class TimeChargeOut(BaseModel):
    duration_minutes: int
    extension_minutes: int
    base_price: int
    extension_price: int
    total: int

    class Config:
        from_attributes = True


class CastFeesOut(BaseModel):
    shime_count: int
    jounai_count: int
    shime_total: int
    jounai_total: int
    total: int

    class Config:
        from_attributes = True


class OrderLinesOut(BaseModel):
    items: list[LedgerEntryOut]
    total: int

    class Config:
        from_attributes = True


class BillOut(BaseModel):
    session_id: str
    time_charge: TimeChargeOut
    cast_fees: CastFeesOut
    orders: OrderLinesOut
    subtotal: int
    service_charge: int
    tax: int
    total_before_rounding: int
    rounding_adjustment: int
    total: int
