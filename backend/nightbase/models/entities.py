"""Typed records handed to the fee engine, the tag state machine and the bill calculator.

Rows are validated into these models at the storage boundary
(``services/ledger_repository.py``); nothing past that point touches ORM
objects or dicts.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FeeCategory(str, Enum):
    TABLE_SEAT = "table_seat"
    NOMINATION = "nomination"
    COMPANION = "companion"
    ESCORT = "escort"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def is_staff_fee(self) -> bool:
        return self is not FeeCategory.TABLE_SEAT

    @property
    def fee_field(self) -> str:
        if self is FeeCategory.TABLE_SEAT:
            return "extension_fee"
        return f"{self.value}_fee"

    @property
    def duration_field(self) -> str:
        if self is FeeCategory.TABLE_SEAT:
            return "set_duration_minutes"
        return f"{self.value}_set_duration_minutes"


_CATEGORY_LABELS = {
    FeeCategory.TABLE_SEAT: "Extension fee",
    FeeCategory.NOMINATION: "Nomination fee",
    FeeCategory.COMPANION: "Companion fee",
    FeeCategory.ESCORT: "Escort fee",
}

STAFF_FEE_CATEGORIES = frozenset(c for c in FeeCategory if c.is_staff_fee)


class EngagementTag(str, Enum):
    WAITING = "waiting"
    SERVING = "serving"
    ENDED = "ended"
    NOMINATION = "nomination"
    COMPANION = "companion"
    ESCORT = "escort"

    @property
    def fee_category(self) -> FeeCategory | None:
        try:
            return FeeCategory(self.value)
        except ValueError:
            return None

    @property
    def is_fee(self) -> bool:
        return self.fee_category is not None

    @property
    def label(self) -> str:
        category = self.fee_category
        if category is not None:
            return category.label
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    EngagementTag.WAITING: "Waiting",
    EngagementTag.SERVING: "Serving",
    EngagementTag.ENDED: "Ended",
}


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class PricingPolicyEntity(_Record):
    id: str
    venue_id: int
    name: str = ""
    set_fee: int = Field(default=0, ge=0)
    set_duration_minutes: int | None = None
    extension_fee: int = Field(default=0, ge=0)
    extension_duration_minutes: int | None = None
    nomination_fee: int = Field(default=0, ge=0)
    nomination_set_duration_minutes: int | None = None
    companion_fee: int = Field(default=0, ge=0)
    companion_set_duration_minutes: int | None = None
    escort_fee: int = Field(default=0, ge=0)
    escort_set_duration_minutes: int | None = None
    is_default: bool = False

    def fee_for(self, category: FeeCategory) -> int:
        return int(getattr(self, category.fee_field) or 0)

    def duration_for(self, category: FeeCategory, fallback: int) -> int:
        """Set duration in minutes covered by the first fee of this category."""
        return int(getattr(self, category.duration_field) or fallback)


class BillSettingsEntity(_Record):
    venue_id: int
    service_rate: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    rounding_enabled: bool = False
    rounding_method: Literal["round", "ceil", "floor"] = "round"
    rounding_unit: int = Field(default=10, gt=0)


class GuestLinkEntity(_Record):
    id: str
    session_id: str
    guest_id: str | None = None
    guest_name: str | None = None


class LedgerEntryEntity(_Record):
    id: str
    session_id: str
    menu_id: str | None = None
    item_name: str | None = None
    category: FeeCategory | None = None
    quantity: int = 1
    amount: int = 0
    status: OrderStatus = OrderStatus.PENDING
    guest_id: str | None = None
    session_guest_id: str | None = None
    staff_id: str | None = None
    start_time: dt.datetime | None = None
    end_time: dt.datetime | None = None
    engagement_status: EngagementTag | None = None
    created_at: dt.datetime

    @model_validator(mode="after")
    def _staff_fee_needs_staff(self) -> "LedgerEntryEntity":
        if self.category in STAFF_FEE_CATEGORIES and self.staff_id is None:
            raise ValueError(f"{self.category.value} entry {self.id} has no staff reference")
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status is OrderStatus.CANCELLED

    @property
    def anchor_time(self) -> dt.datetime:
        return self.start_time or self.created_at

    @property
    def line_total(self) -> int:
        return self.amount * self.quantity


class SessionEntity(_Record):
    id: str
    venue_id: int
    table_id: int | None = None
    guest_count: int = 0
    start_time: dt.datetime
    end_time: dt.datetime | None = None
    status: Literal["active", "completed"] = "active"
    pricing_policy_id: str | None = None
    total_amount: int = 0

    pricing_policy: PricingPolicyEntity | None = None
    guests: list[GuestLinkEntity] = Field(default_factory=list)
    entries: list[LedgerEntryEntity] = Field(default_factory=list)

    @model_validator(mode="after")
    def _active_has_no_end(self) -> "SessionEntity":
        if self.status == "active" and self.end_time is not None:
            raise ValueError(f"active session {self.id} has an end_time")
        return self


class LedgerEntryDraft(_Record):
    """A ledger row that has been decided on but not written yet."""

    session_id: str
    item_name: str | None = None
    category: FeeCategory | None = None
    quantity: int = 1
    amount: int = 0
    status: OrderStatus = OrderStatus.PENDING
    menu_id: str | None = None
    guest_id: str | None = None
    session_guest_id: str | None = None
    staff_id: str | None = None
    start_time: dt.datetime | None = None
    end_time: dt.datetime | None = None
    engagement_status: EngagementTag | None = None
