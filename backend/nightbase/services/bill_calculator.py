from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal

from ..core.clock import to_naive_utc
from ..core.config import settings as app_settings
from ..core.errors import BillSettingsMissing
from ..models.entities import (
    BillSettingsEntity,
    FeeCategory,
    LedgerEntryEntity,
    SessionEntity,
)


@dataclass(frozen=True)
class TimeCharge:
    duration_minutes: int
    extension_minutes: int
    base_price: int
    extension_price: int

    @property
    def total(self) -> int:
        return self.base_price + self.extension_price


@dataclass(frozen=True)
class CastFees:
    shime_count: int = 0
    jounai_count: int = 0
    shime_total: int = 0
    jounai_total: int = 0

    @property
    def total(self) -> int:
        return self.shime_total + self.jounai_total


@dataclass(frozen=True)
class OrderLines:
    items: list[LedgerEntryEntity] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True)
class BillBreakdown:
    time_charge: TimeCharge
    cast_fees: CastFees
    orders: OrderLines
    subtotal: int
    service_charge: int
    tax: int
    total_before_rounding: int
    rounding_adjustment: int
    total: int


# nomination is billed as "shime", companion and escort as "jounai"
_SHIME = frozenset({FeeCategory.NOMINATION})
_JOUNAI = frozenset({FeeCategory.COMPANION, FeeCategory.ESCORT})


def duration_minutes(start: dt.datetime, end: dt.datetime) -> int:
    return max(math.ceil((end - start).total_seconds() / 60), 0)


def floor_amount(amount: int, rate: Decimal) -> int:
    return int((Decimal(amount) * Decimal(rate)).to_integral_value(rounding=ROUND_FLOOR))


def round_total(amount: int, method: str, unit: int) -> int:
    if method == "ceil":
        return -(-amount // unit) * unit
    if method == "floor":
        return (amount // unit) * unit
    # half up
    return ((2 * amount + unit) // (2 * unit)) * unit


def _time_charge(session: SessionEntity, entries: list[LedgerEntryEntity], now: dt.datetime) -> TimeCharge:
    policy = session.pricing_policy
    set_duration = app_settings.DEFAULT_SET_DURATION_MINUTES
    base_fee = 0
    if policy is not None:
        set_duration = policy.duration_for(FeeCategory.TABLE_SEAT, set_duration)
        base_fee = policy.set_fee

    minutes = duration_minutes(session.start_time, session.end_time or now)
    extension_price = sum(
        e.line_total for e in entries if e.category is FeeCategory.TABLE_SEAT and not e.is_cancelled
    )
    return TimeCharge(
        duration_minutes=minutes,
        extension_minutes=max(0, minutes - set_duration),
        base_price=base_fee * session.guest_count,
        extension_price=extension_price,
    )


def _cast_fees(entries: list[LedgerEntryEntity]) -> CastFees:
    shime = [e for e in entries if e.category in _SHIME and not e.is_cancelled]
    jounai = [e for e in entries if e.category in _JOUNAI and not e.is_cancelled]
    return CastFees(
        shime_count=len(shime),
        jounai_count=len(jounai),
        shime_total=sum(e.line_total for e in shime),
        jounai_total=sum(e.line_total for e in jounai),
    )


def _order_lines(entries: list[LedgerEntryEntity]) -> OrderLines:
    items = [
        e for e in entries
        if e.category is None and e.engagement_status is None and not e.is_cancelled
    ]
    return OrderLines(items=items, total=sum(e.line_total for e in items))


def calculate_bill(
    session: SessionEntity,
    entries: list[LedgerEntryEntity],
    bill_settings: BillSettingsEntity | None,
    now: dt.datetime | None = None,
) -> BillBreakdown:
    """Break a session's ledger down into the lines of its bill.

    The ledger is authoritative for extension and staff fees: nothing is
    recomputed from elapsed time except the informational minute counts.
    ``now`` is only read when the session has no ``end_time``.
    """
    if bill_settings is None:
        raise BillSettingsMissing(session.venue_id)
    now = to_naive_utc(now)
    if session.end_time is None and now is None:
        now = dt.datetime.utcnow()

    time_charge = _time_charge(session, entries, now)
    cast_fees = _cast_fees(entries)
    orders = _order_lines(entries)

    subtotal = time_charge.total + cast_fees.total + orders.total
    service_charge = floor_amount(subtotal, bill_settings.service_rate)
    tax = floor_amount(subtotal + service_charge, bill_settings.tax_rate)
    total = subtotal + service_charge + tax

    rounded = total
    if bill_settings.rounding_enabled:
        rounded = round_total(total, bill_settings.rounding_method, bill_settings.rounding_unit)

    return BillBreakdown(
        time_charge=time_charge,
        cast_fees=cast_fees,
        orders=orders,
        subtotal=subtotal,
        service_charge=service_charge,
        tax=tax,
        total_before_rounding=total,
        rounding_adjustment=rounded - total,
        total=rounded,
    )
