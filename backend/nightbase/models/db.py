from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), unique=True, nullable=False)

    tables = relationship("FloorTable", back_populates="venue", cascade="all, delete-orphan")
    pricing_policies = relationship("PricingPolicy", back_populates="venue", cascade="all, delete-orphan")
    bill_settings = relationship("BillSettings", back_populates="venue", uselist=False, cascade="all, delete-orphan")


class FloorTable(Base):
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)

    venue = relationship("Venue", back_populates="tables")

    __table_args__ = (
        UniqueConstraint("venue_id", "name", name="uq_table_venue_name"),
    )


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False)  # guest | cast
    created_at = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())


class MenuItem(Base):
    __tablename__ = "menus"

    id = Column(String(36), primary_key=True, default=_uuid)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False, default=0)
    is_hidden = Column(Boolean, nullable=False, default=False)


class PricingPolicy(Base):
    __tablename__ = "pricing_policies"

    id = Column(String(36), primary_key=True, default=_uuid)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)

    set_fee = Column(Integer, nullable=False, default=0)
    set_duration_minutes = Column(Integer, nullable=False, default=60)
    extension_fee = Column(Integer, nullable=False, default=0)
    extension_duration_minutes = Column(Integer, nullable=False, default=30)

    nomination_fee = Column(Integer, nullable=False, default=0)
    nomination_set_duration_minutes = Column(Integer, nullable=True)
    companion_fee = Column(Integer, nullable=False, default=0)
    companion_set_duration_minutes = Column(Integer, nullable=True)
    escort_fee = Column(Integer, nullable=False, default=0)
    escort_set_duration_minutes = Column(Integer, nullable=True)

    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())

    venue = relationship("Venue", back_populates="pricing_policies")


class BillSettings(Base):
    __tablename__ = "bill_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, unique=True)
    service_rate = Column(Numeric(6, 4), nullable=False, default=0)
    tax_rate = Column(Numeric(6, 4), nullable=False, default=0)
    rounding_enabled = Column(Boolean, nullable=False, default=False)
    rounding_method = Column(String(8), nullable=False, default="round")  # round | ceil | floor
    rounding_unit = Column(Integer, nullable=False, default=10)

    venue = relationship("Venue", back_populates="bill_settings")


class Session(Base):
    __tablename__ = "table_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True, index=True)
    main_guest_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    guest_count = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())
    end_time = Column(DateTime, nullable=True)
    status = Column(String(16), nullable=False, default="active", index=True)  # active|completed
    pricing_policy_id = Column(String(36), ForeignKey("pricing_policies.id"), nullable=True)
    total_amount = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())

    table = relationship("FloorTable")
    pricing_policy = relationship("PricingPolicy")
    guests = relationship(
        "SessionGuest",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionGuest.created_at",
    )
    entries = relationship(
        "LedgerEntry",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="LedgerEntry.created_at",
    )


class SessionGuest(Base):
    __tablename__ = "session_guests"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("table_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    guest_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    guest_name = Column(String(255), nullable=True)  # set for name-only guests
    created_at = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())

    session = relationship("Session", back_populates="guests")
    profile = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("session_id", "guest_id", name="uq_session_guest"),
    )


class LedgerEntry(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("table_sessions.id", ondelete="CASCADE"), nullable=False)
    menu_id = Column(String(36), ForeignKey("menus.id"), nullable=True)
    item_name = Column(String(255), nullable=True)
    category = Column(String(16), nullable=True)  # table_seat|nomination|companion|escort
    quantity = Column(Integer, nullable=False, default=1)
    amount = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="pending")  # pending|completed|cancelled

    guest_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    session_guest_id = Column(String(36), ForeignKey("session_guests.id"), nullable=True)
    staff_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)

    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    engagement_status = Column(String(16), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: dt.datetime.utcnow())

    session = relationship("Session", back_populates="entries")
    menu = relationship("MenuItem")

    __table_args__ = (
        Index("ix_orders_session_category", "session_id", "category"),
        Index("ix_orders_session_guest", "session_id", "session_guest_id"),
    )
