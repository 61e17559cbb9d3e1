from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

# Listing.payment_status values
STATUS_NONE = "none"
STATUS_PENDING = "pending_confirmation"
STATUS_CONFIRMED = "confirmed"

PAYMENT_STATUSES = (STATUS_NONE, STATUS_PENDING, STATUS_CONFIRMED)


def _new_listing_id() -> str:
    return uuid.uuid4().hex


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_listing_id)
    name: Mapped[str] = mapped_column(String(191))
    owner_ref: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    owner_email: Mapped[Optional[str]] = mapped_column(String(191), nullable=True)

    payment_status: Mapped[str] = mapped_column(String(32), index=True, default=STATUS_NONE)
    receipt_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    listing_expiry_date: Mapped[Optional[date]] = mapped_column(Date, index=True, nullable=True)

    # Point-of-sale + website add-on
    addon_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    addon_expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    actor: Mapped[str] = mapped_column(String(32))  # admin|owner|system
    action: Mapped[str] = mapped_column(String(64))
    target_type: Mapped[str] = mapped_column(String(64))
    target_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    meta: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Setting(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(191), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
