"""Expiration arithmetic for paid listings.

Both terms are counted in whole days from the payment timestamp, in UTC. The
listing term yields a calendar date; the add-on term keeps the time of day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from listingdesk.utils.time import to_naive_utc

LISTING_TERM_DAYS = 365
ADDON_TERM_DAYS = 30


@dataclass(frozen=True)
class ExpiryDates:
    listing_expiry_date: date
    # None means "leave the stored add-on expiry untouched"
    addon_expiry_date: Optional[datetime] = None


def listing_expiry_for(paid_at: datetime) -> date:
    return (to_naive_utc(paid_at) + timedelta(days=LISTING_TERM_DAYS)).date()


def addon_expiry_for(paid_at: datetime) -> datetime:
    return to_naive_utc(paid_at) + timedelta(days=ADDON_TERM_DAYS)


def compute_expiry(paid_at: datetime, addon_enabled: bool) -> ExpiryDates:
    return ExpiryDates(
        listing_expiry_date=listing_expiry_for(paid_at),
        addon_expiry_date=addon_expiry_for(paid_at) if addon_enabled else None,
    )
