from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listingdesk.config import settings
from listingdesk.db.models import Listing, STATUS_CONFIRMED
from listingdesk.db.session import session_scope
from listingdesk.services.audit import ACTION_PAYMENT_CONFIRMED, log_audit
from listingdesk.services.errors import (
    ConcurrentPaymentError,
    ListingNotFoundError,
    MissingPaymentDateError,
    StoreError,
    ValidationError,
)
from listingdesk.services.expiry import ExpiryDates, compute_expiry
from listingdesk.services.notifications import Notifier, emit, failure, success
from listingdesk.utils.correlation import log_extra
from listingdesk.utils.time import format_date_for_input, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

MSG_FETCH_FAILED = "Failed to fetch pending listings"
MSG_CONFIRM_FAILED = "Failed to confirm payment"
MSG_CONFIRMED = "Payment confirmed successfully"
MSG_NO_PAYMENT_DATE = "No payment date found for this listing"
MSG_NO_EVIDENCE = "No pending receipt to confirm for this listing"
MSG_PAYMENT_CHANGED = "A new payment was submitted for this listing; reload and review it before confirming"
MSG_NOT_FOUND = "Listing not found"


@dataclass(frozen=True)
class PendingListingView:
    """Row of the admin work queue."""

    id: str
    name: str
    owner_ref: Optional[str]
    owner_email: Optional[str]
    receipt_url: str
    payment_status: str
    created_at: datetime
    last_payment_date: Optional[datetime]
    listing_expiry_date: Optional[date]
    addon_enabled: bool
    addon_expiry_date: Optional[datetime]

    @property
    def listing_expiry_input(self) -> str:
        return format_date_for_input(self.listing_expiry_date)

    @property
    def addon_expiry_label(self) -> str:
        if self.addon_expiry_date is not None:
            return format_date_for_input(self.addon_expiry_date)
        return "Will be set on confirm" if self.addon_enabled else "N/A"

    @classmethod
    def from_row(cls, row: Listing) -> "PendingListingView":
        return cls(
            id=row.id,
            name=row.name,
            owner_ref=row.owner_ref,
            owner_email=row.owner_email,
            receipt_url=row.receipt_url or "",
            payment_status=row.payment_status,
            created_at=row.created_at,
            last_payment_date=row.last_payment_date,
            listing_expiry_date=row.listing_expiry_date,
            addon_enabled=bool(row.addon_enabled),
            addon_expiry_date=row.addon_expiry_date,
        )


@dataclass(frozen=True)
class PaymentSnapshot:
    """The fields a confirmation is derived from, as read before the write."""

    listing_id: str
    last_payment_date: Optional[datetime]
    addon_enabled: bool
    has_evidence: bool


async def fetch_work_queue(*, notifier: Optional[Notifier] = None) -> List[PendingListingView]:
    """All listings carrying receipt evidence, most recent submission first."""
    try:
        async with session_scope() as session:
            stmt = (
                select(Listing)
                .where(Listing.receipt_url.is_not(None))
                .order_by(Listing.last_payment_date.desc(), Listing.created_at.desc())
            )
            rows = (await session.execute(stmt)).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("fetching work queue failed", extra=log_extra())
        await emit(notifier, failure(MSG_FETCH_FAILED))
        raise StoreError(MSG_FETCH_FAILED) from e
    return [PendingListingView.from_row(r) for r in rows]


async def load_payment_snapshot(session: AsyncSession, listing_id: str) -> PaymentSnapshot:
    row = (
        await session.execute(
            select(Listing.last_payment_date, Listing.addon_enabled, Listing.receipt_url).where(Listing.id == listing_id)
        )
    ).first()
    if row is None:
        raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=listing_id)
    paid_at, addon_enabled, receipt_url = row
    return PaymentSnapshot(
        listing_id=listing_id,
        last_payment_date=paid_at,
        addon_enabled=bool(addon_enabled),
        has_evidence=receipt_url is not None,
    )


async def _apply_confirmation(session: AsyncSession, snapshot: PaymentSnapshot, dates: ExpiryDates) -> None:
    values = {
        "payment_status": STATUS_CONFIRMED,
        "receipt_url": None,
        "listing_expiry_date": dates.listing_expiry_date,
        "updated_at": to_naive_utc(utc_now()),
    }
    if dates.addon_expiry_date is not None:
        values["addon_expiry_date"] = dates.addon_expiry_date
    # Compare-and-swap on the payment timestamp that the dates were derived from
    res = await session.execute(
        update(Listing)
        .where(Listing.id == snapshot.listing_id, Listing.last_payment_date == snapshot.last_payment_date)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if (res.rowcount or 0) == 0:
        still_there = await session.scalar(select(Listing.id).where(Listing.id == snapshot.listing_id))
        if still_there is None:
            raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=snapshot.listing_id)
        raise ConcurrentPaymentError(MSG_PAYMENT_CHANGED, listing_id=snapshot.listing_id)


async def confirm_payment(
    listing_id: str,
    *,
    notifier: Optional[Notifier] = None,
    actor: str = "admin",
) -> ExpiryDates:
    """Accept the pending payment evidence and derive the new expiry dates.

    Re-confirming without a new payment recomputes the same dates from the
    unchanged payment timestamp.
    """
    try:
        async with session_scope() as session:
            snapshot = await load_payment_snapshot(session, listing_id)
            if snapshot.last_payment_date is None:
                raise MissingPaymentDateError(MSG_NO_PAYMENT_DATE, listing_id=listing_id)
            if settings.confirm_requires_evidence and not snapshot.has_evidence:
                raise ValidationError(MSG_NO_EVIDENCE, listing_id=listing_id)

            dates = compute_expiry(snapshot.last_payment_date, snapshot.addon_enabled)
            await _apply_confirmation(session, snapshot, dates)
            await log_audit(
                session,
                actor=actor,
                action=ACTION_PAYMENT_CONFIRMED,
                target_id=listing_id,
                meta={
                    "paid_at": snapshot.last_payment_date.isoformat(),
                    "listing_expiry_date": dates.listing_expiry_date.isoformat(),
                    "addon_expiry_date": dates.addon_expiry_date.isoformat() if dates.addon_expiry_date else None,
                },
            )
            await session.commit()
    except (MissingPaymentDateError, ValidationError, ListingNotFoundError, ConcurrentPaymentError) as e:
        logger.info("confirmation refused: %s", e.message, extra=log_extra(listing_id=listing_id))
        await emit(notifier, failure(e.message))
        raise
    except SQLAlchemyError as e:
        logger.exception("confirming payment failed", extra=log_extra(listing_id=listing_id))
        await emit(notifier, failure(MSG_CONFIRM_FAILED))
        raise StoreError(MSG_CONFIRM_FAILED, listing_id=listing_id) from e

    logger.info(
        "payment confirmed",
        extra=log_extra(
            listing_id=listing_id,
            listing_expiry_date=dates.listing_expiry_date.isoformat(),
            addon=dates.addon_expiry_date is not None,
        ),
    )
    await emit(notifier, success(MSG_CONFIRMED))
    return dates
