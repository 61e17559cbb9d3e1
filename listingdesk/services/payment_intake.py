"""Owner-side payment evidence submission.

A submission uploads the receipt first and then flips the listing to
``pending_confirmation`` in a single UPDATE, so a failed upload or write never
leaves a receipt reference without the pending status (or the reverse).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from listingdesk.config import settings
from listingdesk.db.models import Listing, STATUS_PENDING
from listingdesk.db.session import session_scope
from listingdesk.services.audit import ACTION_PAYMENT_SUBMITTED, log_audit
from listingdesk.services.errors import ListingNotFoundError, StoreError, ValidationError
from listingdesk.services.notifications import Notifier, emit, failure, success
from listingdesk.storage.receipts import ReceiptFile, ReceiptStorage, get_storage, receipt_key
from listingdesk.utils.correlation import log_extra
from listingdesk.utils.money import parse_amount
from listingdesk.utils.time import to_naive_utc, utc_now

logger = logging.getLogger(__name__)

MSG_MISSING_FIELDS = "Please fill in all fields and upload a receipt"
MSG_BAD_AMOUNT = "Please enter a valid amount"
MSG_BAD_TYPE = "Receipt must be an image or a PDF document"
MSG_TOO_LARGE = "Receipt file is too large"
MSG_NOT_FOUND = "Listing not found"
MSG_FAILED = "Failed to upload receipt. Please try again."
MSG_SUBMITTED = "Receipt uploaded successfully. Your upgrade request has been submitted for admin confirmation."


@dataclass(frozen=True)
class SubmissionResult:
    listing_id: str
    receipt_url: str
    paid_at: datetime
    amount: Decimal


def _is_allowed_type(content_type: str) -> bool:
    ct = (content_type or "").lower()
    return ct.startswith("image/") or ct == "application/pdf"


def validate_submission(amount: object, receipt: Optional[ReceiptFile]) -> Decimal:
    """Return the parsed amount or raise ValidationError; performs no I/O."""
    if amount is None or (isinstance(amount, str) and not amount.strip()) or receipt is None or not receipt.data:
        raise ValidationError(MSG_MISSING_FIELDS)
    value = parse_amount(amount)  # type: ignore[arg-type]
    if value is None or value <= 0:
        raise ValidationError(MSG_BAD_AMOUNT)
    if not _is_allowed_type(receipt.content_type):
        raise ValidationError(MSG_BAD_TYPE)
    if receipt.size > settings.receipt_max_bytes:
        raise ValidationError(MSG_TOO_LARGE)
    return value


async def submit_payment_evidence(
    listing_id: str,
    amount: object,
    receipt: Optional[ReceiptFile],
    *,
    storage: Optional[ReceiptStorage] = None,
    notifier: Optional[Notifier] = None,
    actor: str = "owner",
) -> SubmissionResult:
    try:
        value = validate_submission(amount, receipt)
    except ValidationError as e:
        e.listing_id = listing_id
        await emit(notifier, failure(e.message))
        raise

    try:
        async with session_scope() as session:
            exists = await session.scalar(select(Listing.id).where(Listing.id == listing_id))
        if exists is None:
            raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=listing_id)

        key = receipt_key(listing_id, receipt)
        url = await (storage or get_storage()).upload(key, receipt.data, receipt.content_type)

        paid_at = to_naive_utc(utc_now())
        async with session_scope() as session:
            res = await session.execute(
                update(Listing)
                .where(Listing.id == listing_id)
                .values(receipt_url=url, payment_status=STATUS_PENDING, last_payment_date=paid_at, updated_at=paid_at)
                .execution_options(synchronize_session=False)
            )
            if (res.rowcount or 0) == 0:
                # Deleted while the upload was in flight
                raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=listing_id)
            await log_audit(
                session,
                actor=actor,
                action=ACTION_PAYMENT_SUBMITTED,
                target_id=listing_id,
                meta={"amount": str(value), "key": key, "mime": receipt.content_type, "bytes": receipt.size},
            )
            await session.commit()
    except ListingNotFoundError as e:
        await emit(notifier, failure(e.message))
        raise
    except (SQLAlchemyError, httpx.HTTPError, OSError) as e:
        logger.exception("payment evidence submission failed", extra=log_extra(listing_id=listing_id))
        await emit(notifier, failure(MSG_FAILED))
        raise StoreError(MSG_FAILED, listing_id=listing_id) from e

    logger.info(
        "payment evidence submitted",
        extra=log_extra(listing_id=listing_id, amount=str(value), key=key, mime=receipt.content_type),
    )
    await emit(notifier, success(MSG_SUBMITTED))
    return SubmissionResult(listing_id=listing_id, receipt_url=url, paid_at=paid_at, amount=value)
