from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from listingdesk.db.models import Listing
from listingdesk.db.session import session_scope
from listingdesk.services.audit import ACTION_EXPIRY_OVERRIDDEN, log_audit
from listingdesk.services.errors import ListingNotFoundError, StoreError, ValidationError
from listingdesk.services.notifications import Notifier, emit, failure, success
from listingdesk.utils.correlation import log_extra
from listingdesk.utils.time import parse_calendar_date, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

MSG_INVALID_DATE = "Please select a valid date"
MSG_NOT_FOUND = "Listing not found"
MSG_FAILED = "Failed to update listing expiry date. Please try again."

DateInput = Union[str, date, datetime, None]


async def override_listing_expiry(
    listing_id: str,
    value: DateInput,
    *,
    notifier: Optional[Notifier] = None,
    actor: str = "admin",
) -> date:
    """Write listing_expiry_date directly; payment status and other dates are left alone."""
    new_date = parse_calendar_date(value)
    if new_date is None:
        await emit(notifier, failure(MSG_INVALID_DATE))
        raise ValidationError(MSG_INVALID_DATE, listing_id=listing_id)

    try:
        async with session_scope() as session:
            res = await session.execute(
                update(Listing)
                .where(Listing.id == listing_id)
                .values(listing_expiry_date=new_date, updated_at=to_naive_utc(utc_now()))
                .execution_options(synchronize_session=False)
            )
            if (res.rowcount or 0) == 0:
                raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=listing_id)
            await log_audit(
                session,
                actor=actor,
                action=ACTION_EXPIRY_OVERRIDDEN,
                target_id=listing_id,
                meta={"listing_expiry_date": new_date.isoformat()},
            )
            await session.commit()
    except ListingNotFoundError as e:
        await emit(notifier, failure(e.message))
        raise
    except SQLAlchemyError as e:
        logger.exception("overriding listing expiry failed", extra=log_extra(listing_id=listing_id))
        await emit(notifier, failure(MSG_FAILED))
        raise StoreError(MSG_FAILED, listing_id=listing_id) from e

    logger.info("listing expiry overridden", extra=log_extra(listing_id=listing_id, listing_expiry_date=new_date.isoformat()))
    await emit(notifier, success(f"Listing expiry date updated to {new_date.isoformat()}"))
    return new_date
