from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from listingdesk.db.models import Listing
from listingdesk.db.session import session_scope
from listingdesk.services.audit import ACTION_LISTING_DELETED, log_audit
from listingdesk.services.errors import ListingNotFoundError, StoreError
from listingdesk.services.notifications import Notifier, emit, failure, success
from listingdesk.utils.correlation import log_extra

logger = logging.getLogger(__name__)

CONFIRM_PROMPT = "Are you sure you want to delete this listing? This action cannot be undone."
MSG_NOT_FOUND = "Listing not found"
MSG_FAILED = "Failed to delete listing"
MSG_DELETED = "Listing deleted successfully"


async def delete_listing(
    listing_id: str,
    *,
    confirmed: bool,
    notifier: Optional[Notifier] = None,
    actor: str = "admin",
) -> bool:
    """Remove the listing row whatever its payment state.

    Returns False without touching the store unless the caller explicitly
    confirmed the destructive intent.
    """
    if confirmed is not True:
        logger.info("listing deletion not confirmed; skipped", extra=log_extra(listing_id=listing_id))
        return False

    try:
        async with session_scope() as session:
            name = await session.scalar(select(Listing.name).where(Listing.id == listing_id))
            res = await session.execute(
                delete(Listing).where(Listing.id == listing_id).execution_options(synchronize_session=False)
            )
            if (res.rowcount or 0) == 0:
                raise ListingNotFoundError(MSG_NOT_FOUND, listing_id=listing_id)
            await log_audit(session, actor=actor, action=ACTION_LISTING_DELETED, target_id=listing_id, meta={"name": name})
            await session.commit()
    except ListingNotFoundError as e:
        await emit(notifier, failure(e.message))
        raise
    except SQLAlchemyError as e:
        logger.exception("deleting listing failed", extra=log_extra(listing_id=listing_id))
        await emit(notifier, failure(MSG_FAILED))
        raise StoreError(MSG_FAILED, listing_id=listing_id) from e

    logger.info("listing deleted", extra=log_extra(listing_id=listing_id))
    await emit(notifier, success(MSG_DELETED))
    return True
