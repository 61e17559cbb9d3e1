"""Admin console state: the work queue snapshot plus unsaved expiry edits.

The queue is never patched in place. Every successful mutation is followed by
a full reload, and a reload discards all staged edits.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

from listingdesk.services.confirmation import PendingListingView, confirm_payment, fetch_work_queue
from listingdesk.services.deletion import delete_listing
from listingdesk.services.errors import StoreError
from listingdesk.services.expiry import ExpiryDates
from listingdesk.services.notifications import Notifier
from listingdesk.services.overrides import DateInput, override_listing_expiry
from listingdesk.utils.correlation import log_extra

logger = logging.getLogger(__name__)


class ListingConsole:
    def __init__(self, *, notifier: Optional[Notifier] = None, actor: str = "admin") -> None:
        self.notifier = notifier
        self.actor = actor
        self.queue: List[PendingListingView] = []
        self._pending_edits: Dict[str, str] = {}

    async def reload(self) -> List[PendingListingView]:
        self._pending_edits.clear()
        self.queue = await fetch_work_queue(notifier=self.notifier)
        return self.queue

    async def _refresh_after_mutation(self) -> None:
        try:
            await self.reload()
        except StoreError:
            # The mutation itself succeeded; the failed reload was already reported
            logger.warning("work queue reload after mutation failed", extra=log_extra(actor=self.actor))

    def get(self, listing_id: str) -> Optional[PendingListingView]:
        for item in self.queue:
            if item.id == listing_id:
                return item
        return None

    # ---- pending-edit overlay ----

    def stage_expiry(self, listing_id: str, value: str) -> None:
        self._pending_edits[listing_id] = value

    def discard_expiry(self, listing_id: str) -> None:
        self._pending_edits.pop(listing_id, None)

    def has_staged_expiry(self, listing_id: str) -> bool:
        return listing_id in self._pending_edits

    def expiry_input(self, listing_id: str) -> str:
        """Value shown in the expiry editor: the staged text, else the stored date."""
        if listing_id in self._pending_edits:
            return self._pending_edits[listing_id]
        item = self.get(listing_id)
        return item.listing_expiry_input if item else ""

    async def save_expiry(self, listing_id: str) -> date:
        new_date = await override_listing_expiry(
            listing_id, self.expiry_input(listing_id), notifier=self.notifier, actor=self.actor
        )
        self.discard_expiry(listing_id)
        await self._refresh_after_mutation()
        return new_date

    # ---- mutations ----

    async def override_expiry(self, listing_id: str, value: DateInput) -> date:
        new_date = await override_listing_expiry(listing_id, value, notifier=self.notifier, actor=self.actor)
        self.discard_expiry(listing_id)
        await self._refresh_after_mutation()
        return new_date

    async def confirm(self, listing_id: str) -> ExpiryDates:
        dates = await confirm_payment(listing_id, notifier=self.notifier, actor=self.actor)
        await self._refresh_after_mutation()
        return dates

    async def delete(self, listing_id: str, *, confirmed: bool) -> bool:
        deleted = await delete_listing(listing_id, confirmed=confirmed, notifier=self.notifier, actor=self.actor)
        if deleted:
            await self._refresh_after_mutation()
        return deleted
