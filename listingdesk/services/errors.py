"""Listing payment lifecycle errors.

Every error carries the short user-facing action message; the underlying cause
(if any) stays on ``__cause__`` and in the logs.
"""

from __future__ import annotations


class ListingError(RuntimeError):
    """Base listing lifecycle error."""

    def __init__(self, message: str, *, listing_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.listing_id = listing_id


class ValidationError(ListingError):
    """Raised when caller input is missing or invalid; nothing was sent or written."""


class MissingPaymentDateError(ListingError):
    """Raised when confirmation is attempted on a listing with no payment date on record."""


class ListingNotFoundError(ListingError):
    """Raised when the listing does not exist (or was deleted)."""


class ConcurrentPaymentError(ListingError):
    """Raised when the payment being confirmed changed between read and write."""


class StoreError(ListingError):
    """Raised when the record store or receipt storage failed."""
