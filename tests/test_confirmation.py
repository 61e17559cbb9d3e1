from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from conftest import PAID_AT, broken_audit, broken_session_scope, load_listing, make_listing
from listingdesk.config import settings
from listingdesk.db.models import STATUS_CONFIRMED, STATUS_NONE, STATUS_PENDING
from listingdesk.services import confirmation
from listingdesk.services.confirmation import PaymentSnapshot, confirm_payment, fetch_work_queue
from listingdesk.services.errors import (
    ConcurrentPaymentError,
    ListingNotFoundError,
    MissingPaymentDateError,
    StoreError,
    ValidationError,
)


async def _pending_listing(**fields) -> str:
    values = dict(
        payment_status=STATUS_PENDING,
        receipt_url="https://files.test/receipts/x-1.png",
        last_payment_date=PAID_AT,
    )
    values.update(fields)
    return await make_listing(**values)


@pytest.mark.asyncio
async def test_confirm_with_addon_sets_both_expiries(db, notifier) -> None:
    listing_id = await _pending_listing(addon_enabled=True)

    dates = await confirm_payment(listing_id, notifier=notifier)

    assert dates.listing_expiry_date == date(2024, 12, 31)
    assert dates.addon_expiry_date == datetime(2024, 1, 31, 0, 0)
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_CONFIRMED
    assert row.receipt_url is None
    assert row.listing_expiry_date == date(2024, 12, 31)
    assert row.addon_expiry_date == datetime(2024, 1, 31, 0, 0)
    assert row.last_payment_date == PAID_AT
    assert notifier.last.description == "Payment confirmed successfully"


@pytest.mark.asyncio
async def test_confirm_without_addon_keeps_previous_addon_expiry(db) -> None:
    previous = datetime(2023, 6, 1, 12, 0)
    listing_id = await _pending_listing(addon_enabled=False, addon_expiry_date=previous)

    dates = await confirm_payment(listing_id)

    assert dates.addon_expiry_date is None
    row = await load_listing(listing_id)
    assert row.listing_expiry_date == date(2024, 12, 31)
    assert row.addon_expiry_date == previous


@pytest.mark.asyncio
async def test_confirm_without_payment_date_changes_nothing(db, notifier) -> None:
    listing_id = await _pending_listing(last_payment_date=None)

    with pytest.raises(MissingPaymentDateError):
        await confirm_payment(listing_id, notifier=notifier)

    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_PENDING
    assert row.receipt_url is not None
    assert row.listing_expiry_date is None
    assert notifier.last.is_failure
    assert notifier.last.description == "No payment date found for this listing"


@pytest.mark.asyncio
async def test_confirm_unknown_listing(db, notifier) -> None:
    with pytest.raises(ListingNotFoundError):
        await confirm_payment("does-not-exist", notifier=notifier)
    assert notifier.last.is_failure


@pytest.mark.asyncio
async def test_reconfirm_recomputes_identical_dates(db) -> None:
    listing_id = await _pending_listing(addon_enabled=True)

    first = await confirm_payment(listing_id)
    second = await confirm_payment(listing_id)

    assert first == second
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_CONFIRMED
    assert row.listing_expiry_date == date(2024, 12, 31)


@pytest.mark.asyncio
async def test_confirm_can_require_evidence(db, notifier, monkeypatch) -> None:
    monkeypatch.setattr(settings, "confirm_requires_evidence", True)
    listing_id = await make_listing(payment_status=STATUS_NONE, last_payment_date=PAID_AT)

    with pytest.raises(ValidationError):
        await confirm_payment(listing_id, notifier=notifier)

    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_NONE
    assert row.listing_expiry_date is None


@pytest.mark.asyncio
async def test_new_payment_between_read_and_write_is_not_confirmed(db, notifier, monkeypatch) -> None:
    listing_id = await _pending_listing(addon_enabled=True)
    real_load = confirmation.load_payment_snapshot

    async def stale_snapshot(session, lid):
        snap = await real_load(session, lid)
        # What the admin saw before the owner submitted again
        return PaymentSnapshot(
            listing_id=snap.listing_id,
            last_payment_date=snap.last_payment_date - timedelta(days=40),
            addon_enabled=snap.addon_enabled,
            has_evidence=snap.has_evidence,
        )

    monkeypatch.setattr(confirmation, "load_payment_snapshot", stale_snapshot)

    with pytest.raises(ConcurrentPaymentError):
        await confirm_payment(listing_id, notifier=notifier)

    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_PENDING
    assert row.listing_expiry_date is None
    assert row.addon_expiry_date is None
    assert notifier.last.is_failure


@pytest.mark.asyncio
async def test_work_queue_lists_listings_with_evidence_newest_first(db) -> None:
    older = await _pending_listing(name="Older", last_payment_date=datetime(2024, 1, 1))
    newer = await _pending_listing(name="Newer", last_payment_date=datetime(2024, 2, 1), addon_enabled=True)
    await make_listing(name="No receipt", last_payment_date=datetime(2024, 3, 1))

    queue = await fetch_work_queue()

    assert [item.id for item in queue] == [newer, older]
    assert queue[0].addon_expiry_label == "Will be set on confirm"
    assert queue[1].addon_expiry_label == "N/A"
    assert queue[0].listing_expiry_input == ""


@pytest.mark.asyncio
async def test_confirmed_listing_leaves_work_queue(db) -> None:
    listing_id = await _pending_listing()
    await confirm_payment(listing_id)
    assert await fetch_work_queue() == []


@pytest.mark.asyncio
async def test_store_failure_during_confirmation_commits_nothing(db, notifier, monkeypatch) -> None:
    listing_id = await _pending_listing(addon_enabled=True)
    monkeypatch.setattr(confirmation, "log_audit", broken_audit)

    with pytest.raises(StoreError) as ei:
        await confirm_payment(listing_id, notifier=notifier)

    assert ei.value.__cause__ is not None
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_PENDING
    assert row.receipt_url == "https://files.test/receipts/x-1.png"
    assert row.listing_expiry_date is None
    assert row.addon_expiry_date is None
    assert notifier.last.is_failure
    assert notifier.last.description == "Failed to confirm payment"


@pytest.mark.asyncio
async def test_work_queue_store_failure(db, notifier, monkeypatch) -> None:
    monkeypatch.setattr(confirmation, "session_scope", broken_session_scope)

    with pytest.raises(StoreError):
        await fetch_work_queue(notifier=notifier)

    assert notifier.last.description == "Failed to fetch pending listings"
