from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import FakeStorage, broken_audit, load_listing, make_listing
from listingdesk.config import settings
from listingdesk.db.models import AuditLog, STATUS_CONFIRMED, STATUS_NONE, STATUS_PENDING
from listingdesk.db.session import session_scope
from listingdesk.services import payment_intake
from listingdesk.services.errors import ListingNotFoundError, StoreError, ValidationError
from listingdesk.services.payment_intake import submit_payment_evidence, validate_submission
from listingdesk.storage.receipts import ReceiptFile


def test_validate_submission_rejects_missing_inputs(png_receipt) -> None:
    with pytest.raises(ValidationError) as ei:
        validate_submission("", png_receipt)
    assert ei.value.message == payment_intake.MSG_MISSING_FIELDS
    with pytest.raises(ValidationError):
        validate_submission("100", None)
    with pytest.raises(ValidationError):
        validate_submission("100", ReceiptFile(filename="r.png", content_type="image/png", data=b""))


@pytest.mark.parametrize("amount", ["0", "-5", "ten"])
def test_validate_submission_rejects_bad_amount(amount, png_receipt) -> None:
    with pytest.raises(ValidationError) as ei:
        validate_submission(amount, png_receipt)
    assert ei.value.message == payment_intake.MSG_BAD_AMOUNT


def test_validate_submission_checks_type_and_size(monkeypatch) -> None:
    text = ReceiptFile(filename="notes.txt", content_type="text/plain", data=b"hello")
    with pytest.raises(ValidationError) as ei:
        validate_submission("10", text)
    assert ei.value.message == payment_intake.MSG_BAD_TYPE

    monkeypatch.setattr(settings, "receipt_max_bytes", 4)
    pdf = ReceiptFile(filename="r.pdf", content_type="application/pdf", data=b"%PDF-1.7")
    with pytest.raises(ValidationError) as ei:
        validate_submission("10", pdf)
    assert ei.value.message == payment_intake.MSG_TOO_LARGE


@pytest.mark.asyncio
async def test_submit_marks_listing_pending(db, storage, notifier, png_receipt) -> None:
    listing_id = await make_listing()
    before = datetime.utcnow() - timedelta(seconds=1)

    result = await submit_payment_evidence(listing_id, "$1,250", png_receipt, storage=storage, notifier=notifier)

    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_PENDING
    assert row.receipt_url == result.receipt_url
    assert row.last_payment_date == result.paid_at
    assert row.last_payment_date >= before
    assert str(result.amount) == "1250"

    key, data, ctype = storage.uploads[0]
    assert key.startswith(f"receipts/{listing_id}-") and key.endswith(".png")
    assert data == png_receipt.data
    assert ctype == "image/png"
    assert result.receipt_url == f"https://files.test/{key}"

    assert not notifier.last.is_failure
    assert notifier.last.description == payment_intake.MSG_SUBMITTED

    async with session_scope() as session:
        entry = (await session.execute(select(AuditLog).where(AuditLog.target_id == listing_id))).scalar_one()
    assert entry.action == "payment_submitted"
    assert json.loads(entry.meta)["amount"] == "1250"


@pytest.mark.asyncio
async def test_invalid_submission_touches_nothing(db, storage, notifier, png_receipt) -> None:
    listing_id = await make_listing()

    with pytest.raises(ValidationError):
        await submit_payment_evidence(listing_id, "", png_receipt, storage=storage, notifier=notifier)

    assert storage.uploads == []
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_NONE
    assert row.receipt_url is None
    assert notifier.last.is_failure
    assert notifier.last.description == "Please fill in all fields and upload a receipt"


@pytest.mark.asyncio
async def test_upload_failure_leaves_listing_unchanged(db, notifier, png_receipt) -> None:
    listing_id = await make_listing(payment_status=STATUS_CONFIRMED)

    with pytest.raises(StoreError) as ei:
        await submit_payment_evidence(listing_id, "99", png_receipt, storage=FakeStorage(fail=True), notifier=notifier)

    assert ei.value.__cause__ is not None
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_CONFIRMED
    assert row.receipt_url is None
    assert row.last_payment_date is None
    assert notifier.last.description == "Failed to upload receipt. Please try again."


@pytest.mark.asyncio
async def test_unknown_listing_is_rejected_before_upload(db, storage, notifier, png_receipt) -> None:
    with pytest.raises(ListingNotFoundError):
        await submit_payment_evidence("missing", "99", png_receipt, storage=storage, notifier=notifier)
    assert storage.uploads == []
    assert notifier.last.is_failure


@pytest.mark.asyncio
async def test_resubmission_replaces_evidence(db, storage, png_receipt) -> None:
    listing_id = await make_listing()
    first = await submit_payment_evidence(listing_id, "99", png_receipt, storage=storage)
    pdf = ReceiptFile(filename="second.pdf", content_type="application/pdf", data=b"%PDF-1.7")
    second = await submit_payment_evidence(listing_id, "99", pdf, storage=storage)

    row = await load_listing(listing_id)
    assert row.receipt_url == second.receipt_url != first.receipt_url
    assert row.last_payment_date == second.paid_at
    assert row.last_payment_date >= first.paid_at
    assert len(storage.uploads) == 2


@pytest.mark.asyncio
async def test_store_failure_after_upload_leaves_listing_unchanged(db, storage, notifier, png_receipt, monkeypatch) -> None:
    listing_id = await make_listing(payment_status=STATUS_CONFIRMED)
    monkeypatch.setattr(payment_intake, "log_audit", broken_audit)

    with pytest.raises(StoreError):
        await submit_payment_evidence(listing_id, "99", png_receipt, storage=storage, notifier=notifier)

    assert len(storage.uploads) == 1
    row = await load_listing(listing_id)
    assert row.payment_status == STATUS_CONFIRMED
    assert row.receipt_url is None
    assert row.last_payment_date is None
    assert notifier.last.description == "Failed to upload receipt. Please try again."
