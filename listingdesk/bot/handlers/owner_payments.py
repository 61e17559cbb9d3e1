from __future__ import annotations

import logging

from aiogram import Router, F
from aiogram.dispatcher.event.bases import SkipHandler
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy import select

from listingdesk.bot.notifier import message_notifier
from listingdesk.db.models import Listing, STATUS_CONFIRMED, STATUS_PENDING
from listingdesk.db.session import session_scope
from listingdesk.services.errors import ListingError
from listingdesk.services.notifications import emit, failure
from listingdesk.services.payment_intake import submit_payment_evidence
from listingdesk.services.receipt_intents import pop_receipt_intent, set_receipt_intent
from listingdesk.storage.receipts import ReceiptFile
from listingdesk.utils.correlation import log_extra
from listingdesk.utils.money import dollars, parse_amount
from listingdesk.utils.time import format_date_for_input

router = Router()

logger = logging.getLogger(__name__)

MSG_DOWNLOAD_FAILED = "Could not download the receipt file. Please send it again."

_STATUS_LABELS = {
    STATUS_PENDING: "🕒 awaiting confirmation",
    STATUS_CONFIRMED: "✅ active",
}


def _status_label(listing: Listing) -> str:
    return _STATUS_LABELS.get(listing.payment_status, "ℹ️ unpaid")


@router.message(Command("mylistings"))
async def handle_my_listings(message: Message) -> None:
    if not message.from_user:
        return
    owner_ref = str(message.from_user.id)
    async with session_scope() as session:
        rows = (
            await session.execute(
                select(Listing).where(Listing.owner_ref == owner_ref).order_by(Listing.created_at.desc()).limit(20)
            )
        ).scalars().all()
    if not rows:
        await message.answer("You have no listings yet.")
        return
    lines = ["Your listings:"]
    for li in rows:
        expiry = format_date_for_input(li.listing_expiry_date) or "-"
        lines.append(f"- {li.name} ({li.id}) | {_status_label(li)} | expires: {expiry}")
    lines.append("\nTo upgrade: /upgrade <listing_id> <amount>, then send the receipt photo or PDF.")
    await message.answer("\n".join(lines))


@router.message(Command("upgrade"))
async def handle_upgrade(message: Message) -> None:
    """Usage: /upgrade <LISTING_ID> <AMOUNT>"""
    if not message.from_user or not message.text:
        return
    parts = message.text.split()
    if len(parts) != 3:
        await message.answer("Format: /upgrade <LISTING_ID> <AMOUNT>")
        return
    listing_id, raw_amount = parts[1], parts[2]
    amount = parse_amount(raw_amount)
    if amount is None or amount <= 0:
        await message.answer("Please enter a valid amount.")
        return
    async with session_scope() as session:
        listing = await session.get(Listing, listing_id)
    if listing is None or listing.owner_ref != str(message.from_user.id):
        await message.answer("Listing not found.")
        return
    await set_receipt_intent(message.from_user.id, listing_id, str(amount))
    await message.answer(
        f"Upgrade for {listing.name}: {dollars(amount)}\n"
        "🧾 Now send the payment receipt as a photo or PDF document."
    )


@router.message(F.photo | F.document)
async def handle_receipt_file(message: Message) -> None:
    if not message.from_user:
        return
    intent = await pop_receipt_intent(message.from_user.id)
    if intent is None:
        raise SkipHandler
    if message.photo:
        photo = message.photo[-1]
        file_id = photo.file_id
        filename = f"{photo.file_unique_id}.jpg"
        content_type = "image/jpeg"
    elif message.document:
        file_id = message.document.file_id
        filename = message.document.file_name or message.document.file_unique_id
        content_type = (message.document.mime_type or "").lower()
    else:
        return
    notifier = message_notifier(message)
    try:
        buf = await message.bot.download(file_id)
    except TelegramAPIError as e:
        logger.warning("receipt download failed", extra=log_extra(listing_id=intent.listing_id, err=str(e)))
        # Keep the upgrade open so the owner can resend the file
        await set_receipt_intent(message.from_user.id, intent.listing_id, intent.amount)
        await emit(notifier, failure(MSG_DOWNLOAD_FAILED))
        return
    receipt = ReceiptFile(filename=filename, content_type=content_type, data=buf.read() if buf else b"")
    try:
        await submit_payment_evidence(
            intent.listing_id,
            intent.amount,
            receipt,
            notifier=notifier,
            actor=f"owner:{message.from_user.id}",
        )
    except ListingError as e:
        # Already reported to the owner by the notifier
        logger.info("receipt submission rejected", extra=log_extra(listing_id=intent.listing_id, reason=e.message))
