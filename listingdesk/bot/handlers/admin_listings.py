from __future__ import annotations

import logging
from typing import Dict

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from listingdesk.bot.notifier import callback_notifier, message_notifier
from listingdesk.services.confirmation import PendingListingView
from listingdesk.services.console import ListingConsole
from listingdesk.services.deletion import CONFIRM_PROMPT
from listingdesk.services.errors import ListingError
from listingdesk.services.expiry import ExpiryDates
from listingdesk.services.notifications import notify_log, notify_user
from listingdesk.services.security import CAP_LISTINGS_DELETE, CAP_LISTINGS_MODERATE, has_capability_async
from listingdesk.utils.correlation import log_extra
from listingdesk.utils.time import format_date_for_input

router = Router()

logger = logging.getLogger(__name__)

NO_ACCESS = "You do not have admin access."

# One console per admin: each keeps its own queue snapshot and unsaved edits
_consoles: Dict[int, ListingConsole] = {}


def _console_for(uid: int) -> ListingConsole:
    console = _consoles.get(uid)
    if console is None:
        console = ListingConsole(actor=f"admin:{uid}")
        _consoles[uid] = console
    return console


def _row_text(item: PendingListingView) -> str:
    submitted = item.last_payment_date.strftime("%Y-%m-%d %H:%M") if item.last_payment_date else "-"
    return (
        f"🕒 {item.name} ({item.id})\n"
        f"Owner: {item.owner_email or 'No email provided'}\n"
        f"Submitted: {submitted}\n"
        f"Receipt: {item.receipt_url}\n"
        f"Listing expiry: {item.listing_expiry_input or '-'}\n"
        f"POS+Website expiry: {item.addon_expiry_label}"
    )


def _row_keyboard(listing_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="Confirm ✅", callback_data=f"lst:confirm:{listing_id}"),
        InlineKeyboardButton(text="Delete 🗑", callback_data=f"lst:delete:{listing_id}"),
    ]])


def _owner_message(item: PendingListingView | None, dates: ExpiryDates) -> str:
    name = item.name if item else "your listing"
    lines = [f"✅ Payment for {name} confirmed.", f"Listing active until {dates.listing_expiry_date.isoformat()}."]
    if dates.addon_expiry_date is not None:
        lines.append(f"POS+Website active until {format_date_for_input(dates.addon_expiry_date)}.")
    return "\n".join(lines)


async def _append_status(cb: CallbackQuery, suffix: str) -> None:
    if cb.message is None:
        return
    txt = (getattr(cb.message, "text", None) or "Listing") + f"\n\n{suffix}"
    try:
        await cb.message.edit_text(txt)
    except Exception as e:
        logger.debug("could not edit admin message", extra=log_extra(err=str(e)))


@router.message(Command("pending"))
async def admin_pending(message: Message) -> None:
    if not (message.from_user and await has_capability_async(message.from_user.id, CAP_LISTINGS_MODERATE)):
        await message.answer(NO_ACCESS)
        return
    console = _console_for(message.from_user.id)
    console.notifier = message_notifier(message)
    try:
        queue = await console.reload()
    except ListingError:
        return
    if not queue:
        await message.answer("No listings pending confirmation")
        return
    await message.answer(f"To Be Confirmed Listings: {len(queue)}")
    for item in queue:
        await message.answer(_row_text(item), reply_markup=_row_keyboard(item.id), disable_web_page_preview=True)


@router.callback_query(F.data.startswith("lst:confirm:"))
async def cb_confirm(cb: CallbackQuery) -> None:
    if not (cb.from_user and await has_capability_async(cb.from_user.id, CAP_LISTINGS_MODERATE)):
        await cb.answer(NO_ACCESS, show_alert=True)
        return
    listing_id = (cb.data or "").split(":", 2)[2]
    console = _console_for(cb.from_user.id)
    console.notifier = callback_notifier(cb)
    item = console.get(listing_id)
    try:
        dates = await console.confirm(listing_id)
    except ListingError:
        return
    await _append_status(cb, "Confirmed ✅")
    if item and item.owner_ref and item.owner_ref.isdigit():
        await notify_user(int(item.owner_ref), _owner_message(item, dates))
    await notify_log(f"Listing {listing_id} confirmed by admin {cb.from_user.id}; expires {dates.listing_expiry_date.isoformat()}")


@router.callback_query(F.data.startswith("lst:delete:"))
async def cb_delete(cb: CallbackQuery) -> None:
    if not (cb.from_user and await has_capability_async(cb.from_user.id, CAP_LISTINGS_DELETE)):
        await cb.answer(NO_ACCESS, show_alert=True)
        return
    parts = (cb.data or "").split(":")
    console = _console_for(cb.from_user.id)
    # lst:delete:<id> -> ask; lst:delete:yes|no:<id> -> act
    if len(parts) == 3:
        listing_id = parts[2]
        kb = InlineKeyboardMarkup(inline_keyboard=[[
            InlineKeyboardButton(text="Yes, delete", callback_data=f"lst:delete:yes:{listing_id}"),
            InlineKeyboardButton(text="Cancel", callback_data=f"lst:delete:no:{listing_id}"),
        ]])
        if cb.message is not None:
            await cb.message.answer(CONFIRM_PROMPT, reply_markup=kb)
        await cb.answer()
        return
    if len(parts) != 4:
        await cb.answer("Invalid listing id", show_alert=True)
        return
    decision, listing_id = parts[2], parts[3]
    console.notifier = callback_notifier(cb)
    try:
        deleted = await console.delete(listing_id, confirmed=(decision == "yes"))
    except ListingError:
        return
    if not deleted:
        await _append_status(cb, "Cancelled")
        await cb.answer("Cancelled")
        return
    await _append_status(cb, "Deleted 🗑")
    await notify_log(f"Listing {listing_id} deleted by admin {cb.from_user.id}")


@router.message(Command("set_expiry"))
async def admin_set_expiry(message: Message) -> None:
    """Usage: /set_expiry <LISTING_ID> <YYYY-MM-DD>"""
    if not (message.from_user and await has_capability_async(message.from_user.id, CAP_LISTINGS_MODERATE)):
        await message.answer(NO_ACCESS)
        return
    parts = (message.text or "").split()
    if len(parts) not in (2, 3):
        await message.answer("Format: /set_expiry <LISTING_ID> <YYYY-MM-DD>")
        return
    listing_id = parts[1]
    console = _console_for(message.from_user.id)
    console.notifier = message_notifier(message)
    console.stage_expiry(listing_id, parts[2] if len(parts) == 3 else "")
    try:
        await console.save_expiry(listing_id)
    except ListingError as e:
        logger.info("expiry override rejected", extra=log_extra(listing_id=listing_id, reason=e.message))
