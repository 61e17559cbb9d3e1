from __future__ import annotations

from aiogram.types import CallbackQuery, Message

from listingdesk.services.notifications import Notice, Notifier


def message_notifier(message: Message) -> Notifier:
    async def _send(notice: Notice) -> None:
        await message.answer(notice.as_text())

    return _send


def callback_notifier(cb: CallbackQuery) -> Notifier:
    """Failures pop up as an alert; successes show as a toast."""

    async def _send(notice: Notice) -> None:
        await cb.answer(notice.description, show_alert=notice.is_failure)

    return _send
