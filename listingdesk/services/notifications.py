from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from aiogram import Bot

from listingdesk.utils.correlation import log_extra

logger = logging.getLogger(__name__)

VARIANT_DEFAULT = "default"
VARIANT_DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    """Short user-facing outcome signal (title + description)."""

    title: str
    description: str
    variant: str = VARIANT_DEFAULT

    @property
    def is_failure(self) -> bool:
        return self.variant == VARIANT_DESTRUCTIVE

    def as_text(self) -> str:
        icon = "❌" if self.is_failure else "✅"
        return f"{icon} {self.title}: {self.description}"


Notifier = Callable[[Notice], Awaitable[None]]


def success(description: str) -> Notice:
    return Notice(title="Success", description=description)


def failure(description: str) -> Notice:
    return Notice(title="Error", description=description, variant=VARIANT_DESTRUCTIVE)


async def log_notifier(notice: Notice) -> None:
    level = logging.WARNING if notice.is_failure else logging.INFO
    logger.log(level, "notice: %s", notice.description, extra=log_extra(title=notice.title, variant=notice.variant))


async def emit(notifier: Optional[Notifier], notice: Notice) -> None:
    """Fire-and-forget delivery: a broken notifier never fails the operation that produced the notice."""
    target = notifier or log_notifier
    try:
        await target(notice)
    except Exception as e:
        logger.warning("notice delivery failed", extra=log_extra(title=notice.title, err=str(e)))


_bot_singleton: Optional[Bot] = None
_bot_lock = asyncio.Lock()


async def _get_bot() -> Optional[Bot]:
    global _bot_singleton
    if _bot_singleton is not None:
        return _bot_singleton
    async with _bot_lock:
        if _bot_singleton is not None:
            return _bot_singleton
        token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
        if not token:
            logger.warning("notify: TELEGRAM_BOT_TOKEN missing; notifications disabled")
            return None
        _bot_singleton = Bot(token=token)
        return _bot_singleton


async def notify_user(telegram_id: int, text: str, *, disable_web_page_preview: bool = True) -> bool:
    """Send a direct message to a listing owner. Returns True if sent, False otherwise."""
    bot = await _get_bot()
    if bot is None:
        return False
    try:
        await bot.send_message(chat_id=telegram_id, text=text, disable_web_page_preview=disable_web_page_preview)
        return True
    except Exception as e:
        logger.warning("notify_user failed", extra=log_extra(telegram_id=telegram_id, err=str(e)))
        return False


async def notify_log(text: str, *, disable_web_page_preview: bool = True) -> bool:
    """Send an operational copy to LOG_CHAT_ID if configured. Returns True if sent, False otherwise."""
    raw = os.getenv("LOG_CHAT_ID", "").strip()
    if not raw:
        return False
    try:
        chat_id = int(raw)
    except ValueError:
        logger.warning("notify_log: invalid LOG_CHAT_ID: %s", raw)
        return False
    bot = await _get_bot()
    if bot is None:
        return False
    try:
        await bot.send_message(chat_id=chat_id, text=text, disable_web_page_preview=disable_web_page_preview)
        return True
    except Exception as e:
        logger.warning("notify_log failed", extra=log_extra(err=str(e)))
        return False


async def aclose_bot() -> None:
    global _bot_singleton
    if _bot_singleton is not None:
        try:
            await _bot_singleton.session.close()
        finally:
            _bot_singleton = None
