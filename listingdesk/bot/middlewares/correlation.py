from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from listingdesk.utils.correlation import correlation_scope, log_extra

logger = logging.getLogger(__name__)


class CorrelationMiddleware(BaseMiddleware):
    """Binds one correlation id per update so every log line of a user action can be joined."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        with correlation_scope() as cid:
            data["correlation_id"] = cid
            if isinstance(event, (Message, CallbackQuery)) and event.from_user:
                kind = "callback" if isinstance(event, CallbackQuery) else "message"
                logger.debug("update received", extra=log_extra(uid=event.from_user.id, kind=kind))
            return await handler(event, data)
