from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from listingdesk.config import settings
from listingdesk.db.models import Setting
from listingdesk.db.session import session_scope
from listingdesk.utils.time import to_naive_utc, utc_now


@dataclass(frozen=True)
class ReceiptIntent:
    """An owner announced an amount for a listing and is about to send the receipt file."""

    listing_id: str
    amount: str
    created_at: datetime


def _key(uid: int) -> str:
    return f"INTENT:RECEIPT:{uid}"


async def set_receipt_intent(uid: int, listing_id: str, amount: str) -> None:
    data = json.dumps(
        {"listing_id": listing_id, "amount": amount, "ts": to_naive_utc(utc_now()).isoformat()},
        ensure_ascii=False,
    )
    async with session_scope() as session:
        row = await session.get(Setting, _key(uid))
        if not row:
            session.add(Setting(key=_key(uid), value=data))
        else:
            row.value = data
        await session.commit()


async def pop_receipt_intent(uid: int) -> Optional[ReceiptIntent]:
    """Consume the intent; expired or unreadable intents are dropped and yield None."""
    async with session_scope() as session:
        row = await session.get(Setting, _key(uid))
        if not row:
            return None
        raw = row.value
        await session.delete(row)
        await session.commit()
    try:
        payload = json.loads(raw or "")
        intent = ReceiptIntent(
            listing_id=str(payload["listing_id"]),
            amount=str(payload["amount"]),
            created_at=datetime.fromisoformat(str(payload["ts"])),
        )
    except (ValueError, KeyError, TypeError):
        return None
    age = (to_naive_utc(utc_now()) - intent.created_at).total_seconds()
    if age > settings.receipt_intent_ttl_seconds:
        return None
    return intent
