from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from listingdesk.db.models import AuditLog
from listingdesk.utils.time import utc_now, to_naive_utc

ACTION_PAYMENT_SUBMITTED = "payment_submitted"
ACTION_PAYMENT_CONFIRMED = "payment_confirmed"
ACTION_EXPIRY_OVERRIDDEN = "expiry_overridden"
ACTION_LISTING_DELETED = "listing_deleted"


async def log_audit(
    session: AsyncSession,
    *,
    actor: str,
    action: str,
    target_id: Optional[str] = None,
    target_type: str = "listing",
    meta: Optional[Mapping[str, Any]] = None,
) -> None:
    """Stage an audit row in the caller's transaction; it commits or rolls back with the change."""
    entry = AuditLog(
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta=json.dumps(dict(meta), ensure_ascii=False, default=str) if meta else None,
        created_at=to_naive_utc(utc_now()),
    )
    session.add(entry)
    await session.flush()
