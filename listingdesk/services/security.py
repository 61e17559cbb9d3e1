from __future__ import annotations

import os
from typing import Set

from listingdesk.config import settings
from listingdesk.db.models import Setting
from listingdesk.db.session import session_scope

CAP_LISTINGS_MODERATE = "LISTINGS_MODERATE"
CAP_LISTINGS_DELETE = "LISTINGS_DELETE"


def _parse_csv(s: str) -> Set[str]:
    return {x.strip().upper() for x in s.split(",") if x.strip()}


def get_admin_ids() -> Set[int]:
    return set(settings.telegram_admin_ids)


def is_admin_uid(uid: int | None) -> bool:
    return bool(uid and uid in get_admin_ids())


async def _load_user_caps(uid: int) -> Set[str]:
    # DB override: Setting key = f"ADMIN_CAPS:{uid}", value = CSV of caps or "*"
    async with session_scope() as session:
        row = await session.get(Setting, f"ADMIN_CAPS:{uid}")
        if row and row.value:
            caps = _parse_csv(row.value)
            return caps if caps else {"*"}
    default = os.getenv("ADMIN_CAPS_DEFAULT", "*").strip()
    if default == "*" or not default:
        return {"*"}
    return _parse_csv(default)


async def has_capability_async(uid: int | None, code: str) -> bool:
    if uid is None or not is_admin_uid(uid):
        return False
    caps = await _load_user_caps(uid)
    return ("*" in caps) or (code.strip().upper() in caps)
