import asyncio
import os
import sys

import httpx
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

# Healthcheck: validate ENV, Telegram token presence, DB connectivity (SELECT 1),
# and object-storage reachability when RECEIPT_STORAGE=http.
#
# Skip the storage probe with HEALTHCHECK_SKIP_STORAGE=1.

async def _check_db() -> bool:
    db_url = os.getenv("DB_URL", "")
    if not db_url:
        return False
    try:
        engine = create_async_engine(db_url, pool_pre_ping=True)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await engine.dispose()
        return True
    except Exception:
        return False


async def _check_storage() -> bool:
    if (os.getenv("RECEIPT_STORAGE", "local") or "local").strip().lower() != "http":
        return True
    base = (os.getenv("STORAGE_BASE_URL", "") or "").rstrip("/")
    if not base:
        return False
    api_key = os.getenv("STORAGE_API_KEY", "") or ""
    headers = {"Authorization": f"Bearer {api_key}", "apikey": api_key} if api_key else {}
    try:
        timeout = httpx.Timeout(12.0, connect=6.0, read=6.0)
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(f"{base}/storage/v1/bucket", headers=headers)
            # Any answer below 500 means the service is up; auth issues surface on upload
            return resp.status_code < 500
    except httpx.HTTPError:
        return False


def main() -> int:
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    if not token:
        print("missing TELEGRAM_BOT_TOKEN", file=sys.stderr)
        return 1

    ok_db = asyncio.run(_check_db())
    if not ok_db:
        print("db not ready", file=sys.stderr)
        return 1

    skip_storage = os.getenv("HEALTHCHECK_SKIP_STORAGE", "0").strip().lower() in {"1", "true", "yes", "on"}
    if not skip_storage and not asyncio.run(_check_storage()):
        print("storage not ready", file=sys.stderr)
        return 1

    print("ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
