from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


def _parse_csv_ints(raw: str) -> List[int]:
    ids: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            pass
    return ids


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    app_env: str = os.getenv("APP_ENV", "production")
    tz: str = os.getenv("TZ", "UTC")

    db_url: str = os.getenv("DB_URL", "")

    telegram_bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    telegram_admin_ids: List[int] = field(default_factory=lambda: _parse_csv_ints(os.getenv("TELEGRAM_ADMIN_IDS", "")))
    log_chat_id: str = os.getenv("LOG_CHAT_ID", "")

    # Receipt evidence storage: "local" writes to disk, "http" talks to an object-storage API
    receipt_storage: str = os.getenv("RECEIPT_STORAGE", "local")
    receipt_local_dir: str = os.getenv("RECEIPT_LOCAL_DIR", os.path.join(os.getcwd(), "media"))
    receipt_public_base_url: str = os.getenv("RECEIPT_PUBLIC_BASE_URL", "")
    storage_base_url: str = os.getenv("STORAGE_BASE_URL", "")
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "business-assets")
    storage_api_key: str = os.getenv("STORAGE_API_KEY", "")
    receipt_max_bytes: int = int(os.getenv("RECEIPT_MAX_BYTES", str(1024 * 1024)))
    receipt_intent_ttl_seconds: int = int(os.getenv("RECEIPT_INTENT_TTL_SECONDS", "900"))

    confirm_requires_evidence: bool = _env_flag("CONFIRM_REQUIRES_EVIDENCE")


settings = Settings()
