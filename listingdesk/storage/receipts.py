from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import httpx

from listingdesk.config import settings

logger = logging.getLogger(__name__)

RECEIPTS_PREFIX = "receipts"


@dataclass(frozen=True)
class ReceiptFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        suffix = Path(self.filename or "").suffix.lstrip(".").lower()
        if suffix:
            return suffix
        guessed = mimetypes.guess_extension(self.content_type or "") or ""
        return guessed.lstrip(".") or "bin"


def receipt_key(listing_id: str, receipt: ReceiptFile, *, now_ms: Optional[int] = None) -> str:
    """Object key unique per listing and upload instant."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{RECEIPTS_PREFIX}/{listing_id}-{stamp}.{receipt.extension}"


class ReceiptStorage(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return a publicly resolvable reference."""


class LocalReceiptStorage:
    def __init__(self, base_dir: str, public_base_url: str = "") -> None:
        self.base = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _write(self, key: str, data: bytes) -> Path:
        path = self.base / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = await asyncio.to_thread(self._write, key, data)
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return path.resolve().as_uri()


class HttpReceiptStorage:
    """Object-storage REST backend (Supabase Storage compatible paths)."""

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))

    def _headers(self, content_type: str) -> dict[str, str]:
        headers = {"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{key}"
        # Single attempt: a failed upload aborts the submission and the owner retries it
        resp = await self._client.post(url, content=data, headers=self._headers(content_type))
        resp.raise_for_status()
        logger.info("receipt uploaded", extra={"extra": {"key": key, "bytes": len(data)}})
        return self.public_url(key)

    async def aclose(self) -> None:
        await self._client.aclose()


_storage: Optional[ReceiptStorage] = None


def get_storage() -> ReceiptStorage:
    """Return the process-wide receipt storage selected by RECEIPT_STORAGE."""
    global _storage
    if _storage is not None:
        return _storage
    backend = (settings.receipt_storage or "local").strip().lower()
    if backend == "http":
        if not settings.storage_base_url:
            raise RuntimeError("STORAGE_BASE_URL is required when RECEIPT_STORAGE=http")
        _storage = HttpReceiptStorage(settings.storage_base_url, settings.storage_bucket, settings.storage_api_key)
    elif backend == "local":
        _storage = LocalReceiptStorage(settings.receipt_local_dir, settings.receipt_public_base_url)
    else:
        raise RuntimeError(f"Unsupported RECEIPT_STORAGE backend: {backend}")
    return _storage


async def aclose_storage() -> None:
    global _storage
    if isinstance(_storage, HttpReceiptStorage):
        await _storage.aclose()
    _storage = None
