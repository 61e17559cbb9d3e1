from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from listingdesk.config import settings
from listingdesk.db import models  # noqa: F401  # register tables on Base.metadata
from listingdesk.db import session as db_session
from listingdesk.db.base import Base
from listingdesk.db.models import Listing
from listingdesk.services.notifications import Notice
from listingdesk.storage.receipts import ReceiptFile


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: List[Notice] = []

    async def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def last(self) -> Notice:
        return self.notices[-1]


class FakeStorage:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: List[tuple[str, bytes, str]] = []

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail:
            raise httpx.ConnectError("storage unreachable")
        self.uploads.append((key, data, content_type))
        return f"https://files.test/{key}"


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "db_url", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db_session.dispose_engine()
    engine = db_session.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await db_session.dispose_engine()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def png_receipt() -> ReceiptFile:
    return ReceiptFile(filename="receipt.png", content_type="image/png", data=b"\x89PNG\r\n\x1a\nfake")


async def make_listing(**fields: Any) -> str:
    values = {"name": "Corner Bakery", "owner_ref": "1001", "owner_email": "baker@example.com"}
    values.update(fields)
    async with db_session.session_scope() as session:
        listing = Listing(**values)
        session.add(listing)
        await session.commit()
        return listing.id


async def load_listing(listing_id: str) -> Listing | None:
    async with db_session.session_scope() as session:
        return await session.get(Listing, listing_id)


PAID_AT = datetime(2024, 1, 1, 0, 0, 0)


def _db_down() -> OperationalError:
    return OperationalError("INSERT INTO audit_logs", {}, Exception("database is locked"))


async def broken_audit(*args: Any, **kwargs: Any) -> None:
    raise _db_down()


@asynccontextmanager
async def broken_session_scope():
    raise _db_down()
    yield
