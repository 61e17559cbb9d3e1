from __future__ import annotations

import json
import logging

import pytest

from listingdesk.logging_config import JsonFormatter, _sanitize_obj, _sanitize_str, setup_logging


def test_sanitize_authorization_bearer_masked() -> None:
    s = "Authorization: Bearer ABCDEFGHIJKLMNOP"
    out = _sanitize_str(s)
    assert "Bearer [REDACTED]" in out


def test_sanitize_apikey_header_masked() -> None:
    s = "headers={'apikey: sb-secret-123'}"
    out = _sanitize_str(s)
    assert "sb-secret-123" not in out


def test_sanitize_signed_url_token_masked() -> None:
    s = "https://store.example.com/storage/v1/object/sign/business-assets/receipts/a-1.png?token=eyJhbGci.xyz"
    out = _sanitize_str(s)
    assert "?token=[REDACTED]" in out
    assert "receipts/a-1.png" in out


def test_sanitize_owner_email_masked() -> None:
    out = _sanitize_str("owner is baker@example.com")
    assert out == "owner is b***@example.com"


def test_sanitize_nested_objects() -> None:
    obj = {
        "authorization": "Authorization: Bearer VERYSECRETTOKEN",
        "nested": [
            {"storage_api_key": "sk-abcdef123456"},
            {"receipt_url": "https://p/object/sign/b/r.png?token=T0KENXYZ"},
        ],
    }
    out = _sanitize_obj(obj)
    assert out["nested"][0]["storage_api_key"] == "***3456"
    assert "token=[REDACTED]" in out["nested"][1]["receipt_url"]
    assert "[REDACTED]" in out["authorization"]


def test_json_formatter_merges_extra() -> None:
    record = logging.LogRecord("listingdesk.test", logging.INFO, __file__, 1, "payment confirmed", None, None)
    record.extra = {"cid": "abc", "listing_id": "l1", "owner_email": "zed@example.com"}
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "payment confirmed"
    assert payload["listing_id"] == "l1"
    assert payload["cid"] == "abc"
    assert payload["owner_email"] == "z***@example.com"


def test_httpx_logger_level_warning_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("LOG_TO_FILE", "0")
    setup_logging()
    logger = logging.getLogger("httpx")
    assert logger.level == logging.WARNING or logger.getEffectiveLevel() == logging.WARNING
