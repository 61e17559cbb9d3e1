from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator

# Task-local correlation id, stamped on every structured log line of one user action
_cid = contextvars.ContextVar("correlation_id", default="")


def set_correlation_id(value: str | None = None) -> str:
    cid = value or uuid.uuid4().hex
    _cid.set(cid)
    return cid


def get_correlation_id() -> str:
    return _cid.get("")


@contextmanager
def correlation_scope(value: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the block, restoring the previous one after."""
    token = _cid.set(value or uuid.uuid4().hex)
    try:
        yield _cid.get()
    finally:
        _cid.reset(token)


def log_extra(**fields: Any) -> Dict[str, Any]:
    """Build the `extra=` payload understood by JsonFormatter, including the current cid."""
    payload: Dict[str, Any] = {"cid": get_correlation_id()}
    payload.update(fields)
    return {"extra": payload}
