"""Per-request and per-job context utilities."""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Return the id bound to the current request or scheduler run, if any."""
    return request_id_ctx_var.get()


@contextmanager
def bind_request_id(request_id: str) -> Iterator[str]:
    """Bind `request_id` for log records and traces emitted inside the block."""
    token = request_id_ctx_var.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx_var.reset(token)
