"""Logging context for extractions.

A correlation id ties together every event emitted while serving one API
request (or one direct ``extract_article`` call); the article URL and its
domain are bound for the duration of a single extraction.
"""

from __future__ import annotations

from contextlib import contextmanager, suppress
from typing import Iterator, Optional
from uuid import uuid4

import structlog
from flask import g

EXTRACTION_KEYS = ("url", "domain")


def ensure_correlation_id(value: Optional[str] = None) -> str:
    """Bind ``value``, the id already in scope, or a fresh one."""
    bound = structlog.contextvars.get_contextvars().get("correlation_id")
    with suppress(RuntimeError):
        bound = bound or g.get("correlation_id")
    correlation_id = value or bound or uuid4().hex
    with suppress(RuntimeError):
        g.correlation_id = correlation_id
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    return correlation_id


@contextmanager
def extraction_context(url: str, domain: str) -> Iterator[None]:
    structlog.contextvars.bind_contextvars(url=url, domain=domain)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*EXTRACTION_KEYS)


def clear_correlation_context() -> None:
    structlog.contextvars.clear_contextvars()
    with suppress(RuntimeError):
        g.pop("correlation_id", None)
