import logging

import structlog

from unspin.utils import logging_config
from unspin.utils.correlation import ensure_correlation_id, extraction_context


def _record(message, **extra):
    record = logging.LogRecord("werkzeug", logging.INFO, __file__, 1, message, None, None)
    record.__dict__.update(extra)
    return record


def test_healthz_access_lines_are_filtered():
    quiet = logging_config._QuietProbeFilter()

    assert not quiet.filter(_record('127.0.0.1 - - "GET /healthz HTTP/1.1" 200 -'))
    assert quiet.filter(_record('127.0.0.1 - - "GET /api/extract?url=x HTTP/1.1" 200 -'))


def test_events_always_carry_extraction_fields():
    event = logging_config._ensure_extraction_fields(None, "info", {"event": "fetched"})

    for key in logging_config.EXTRACTION_FIELDS:
        assert key in event
    assert event["event"] == "fetched"


def test_stdlib_extra_fields_are_lifted():
    record = _record("fetch.timeout", url="https://example.com/a", attempt=2)

    event = logging_config._lift_stdlib_extra(
        None, "warning", {"event": "fetch.timeout", "_record": record}
    )

    assert event["url"] == "https://example.com/a"
    assert event["attempt"] == 2


def test_extraction_context_is_scoped():
    correlation_id = ensure_correlation_id("req-1")

    with extraction_context(url="https://example.com/a", domain="example.com"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["url"] == "https://example.com/a"
        assert bound["correlation_id"] == correlation_id == "req-1"

    assert "url" not in structlog.contextvars.get_contextvars()
    assert ensure_correlation_id() == "req-1"
