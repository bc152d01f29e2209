"""structlog setup shared by the API, the CLI tool and library callers.

Pipeline modules log through ``structlog.get_logger`` with ``event=`` and
``operation=`` keywords; the fetch client logs through stdlib ``logging``
with ``extra=``. Both end up in one handler rendered as JSON lines (or a
console format when ``LOG_FORMAT=plain``).
"""

import logging
import sys
from typing import Any, Dict

import structlog

from unspin.config import AppSettings

_LOGGING_INITIALISED = False

# Every record carries these keys so extraction logs can be grouped by URL
# and request without per-call bookkeeping.
EXTRACTION_FIELDS = ("event", "operation", "correlation_id", "url", "domain")

_QUIET_PATHS = ("/healthz", "/favicon.ico")


def _ensure_extraction_fields(
    _: logging.Logger, __: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    if "event" not in event_dict:
        event_dict["event"] = event_dict.get("message") or event_dict.get(
            "logger", "log.event"
        )
    for key in EXTRACTION_FIELDS:
        event_dict.setdefault(key, None)
    return event_dict


def _lift_stdlib_extra(
    _: logging.Logger, __: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Copy ``extra=`` fields of stdlib records (url, attempt, ...) onto the event."""
    record = event_dict.get("_record")
    if record is None:
        return event_dict
    for key in ("url", "attempt", "status", "error", "elapsed_ms", "sleep_seconds"):
        if key not in event_dict and hasattr(record, key):
            event_dict[key] = getattr(record, key)
    return event_dict


class _QuietProbeFilter(logging.Filter):
    """Drop werkzeug access lines for liveness probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(f" {path} " in message for path in _QUIET_PATHS)


def _build_pre_chain():
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        _lift_stdlib_extra,
        _ensure_extraction_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _build_renderer(log_format: str):
    if log_format == "plain":
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer()


def setup_logging(force: bool = False):
    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED and not force:
        return

    app_settings = AppSettings()
    log_format = app_settings.LOG_FORMAT.strip().lower()
    if log_format not in {"json", "plain"}:
        log_format = "json"

    pre_chain = _build_pre_chain()
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_build_renderer(log_format),
        foreign_pre_chain=pre_chain,
        fmt="%(message)s",
    )

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(app_settings.LOG_LEVEL.upper())
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    werkzeug_logger = logging.getLogger("werkzeug")
    werkzeug_logger.setLevel(logging.INFO)
    if not any(isinstance(f, _QuietProbeFilter) for f in werkzeug_logger.filters):
        werkzeug_logger.addFilter(_QuietProbeFilter())
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    _LOGGING_INITIALISED = True
