import logging
import random
import re
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

import requests
from bs4.dammit import EncodingDetector
from requests.adapters import HTTPAdapter

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import FetchAttempt, FetchResult
from unspin.services.exceptions import FetchTimeout, HttpError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"
CHUNK_SIZE = 16 * 1024
_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)

SleepFn = Callable[[float], None]

_session_lock = threading.Lock()
_session: requests.Session | None = None


def _is_transient_status(status_code: int) -> bool:
    return 500 <= status_code < 600


def _build_session(max_redirects: int) -> requests.Session:
    sess = requests.Session()
    sess.max_redirects = max_redirects
    # Retries are driven by fetch_with_resilience, not by urllib3.
    adapter = HTTPAdapter(max_retries=0, pool_connections=16, pool_maxsize=32)
    sess.mount("https://", adapter)
    sess.mount("http://", adapter)
    return sess


def _get_session(settings: ExtractionSettings) -> requests.Session:
    global _session
    if _session is not None:
        return _session
    with _session_lock:
        if _session is not None:
            return _session
        _session = _build_session(settings.max_redirects)
    return _session


def build_headers(
    settings: ExtractionSettings, rng: Optional[random.Random] = None
) -> dict[str, str]:
    chooser = rng or random
    return {
        "User-Agent": chooser.choice(settings.user_agents),
        "Accept": settings.accept_header,
        "Accept-Language": (
            chooser.choice(settings.accept_language_options)
            if settings.accept_language_options
            else "en-US,en;q=0.9"
        ),
        "Cache-Control": "no-cache",
    }


def _usable_encoding(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    candidate = name.strip().strip("\"'").lower()
    try:
        b"".decode(candidate)
    except LookupError:
        return None
    return candidate


def resolve_charset(content_type: Optional[str], body: bytes) -> str:
    """Charset from the Content-Type header, else the document, else UTF-8."""
    match = _CHARSET_RE.search(content_type or "")
    from_header = _usable_encoding(match.group(1)) if match else None
    if from_header:
        return from_header

    declared = EncodingDetector.find_declared_encoding(
        body[:4096], is_html=True, search_entire_document=False
    )
    from_document = _usable_encoding(declared)
    if from_document:
        return from_document
    return DEFAULT_ENCODING


def decode_body(body: bytes, content_type: Optional[str]) -> tuple[str, str]:
    encoding = resolve_charset(content_type, body)
    return body.decode(encoding, errors="replace"), encoding


def _read_body(
    response: requests.Response,
    url: str,
    *,
    deadline: float,
    max_bytes: int,
    clock: Callable[[], float],
) -> bytes:
    """Read a streamed body, bounded by wall-clock deadline and size."""
    chunks: list[bytes] = []
    received = 0
    try:
        declared = response.headers.get("Content-Length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            raise HttpError(
                f"Response body of {declared} bytes exceeds {max_bytes}",
                url=url,
                status_code=response.status_code,
            )
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            received += len(chunk)
            if received > max_bytes:
                raise HttpError(
                    f"Response body exceeds {max_bytes} bytes",
                    url=url,
                    status_code=response.status_code,
                )
            chunks.append(chunk)
            if clock() > deadline:
                raise FetchTimeout(
                    f"Body not received within the request deadline ({received} bytes read)",
                    url=url,
                )
    except requests.RequestException as exc:
        raise NetworkError(f"Failed to read response body: {exc}", url=url) from exc
    finally:
        response.close()
    return b"".join(chunks)


def _retry_wait_seconds(
    response: Optional[requests.Response],
    attempt: int,
    settings: ExtractionSettings,
    rng: Optional[random.Random],
) -> float:
    retry_after = response.headers.get("Retry-After") if response is not None else None
    if retry_after:
        retry_after = retry_after.strip()
        if retry_after.isdigit():
            return min(float(retry_after), settings.max_backoff_seconds)
        try:
            parsed = parsedate_to_datetime(retry_after)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            delta = (parsed - datetime.now(timezone.utc)).total_seconds()
            if delta > 0:
                return min(delta, settings.max_backoff_seconds)
        except (TypeError, ValueError):
            logger.debug("Failed to parse Retry-After header: %s", retry_after)

    chooser = rng or random
    base = chooser.uniform(settings.backoff_min_seconds, settings.backoff_max_seconds)
    return min(base * (2 ** (attempt - 1)), settings.max_backoff_seconds)


def fetch_with_resilience(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    settings: Optional[ExtractionSettings] = None,
    sleep: SleepFn = time.sleep,
    rng: Optional[random.Random] = None,
    max_retries: Optional[int] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FetchResult:
    """GET ``url`` with browser-like headers, bounded retries and charset decoding.

    Timeouts, connection failures and 5xx responses are retried with jittered
    exponential backoff; any other 4xx/5xx outcome raises immediately.
    The body is streamed and must arrive within the request timeout and
    under ``max_response_bytes``.

    Raises:
        FetchTimeout: every attempt timed out.
        NetworkError: connection-level failure after the last attempt.
        HttpError: non-success status (after retries for 5xx).
    """
    settings = settings or get_settings()
    session = session or _get_session(settings)
    timeout = timeout or settings.request_timeout_seconds
    retries = settings.fetch_max_retries if max_retries is None else max_retries
    started = time.perf_counter()
    attempt = 0

    while True:
        attempt += 1
        fetch_attempt = FetchAttempt(
            url=url,
            headers=build_headers(settings, rng),
            timeout_seconds=timeout,
            attempt_number=attempt,
        )
        try:
            logger.debug("Fetching %s (attempt %s)", url, attempt)
            deadline = clock() + fetch_attempt.timeout_seconds
            response = session.get(
                fetch_attempt.url,
                headers=fetch_attempt.headers,
                timeout=fetch_attempt.timeout_seconds,
                allow_redirects=True,
                stream=True,
            )
        except requests.Timeout as exc:
            logger.warning(
                "fetch.timeout",
                extra={"url": url, "attempt": attempt, "error": str(exc)},
            )
            if attempt > retries:
                raise FetchTimeout(
                    f"Timed out after {attempt} attempt(s): {exc}", url=url
                ) from exc
            failure_response = None
        except requests.TooManyRedirects as exc:
            raise NetworkError(f"Too many redirects: {exc}", url=url) from exc
        except requests.RequestException as exc:
            logger.warning(
                "fetch.request_exception",
                extra={"url": url, "attempt": attempt, "error": str(exc)},
            )
            if attempt > retries:
                raise NetworkError(f"Failed to fetch URL: {exc}", url=url) from exc
            failure_response = None
        else:
            if _is_transient_status(response.status_code):
                logger.warning(
                    "fetch.retryable_status",
                    extra={
                        "url": url,
                        "status": response.status_code,
                        "attempt": attempt,
                    },
                )
                response.close()
                if attempt > retries:
                    raise HttpError(
                        f"HTTP {response.status_code}",
                        url=url,
                        status_code=response.status_code,
                    )
                failure_response = response
            elif response.status_code >= 400:
                response.close()
                logger.error(
                    "Non-retriable status %s for %s", response.status_code, url
                )
                raise HttpError(
                    f"HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
            else:
                body = _read_body(
                    response,
                    url,
                    deadline=deadline,
                    max_bytes=settings.max_response_bytes,
                    clock=clock,
                )
                html, encoding = decode_body(body, response.headers.get("Content-Type"))
                elapsed_ms = int((time.perf_counter() - started) * 1000)
                result = FetchResult(
                    html=html,
                    final_url=response.url or url,
                    status_code=response.status_code,
                    encoding=encoding,
                    attempts=attempt,
                    elapsed_ms=elapsed_ms,
                )
                logger.debug(
                    "fetch.success",
                    extra={
                        "url": result.final_url,
                        "status": result.status_code,
                        "attempts": attempt,
                        "elapsed_ms": elapsed_ms,
                    },
                )
                return result

        wait = _retry_wait_seconds(failure_response, attempt, settings, rng)
        logger.debug(
            "fetch.retry_sleep",
            extra={"url": url, "attempt": attempt, "sleep_seconds": wait},
        )
        sleep(wait)
