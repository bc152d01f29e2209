"""Tiered article extraction.

Tiers run strictly in order and the first one that clears its length
threshold wins:

1. direct fetch of the article, read by a domain adapter or the generic
   readable-text extractor;
2. alternate renditions discovered in that document (AMP, canonical URL,
   JSON-LD ``articleBody``);
3. OpenGraph description plus the first visible paragraphs, or the longest
   below-threshold article body from tiers 1 and 2 when that is longer;
4. a terminal fallback that always yields non-empty text.

Once the URL has been validated, nothing raises: every failure is recorded
in ``ExtractionResult.errors`` and the caller always gets a result.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional

import structlog

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import (
    ArticleMetadata,
    ExtractionMethod,
    ExtractionResult,
    FetchResult,
)
from unspin.services import confidence
from unspin.services.adapters import AdapterRegistry
from unspin.services.alternates import (
    extract_json_ld,
    extract_open_graph_content,
    find_amp_url,
    find_canonical_url,
)
from unspin.services.exceptions import (
    AllTiersExhausted,
    ExtractionError,
    HttpError,
    NetworkError,
    RateLimited,
    RobotsDisallowed,
)
from unspin.services.fetch import fetch_with_resilience
from unspin.services.metadata import UNTITLED, extract_metadata
from unspin.services.readability import extract_readable_text
from unspin.services.robots import RobotsGate
from unspin.utils.correlation import ensure_correlation_id, extraction_context
from unspin.utils.rate_limits import DomainPolicyStore, DomainRateLimiter
from unspin.utils.text_cleaner import calculate_reading_time
from unspin.utils.urls import (
    normalise_domain,
    origin_of,
    same_document,
    validate_article_url,
)

logger = structlog.get_logger(__name__)

Fetcher = Callable[[str], FetchResult]

ROBOTS_BLOCKED_TITLE = "Access Restricted"


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


@dataclass
class _Outcome:
    text: str
    method: ExtractionMethod
    final_url: str


@dataclass
class _ExtractionState:
    url: str
    site: str
    html: Optional[str] = None
    final_url: Optional[str] = None
    metadata: Optional[ArticleMetadata] = None
    initial_fetch_failed: bool = False
    partial_text: str = ""
    best_body: Optional[_Outcome] = None
    errors: list[str] = field(default_factory=list)

    @property
    def base_url(self) -> str:
        return self.final_url or self.url

    def keep_partial(self, text: str, final_url: str) -> None:
        """Remember the longest below-threshold article body seen so far."""
        if text.strip() and (self.best_body is None or len(text) > len(self.best_body.text)):
            self.best_body = _Outcome(text, ExtractionMethod.PARTIAL_BODY, final_url)


class ExtractionPipeline:
    """Runs the extraction tiers for one URL at a time.

    Instances are safe to share between threads: the only mutable state is
    the ``DomainPolicyStore`` behind the robots gate and the rate limiter.
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        fetcher: Optional[Fetcher] = None,
        policy_store: Optional[DomainPolicyStore] = None,
        robots_gate: Optional[RobotsGate] = None,
        rate_limiter: Optional[DomainRateLimiter] = None,
        adapters: Optional[AdapterRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self.policy_store = policy_store or DomainPolicyStore(
            ttl_seconds=self.settings.domain_policy_ttl_seconds,
            max_entries=self.settings.domain_policy_max_entries,
            clock=clock,
        )
        self.fetcher = fetcher or partial(fetch_with_resilience, settings=self.settings)
        # An injected fetcher serves robots.txt too so callers can stub all I/O at once.
        self.robots_gate = robots_gate or RobotsGate(
            self.policy_store, settings=self.settings, fetcher=fetcher, clock=clock
        )
        self.rate_limiter = rate_limiter or DomainRateLimiter(
            self.policy_store,
            max_requests=self.settings.rate_limit_max_requests,
            window_seconds=self.settings.rate_limit_window_seconds,
            clock=clock,
        )
        self.adapters = adapters or AdapterRegistry(settings=self.settings)

    def extract(self, url: str) -> ExtractionResult:
        """Extract ``url``; raises ``InvalidInput`` and nothing else."""
        url = validate_article_url(url)
        site = normalise_domain(url)
        ensure_correlation_id()
        started = time.perf_counter()
        with extraction_context(url=url, domain=site):
            result = self._run(_ExtractionState(url=url, site=site))

        logger.info(
            event="extraction_complete",
            operation="orchestrator.extract",
            url=url,
            domain=site,
            status=result.status.value,
            method=result.method.value,
            tier=result.tier,
            confidence=result.confidence.value,
            chars=len(result.text),
            errors=len(result.errors),
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return result

    # -- tiers -----------------------------------------------------------

    def _run(self, state: _ExtractionState) -> ExtractionResult:
        if not self._robots_allow(state.url, state):
            return self._robots_blocked(state)

        self._initial_fetch(state)

        tiers = (
            ("direct", self._tier_direct),
            ("alternates", self._tier_alternates),
            ("open_graph", self._tier_open_graph),
        )
        for name, tier in tiers:
            try:
                outcome = tier(state)
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    event="extraction_tier_error",
                    operation="orchestrator.tier",
                    tier=name,
                    url=state.url,
                    status="error",
                    error=str(exc),
                )
                state.errors.append(f"{name}: {_describe(exc)}")
                continue
            if outcome is not None:
                return self._build(state, outcome)

        return self._build(state, self._terminal(state))

    def _initial_fetch(self, state: _ExtractionState) -> None:
        origin = origin_of(state.url)
        if not self.rate_limiter.try_acquire(origin):
            retry_after = self.rate_limiter.retry_after(origin)
            state.errors.append(
                _describe(
                    RateLimited(
                        f"Request budget for {origin} exhausted; retry in {retry_after:.0f}s",
                        url=state.url,
                    )
                )
            )
            logger.warning(
                event="rate_limited",
                operation="orchestrator.fetch",
                url=state.url,
                status="rate_limited",
                retry_after=retry_after,
            )
            return

        try:
            fetched = self.fetcher(state.url)
        except NetworkError as exc:
            state.initial_fetch_failed = True
            state.errors.append(_describe(exc))
            logger.warning(
                event="initial_fetch_failed",
                operation="orchestrator.fetch",
                url=state.url,
                status="network_error",
                error=str(exc),
            )
            return
        except ExtractionError as exc:
            state.errors.append(_describe(exc))
            logger.warning(
                event="initial_fetch_failed",
                operation="orchestrator.fetch",
                url=state.url,
                status=(
                    f"http_{exc.status_code}" if isinstance(exc, HttpError) else "error"
                ),
                error=str(exc),
            )
            return
        except Exception as exc:  # noqa: BLE001
            state.initial_fetch_failed = True
            state.errors.append(_describe(exc))
            logger.exception(
                event="initial_fetch_failed",
                operation="orchestrator.fetch",
                url=state.url,
                status="error",
                error=str(exc),
            )
            return

        state.html = fetched.html
        state.final_url = fetched.final_url or state.url
        try:
            state.metadata = extract_metadata(fetched.html, state.final_url)
        except Exception as exc:  # noqa: BLE001
            state.errors.append(f"metadata: {_describe(exc)}")
            logger.exception(
                event="metadata_failed",
                operation="orchestrator.metadata",
                url=state.url,
                status="error",
                error=str(exc),
            )

    def _tier_direct(self, state: _ExtractionState) -> Optional[_Outcome]:
        if not state.html:
            return None
        extracted = self.adapters.adapter_for(state.site)(state.html)
        threshold = self.settings.direct_min_chars
        if len(extracted.text) >= threshold:
            method = (
                ExtractionMethod.DOMAIN_ADAPTER
                if extracted.used_adapter
                else ExtractionMethod.DIRECT_FETCH
            )
            return _Outcome(extracted.text, method, state.base_url)
        state.keep_partial(extracted.text, state.base_url)
        state.errors.append(
            f"InsufficientContent: direct fetch yielded {len(extracted.text)} "
            f"characters (needs {threshold})"
        )
        return None

    def _tier_alternates(self, state: _ExtractionState) -> Optional[_Outcome]:
        if not state.html:
            return None
        threshold = self.settings.alternate_min_chars

        amp_candidates = find_amp_url(state.html, state.base_url)
        for amp_url in amp_candidates[: self.settings.amp_probe_limit]:
            fetched = self._guarded_fetch(amp_url, state)
            if fetched is None:
                continue
            text = extract_readable_text(fetched.html, settings=self.settings)
            if len(text) >= threshold:
                return _Outcome(text, ExtractionMethod.AMP, fetched.final_url or amp_url)
            state.keep_partial(text, fetched.final_url or amp_url)
            state.errors.append(
                f"InsufficientContent: AMP page {amp_url} yielded {len(text)} characters"
            )

        canonical_url = find_canonical_url(state.html, state.base_url)
        if canonical_url and not same_document(canonical_url, state.url):
            fetched = self._guarded_fetch(canonical_url, state)
            if fetched is not None:
                reader = self.adapters.adapter_for(normalise_domain(canonical_url))
                text = reader(fetched.html).text
                if len(text) >= threshold:
                    return _Outcome(
                        text,
                        ExtractionMethod.CANONICAL,
                        fetched.final_url or canonical_url,
                    )
                state.keep_partial(text, fetched.final_url or canonical_url)
                state.errors.append(
                    f"InsufficientContent: canonical page {canonical_url} yielded "
                    f"{len(text)} characters"
                )

        body = extract_json_ld(state.html) or ""
        if len(body) >= threshold:
            return _Outcome(body, ExtractionMethod.JSON_LD, state.base_url)
        state.keep_partial(body, state.base_url)
        if body:
            state.errors.append(
                f"InsufficientContent: JSON-LD body yielded {len(body)} characters"
            )
        return None

    def _tier_open_graph(self, state: _ExtractionState) -> Optional[_Outcome]:
        if not state.html:
            return None
        text = extract_open_graph_content(
            state.html, max_paragraphs=self.settings.open_graph_max_paragraphs
        )
        best = state.best_body
        if (
            best is not None
            and len(best.text) > len(text)
            and len(best.text) >= self.settings.open_graph_min_chars
        ):
            return best
        if len(text) >= self.settings.open_graph_min_chars:
            return _Outcome(text, ExtractionMethod.OPEN_GRAPH, state.base_url)
        state.partial_text = text
        if text:
            state.errors.append(
                f"InsufficientContent: OpenGraph content yielded {len(text)} characters"
            )
        return None

    def _terminal(self, state: _ExtractionState) -> _Outcome:
        state.errors.append(
            _describe(AllTiersExhausted("No tier produced enough text", url=state.url))
        )
        best = state.best_body
        if best is not None and len(best.text) > len(state.partial_text):
            return best
        if state.partial_text:
            return _Outcome(
                state.partial_text, ExtractionMethod.OPEN_GRAPH_PARTIAL, state.base_url
            )

        if state.initial_fetch_failed:
            message = (
                f"We could not reach {state.site} to retrieve this article. The site "
                "may be temporarily unavailable or blocking automated access. "
                f"You can try opening it directly: {state.url}"
            )
            return _Outcome(message, ExtractionMethod.ERROR_FALLBACK, state.url)

        message = (
            f"The full text of this article from {state.site} could not be extracted. "
            "The publisher likely uses a paywall or anti-bot protection that limits "
            f"automated access. You can read it directly at {state.url}"
        )
        return _Outcome(message, ExtractionMethod.TERMINAL_FALLBACK, state.base_url)

    # -- gates -----------------------------------------------------------

    def _robots_allow(self, url: str, state: _ExtractionState) -> bool:
        try:
            allowed = self.robots_gate.is_allowed(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                event="robots_check_failed",
                operation="orchestrator.robots",
                url=url,
                status="fail_open",
                error=str(exc),
            )
            return True
        if not allowed:
            state.errors.append(
                _describe(RobotsDisallowed(f"robots.txt disallows {url}", url=url))
            )
        return allowed

    def _guarded_fetch(
        self, url: str, state: _ExtractionState
    ) -> Optional[FetchResult]:
        """Fetch a secondary URL through the same robots and rate-limit gates."""
        if not self._robots_allow(url, state):
            return None
        origin = origin_of(url)
        if not self.rate_limiter.try_acquire(origin):
            state.errors.append(
                _describe(
                    RateLimited(f"Request budget for {origin} exhausted", url=url)
                )
            )
            return None
        try:
            return self.fetcher(url)
        except Exception as exc:  # noqa: BLE001
            state.errors.append(_describe(exc))
            logger.info(
                event="alternate_fetch_failed",
                operation="orchestrator.alternate",
                url=url,
                status="failed",
                error=str(exc),
            )
            return None

    # -- results ---------------------------------------------------------

    def _build(self, state: _ExtractionState, outcome: _Outcome) -> ExtractionResult:
        rating = confidence.score(
            outcome.method, len(outcome.text), settings=self.settings
        )
        status = confidence.resolve_status(
            outcome.method, rating, initial_fetch_failed=state.initial_fetch_failed
        )
        metadata = state.metadata
        return ExtractionResult(
            status=status,
            url=state.url,
            site=state.site,
            title=metadata.title if metadata else UNTITLED,
            byline=metadata.byline if metadata else None,
            text=outcome.text,
            read_time_minutes=calculate_reading_time(
                outcome.text, self.settings.words_per_minute
            ),
            method=outcome.method,
            confidence=rating,
            errors=tuple(state.errors),
            published_at=metadata.published_at if metadata else None,
            final_url=outcome.final_url,
        )

    def _robots_blocked(self, state: _ExtractionState) -> ExtractionResult:
        text = (
            f"{state.site} does not allow automated access to this page "
            "(robots.txt). Open the article in your browser to read it: "
            f"{state.url}"
        )
        method = ExtractionMethod.ROBOTS_BLOCKED
        rating = confidence.score(method, len(text), settings=self.settings)
        return ExtractionResult(
            status=confidence.resolve_status(method, rating),
            url=state.url,
            site=state.site,
            title=ROBOTS_BLOCKED_TITLE,
            byline=None,
            text=text,
            read_time_minutes=1,
            method=method,
            confidence=rating,
            errors=tuple(state.errors),
        )


_default_pipeline: Optional[ExtractionPipeline] = None
_default_lock = threading.Lock()


def get_default_pipeline() -> ExtractionPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        with _default_lock:
            if _default_pipeline is None:
                _default_pipeline = ExtractionPipeline()
    return _default_pipeline


def reset_default_pipeline() -> None:
    global _default_pipeline
    with _default_lock:
        _default_pipeline = None


def extract_article(url: str) -> ExtractionResult:
    """Extract ``url`` with the process-wide default pipeline."""
    return get_default_pipeline().extract(url)
