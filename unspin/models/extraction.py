from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ExtractionStatus(str, Enum):
    FULL = "full"
    LIMITED = "limited"
    ERROR = "error"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExtractionMethod(str, Enum):
    """Strategy that produced the final text."""

    DIRECT_FETCH = "direct_fetch"
    DOMAIN_ADAPTER = "domain_adapter"
    AMP = "amp"
    CANONICAL = "canonical"
    JSON_LD = "json_ld"
    OPEN_GRAPH = "open_graph"
    OPEN_GRAPH_PARTIAL = "open_graph_partial"
    PARTIAL_BODY = "partial_body"
    ROBOTS_BLOCKED = "robots_blocked"
    TERMINAL_FALLBACK = "terminal_fallback"
    ERROR_FALLBACK = "error_fallback"

    @property
    def tier(self) -> int:
        return _METHOD_TIERS[self]


_METHOD_TIERS = {
    ExtractionMethod.DIRECT_FETCH: 1,
    ExtractionMethod.DOMAIN_ADAPTER: 1,
    ExtractionMethod.AMP: 2,
    ExtractionMethod.CANONICAL: 2,
    ExtractionMethod.JSON_LD: 2,
    ExtractionMethod.OPEN_GRAPH: 3,
    ExtractionMethod.PARTIAL_BODY: 3,
    ExtractionMethod.OPEN_GRAPH_PARTIAL: 4,
    ExtractionMethod.ROBOTS_BLOCKED: 4,
    ExtractionMethod.TERMINAL_FALLBACK: 4,
    ExtractionMethod.ERROR_FALLBACK: 4,
}


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    url: str
    site: str
    title: str
    byline: Optional[str]
    text: str
    read_time_minutes: int
    method: ExtractionMethod
    confidence: Confidence
    errors: tuple[str, ...] = ()
    published_at: Optional[str] = None
    final_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("ExtractionResult.text must be non-empty")

    @property
    def tier(self) -> int:
        return self.method.tier

    def to_dict(self) -> dict[str, Any]:
        """Render the record with the field names the caller expects."""
        return {
            "status": self.status.value,
            "url": self.url,
            "site": self.site,
            "title": self.title,
            "byline": self.byline,
            "text": self.text,
            "readTimeMinutes": self.read_time_minutes,
            "method": self.method.value,
            "confidence": self.confidence.value,
            "errors": list(self.errors),
            "publishedAt": self.published_at,
            "finalUrl": self.final_url or self.url,
        }


@dataclass(frozen=True)
class ArticleMetadata:
    title: str
    byline: Optional[str]
    description: str
    site: str
    published_at: Optional[str] = None


@dataclass(frozen=True)
class FetchAttempt:
    url: str
    headers: dict[str, str]
    timeout_seconds: float
    attempt_number: int


@dataclass(frozen=True)
class FetchResult:
    html: str
    final_url: str
    status_code: int
    encoding: str
    attempts: int = 1
    elapsed_ms: int = 0


@dataclass(frozen=True)
class CandidateParagraph:
    text: str
    score: float
    link_density: float = 0.0


@dataclass
class DomainPolicy:
    """Per-origin bookkeeping shared by the rate limiter and robots gate."""

    origin: str
    window_started_at: float = 0.0
    request_count: int = 0
    robots_rules: Any = None
    robots_checked_at: Optional[float] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    robots_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def snapshot(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "window_started_at": self.window_started_at,
            "request_count": self.request_count,
            "robots_cached": self.robots_rules is not None,
            "robots_checked_at": self.robots_checked_at,
        }
