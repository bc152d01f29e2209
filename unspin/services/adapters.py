from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import structlog

from unspin.config import ExtractionSettings, get_settings
from unspin.services.readability import extract_readable_text, strip_non_content
from unspin.utils.soup import initialise_soup
from unspin.utils.text_cleaner import collapse_whitespace

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AdapterResult:
    text: str
    adapter: Optional[str] = None

    @property
    def used_adapter(self) -> bool:
        return self.adapter is not None


AdapterFn = Callable[[str], AdapterResult]


def _domain_matches(domain: str, suffix: str) -> bool:
    return domain == suffix or domain.endswith("." + suffix)


@dataclass(frozen=True)
class DomainAdapter:
    """Site-specific paragraph selectors for a family of domains."""

    name: str
    domains: tuple[str, ...]
    selectors: tuple[str, ...]
    min_paragraph_chars: int = 20

    def predicate(self, domain: str) -> bool:
        return any(_domain_matches(domain, suffix) for suffix in self.domains)

    def extract(self, html: str) -> str:
        soup = strip_non_content(initialise_soup(html))
        paragraphs: list[str] = []
        seen: set[str] = set()
        for selector in self.selectors:
            for node in soup.select(selector):
                text = collapse_whitespace(node.get_text(" "))
                if len(text) < self.min_paragraph_chars or text in seen:
                    continue
                seen.add(text)
                paragraphs.append(text)
            if paragraphs:
                break
        return "\n\n".join(paragraphs)


DEFAULT_ADAPTERS: tuple[DomainAdapter, ...] = (
    DomainAdapter(
        "nytimes",
        ("nytimes.com",),
        ('section[name="articleBody"] p', "div.StoryBodyCompanionColumn p"),
    ),
    DomainAdapter(
        "washingtonpost",
        ("washingtonpost.com",),
        ('div[data-qa="article-body"] p', 'p[data-el="text"]'),
    ),
    DomainAdapter(
        "guardian",
        ("theguardian.com",),
        ('div[data-gu-name="body"] p', "div#maincontent p", "div.article-body-commercial-selector p"),
    ),
    DomainAdapter(
        "bbc",
        ("bbc.com", "bbc.co.uk"),
        ('[data-component="text-block"] p', "article p"),
    ),
    DomainAdapter(
        "reuters",
        ("reuters.com",),
        ('[data-testid^="paragraph-"]', 'div[class*="article-body"] p'),
    ),
    DomainAdapter(
        "apnews",
        ("apnews.com",),
        ("div.RichTextStoryBody p", 'div[class*="RichTextBody"] p'),
    ),
    DomainAdapter(
        "cnn",
        ("cnn.com",),
        ("div.article__content p", "p.paragraph"),
    ),
    DomainAdapter(
        "npr",
        ("npr.org",),
        ("#storytext > p", "div.storytext p"),
    ),
)


@dataclass
class AdapterRegistry:
    """Maps a domain to the most specific extractor available for it."""

    adapters: list[DomainAdapter] = field(
        default_factory=lambda: list(DEFAULT_ADAPTERS)
    )
    settings: ExtractionSettings = field(default_factory=get_settings)

    def register(self, adapter: DomainAdapter) -> None:
        # Later registrations take precedence over the defaults.
        self.adapters.insert(0, adapter)

    def find(self, domain: str) -> Optional[DomainAdapter]:
        domain = (domain or "").lower()
        if domain.startswith("www."):
            domain = domain[4:]
        for adapter in self.adapters:
            if adapter.predicate(domain):
                return adapter
        return None

    def names(self) -> Iterable[str]:
        return [adapter.name for adapter in self.adapters]

    def generic(self, html: str) -> AdapterResult:
        return AdapterResult(text=extract_readable_text(html, settings=self.settings))

    def adapter_for(self, domain: str) -> AdapterFn:
        adapter = self.find(domain)
        if adapter is None:
            return self.generic

        def _run(html: str) -> AdapterResult:
            text = adapter.extract(html)
            baseline = self.generic(html)
            # Selectors that only match part of the body must not lose to the
            # generic extractor.
            if (
                len(text) >= self.settings.adapter_min_chars
                and len(text) >= len(baseline.text)
            ):
                logger.debug(
                    event="adapter_hit",
                    operation="adapter.extract",
                    adapter=adapter.name,
                    chars=len(text),
                )
                return AdapterResult(text=text, adapter=adapter.name)
            logger.debug(
                event="adapter_fallback",
                operation="adapter.extract",
                adapter=adapter.name,
                chars=len(text),
                generic_chars=len(baseline.text),
            )
            return baseline

        return _run
