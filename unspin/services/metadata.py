import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from unspin.models.extraction import ArticleMetadata
from unspin.utils.soup import initialise_soup, meta_content, node_text
from unspin.utils.text_cleaner import collapse_whitespace
from unspin.utils.urls import normalise_domain

UNTITLED = "Untitled Article"
BYLINE_MIN_CHARS = 3
BYLINE_MAX_CHARS = 100

_BYLINE_PREFIX = re.compile(r"^by\s+", re.IGNORECASE)
_BYLINE_TEXT = re.compile(r"\bBy\s+([A-Z][\w'.-]+(?:\s+[A-Z][\w'.-]+){0,3})")
_BYLINE_SELECTORS = (
    '[rel="author"]',
    '[itemprop="author"] [itemprop="name"]',
    '[itemprop="author"]',
    '[class*="byline"]',
    '[class*="author-name"]',
    '[class*="author"]',
)


def _first(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def _clean_byline(raw: Optional[str]) -> Optional[str]:
    text = collapse_whitespace(raw)
    text = _BYLINE_PREFIX.sub("", text).strip()
    if BYLINE_MIN_CHARS <= len(text) <= BYLINE_MAX_CHARS:
        return text
    return None


def _resolve_title(soup: BeautifulSoup) -> str:
    heading = None
    article = soup.find("article")
    if article is not None:
        heading = node_text(article.find("h1"))
    return (
        _first(
            meta_content(soup, "og:title"),
            meta_content(soup, "twitter:title"),
            heading,
            node_text(soup.find("h1")),
            node_text(soup.find("title")),
        )
        or UNTITLED
    )


def _byline_candidates(soup: BeautifulSoup) -> Iterable[Optional[str]]:
    yield meta_content(soup, "author")
    article_author = meta_content(soup, "article:author")
    if article_author and not article_author.lower().startswith(("http://", "https://")):
        yield article_author
    for selector in _BYLINE_SELECTORS:
        for node in soup.select(selector):
            if node.name == "meta":
                continue
            yield node_text(node)
    body = soup.body or soup
    match = _BYLINE_TEXT.search(body.get_text(" ", strip=True))
    if match:
        yield match.group(1)


def _resolve_byline(soup: BeautifulSoup) -> Optional[str]:
    for candidate in _byline_candidates(soup):
        cleaned = _clean_byline(candidate)
        if cleaned:
            return cleaned
    return None


def _resolve_published_at(soup: BeautifulSoup) -> Optional[str]:
    published = meta_content(
        soup, "article:published_time", "og:published_time", "datePublished"
    )
    if published:
        return published
    time_node = soup.find("time", attrs={"datetime": True})
    if time_node is not None:
        return collapse_whitespace(time_node.get("datetime")) or None
    return None


def extract_metadata(html: str, url: str) -> ArticleMetadata:
    """Pull title, byline, description, site and publish date from a document."""
    soup = initialise_soup(html)
    description = (
        meta_content(soup, "og:description", "description", "twitter:description")
        or ""
    )
    return ArticleMetadata(
        title=_resolve_title(soup),
        byline=_resolve_byline(soup),
        description=description,
        site=normalise_domain(url),
        published_at=_resolve_published_at(soup),
    )
