"""
Alternate sources for an article whose primary page is thin or blocked.

Publishers routinely expose the same story through an AMP rendition, a
canonical URL, schema.org JSON-LD, or OpenGraph tags. These helpers locate
those sources in the initially fetched document; fetching is left to the
orchestrator so every secondary request passes the same robots and rate
limit checks as the first one.
"""

import json
import logging
from typing import Any, Iterable, Iterator, Optional
from urllib.parse import urlencode, urlparse, urlunparse, parse_qsl

from bs4 import BeautifulSoup

from unspin.services.readability import strip_non_content
from unspin.utils.soup import initialise_soup, meta_content
from unspin.utils.text_cleaner import clean_text, collapse_whitespace
from unspin.utils.urls import absolutise, same_document

logger = logging.getLogger(__name__)

# schema.org types whose body we are willing to use
ARTICLE_TYPES = frozenset(
    {
        "newsarticle",
        "article",
        "reportagenewsarticle",
        "analysisnewsarticle",
        "blogposting",
    }
)
ARTICLE_BODY_KEYS = ("articleBody", "text", "paragraph")


def _rel_values(tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def _link_hrefs(soup: BeautifulSoup, rel: str) -> Iterator[str]:
    for link in soup.find_all("link", href=True):
        if rel in _rel_values(link):
            yield link["href"]


def _synthesised_amp_urls(base_url: str) -> list[str]:
    parsed = urlparse(base_url)
    path = parsed.path.rstrip("/")
    if path.endswith("/amp"):
        path_variant = None
    else:
        path_variant = urlunparse(parsed._replace(path=f"{path}/amp", fragment=""))

    query = [(key, value) for key, value in parse_qsl(parsed.query) if key != "amp"]
    query.append(("amp", "1"))
    query_variant = urlunparse(parsed._replace(query=urlencode(query), fragment=""))
    return [url for url in (path_variant, query_variant) if url]


def find_amp_url(html: str, base_url: str) -> list[str]:
    """Candidate AMP URLs, declared ``rel=amphtml`` links first.

    The synthesised ``/amp`` and ``?amp=1`` variants follow the declared ones.
    The base URL itself and duplicates are never returned.
    """
    declared: list[str] = []
    if html:
        soup = initialise_soup(html)
        for href in _link_hrefs(soup, "amphtml"):
            resolved = absolutise(href, base_url)
            if resolved:
                declared.append(resolved)

    candidates: list[str] = []
    for url in [*declared, *_synthesised_amp_urls(base_url)]:
        if same_document(url, base_url):
            continue
        if any(same_document(url, existing) for existing in candidates):
            continue
        candidates.append(url)
    return candidates


def find_canonical_url(html: str, base_url: str) -> Optional[str]:
    """Absolute ``rel=canonical`` URL when it points somewhere else."""
    if not html:
        return None
    soup = initialise_soup(html)
    for href in _link_hrefs(soup, "canonical"):
        resolved = absolutise(href, base_url)
        if resolved and not same_document(resolved, base_url):
            return resolved
    og_url = absolutise(meta_content(soup, "og:url"), base_url)
    if og_url and not same_document(og_url, base_url):
        return og_url
    return None


def _type_names(item: dict[str, Any]) -> list[str]:
    raw = item.get("@type", "")
    if isinstance(raw, str):
        raw = [raw]
    return [str(value).lower() for value in raw if value]


def _is_article(item: dict[str, Any]) -> bool:
    return any(
        name in ARTICLE_TYPES or name.endswith("article") for name in _type_names(item)
    )


def _walk_json_ld(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for entry in data:
            yield from _walk_json_ld(entry)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _walk_json_ld(data["@graph"])


def _body_text(value: Any) -> str:
    if isinstance(value, list):
        parts = [_body_text(entry) for entry in value]
        return "\n\n".join(part for part in parts if part)
    if isinstance(value, dict):
        return _body_text(value.get("text") or value.get("articleBody"))
    if not isinstance(value, str):
        return ""
    # Some publishers embed markup in articleBody.
    if "<" in value and ">" in value:
        value = initialise_soup(value).get_text("\n")
    return clean_text(value)


def _json_ld_blocks(soup: BeautifulSoup) -> Iterator[Any]:
    for script in soup.find_all("script"):
        script_type = (script.get("type") or "").lower()
        if "ld+json" not in script_type:
            continue
        payload = script.string or script.get_text()
        if not payload or not payload.strip():
            continue
        try:
            yield json.loads(payload)
        except (json.JSONDecodeError, TypeError) as exc:
            logger.debug("Skipping malformed JSON-LD block: %s", exc)
            continue


def extract_json_ld(html: str) -> Optional[str]:
    """Longest article body found in the page's JSON-LD, if any."""
    if not html or "ld+json" not in html.lower():
        return None

    best = ""
    for block in _json_ld_blocks(initialise_soup(html)):
        for item in _walk_json_ld(block):
            if not _is_article(item):
                continue
            for key in ARTICLE_BODY_KEYS:
                text = _body_text(item.get(key))
                if len(text) > len(best):
                    best = text
    return best or None


def _visible_paragraphs(soup: BeautifulSoup, limit: int) -> Iterable[str]:
    if limit <= 0:
        return []
    paragraphs: list[str] = []
    for node in strip_non_content(soup).find_all("p"):
        text = collapse_whitespace(node.get_text(" "))
        if len(text) < 40 or text in paragraphs:
            continue
        paragraphs.append(text)
        if len(paragraphs) >= limit:
            break
    return paragraphs


def extract_open_graph_content(html: str, max_paragraphs: int = 3) -> str:
    """OpenGraph/meta description plus the first few visible paragraphs."""
    if not html:
        return ""
    soup = initialise_soup(html)
    description = (
        meta_content(soup, "og:description", "description", "twitter:description")
        or ""
    )
    parts = [description] if description else []
    for paragraph in _visible_paragraphs(soup, max_paragraphs):
        if paragraph != description:
            parts.append(paragraph)
    return "\n\n".join(parts)
