"""Generic readable-text extraction.

The document is cleaned of chrome (scripts, navigation, ad and promo
containers), narrowed to the most plausible content container, and the
container's paragraphs are scored by text length discounted by link density.
The output depends only on the HTML passed in.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from bs4 import BeautifulSoup, Comment, Tag

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import CandidateParagraph
from unspin.utils.soup import initialise_soup
from unspin.utils.text_cleaner import collapse_whitespace

NON_CONTENT_TAGS = [
    "script",
    "style",
    "noscript",
    "template",
    "iframe",
    "form",
    "nav",
    "header",
    "footer",
    "aside",
]

# Containers we are willing to drop when a class or id token names chrome.
_CHROME_CANDIDATE_TAGS = ["div", "section", "ul", "ol", "span", "p", "figure", "aside"]
_CHROME_TOKEN = re.compile(
    r"^(?:ad|ads|advert|advertisement|promo|promotion|social|share|sharing|"
    r"newsletter|subscribe|subscription|comments?|related|paywall-promo)"
    r"(?:[-_](?:slot|unit|container|wrapper|banner|box|module|block|bar|"
    r"links|list|tools|section|signup|articles|stories))?$",
    re.IGNORECASE,
)
# A chrome-looking element holding more than this share of the document's
# paragraph text is the article itself.
_CHROME_MAX_SHARE = 0.5

CONTAINER_SELECTORS = (
    "article",
    '[itemprop="articleBody"]',
    'div[class*="article-content"], div[class*="story-body"], '
    'div[class*="entry-content"], div[class*="post-content"], '
    'div[class*="article-body"], div[class*="content-body"]',
    "main",
    'div[id*="article"], div[id*="story"], div[id*="content"], '
    'div[id*="main-content"]',
    'section[class*="article"], section[class*="story"], section[class*="content"]',
)

BOILERPLATE_PREFIX = re.compile(
    r"^(?:subscribe|click here|advertisement|follow us|share this|sign up|"
    r"cookie|privacy policy|read more|all rights reserved)",
    re.IGNORECASE,
)


def _class_and_id_tokens(tag: Tag) -> list[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return [*classes, *(tag.get("id") or "").split()]


def _looks_like_chrome(tag: Tag) -> bool:
    return any(_CHROME_TOKEN.match(token) for token in _class_and_id_tokens(tag))


def _paragraph_chars(node: Union[BeautifulSoup, Tag]) -> int:
    return sum(len(p.get_text(" ", strip=True)) for p in node.find_all("p"))


def strip_non_content(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove scripts, navigation, comments and ad/promo containers in place."""
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()

    for tag in soup.find_all(NON_CONTENT_TAGS):
        if not tag.decomposed:
            tag.decompose()

    total = _paragraph_chars(soup)
    ceiling = total * _CHROME_MAX_SHARE
    for tag in soup.find_all(_CHROME_CANDIDATE_TAGS):
        if tag.decomposed or not _looks_like_chrome(tag):
            continue
        if total and _paragraph_chars(tag) > ceiling:
            continue
        tag.decompose()
    return soup


def find_content_container(
    soup: BeautifulSoup, min_chars: int
) -> Union[BeautifulSoup, Tag]:
    """First structural candidate whose text exceeds ``min_chars``, else the document."""
    for selector in CONTAINER_SELECTORS:
        for candidate in soup.select(selector):
            if len(collapse_whitespace(candidate.get_text(" "))) > min_chars:
                return candidate
    return soup.body or soup


def _link_density(paragraph: Tag, words: int) -> float:
    if not words:
        return 0.0
    link_words = sum(
        len(anchor.get_text(" ", strip=True).split())
        for anchor in paragraph.find_all("a")
    )
    return min(1.0, link_words / words)


def score_paragraphs(
    container: Union[BeautifulSoup, Tag],
    *,
    settings: Optional[ExtractionSettings] = None,
) -> list[CandidateParagraph]:
    """Score every surviving ``<p>`` in document order."""
    settings = settings or get_settings()
    floor = settings.paragraph_min_chars
    candidates: list[CandidateParagraph] = []
    seen: set[str] = set()

    for paragraph in container.find_all("p"):
        text = collapse_whitespace(paragraph.get_text(" "))
        if len(text) <= floor or text in seen:
            continue
        if BOILERPLATE_PREFIX.match(text):
            continue
        density = _link_density(paragraph, len(text.split()))
        score = len(text) * (1.0 - density)
        if score <= floor:
            continue
        seen.add(text)
        candidates.append(
            CandidateParagraph(text=text, score=score, link_density=density)
        )
    return candidates


def extract_readable_text(
    html: str, *, settings: Optional[ExtractionSettings] = None
) -> str:
    """Return the main prose of ``html`` as blank-line separated paragraphs."""
    settings = settings or get_settings()
    if not html:
        return ""

    soup = strip_non_content(initialise_soup(html))
    container = find_content_container(soup, settings.container_min_chars)
    paragraphs = score_paragraphs(container, settings=settings)
    joined = "\n\n".join(candidate.text for candidate in paragraphs)

    if len(joined) < settings.readable_min_chars:
        flat = collapse_whitespace(container.get_text(" "))
        if len(flat) > len(joined):
            return flat
    return joined
