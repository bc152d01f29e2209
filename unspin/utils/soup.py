from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup, FeatureNotFound, Tag

from unspin.utils.text_cleaner import collapse_whitespace


def initialise_soup(html: Optional[str]) -> BeautifulSoup:
    """Parse with lxml when available, otherwise the stdlib parser."""
    markup = html or ""
    try:
        return BeautifulSoup(markup, "lxml")
    except FeatureNotFound:  # pragma: no cover - lxml missing
        return BeautifulSoup(markup, "html.parser")


def meta_content(soup: BeautifulSoup, *keys: str) -> Optional[str]:
    """Return the first non-empty ``content`` of a meta tag keyed by property/name.

    Keys are matched case-insensitively against ``property``, ``name`` and
    ``itemprop`` so ``og:title`` works whether a site uses ``property=`` or
    ``name=``.
    """
    wanted = [key.lower() for key in keys]
    metas = soup.find_all("meta")
    for key in wanted:
        for meta in metas:
            for attr in ("property", "name", "itemprop"):
                value = meta.get(attr)
                if isinstance(value, str) and value.strip().lower() == key:
                    content = collapse_whitespace(meta.get("content"))
                    if content:
                        return content
    return None


def node_text(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return collapse_whitespace(node.get_text(" ", strip=True))
