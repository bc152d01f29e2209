from __future__ import annotations

from urllib.parse import urldefrag, urljoin, urlparse

from unspin.services.exceptions import InvalidInput

ALLOWED_SCHEMES = {"http", "https"}


def validate_article_url(url: object) -> str:
    """Return a stripped absolute http(s) URL or raise ``InvalidInput``.

    Runs before any network activity so malformed input never reaches the
    fetch client.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("A URL is required.", url=None)

    candidate = url.strip()
    try:
        parsed = urlparse(candidate)
        # Accessing .port validates the netloc (raises on junk like ":abc").
        parsed.port
    except ValueError as exc:
        raise InvalidInput(f"Malformed URL: {exc}", url=candidate) from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidInput(
            f"Unsupported URL scheme '{parsed.scheme or 'none'}'.", url=candidate
        )
    if not parsed.hostname:
        raise InvalidInput("URL has no host.", url=candidate)
    if any(char.isspace() for char in candidate):
        raise InvalidInput("URL contains whitespace.", url=candidate)
    return candidate


def normalise_domain(url: str) -> str:
    """Lowercased hostname with any leading ``www.`` removed."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    scheme = (parsed.scheme or "https").lower()
    return f"{scheme}://{parsed.netloc.lower()}"


def absolutise(href: str | None, base_url: str) -> str | None:
    """Resolve ``href`` against ``base_url``; only http(s) results survive."""
    if not href or not href.strip():
        return None
    resolved = urldefrag(urljoin(base_url, href.strip()))[0]
    if urlparse(resolved).scheme.lower() not in ALLOWED_SCHEMES:
        return None
    return resolved


def same_document(first: str | None, second: str | None) -> bool:
    """Compare two URLs ignoring scheme, ``www.``, fragments and a trailing slash."""
    if not first or not second:
        return False

    def _key(value: str) -> tuple[str, str, str]:
        parsed = urlparse(urldefrag(value)[0])
        path = parsed.path.rstrip("/") or "/"
        return normalise_domain(value), path, parsed.query

    return _key(first) == _key(second)
