from types import SimpleNamespace

import pytest
import structlog

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import FetchResult
from unspin.services.exceptions import HttpError


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeFetcher:
    """Serves canned documents by URL; anything unknown is a 404."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise HttpError("HTTP 404", url=url, status_code=404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, FetchResult):
            return page
        return FetchResult(
            html=page, final_url=url, status_code=200, encoding="utf-8"
        )

    def calls_for(self, url):
        return [called for called in self.calls if called == url]


class FakeResponse:
    def __init__(
        self,
        status_code=200,
        body=b"",
        url="https://example.com",
        headers=None,
        chunks=None,
        on_chunk=None,
    ):
        self.status_code = status_code
        self.url = url
        self.headers = headers or {}
        self.chunks = list(chunks) if chunks is not None else [body]
        self.on_chunk = on_chunk
        self.closed = False

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            if self.on_chunk is not None:
                self.on_chunk()
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, responses):
        self._responses = responses
        self.calls = []

    def get(self, url, headers, timeout, allow_redirects, stream=False):
        call_number = len(self.calls)
        self.calls.append(
            SimpleNamespace(url=url, headers=headers, timeout=timeout, stream=stream)
        )
        response = self._responses[call_number]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def settings():
    return ExtractionSettings(
        backoff_min_seconds=0.0,
        backoff_max_seconds=0.0,
        robots_enabled=True,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture(autouse=True)
def reset_state():
    get_settings.cache_clear()
    structlog.contextvars.clear_contextvars()
    yield
    get_settings.cache_clear()
    structlog.contextvars.clear_contextvars()


def paragraphs(count, sentence="The council met on Tuesday to debate the new budget proposal in detail."):
    """``count`` distinct article paragraphs of realistic length."""
    return [f"{sentence} Paragraph {index} adds more reporting." for index in range(count)]


def article_html(body_paragraphs, *, head="", title="Budget Vote Delayed"):
    body = "".join(f"<p>{text}</p>" for text in body_paragraphs)
    return (
        f"<html><head><title>{title}</title>{head}</head>"
        f"<body><nav><a href='/'>Home</a></nav>"
        f"<article><h1>{title}</h1>{body}</article>"
        f"<footer>Copyright</footer></body></html>"
    )
