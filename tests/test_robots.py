import threading

import pytest

from conftest import FakeFetcher
from unspin.models.extraction import FetchResult
from unspin.services.exceptions import FetchTimeout, HttpError
from unspin.services.robots import RobotsGate, RobotsRules
from unspin.utils.rate_limits import DomainPolicyStore

ROBOTS_URL = "https://news.example.com/robots.txt"


def _gate(settings, clock, fetcher):
    store = DomainPolicyStore(ttl_seconds=3600, clock=clock)
    return RobotsGate(store, settings=settings, fetcher=fetcher, clock=clock), store


def test_disallow_all_for_wildcard_agent():
    rules = RobotsRules.parse("User-agent: *\nDisallow: /\n")

    assert not rules.is_allowed("https://example.com/story", "UnspinBot")


def test_empty_disallow_allows_everything():
    rules = RobotsRules.parse("User-agent: *\nDisallow:\n")

    assert rules.is_allowed("https://example.com/anything", "UnspinBot")


def test_longest_match_wins_and_allow_breaks_ties():
    rules = RobotsRules.parse(
        "User-agent: *\n"
        "Disallow: /news/\n"
        "Allow: /news/public/\n"
        "Disallow: /tie\n"
        "Allow: /tie\n"
    )

    assert not rules.is_allowed("https://example.com/news/secret", "UnspinBot")
    assert rules.is_allowed("https://example.com/news/public/story", "UnspinBot")
    assert rules.is_allowed("https://example.com/tie", "UnspinBot")
    assert rules.is_allowed("https://example.com/about", "UnspinBot")


def test_wildcards_and_end_anchor():
    rules = RobotsRules.parse(
        "User-agent: *\nDisallow: /*.pdf$\nDisallow: /*?print=\n"
    )

    assert not rules.is_allowed("https://example.com/files/report.pdf", "UnspinBot")
    assert rules.is_allowed("https://example.com/files/report.pdf.html", "UnspinBot")
    assert not rules.is_allowed("https://example.com/story?print=1", "UnspinBot")


def test_specific_agent_group_preferred_over_wildcard():
    rules = RobotsRules.parse(
        "User-agent: *\n"
        "Disallow: /\n"
        "\n"
        "User-agent: unspinbot\n"
        "Allow: /\n"
    )

    assert rules.is_allowed("https://example.com/story", "UnspinBot")
    assert not rules.is_allowed("https://example.com/story", "OtherBot")


def test_grouped_user_agents_share_rules():
    rules = RobotsRules.parse(
        "User-agent: googlebot\nUser-agent: unspinbot\nDisallow: /private\n"
    )

    assert not rules.is_allowed("https://example.com/private/a", "UnspinBot")


def test_agent_groups_match_the_whole_product_token():
    rules = RobotsRules.parse(
        "User-agent: bot\nDisallow: /\n\nUser-agent: UnspinBot/2.0\nDisallow: /drafts\n"
    )

    assert rules.is_allowed("https://example.com/story", "UnspinBot")
    assert not rules.is_allowed("https://example.com/drafts/a", "UnspinBot")
    assert not rules.is_allowed("https://example.com/story", "Bot")


def test_gate_fetches_robots_once_per_origin(settings, clock):
    fetcher = FakeFetcher({ROBOTS_URL: "User-agent: *\nDisallow: /private\n"})
    gate, _ = _gate(settings, clock, fetcher)

    assert gate.is_allowed("https://news.example.com/story")
    assert not gate.is_allowed("https://news.example.com/private/doc")
    assert gate.is_allowed("https://news.example.com/another")

    assert fetcher.calls == [ROBOTS_URL]


def test_gate_refreshes_after_ttl(settings, clock):
    fetcher = FakeFetcher({ROBOTS_URL: "User-agent: *\nDisallow:\n"})
    gate, _ = _gate(settings, clock, fetcher)

    gate.is_allowed("https://news.example.com/a")
    clock.advance(settings.robots_cache_ttl_seconds + 1)
    gate.is_allowed("https://news.example.com/b")

    assert fetcher.calls == [ROBOTS_URL, ROBOTS_URL]


@pytest.mark.parametrize(
    "failure",
    [
        FetchTimeout("timed out", url=ROBOTS_URL),
        HttpError("HTTP 500", url=ROBOTS_URL, status_code=500),
    ],
)
def test_gate_fails_open(settings, clock, failure):
    gate, _ = _gate(settings, clock, FakeFetcher({ROBOTS_URL: failure}))

    assert gate.is_allowed("https://news.example.com/story")


def test_missing_robots_allows(settings, clock):
    gate, _ = _gate(settings, clock, FakeFetcher())

    assert gate.is_allowed("https://news.example.com/story")


def test_html_soft_404_is_treated_as_absent(settings, clock):
    soft_404 = FetchResult(
        html="<html><body>Disallow: / not found</body></html>",
        final_url=ROBOTS_URL,
        status_code=200,
        encoding="utf-8",
    )
    gate, _ = _gate(settings, clock, FakeFetcher({ROBOTS_URL: soft_404}))

    assert gate.is_allowed("https://news.example.com/story")


def test_gate_disabled_skips_fetch(settings, clock):
    fetcher = FakeFetcher({ROBOTS_URL: "User-agent: *\nDisallow: /\n"})
    disabled = settings.model_copy(update={"robots_enabled": False})
    gate, _ = _gate(disabled, clock, fetcher)

    assert gate.is_allowed("https://news.example.com/story")
    assert fetcher.calls == []


def test_rules_are_cached_on_domain_policy(settings, clock):
    fetcher = FakeFetcher({ROBOTS_URL: "User-agent: *\nDisallow: /\n"})
    gate, store = _gate(settings, clock, fetcher)

    gate.is_allowed("https://news.example.com/story")
    policy = store.peek("https://news.example.com")

    assert policy is not None
    assert policy.snapshot()["robots_cached"] is True
    assert policy.robots_checked_at == clock()


def test_concurrent_first_checks_fetch_once(settings, clock):
    started = threading.Event()

    class SlowFetcher(FakeFetcher):
        def __call__(self, url):
            started.wait(timeout=1)
            return super().__call__(url)

    fetcher = SlowFetcher({ROBOTS_URL: "User-agent: *\nDisallow:\n"})
    gate, _ = _gate(settings, clock, fetcher)
    results = []

    threads = [
        threading.Thread(
            target=lambda: results.append(gate.is_allowed("https://news.example.com/a"))
        )
        for _ in range(5)
    ]
    for thread in threads:
        thread.start()
    started.set()
    for thread in threads:
        thread.join(timeout=5)

    assert results == [True] * 5
    assert fetcher.calls == [ROBOTS_URL]
