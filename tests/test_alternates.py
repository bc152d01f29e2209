import json

from unspin.services.alternates import (
    extract_json_ld,
    extract_open_graph_content,
    find_amp_url,
    find_canonical_url,
)

BASE = "https://example.com/news/story"


def _ld(payload):
    return f'<script type="application/ld+json">{json.dumps(payload)}</script>'


def test_amp_link_comes_first_then_synthesised_variants():
    html = '<html><head><link rel="amphtml" href="/amp/news/story"></head></html>'

    assert find_amp_url(html, BASE) == [
        "https://example.com/amp/news/story",
        "https://example.com/news/story/amp",
        "https://example.com/news/story?amp=1",
    ]


def test_amp_candidates_exclude_base_and_duplicates():
    html = (
        '<link rel="amphtml" href="https://example.com/news/story/amp">'
        f'<link rel="amphtml" href="{BASE}">'
    )

    candidates = find_amp_url(html, BASE)

    assert BASE not in candidates
    assert candidates.count("https://example.com/news/story/amp") == 1


def test_amp_url_already_amp_only_gets_query_variant():
    candidates = find_amp_url("", "https://example.com/news/story/amp")

    assert candidates == ["https://example.com/news/story/amp?amp=1"]


def test_canonical_url_resolved_and_compared():
    html = '<link rel="canonical" href="/news/story-full">'

    assert find_canonical_url(html, BASE) == "https://example.com/news/story-full"


def test_canonical_pointing_at_self_is_ignored():
    html = '<link rel="canonical" href="https://www.example.com/news/story/">'

    assert find_canonical_url(html, BASE) is None


def test_json_ld_news_article_body():
    html = _ld({"@type": "NewsArticle", "articleBody": "First line.\n\nSecond line."})

    assert extract_json_ld(html) == "First line.\n\nSecond line."


def test_json_ld_graph_and_lists_are_searched():
    html = _ld(
        {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "WebPage", "name": "ignored"},
                {"@type": ["ReportageNewsArticle"], "articleBody": "<p>Graph body text.</p>"},
            ],
        }
    ) + _ld([{"@type": "BlogPosting", "text": "Short"}])

    assert extract_json_ld(html) == "Graph body text."


def test_json_ld_non_article_types_ignored():
    html = _ld({"@type": "Recipe", "text": "Mix flour and water."})

    assert extract_json_ld(html) is None


def test_malformed_json_ld_is_skipped():
    html = (
        '<script type="application/ld+json">{"@type": "NewsArticle", broken</script>'
        + _ld({"@type": "Article", "articleBody": "Recovered body."})
    )

    assert extract_json_ld(html) == "Recovered body."


def test_open_graph_content_combines_description_and_paragraphs():
    html = (
        '<html><head><meta property="og:description" content="A short summary of the story."></head>'
        "<body><nav><p>Navigation paragraph that should not be included anywhere.</p></nav>"
        "<p>The first real paragraph of the article has enough words in it.</p>"
        "<p>The second real paragraph of the article also has enough words.</p>"
        "</body></html>"
    )

    text = extract_open_graph_content(html, max_paragraphs=1)

    assert text == (
        "A short summary of the story.\n\n"
        "The first real paragraph of the article has enough words in it."
    )


def test_open_graph_content_empty_document():
    assert extract_open_graph_content("") == ""
