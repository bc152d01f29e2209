from conftest import article_html, paragraphs
from unspin.services.readability import (
    extract_readable_text,
    find_content_container,
    score_paragraphs,
    strip_non_content,
)
from unspin.utils.soup import initialise_soup


def test_extracts_article_paragraphs_in_order(settings):
    body = paragraphs(8)
    html = article_html(body)

    text = extract_readable_text(html, settings=settings)

    assert text.split("\n\n") == body
    assert "Home" not in text
    assert "Copyright" not in text


def test_output_is_deterministic(settings):
    html = article_html(paragraphs(10))

    assert extract_readable_text(html, settings=settings) == extract_readable_text(
        html, settings=settings
    )


def test_removes_scripts_comments_and_promo_blocks(settings):
    html = (
        "<html><body><article>"
        "<script>var tracking = 'paragraph text that should vanish entirely';</script>"
        "<!-- <p>commented out paragraph with plenty of characters</p> -->"
        '<div class="newsletter-signup"><p>Get our newsletter with the best stories every morning.</p></div>'
        '<div class="ad-slot"><p>Advertisement copy that is long enough to be scored.</p></div>'
        + "".join(f"<p>{text}</p>" for text in paragraphs(6))
        + "</article></body></html>"
    )

    text = extract_readable_text(html, settings=settings)

    assert "tracking" not in text
    assert "commented out" not in text
    assert "newsletter" not in text
    assert "Advertisement copy" not in text


def test_link_heavy_paragraphs_are_discounted(settings):
    links = " ".join(f'<a href="/t/{i}">Topic number {i}</a>' for i in range(8))
    soup = initialise_soup(
        "<div>"
        f"<p>{links}</p>"
        "<p>The mayor said the plan would take effect next spring after review.</p>"
        "</div>"
    )

    candidates = score_paragraphs(soup, settings=settings)

    assert [candidate.text for candidate in candidates] == [
        "The mayor said the plan would take effect next spring after review."
    ]
    assert candidates[0].link_density == 0.0


def test_short_boilerplate_and_duplicate_paragraphs_dropped(settings):
    real = "Officials confirmed the bridge will reopen to traffic on Monday morning."
    soup = initialise_soup(
        "<div>"
        "<p>Too short.</p>"
        "<p>Subscribe now to keep reading every story on our website today.</p>"
        "<p>Click here to read the full coverage of this developing event.</p>"
        f"<p>{real}</p><p>{real}</p>"
        "</div>"
    )

    candidates = score_paragraphs(soup, settings=settings)

    assert [candidate.text for candidate in candidates] == [real]


def test_container_selection_prefers_article(settings):
    soup = initialise_soup(article_html(paragraphs(8)))

    container = find_content_container(strip_non_content(soup), settings.container_min_chars)

    assert container.name == "article"


def test_container_falls_back_to_document_when_nothing_is_long_enough(settings):
    soup = initialise_soup("<html><body><article><p>tiny</p></article></body></html>")

    container = find_content_container(soup, settings.container_min_chars)

    assert container.name == "body"


def test_short_documents_fall_back_to_flat_text(settings):
    html = (
        "<html><body><div>"
        "Breaking: storms knocked out power to thousands of homes across the county overnight."
        "</div></body></html>"
    )

    text = extract_readable_text(html, settings=settings)

    assert text.startswith("Breaking: storms knocked out power")


def test_empty_html_returns_empty_string(settings):
    assert extract_readable_text("", settings=settings) == ""


def test_chrome_words_inside_longer_class_names_are_kept(settings):
    body = paragraphs(20)
    html = (
        '<html><body><div class="article-body ad-free">'
        + "".join(f"<p>{text}</p>" for text in body)
        + '</div><div class="share-tools-parent comments-enabled no-ads">'
        "<p>Reporting for this story was contributed by the city desk staff.</p>"
        "</div></body></html>"
    )

    text = extract_readable_text(html, settings=settings)
    kept = strip_non_content(initialise_soup(html))

    assert text.split("\n\n") == body
    assert "city desk" in kept.get_text(" ")


def test_chrome_wrapper_holding_most_of_the_text_survives(settings):
    body = paragraphs(10)
    html = (
        '<html><body><div class="promo">'
        + "".join(f"<p>{text}</p>" for text in body)
        + '</div><div class="related">'
        "<p>Related: three other stories about the county budget this year.</p>"
        "</div></body></html>"
    )

    text = extract_readable_text(html, settings=settings)

    assert text.split("\n\n") == body
