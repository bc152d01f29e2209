"""Helpers to normalise extracted article text."""

import html
import re
import unicodedata
from typing import Iterable

WORDS_PER_MINUTE = 225

# Whole lines that carry no article content.
_BOILERPLATE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^advertisement$",
        r"^sponsored content$",
        r"^sign up for our newsletter.*",
        r"^subscribe to .*",
        r"^related (stories|articles).*",
        r"^read (more|next):.*",
        r"^share this (story|article).*",
        r"^follow us on .*",
        r"^comments?$",
    )
)

_CONTROL_CHARS = {
    "\u200b",  # zero-width space
    "\u200c",  # zero-width non-joiner
    "\u200d",  # zero-width joiner
    "\ufeff",  # zero-width no-break space / BOM
}

_WHITESPACE_RUN = re.compile(r"\s+")


def _strip_control_chars(text: str) -> str:
    for char in _CONTROL_CHARS:
        text = text.replace(char, "")
    return text


def _remove_boilerplate(lines: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            cleaned.append("")
            continue
        if any(pattern.match(stripped) for pattern in _BOILERPLATE_PATTERNS):
            continue
        cleaned.append(stripped)
    return cleaned


def collapse_whitespace(raw_text: str | None) -> str:
    """Entity-decode a fragment and squeeze every whitespace run to one space."""
    if not raw_text:
        return ""
    text = html.unescape(raw_text)
    text = _strip_control_chars(text.replace("\u00a0", " "))
    return _WHITESPACE_RUN.sub(" ", text).strip()


def clean_text(raw_text: str | None) -> str:
    """Normalise extracted article text and remove obvious boilerplate."""
    if not raw_text:
        return ""

    text = html.unescape(raw_text)
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\u00a0", " ")
    text = _strip_control_chars(text)
    text = re.sub(r"[\t\f]+", " ", text)
    text = re.sub(r" {2,}", " ", text)

    lines = _remove_boilerplate(text.split("\n"))

    normalised_lines: list[str] = []
    for line in lines:
        if not line:
            if normalised_lines and normalised_lines[-1] == "":
                continue
            normalised_lines.append("")
        else:
            normalised_lines.append(line)

    cleaned_text = "\n".join(normalised_lines).strip()
    # Paragraphs are separated by exactly one blank line.
    cleaned_text = re.sub(r"\n{3,}", "\n\n", cleaned_text)
    return cleaned_text


def calculate_reading_time(text: str, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Calculates the estimated reading time in minutes for a given text."""
    num_words = len(text.split())
    reading_time = num_words / words_per_minute
    return max(1, int(round(reading_time)))
