from typing import Optional

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import Confidence, ExtractionMethod, ExtractionStatus

_FIRST_PARTY = {ExtractionMethod.DIRECT_FETCH, ExtractionMethod.DOMAIN_ADAPTER}
_SAME_ARTICLE = {ExtractionMethod.AMP, ExtractionMethod.CANONICAL}


def score(
    method: ExtractionMethod,
    text_length: int,
    *,
    settings: Optional[ExtractionSettings] = None,
) -> Confidence:
    """Rate how much of the real article the text is likely to contain."""
    settings = settings or get_settings()
    if method in _FIRST_PARTY:
        if text_length > settings.high_confidence_chars:
            return Confidence.HIGH
        return Confidence.MEDIUM
    if method in _SAME_ARTICLE:
        return Confidence.MEDIUM
    return Confidence.LOW


def resolve_status(
    method: ExtractionMethod,
    confidence: Confidence,
    *,
    initial_fetch_failed: bool = False,
) -> ExtractionStatus:
    if confidence is not Confidence.LOW and method.tier <= 2:
        return ExtractionStatus.FULL
    if method.tier == 4 and initial_fetch_failed:
        return ExtractionStatus.ERROR
    return ExtractionStatus.LIMITED
