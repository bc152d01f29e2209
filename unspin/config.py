from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
]


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"


class ExtractionSettings(BaseSettings):
    """Tunable knobs for the extraction pipeline.

    Every value can be overridden with an ``EXTRACTION_``-prefixed environment
    variable, e.g. ``EXTRACTION_DIRECT_MIN_CHARS=900``.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Fetch client
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    accept_language_options: list[str] = Field(
        default_factory=lambda: ["en-US,en;q=0.9", "en-GB,en;q=0.8", "en;q=0.7"]
    )
    accept_header: str = (
        "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    )
    request_timeout_seconds: float = Field(default=15.0, ge=1.0, le=60.0)
    fetch_max_retries: int = Field(default=2, ge=0, le=5)
    backoff_min_seconds: float = Field(default=0.4, ge=0.0, le=10.0)
    backoff_max_seconds: float = Field(default=1.0, ge=0.0, le=10.0)
    max_backoff_seconds: float = Field(default=8.0, ge=0.0, le=60.0)
    max_redirects: int = Field(default=5, ge=0, le=20)
    max_response_bytes: int = Field(default=5_000_000, ge=1024)

    # Robots gate
    robots_enabled: bool = True
    robots_user_agent_token: str = "UnspinBot"
    robots_timeout_seconds: float = Field(default=5.0, ge=0.5, le=30.0)
    robots_cache_ttl_seconds: float = Field(default=3600.0, ge=0.0)

    # Domain rate limiter / policy store
    rate_limit_max_requests: int = Field(default=5, ge=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0.0)
    domain_policy_ttl_seconds: float = Field(default=3600.0, gt=0.0)
    domain_policy_max_entries: int = Field(default=1024, ge=1)

    # Readable-text extraction
    container_min_chars: int = Field(default=500, ge=0)
    paragraph_min_chars: int = Field(default=30, ge=0)
    readable_min_chars: int = Field(default=300, ge=0)
    adapter_min_chars: int = Field(default=600, ge=0)

    # Tier thresholds
    direct_min_chars: int = Field(default=1200, ge=1)
    alternate_min_chars: int = Field(default=1000, ge=1)
    open_graph_min_chars: int = Field(default=300, ge=1)
    high_confidence_chars: int = Field(default=1500, ge=1)
    amp_probe_limit: int = Field(default=2, ge=0, le=5)
    open_graph_max_paragraphs: int = Field(default=3, ge=0)

    words_per_minute: int = Field(default=225, ge=50)


@lru_cache(maxsize=1)
def get_settings() -> ExtractionSettings:
    return ExtractionSettings()
