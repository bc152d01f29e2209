"""robots.txt compliance for the extraction pipeline.

robots.txt is fetched once per origin and the parsed rules are cached on the
origin's ``DomainPolicy``. Rules are evaluated with longest-match semantics:
the most specific ``Allow``/``Disallow`` pattern wins and ``Allow`` wins a
tie. Anything that goes wrong while fetching or parsing means "allowed".
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional
from urllib.parse import urlparse

import structlog

from unspin.config import ExtractionSettings, get_settings
from unspin.models.extraction import FetchResult
from unspin.services.exceptions import ExtractionError
from unspin.services.fetch import fetch_with_resilience
from unspin.utils.rate_limits import Clock, DomainPolicyStore
from unspin.utils.urls import origin_of

logger = structlog.get_logger(__name__)

Fetcher = Callable[[str], FetchResult]


def _product_token(agent: str) -> str:
    """``UnspinBot/1.2 (+https://...)`` -> ``unspinbot``."""
    return agent.split("/", 1)[0].split(None, 1)[0].lower() if agent.strip() else ""


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    anchored = pattern.endswith("$")
    body = pattern[:-1] if anchored else pattern
    regex = ".*".join(re.escape(part) for part in body.split("*"))
    return re.compile(regex + ("$" if anchored else ""))


@dataclass(frozen=True)
class RobotsRule:
    allow: bool
    pattern: str
    regex: re.Pattern[str] = field(compare=False, repr=False)

    @classmethod
    def build(cls, allow: bool, pattern: str) -> "RobotsRule":
        return cls(allow=allow, pattern=pattern, regex=_pattern_to_regex(pattern))

    def matches(self, path: str) -> bool:
        return self.regex.match(path) is not None


@dataclass
class RobotsGroup:
    agents: list[str] = field(default_factory=list)
    rules: list[RobotsRule] = field(default_factory=list)


class RobotsRules:
    def __init__(self, groups: list[RobotsGroup]):
        self.groups = groups

    @classmethod
    def parse(cls, text: str) -> "RobotsRules":
        groups: list[RobotsGroup] = []
        current: Optional[RobotsGroup] = None
        collecting_agents = False

        for raw_line in text.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue
            key, value = line.split(":", 1)
            key = key.strip().lower()
            value = value.strip()

            if key == "user-agent":
                if current is None or not collecting_agents:
                    current = RobotsGroup()
                    groups.append(current)
                    collecting_agents = True
                current.agents.append(value.lower())
                continue

            if key in {"allow", "disallow"}:
                collecting_agents = False
                if current is None or not value:
                    # Rules before any User-agent line, or an empty
                    # "Disallow:", restrict nothing.
                    continue
                current.rules.append(RobotsRule.build(key == "allow", value))
                continue

            # Sitemap, Crawl-delay and friends end the agent list too.
            collecting_agents = False

        return cls(groups)

    def rules_for(self, user_agent_token: str) -> list[RobotsRule]:
        token = _product_token(user_agent_token)
        specific = [
            rule
            for group in self.groups
            if any(
                _product_token(agent) == token
                for agent in group.agents
                if agent != "*"
            )
            for rule in group.rules
        ]
        if specific:
            return specific
        return [
            rule
            for group in self.groups
            if "*" in group.agents
            for rule in group.rules
        ]

    def is_allowed(self, url: str, user_agent_token: str) -> bool:
        parsed = urlparse(url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"

        best: Optional[RobotsRule] = None
        for rule in self.rules_for(user_agent_token):
            if not rule.matches(path):
                continue
            if (
                best is None
                or len(rule.pattern) > len(best.pattern)
                or (len(rule.pattern) == len(best.pattern) and rule.allow)
            ):
                best = rule
        return best is None or best.allow


class RobotsGate:
    """Answers "may the pipeline fetch this URL?" from cached robots.txt rules."""

    def __init__(
        self,
        store: DomainPolicyStore,
        *,
        settings: Optional[ExtractionSettings] = None,
        fetcher: Optional[Fetcher] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self._store = store
        self._clock = clock
        self._fetcher = fetcher or partial(
            fetch_with_resilience,
            settings=self.settings,
            timeout=self.settings.robots_timeout_seconds,
            max_retries=0,
        )

    def is_allowed(self, url: str) -> bool:
        if not self.settings.robots_enabled:
            return True
        rules = self._rules_for(origin_of(url))
        if rules is None:
            return True
        allowed = rules.is_allowed(url, self.settings.robots_user_agent_token)
        if not allowed:
            logger.info(
                event="robots_disallowed",
                operation="robots.check",
                url=url,
                status="disallowed",
            )
        return allowed

    def _rules_for(self, origin: str) -> Optional[RobotsRules]:
        policy = self._store.get(origin)
        with policy.robots_lock:
            checked_at = policy.robots_checked_at
            fresh = (
                checked_at is not None
                and self._clock() - checked_at < self.settings.robots_cache_ttl_seconds
            )
            if not fresh:
                policy.robots_rules = self._load(origin)
                policy.robots_checked_at = self._clock()
            return policy.robots_rules

    def _load(self, origin: str) -> Optional[RobotsRules]:
        robots_url = f"{origin}/robots.txt"
        try:
            result = self._fetcher(robots_url)
        except ExtractionError as exc:
            logger.info(
                event="robots_unavailable",
                operation="robots.fetch",
                url=robots_url,
                status="fail_open",
                error=str(exc),
            )
            return None

        body = (result.html or "").lstrip()
        if not body or body.startswith("<"):
            # Soft-404 pages come back as HTML; treat them as "no robots.txt".
            return None
        try:
            rules = RobotsRules.parse(body)
        except Exception as exc:  # pragma: no cover
            logger.warning(
                event="robots_parse_failure",
                operation="robots.parse",
                url=robots_url,
                status="fail_open",
                error=str(exc),
            )
            return None
        logger.debug(
            event="robots_loaded",
            operation="robots.fetch",
            url=robots_url,
            groups=len(rules.groups),
        )
        return rules
