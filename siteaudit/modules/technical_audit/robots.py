"""robots.txt fetching and rule evaluation."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from siteaudit.exceptions import FetchError
from siteaudit.modules.technical_audit.fetcher import TEXT_ACCEPT, PageFetcher
from siteaudit.utils.url_utils import origin_of, path_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RobotsRule:
    allow: bool
    pattern: str

    @property
    def specificity(self) -> int:
        return len(self.pattern)

    def matches(self, path: str) -> bool:
        return _compile_pattern(self.pattern).match(path) is not None


@dataclass
class _Group:
    agents: list[str] = field(default_factory=list)
    rules: list[RobotsRule] = field(default_factory=list)
    crawl_delay: Optional[float] = None


_PATTERN_CACHE: dict[str, "re.Pattern[str]"] = {}


def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    compiled = _PATTERN_CACHE.get(pattern)
    if compiled is None:
        anchored = pattern.endswith("$")
        body = pattern[:-1] if anchored else pattern
        regex = ".*".join(re.escape(part) for part in body.split("*"))
        compiled = re.compile(regex + ("$" if anchored else ""))
        _PATTERN_CACHE[pattern] = compiled
    return compiled


def _agent_token(user_agent: str) -> str:
    """Product token of a User-Agent string: ``"SiteAuditBot/1.0 (...)"`` -> ``"siteauditbot"``."""
    token = user_agent.strip().split(" ", 1)[0]
    return token.split("/", 1)[0].lower()


class RobotsPolicy:
    """Evaluated robots.txt for one origin and one user agent.

    A policy built from a missing or unreadable file allows everything and
    reports the configured default crawl delay.
    """

    def __init__(
        self,
        rules: tuple[RobotsRule, ...] = (),
        crawl_delay_s: Optional[float] = None,
        sitemaps: tuple[str, ...] = (),
        default_delay_ms: int = 0,
        found: bool = False,
    ) -> None:
        self.rules = rules
        self.crawl_delay_s = crawl_delay_s
        self.sitemaps = sitemaps
        self.default_delay_ms = default_delay_ms
        self.found = found

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def permissive(cls, default_delay_ms: int = 0) -> "RobotsPolicy":
        return cls(default_delay_ms=default_delay_ms, found=False)

    @classmethod
    def parse(cls, text: str, user_agent: str, default_delay_ms: int = 0) -> "RobotsPolicy":
        """Parse robots.txt *text* and keep the group that applies to *user_agent*."""
        groups: list[_Group] = []
        sitemaps: list[str] = []
        current: Optional[_Group] = None
        last_was_agent = False

        for raw_line in text.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue
            key, value = line.split(":", 1)
            key = key.strip().lower()
            value = value.strip()

            if key == "user-agent":
                if current is None or not last_was_agent:
                    current = _Group()
                    groups.append(current)
                current.agents.append(value.lower())
                last_was_agent = True
                continue

            last_was_agent = False
            if key == "sitemap":
                if value and value not in sitemaps:
                    sitemaps.append(value)
                continue
            if current is None:
                continue
            if key == "disallow":
                # An empty Disallow means "allow everything".
                if value:
                    current.rules.append(RobotsRule(allow=False, pattern=value))
            elif key == "allow":
                if value:
                    current.rules.append(RobotsRule(allow=True, pattern=value))
            elif key == "crawl-delay":
                try:
                    delay = float(value)
                except ValueError:
                    logger.debug("Ignoring malformed Crawl-delay %r", value)
                    continue
                if delay >= 0:
                    current.crawl_delay = delay

        selected = cls._select_groups(groups, _agent_token(user_agent))
        rules: list[RobotsRule] = []
        crawl_delay: Optional[float] = None
        for group in selected:
            rules.extend(group.rules)
            if group.crawl_delay is not None:
                crawl_delay = group.crawl_delay if crawl_delay is None else max(crawl_delay, group.crawl_delay)

        return cls(
            rules=tuple(rules),
            crawl_delay_s=crawl_delay,
            sitemaps=tuple(sitemaps),
            default_delay_ms=default_delay_ms,
            found=True,
        )

    @staticmethod
    def _select_groups(groups: list[_Group], token: str) -> list[_Group]:
        """Groups naming the most specific agent matching *token*, else ``*`` groups."""
        best_len = 0
        best: list[_Group] = []
        for group in groups:
            for agent in group.agents:
                if agent == "*" or not agent or agent not in token:
                    continue
                if len(agent) > best_len:
                    best_len = len(agent)
                    best = [group]
                elif len(agent) == best_len and group not in best:
                    best.append(group)
        if best:
            return best
        return [g for g in groups if "*" in g.agents]

    @classmethod
    async def load(
        cls,
        fetcher: PageFetcher,
        base_url: str,
        user_agent: str,
        default_delay_ms: int = 0,
    ) -> "RobotsPolicy":
        """Fetch ``{origin}/robots.txt`` and parse it.

        Never raises: a missing file, non-200 status or network failure
        yields a permissive policy.
        """
        url = f"{origin_of(base_url)}/robots.txt"
        try:
            response = await fetcher.fetch(url, accept=TEXT_ACCEPT)
        except FetchError as exc:
            logger.warning("Error fetching robots.txt at %s: %s", url, exc.reason)
            return cls.permissive(default_delay_ms)
        if response.status_code != 200:
            logger.info("robots.txt not found at %s (status %d)", url, response.status_code)
            return cls.permissive(default_delay_ms)

        policy = cls.parse(response.text, user_agent, default_delay_ms)
        logger.info(
            "robots.txt: %d rules, %d sitemaps, crawl-delay=%s",
            len(policy.rules), len(policy.sitemaps), policy.crawl_delay_s,
        )
        return policy

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_allowed(self, path_or_url: str) -> bool:
        """Longest matching rule wins; an Allow wins a tie; no match allows."""
        path = path_of(path_or_url) if "://" in path_or_url else (path_or_url or "/")
        if path == "/robots.txt":
            return True
        best: Optional[RobotsRule] = None
        for rule in self.rules:
            if not rule.matches(path):
                continue
            if (
                best is None
                or rule.specificity > best.specificity
                or (rule.specificity == best.specificity and rule.allow and not best.allow)
            ):
                best = rule
        return best is None or best.allow

    def crawl_delay_ms(self) -> int:
        if self.crawl_delay_s is None:
            return self.default_delay_ms
        return int(round(self.crawl_delay_s * 1000))
