"""Tests for URL, text, helper and rate limiting utilities."""

import asyncio

import pytest


# ===========================================================================
# URL utilities
# ===========================================================================
class TestUrlUtils:

    @pytest.mark.parametrize("raw,expected", [
        ("HTTPS://Example.com:443/About/?utm=1#team", "https://example.com/About"),
        ("http://example.com", "http://example.com/"),
        ("http://example.com:80/", "http://example.com/"),
        ("http://example.com:8080/a/", "http://example.com:8080/a"),
        ("https://example.com//", "https://example.com/"),
        ("  https://example.com/x  ", "https://example.com/x"),
    ])
    def test_canonicalize_url(self, raw, expected):
        from siteaudit.utils.url_utils import canonicalize_url

        assert canonicalize_url(raw) == expected

    def test_canonicalize_is_idempotent(self):
        from siteaudit.utils.url_utils import canonicalize_url

        once = canonicalize_url("HTTP://WWW.Example.com/Path/")
        assert canonicalize_url(once) == once

    @pytest.mark.parametrize("host,expected", [
        ("example.com", "example.com"),
        ("blog.example.com", "example.com"),
        ("a.b.example.com", "example.com"),
        ("shop.example.co.uk", "example.co.uk"),
        ("127.0.0.1", "127.0.0.1"),
        ("localhost", "localhost"),
        ("", ""),
    ])
    def test_registrable_domain(self, host, expected):
        from siteaudit.utils.url_utils import registrable_domain

        assert registrable_domain(host) == expected

    def test_is_same_site(self):
        from siteaudit.utils.url_utils import is_same_site

        root = "https://example.com/"
        assert is_same_site("https://blog.example.com/post", root)
        assert is_same_site("http://example.com/x", root)
        assert not is_same_site("https://example.org/", root)
        assert not is_same_site("https://other.co.uk/", "https://example.co.uk/")
        assert not is_same_site("/relative", root)

    @pytest.mark.parametrize("href,expected", [
        ("/about", "https://example.com/about"),
        ("contact", "https://example.com/docs/contact"),
        ("https://other.org/x", "https://other.org/x"),
        ("#section", None),
        ("", None),
        ("mailto:team@example.com", None),
        ("tel:+123", None),
        ("javascript:void(0)", None),
        ("ftp://example.com/file", None),
        ("http://example.com:99999/", None),
    ])
    def test_resolve_href(self, href, expected):
        from siteaudit.utils.url_utils import resolve_href

        assert resolve_href(href, "https://example.com/docs/page") == expected

    def test_origin_and_path(self):
        from siteaudit.utils.url_utils import origin_of, path_of

        assert origin_of("HTTPS://Example.com:8443/a?b=1") == "https://example.com:8443"
        assert path_of("https://example.com/a?b=1") == "/a?b=1"
        assert path_of("https://example.com") == "/"


# ===========================================================================
# Validators
# ===========================================================================
class TestValidators:

    def test_validate_url(self):
        from siteaudit.utils.validators import validate_url

        assert validate_url("https://example.com/") == (True, "")
        assert validate_url("ftp://example.com/")[0] is False
        assert validate_url("https://")[0] is False
        assert validate_url("")[0] is False
        assert validate_url(None)[0] is False

    def test_normalise_root_url(self):
        from siteaudit.utils.validators import normalise_root_url

        assert normalise_root_url("example.com") == "https://example.com"
        assert normalise_root_url(" http://example.com/x ") == "http://example.com/x"


# ===========================================================================
# Text processing
# ===========================================================================
class TestTextProcessing:

    def test_count_words(self):
        from siteaudit.utils.text_processing import count_words

        assert count_words("one two  three\nfour") == 4
        assert count_words("") == 0

    def test_normalise_whitespace(self):
        from siteaudit.utils.text_processing import normalise_whitespace

        assert normalise_whitespace("  a \n\t b  ") == "a b"
        assert normalise_whitespace(None) == ""

    def test_tokenize_keywords(self):
        from siteaudit.utils.text_processing import tokenize_keywords

        tokens = tokenize_keywords("The Best Running Shoes of 2025", "Shoes for trail running")
        assert tokens == {"running", "shoes", "trail"}

    def test_jaccard_similarity(self):
        from siteaudit.utils.text_processing import jaccard_similarity

        assert jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard_similarity([], []) == 0.0
        assert jaccard_similarity({"x"}, {"x"}) == 1.0

    @pytest.mark.parametrize("text,expected", [
        ("How do trail shoes fit?", True),
        ("Sizing?", True),
        ("What is heel drop", True),
        ("What", False),
        ("Choosing grip", False),
        ("", False),
    ])
    def test_is_question_heading(self, text, expected):
        from siteaudit.utils.text_processing import is_question_heading

        assert is_question_heading(text) is expected


# ===========================================================================
# Helpers
# ===========================================================================
class TestHelpers:

    def test_slugify(self):
        from siteaudit.utils.helpers import slugify

        assert slugify("Hello World Test") == "hello-world-test"
        assert slugify("  Best SEO Tools (2025)!  ") == "best-seo-tools-2025"
        assert slugify("blog.example.com") == "blogexamplecom"

    def test_truncate_text(self):
        from siteaudit.utils.helpers import truncate_text

        assert truncate_text("short", 10) == "short"
        result = truncate_text("The quick brown fox jumps over the lazy dog", 20)
        assert len(result) <= 20
        assert result.endswith("...")

    def test_humanize_slug(self):
        from siteaudit.utils.helpers import humanize_slug

        assert humanize_slug("https://example.com/blog/best-seo_tools.html") == "Best Seo Tools"
        assert humanize_slug("https://example.com/") == "Home"

    def test_make_serialisable(self):
        from siteaudit.models.crawl import CrawledPage, CrawlStatus, Heading
        from siteaudit.utils.helpers import make_serialisable

        page = CrawledPage(
            url="https://example.com/",
            status_code=200,
            headings=(Heading(1, "Hi"),),
            og_tags=(("og:title", "Hi"),),
        )
        data = make_serialisable({"page": page, "status": CrawlStatus.ABORTED})
        assert data["status"] == "aborted"
        assert data["page"]["headings"] == [{"level": 1, "text": "Hi"}]
        assert data["page"]["og_tags"] == {"og:title": "Hi"}

    def test_key_value_fields_keep_their_shape_when_empty(self):
        from siteaudit.models.audit import AuditIssue, IssueCategory, IssueType, Severity
        from siteaudit.models.crawl import CrawledPage
        from siteaudit.utils.helpers import make_serialisable

        page = make_serialisable(CrawledPage(url="https://example.com/", status_code=200))
        assert page["og_tags"] == {}
        assert page["headings"] == []

        issue = AuditIssue(
            IssueType.MISSING_H1, Severity.WARNING, IssueCategory.CONTENT,
            "https://example.com/", "Missing H1 heading", "", "",
        )
        assert make_serialisable(issue)["details"] == {}

    def test_pair_tuples_outside_mapping_fields_stay_lists(self):
        from siteaudit.utils.helpers import make_serialisable

        assert make_serialisable((("a", 1), ("b", 2))) == [["a", 1], ["b", 2]]


# ===========================================================================
# PolitenessGate
# ===========================================================================
class FakeClock:
    """Manually advanced monotonic clock whose sleep just moves time forward."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestPolitenessGate:

    @pytest.mark.asyncio
    async def test_first_acquire_does_not_wait(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        clock = FakeClock()
        gate = PolitenessGate(delay_ms=500, clock=clock, sleep=clock.sleep)
        assert await gate.acquire("https://example.com") is True
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_waits_remaining_window(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        clock = FakeClock()
        gate = PolitenessGate(delay_ms=500, clock=clock, sleep=clock.sleep)
        await gate.acquire("https://example.com")
        clock.now += 0.25
        await gate.acquire("https://example.com")

        assert clock.sleeps == [0.25]
        # Second start recorded at 100.5; an immediate third acquire waits the full window.
        await gate.acquire("https://example.com")
        assert clock.sleeps == [0.25, 0.5]

    @pytest.mark.asyncio
    async def test_no_wait_after_window_elapsed(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        clock = FakeClock()
        gate = PolitenessGate(delay_ms=500, clock=clock, sleep=clock.sleep)
        await gate.acquire("https://example.com")
        clock.now += 2.0
        await gate.acquire("https://example.com")
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_origins_independent(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        clock = FakeClock()
        gate = PolitenessGate(delay_ms=500, clock=clock, sleep=clock.sleep)
        await gate.acquire("https://example.com")
        await gate.acquire("https://example.org")
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_set_delay(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        clock = FakeClock()
        gate = PolitenessGate(delay_ms=100, clock=clock, sleep=clock.sleep)
        gate.set_delay_ms(2000)
        assert gate.delay_ms == 2000
        async with gate.slot("https://example.com"):
            pass
        async with gate.slot("https://example.com"):
            pass
        assert clock.sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_concurrent_acquires_serialised(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        gate = PolitenessGate(delay_ms=30)
        starts: list[float] = []

        async def worker():
            async with gate.slot("https://example.com"):
                starts.append(asyncio.get_running_loop().time())

        await asyncio.gather(*(worker() for _ in range(3)))
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert len(gaps) == 2
        assert min(gaps) >= 0.03 - 5e-3

    @pytest.mark.asyncio
    async def test_cancel_event_cuts_wait_short(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        gate = PolitenessGate(delay_ms=5000)
        cancel = asyncio.Event()
        assert await gate.acquire("https://example.com", cancel) is True

        loop = asyncio.get_running_loop()
        loop.call_later(0.05, cancel.set)
        started = loop.time()
        async with gate.slot("https://example.com", cancel) as slot:
            assert slot.acquired is False
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_cancel_event_already_set(self):
        from siteaudit.utils.rate_limiter import PolitenessGate

        cancel = asyncio.Event()
        cancel.set()
        gate = PolitenessGate(delay_ms=0)
        assert await gate.acquire("https://example.com", cancel) is False
