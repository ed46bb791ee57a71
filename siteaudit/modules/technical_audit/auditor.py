"""Technical SEO auditor: a fixed rule table evaluated over crawled pages.

Every rule is an ``(IssueType, check)`` pair. A check looks at one page plus
site-wide context and returns a :class:`Finding` or ``None``, so each page
yields at most one issue per type. Severity and category come from the
static :data:`ISSUE_CATALOG`, never from the check.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Optional

from siteaudit.models.audit import (
    AuditIssue,
    AuditResult,
    AuditSummary,
    IssueCategory,
    IssueType,
    PageScore,
    Severity,
)
from siteaudit.models.crawl import CrawledPage, CrawlResult
from siteaudit.utils.text_processing import is_question_heading

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring weights and thresholds
# ---------------------------------------------------------------------------

SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.CRITICAL: 5.0,
    Severity.WARNING: 2.0,
    Severity.INFO: 0.5,
}


@dataclass(frozen=True)
class AuditThresholds:
    thin_content_words: int = 300
    slow_page_ms: int = 3000
    title_min_length: int = 30
    title_max_length: int = 60
    description_min_length: int = 70
    description_max_length: int = 160
    large_html_kb: int = 500
    faq_min_questions: int = 3
    max_links_per_page: int = 100
    min_avg_internal_links: float = 3.0


def score_from_issues(issues: list[AuditIssue] | tuple[AuditIssue, ...]) -> float:
    """``100 - sum(weight(severity))``, clamped once to ``[0, 100]``."""
    penalty = sum(SEVERITY_WEIGHTS[issue.severity] for issue in issues)
    return round(max(0.0, min(100.0, 100.0 - penalty)), 1)


# ---------------------------------------------------------------------------
# Issue catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueInfo:
    severity: Severity
    category: IssueCategory
    title: str
    recommendation: str


ISSUE_CATALOG: dict[IssueType, IssueInfo] = {
    IssueType.MISSING_META_TITLE: IssueInfo(
        Severity.CRITICAL, IssueCategory.META, "Missing page title",
        "Add a unique, descriptive <title> of 50-60 characters that includes the primary keyword.",
    ),
    IssueType.DUPLICATE_META_TITLE: IssueInfo(
        Severity.WARNING, IssueCategory.META, "Duplicate page title",
        "Give every page a unique title that reflects its specific content.",
    ),
    IssueType.TITLE_TOO_SHORT: IssueInfo(
        Severity.INFO, IssueCategory.META, "Title too short",
        "Expand the title with descriptive keywords to reach 50-60 characters.",
    ),
    IssueType.TITLE_TOO_LONG: IssueInfo(
        Severity.INFO, IssueCategory.META, "Title too long",
        "Shorten the title so it is not truncated in search results.",
    ),
    IssueType.MISSING_META_DESCRIPTION: IssueInfo(
        Severity.WARNING, IssueCategory.META, "Missing meta description",
        "Add a compelling meta description of 120-155 characters summarising the page.",
    ),
    IssueType.DUPLICATE_META_DESCRIPTION: IssueInfo(
        Severity.WARNING, IssueCategory.META, "Duplicate meta description",
        "Write a unique meta description for each page.",
    ),
    IssueType.META_DESCRIPTION_TOO_SHORT: IssueInfo(
        Severity.INFO, IssueCategory.META, "Meta description too short",
        "Expand the description to 120-155 characters with a clear call to action.",
    ),
    IssueType.META_DESCRIPTION_TOO_LONG: IssueInfo(
        Severity.INFO, IssueCategory.META, "Meta description too long",
        "Trim the description so the key message fits before truncation.",
    ),
    IssueType.MISSING_OPEN_GRAPH: IssueInfo(
        Severity.INFO, IssueCategory.META, "Missing Open Graph tags",
        "Add og:title, og:description and og:image so shared links render a rich preview.",
    ),
    IssueType.MISSING_H1: IssueInfo(
        Severity.WARNING, IssueCategory.CONTENT, "Missing H1 heading",
        "Add a single H1 that states the main topic of the page.",
    ),
    IssueType.MULTIPLE_H1: IssueInfo(
        Severity.WARNING, IssueCategory.CONTENT, "Multiple H1 headings",
        "Keep one H1 and demote the others to H2.",
    ),
    IssueType.MISSING_ALT_TEXT: IssueInfo(
        Severity.WARNING, IssueCategory.CONTENT, "Images missing alt text",
        "Describe every meaningful image with alt text for accessibility and image search.",
    ),
    IssueType.THIN_CONTENT: IssueInfo(
        Severity.WARNING, IssueCategory.CONTENT, "Thin content",
        "Expand the page with substantive, original content that answers user intent.",
    ),
    IssueType.EMPTY_ANCHOR_TEXT: IssueInfo(
        Severity.INFO, IssueCategory.CONTENT, "Links without anchor text",
        "Use descriptive anchor text so users and crawlers know where links lead.",
    ),
    IssueType.TOO_MANY_LINKS: IssueInfo(
        Severity.WARNING, IssueCategory.TECHNICAL, "Too many links",
        "Trim navigation and footer links so link equity goes to the pages that matter.",
    ),
    IssueType.MISSING_CANONICAL: IssueInfo(
        Severity.INFO, IssueCategory.TECHNICAL, "Missing canonical tag",
        "Add a self-referencing <link rel=\"canonical\"> to consolidate duplicate URLs.",
    ),
    IssueType.CANONICAL_MISMATCH: IssueInfo(
        Severity.INFO, IssueCategory.TECHNICAL, "Canonical points to another URL",
        "Confirm the canonical target is intentional; otherwise make it self-referencing.",
    ),
    IssueType.NOINDEX_PAGE: IssueInfo(
        Severity.WARNING, IssueCategory.TECHNICAL, "Page set to noindex",
        "Remove the noindex directive if this page should appear in search results.",
    ),
    IssueType.NOFOLLOW_PAGE: IssueInfo(
        Severity.INFO, IssueCategory.TECHNICAL, "Page set to nofollow",
        "Remove the nofollow directive unless crawlers should ignore every link on this page.",
    ),
    IssueType.BROKEN_LINK: IssueInfo(
        Severity.CRITICAL, IssueCategory.TECHNICAL, "Broken internal links",
        "Update or remove links pointing to pages that fail to load.",
    ),
    IssueType.ORPHAN_PAGE: IssueInfo(
        Severity.WARNING, IssueCategory.TECHNICAL, "Orphan page",
        "Link to this page from related content so users and crawlers can reach it.",
    ),
    IssueType.WEAK_INTERNAL_LINKING: IssueInfo(
        Severity.WARNING, IssueCategory.TECHNICAL, "Weak internal linking",
        "Add contextual links between related pages so each page links to at least three others.",
    ),
    IssueType.MISSING_SCHEMA: IssueInfo(
        Severity.INFO, IssueCategory.STRUCTURED_DATA, "FAQ content without FAQPage schema",
        "Mark up the questions and answers with FAQPage structured data.",
    ),
    IssueType.SLOW_PAGE: IssueInfo(
        Severity.WARNING, IssueCategory.PERFORMANCE, "Slow page load",
        "Reduce server response time, compress assets and defer non-critical scripts.",
    ),
    IssueType.LARGE_HTML: IssueInfo(
        Severity.INFO, IssueCategory.PERFORMANCE, "Large HTML document",
        "Remove inline scripts, styles and unused markup to shrink the document.",
    ),
}


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Finding:
    description: str
    details: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class SiteContext:
    """Site-wide facts computed once per audit and shared by every check."""

    thresholds: AuditThresholds
    title_counts: dict[str, int]
    description_counts: dict[str, int]
    error_urls: frozenset[str]
    inbound_links: dict[str, int]
    first_page_url: Optional[str] = None
    avg_internal_links: float = 0.0

    @classmethod
    def build(cls, result: CrawlResult, thresholds: AuditThresholds) -> "SiteContext":
        titles = Counter(p.title.strip().lower() for p in result.pages if p.title)
        descriptions = Counter(p.meta_description.strip().lower() for p in result.pages if p.meta_description)
        inbound: Counter = Counter()
        outbound_total = 0
        for page in result.pages:
            for link in page.internal_links:
                if link.href != page.url:
                    inbound[link.href] += 1
                    outbound_total += 1
        pages = len(result.pages)
        return cls(
            thresholds=thresholds,
            title_counts=dict(titles),
            description_counts=dict(descriptions),
            error_urls=frozenset(error.url for error in result.errors),
            inbound_links=dict(inbound),
            first_page_url=result.pages[0].url if pages else None,
            avg_internal_links=outbound_total / pages if pages else 0.0,
        )


Check = Callable[[CrawledPage, SiteContext], Optional[Finding]]


def _missing_title(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.title:
        return None
    return Finding("This page has no <title> tag, which is critical for search rankings.")


def _duplicate_title(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.title:
        return None
    count = ctx.title_counts.get(page.title.strip().lower(), 0)
    if count < 2:
        return None
    return Finding(
        f"This title is used on {count} pages. Each page should have a unique title.",
        (("count", count), ("title", page.title)),
    )


def _title_too_short(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.title or len(page.title) >= ctx.thresholds.title_min_length:
        return None
    return Finding(
        f"Title is only {len(page.title)} characters.",
        (("length", len(page.title)), ("title", page.title)),
    )


def _title_too_long(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.title or len(page.title) <= ctx.thresholds.title_max_length:
        return None
    return Finding(
        f"Title is {len(page.title)} characters and may be truncated in search results.",
        (("length", len(page.title)), ("title", page.title)),
    )


def _missing_description(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.meta_description:
        return None
    return Finding("This page has no meta description; search engines will pick a snippet themselves.")


def _duplicate_description(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.meta_description:
        return None
    count = ctx.description_counts.get(page.meta_description.strip().lower(), 0)
    if count < 2:
        return None
    return Finding(f"{count} pages share the same meta description.", (("count", count),))


def _description_too_short(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    desc = page.meta_description
    if not desc or len(desc) >= ctx.thresholds.description_min_length:
        return None
    return Finding(f"Meta description is only {len(desc)} characters.", (("length", len(desc)),))


def _description_too_long(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    desc = page.meta_description
    if not desc or len(desc) <= ctx.thresholds.description_max_length:
        return None
    return Finding(
        f"Meta description is {len(desc)} characters and may be truncated.",
        (("length", len(desc)),),
    )


OPEN_GRAPH_TAGS = ("og:title", "og:description", "og:image")


def _missing_open_graph(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    missing = tuple(tag for tag in OPEN_GRAPH_TAGS if not page.og(tag))
    if not missing:
        return None
    return Finding(
        f"Missing {', '.join(missing)}; social shares of this page get a bare preview.",
        (("missing", missing),),
    )


def _missing_h1(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.h1:
        return None
    return Finding("This page has no H1 heading.")


def _multiple_h1(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if len(page.h1) < 2:
        return None
    return Finding(
        f"This page has {len(page.h1)} H1 tags. Best practice is exactly one.",
        (("count", len(page.h1)),),
    )


def _missing_alt(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    missing = [img.src for img in page.images if not img.has_alt]
    if not missing:
        return None
    return Finding(
        f"{len(missing)} of {len(page.images)} images have no alt text.",
        (("count", len(missing)), ("images", tuple(missing[:10]))),
    )


def _thin_content(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.word_count >= ctx.thresholds.thin_content_words:
        return None
    return Finding(
        f"Only {page.word_count} words. Pages under {ctx.thresholds.thin_content_words} words rarely rank.",
        (("word_count", page.word_count),),
    )


def _empty_anchor(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    empty = [link.href for link in page.links if not link.anchor_text.strip()]
    if not empty:
        return None
    return Finding(f"{len(empty)} links have no anchor text.", (("count", len(empty)),))


def _too_many_links(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if len(page.links) <= ctx.thresholds.max_links_per_page:
        return None
    return Finding(
        f"This page has {len(page.links)} links, which dilutes the equity each one passes.",
        (("link_count", len(page.links)),),
    )


def _missing_canonical(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.canonical_url:
        return None
    return Finding("This page does not declare a canonical URL.")


def _canonical_mismatch(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.canonical_url or page.canonical_url == page.url:
        return None
    return Finding(
        f"Canonical points to {page.canonical_url}.",
        (("canonical_url", page.canonical_url),),
    )


def _noindex(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.robots_directive or "noindex" not in page.robots_directive.lower():
        return None
    return Finding(
        "A robots meta tag tells search engines not to index this page.",
        (("directive", page.robots_directive),),
    )


def _nofollow(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if not page.robots_directive or "nofollow" not in page.robots_directive.lower():
        return None
    return Finding(
        "A robots meta tag tells search engines not to follow links on this page.",
        (("directive", page.robots_directive),),
    )


def _broken_links(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    broken = [link.href for link in page.links if link.href in ctx.error_urls]
    if not broken:
        return None
    return Finding(
        f"{len(broken)} links on this page point to URLs that failed to load.",
        (("count", len(broken)), ("urls", tuple(broken))),
    )


def _orphan(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.depth == 0 or ctx.inbound_links.get(page.url, 0) > 0:
        return None
    return Finding("No crawled page links to this page.")


def _weak_internal_linking(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    """Site-wide: reported once, on the first crawled page."""
    if page.url != ctx.first_page_url or ctx.avg_internal_links >= ctx.thresholds.min_avg_internal_links:
        return None
    average = round(ctx.avg_internal_links, 1)
    return Finding(
        f"Pages average only {average} internal links each.",
        (("average_internal_links", average),),
    )


def _missing_faq_schema(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    questions = [h.text for h in page.headings if h.level > 1 and is_question_heading(h.text)]
    if len(questions) < ctx.thresholds.faq_min_questions or "FAQPage" in page.schema_types:
        return None
    return Finding(
        f"{len(questions)} question headings found but no FAQPage structured data.",
        (("questions", tuple(questions)),),
    )


def _slow_page(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    if page.load_time_ms <= ctx.thresholds.slow_page_ms:
        return None
    return Finding(
        f"Page took {page.load_time_ms}ms to load (threshold {ctx.thresholds.slow_page_ms}ms).",
        (("load_time_ms", page.load_time_ms),),
    )


def _large_html(page: CrawledPage, ctx: SiteContext) -> Optional[Finding]:
    size_kb = page.html_size // 1024
    if size_kb <= ctx.thresholds.large_html_kb:
        return None
    return Finding(f"HTML document is {size_kb}KB.", (("size_kb", size_kb),))


RULES: tuple[tuple[IssueType, Check], ...] = (
    (IssueType.MISSING_META_TITLE, _missing_title),
    (IssueType.DUPLICATE_META_TITLE, _duplicate_title),
    (IssueType.TITLE_TOO_SHORT, _title_too_short),
    (IssueType.TITLE_TOO_LONG, _title_too_long),
    (IssueType.MISSING_META_DESCRIPTION, _missing_description),
    (IssueType.DUPLICATE_META_DESCRIPTION, _duplicate_description),
    (IssueType.META_DESCRIPTION_TOO_SHORT, _description_too_short),
    (IssueType.META_DESCRIPTION_TOO_LONG, _description_too_long),
    (IssueType.MISSING_OPEN_GRAPH, _missing_open_graph),
    (IssueType.MISSING_H1, _missing_h1),
    (IssueType.MULTIPLE_H1, _multiple_h1),
    (IssueType.MISSING_ALT_TEXT, _missing_alt),
    (IssueType.THIN_CONTENT, _thin_content),
    (IssueType.EMPTY_ANCHOR_TEXT, _empty_anchor),
    (IssueType.TOO_MANY_LINKS, _too_many_links),
    (IssueType.MISSING_CANONICAL, _missing_canonical),
    (IssueType.CANONICAL_MISMATCH, _canonical_mismatch),
    (IssueType.NOINDEX_PAGE, _noindex),
    (IssueType.NOFOLLOW_PAGE, _nofollow),
    (IssueType.BROKEN_LINK, _broken_links),
    (IssueType.ORPHAN_PAGE, _orphan),
    (IssueType.WEAK_INTERNAL_LINKING, _weak_internal_linking),
    (IssueType.MISSING_SCHEMA, _missing_faq_schema),
    (IssueType.SLOW_PAGE, _slow_page),
    (IssueType.LARGE_HTML, _large_html),
)


# ---------------------------------------------------------------------------
# AuditEngine
# ---------------------------------------------------------------------------

class AuditEngine:
    """Score a :class:`CrawlResult` against the rule table.

    Pure and deterministic: the same crawl result always produces the same
    issues in the same order and the same score.
    """

    def __init__(self, thresholds: Optional[AuditThresholds] = None) -> None:
        self.thresholds = thresholds or AuditThresholds()

    def audit(self, crawl_result: CrawlResult) -> AuditResult:
        if not isinstance(crawl_result, CrawlResult):
            raise TypeError(f"audit() expects a CrawlResult, got {type(crawl_result).__name__}")

        ctx = SiteContext.build(crawl_result, self.thresholds)
        issues: list[AuditIssue] = []
        page_scores: list[PageScore] = []

        for page in crawl_result.pages:
            page_issues = self.audit_page(page, ctx)
            issues.extend(page_issues)
            page_scores.append(PageScore(
                url=page.url,
                score=score_from_issues(page_issues),
                issues=len(page_issues),
                critical_issues=sum(1 for i in page_issues if i.severity == Severity.CRITICAL),
            ))

        issues.sort(key=AuditIssue.sort_key)
        page_scores.sort(key=lambda s: (s.score, s.url))
        summary = self._summarise(issues)
        score = score_from_issues(issues)

        logger.info(
            "Audit complete for %s: score=%.1f, %d issues (%d critical) across %d pages",
            crawl_result.root_url, score, summary.total_issues, summary.critical_issues,
            len(crawl_result.pages),
        )
        return AuditResult(
            score=score,
            summary=summary,
            issues=tuple(issues),
            root_url=crawl_result.root_url,
            total_pages=len(crawl_result.pages),
            page_scores=tuple(page_scores),
        )

    def audit_page(self, page: CrawledPage, ctx: SiteContext) -> list[AuditIssue]:
        """Run every rule once against *page*."""
        found: list[AuditIssue] = []
        for issue_type, check in RULES:
            finding = check(page, ctx)
            if finding is None:
                continue
            info = ISSUE_CATALOG[issue_type]
            found.append(AuditIssue(
                type=issue_type,
                severity=info.severity,
                category=info.category,
                page_url=page.url,
                title=info.title,
                description=finding.description,
                recommendation=info.recommendation,
                details=tuple(sorted(finding.details)),
            ))
        return found

    @staticmethod
    def _summarise(issues: list[AuditIssue]) -> AuditSummary:
        by_severity = Counter(issue.severity for issue in issues)
        by_category = Counter(issue.category for issue in issues)
        return AuditSummary(
            total_issues=len(issues),
            critical_issues=by_severity[Severity.CRITICAL],
            warning_issues=by_severity[Severity.WARNING],
            info_issues=by_severity[Severity.INFO],
            category_breakdown=tuple((cat.value, by_category[cat]) for cat in IssueCategory),
        )


def audit(crawl_result: CrawlResult, thresholds: Optional[AuditThresholds] = None) -> AuditResult:
    """Audit *crawl_result* with a fresh :class:`AuditEngine`."""
    return AuditEngine(thresholds).audit(crawl_result)
