"""Remediation suggestions for audit issues, internal links and content.

Fix suggestions come from the static :data:`FIX_TABLE`: one template per
issue type, with an optional generator that derives a concrete value (a
title, a meta description, an alt text, a canonical tag) from the page.
Only mechanical fixes are marked ``automated``.
"""

import html
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from siteaudit.models.audit import AuditIssue, AuditResult, IssueCategory, IssueType, Severity
from siteaudit.models.crawl import CrawledPage
from siteaudit.models.fixes import (
    BulkFix,
    ContentSuggestion,
    FixSuggestion,
    InternalLinkSuggestion,
    Priority,
)
from siteaudit.modules.technical_audit.auditor import AuditThresholds
from siteaudit.utils.helpers import humanize_slug, truncate_text
from siteaudit.utils.text_processing import jaccard_similarity, tokenize_keywords
from siteaudit.utils.url_utils import registrable_domain

logger = logging.getLogger(__name__)

PRIORITY_BY_SEVERITY: dict[Severity, Priority] = {
    Severity.CRITICAL: Priority.HIGH,
    Severity.WARNING: Priority.MEDIUM,
    Severity.INFO: Priority.LOW,
}

IMPACT_BY_CATEGORY: dict[IssueCategory, str] = {
    IssueCategory.META: "Fixing {count} meta issues could improve CTR by 10-20%",
    IssueCategory.CONTENT: "Fixing {count} content issues could boost rankings",
    IssueCategory.TECHNICAL: "Fixing {count} technical issues improves crawling efficiency",
    IssueCategory.STRUCTURED_DATA: "Adding schema to {count} pages could enable rich snippets",
    IssueCategory.PERFORMANCE: "Fixing {count} performance issues improves user experience",
}

INBOUND_LINK_THRESHOLD = 2
MIN_LINK_RELEVANCE = 0.2
TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 155


# ---------------------------------------------------------------------------
# Value generators
# ---------------------------------------------------------------------------

def generate_title(page: CrawledPage) -> str:
    if page.h1:
        return truncate_text(page.h1[0], TITLE_MAX_LENGTH)
    return humanize_slug(page.url)


def generate_h1(page: CrawledPage) -> str:
    if page.title:
        # Drop a trailing "| Brand" or "- Brand" segment.
        cleaned = re.sub(r"\s+[|\-–—]\s+[^|\-–—]*$", "", page.title).strip()
        return cleaned or page.title
    return humanize_slug(page.url)


def generate_meta_description(page: CrawledPage) -> str:
    """Template description built from the page's headings."""
    parts = [h.text for h in page.headings if h.level <= 2 and h.text]
    content = ". ".join(parts)
    if len(content) >= 120:
        return truncate_text(content, DESCRIPTION_MAX_LENGTH)
    topic = page.title or (page.h1[0] if page.h1 else humanize_slug(page.url))
    text = f"Learn about {topic}."
    if content:
        text = f"{text} {content}."
    return truncate_text(text, DESCRIPTION_MAX_LENGTH)


def generate_alt_text(image_src: str, page: CrawledPage) -> str:
    filename = urlparse(image_src).path.rsplit("/", 1)[-1]
    name = re.sub(r"\.[^.]+$", "", filename)
    name = re.sub(r"[-_]+", " ", name).strip()
    if len(name) > 5 and not name.isdigit():
        return name.title()
    return f"Image from {page.title or humanize_slug(page.url)}"


def _escape(value: str) -> str:
    """Escape page-derived text for use in markup or an attribute value."""
    return html.escape(value, quote=True)


def _script_json(data: Any) -> str:
    """JSON that cannot close or comment out its surrounding script tag."""
    text = json.dumps(data, indent=2)
    return text.replace("&", "\\u0026").replace("<", "\\u003c").replace(">", "\\u003e")


def _faq_schema(questions: tuple[str, ...]) -> str:
    schema = {
        "@context": "https://schema.org",
        "@type": "FAQPage",
        "mainEntity": [
            {
                "@type": "Question",
                "name": question,
                "acceptedAnswer": {"@type": "Answer", "text": ""},
            }
            for question in questions
        ],
    }
    return f'<script type="application/ld+json">\n{_script_json(schema)}\n</script>'


# Each generator returns (suggested_value, code) for one issue on one page.
Generator = Callable[[AuditIssue, CrawledPage], tuple[Optional[str], Optional[str]]]


def _title_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    title = generate_title(page)
    return title, f"<title>{_escape(title)}</title>"


def _optimised_title(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    title = page.title or generate_title(page)
    if len(title) > TITLE_MAX_LENGTH:
        title = truncate_text(title, TITLE_MAX_LENGTH)
    else:
        site = registrable_domain(urlparse(page.url).hostname or "")
        if site:
            title = truncate_text(f"{title} | {site}", TITLE_MAX_LENGTH)
    return title, f"<title>{_escape(title)}</title>"


def _unique_title(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    topic = page.h1[0] if page.h1 else humanize_slug(page.url)
    base = page.title or ""
    title = topic if topic.lower() in base.lower() else f"{topic} | {base}".strip(" |")
    title = truncate_text(title, TITLE_MAX_LENGTH)
    return title, f"<title>{_escape(title)}</title>"


def _description_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    if page.meta_description and len(page.meta_description) > DESCRIPTION_MAX_LENGTH:
        desc = truncate_text(page.meta_description, DESCRIPTION_MAX_LENGTH)
    else:
        desc = generate_meta_description(page)
    return desc, f'<meta name="description" content="{_escape(desc)}" />'


def _h1_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    h1 = generate_h1(page)
    return h1, f"<h1>{_escape(h1)}</h1>"


def _keep_first_h1(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    if not page.h1:
        return None, None
    return f"Keep: {page.h1[0]}", None


def _alt_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    images = issue.detail("images") or tuple(img.src for img in page.images if not img.has_alt)
    if not images:
        return None, None
    alt = generate_alt_text(images[0], page)
    return alt, f'alt="{_escape(alt)}"'


def _canonical_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    return page.url, f'<link rel="canonical" href="{_escape(page.url)}" />'


def _faq_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    questions = issue.detail("questions") or ()
    return "FAQPage schema", _faq_schema(tuple(questions))


def _broken_links_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    urls = issue.detail("urls") or ()
    if not urls:
        return None, None
    return "Remove or update: " + ", ".join(urls), None


def _index_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    return "index, follow", '<meta name="robots" content="index, follow" />'


def generate_og_tags(page: CrawledPage) -> str:
    """Open Graph block built from the page's own title and description."""
    tags = [
        ("og:title", page.title or generate_title(page)),
        ("og:description", page.meta_description or generate_meta_description(page)),
        ("og:type", "website"),
        ("og:url", page.url),
    ]
    if page.images:
        tags.append(("og:image", page.images[0].src))
    return "\n".join(
        f'<meta property="{name}" content="{_escape(value)}" />' for name, value in tags
    )


def _og_value(issue: AuditIssue, page: CrawledPage) -> tuple[Optional[str], Optional[str]]:
    return "Open Graph meta tags", generate_og_tags(page)


# ---------------------------------------------------------------------------
# Fix table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixTemplate:
    title: str
    description: str
    impact: str
    effort: str
    automated: bool
    generator: Optional[Generator] = None


FIX_TABLE: dict[IssueType, FixTemplate] = {
    IssueType.MISSING_META_TITLE: FixTemplate(
        "Add title tag", "Write a compelling, keyword-focused title for this page.",
        "High - title tags are crucial for rankings and CTR", "easy", False, _title_value,
    ),
    IssueType.DUPLICATE_META_TITLE: FixTemplate(
        "Make title unique", "Differentiate this title from the other pages that share it.",
        "Medium - duplicate titles compete with each other", "medium", False, _unique_title,
    ),
    IssueType.TITLE_TOO_SHORT: FixTemplate(
        "Lengthen title", "Adjust the title to 50-60 characters.",
        "Low - fuller titles earn more clicks", "easy", False, _optimised_title,
    ),
    IssueType.TITLE_TOO_LONG: FixTemplate(
        "Shorten title", "Adjust the title to 50-60 characters.",
        "Low - proper length ensures full display in search results", "easy", False, _optimised_title,
    ),
    IssueType.MISSING_META_DESCRIPTION: FixTemplate(
        "Add meta description", "Insert a meta description generated from the page headings.",
        "Medium - meta descriptions affect CTR in search results", "easy", True, _description_value,
    ),
    IssueType.DUPLICATE_META_DESCRIPTION: FixTemplate(
        "Make meta description unique", "Write a description specific to this page.",
        "Medium - duplicate snippets look like duplicate content", "medium", False, _description_value,
    ),
    IssueType.META_DESCRIPTION_TOO_SHORT: FixTemplate(
        "Expand meta description", "Adjust the description to 120-155 characters.",
        "Low - fuller snippets improve CTR", "easy", False, _description_value,
    ),
    IssueType.META_DESCRIPTION_TOO_LONG: FixTemplate(
        "Trim meta description", "Adjust the description to 120-155 characters.",
        "Low - avoids truncated snippets", "easy", False, _description_value,
    ),
    IssueType.MISSING_OPEN_GRAPH: FixTemplate(
        "Add Open Graph tags", "Insert og:title, og:description, og:type and og:url tags built from the page.",
        "Low - improves how the page looks when shared on social media", "easy", True, _og_value,
    ),
    IssueType.MISSING_H1: FixTemplate(
        "Add H1 heading", "Add a primary heading that describes the page content.",
        "High - the H1 is a key on-page signal", "easy", False, _h1_value,
    ),
    IssueType.MULTIPLE_H1: FixTemplate(
        "Fix multiple H1 tags", "Keep one primary H1 and demote the others to H2.",
        "Medium - multiple H1s blur the page topic", "medium", False, _keep_first_h1,
    ),
    IssueType.MISSING_ALT_TEXT: FixTemplate(
        "Add image alt text", "Add descriptive alt text derived from the image file name.",
        "Medium - alt text helps image search and accessibility", "easy", True, _alt_value,
    ),
    IssueType.THIN_CONTENT: FixTemplate(
        "Expand thin content", "Add comprehensive, original content to this page (500+ words).",
        "High - thin content struggles to rank", "hard", False,
    ),
    IssueType.EMPTY_ANCHOR_TEXT: FixTemplate(
        "Add anchor text", "Give every link descriptive text or an aria-label.",
        "Low - anchor text tells crawlers what the target is about", "easy", False,
    ),
    IssueType.TOO_MANY_LINKS: FixTemplate(
        "Reduce link count", "Trim repeated navigation, footer and tag-cloud links.",
        "Low - fewer links pass more equity each", "medium", False,
    ),
    IssueType.MISSING_CANONICAL: FixTemplate(
        "Add canonical tag", "Insert a self-referencing canonical link.",
        "Low - consolidates signals from duplicate URLs", "easy", True, _canonical_value,
    ),
    IssueType.NOINDEX_PAGE: FixTemplate(
        "Review noindex directive", "Remove noindex if this page should be searchable.",
        "High - noindex pages never appear in search results", "easy", False, _index_value,
    ),
    IssueType.NOFOLLOW_PAGE: FixTemplate(
        "Review nofollow directive", "Remove nofollow so crawlers can follow this page's links.",
        "Medium - nofollow stops link equity flowing to linked pages", "easy", False, _index_value,
    ),
    IssueType.BROKEN_LINK: FixTemplate(
        "Fix broken links", "Update or remove links to URLs that fail to load.",
        "High - broken links hurt user experience and crawling", "easy", False, _broken_links_value,
    ),
    IssueType.ORPHAN_PAGE: FixTemplate(
        "Add internal links", "Link to this page from 2-3 related pages.",
        "Medium - orphan pages are hard for search engines to discover", "medium", False,
    ),
    IssueType.WEAK_INTERNAL_LINKING: FixTemplate(
        "Strengthen internal linking", "Add contextual links between related pages; see the internal link suggestions.",
        "Medium - internal links spread authority and help discovery", "medium", False,
    ),
    IssueType.MISSING_SCHEMA: FixTemplate(
        "Add FAQPage schema", "Mark up the question headings with FAQPage structured data.",
        "Medium - FAQ markup can earn rich results", "easy", False, _faq_value,
    ),
    IssueType.SLOW_PAGE: FixTemplate(
        "Improve load time", "Reduce server response time, compress assets and defer scripts.",
        "Medium - slow pages lose visitors and rankings", "hard", False,
    ),
    IssueType.LARGE_HTML: FixTemplate(
        "Reduce HTML size", "Move inline scripts and styles to cached files and drop unused markup.",
        "Low - smaller documents parse faster", "medium", False,
    ),
}


# ---------------------------------------------------------------------------
# AutoFixEngine
# ---------------------------------------------------------------------------

class AutoFixEngine:
    """Turn audit output and crawled pages into remediation suggestions."""

    def __init__(self, thresholds: Optional[AuditThresholds] = None) -> None:
        self.thresholds = thresholds or AuditThresholds()

    def generate_fixes(self, audit_result: AuditResult, pages: list[CrawledPage] | tuple[CrawledPage, ...]) -> list[FixSuggestion]:
        """One suggestion per issue that has a :data:`FIX_TABLE` entry, in issue order."""
        if not isinstance(audit_result, AuditResult):
            raise TypeError(f"generate_fixes() expects an AuditResult, got {type(audit_result).__name__}")
        by_url = {page.url: page for page in pages}
        fixes: list[FixSuggestion] = []
        for issue in audit_result.issues:
            template = FIX_TABLE.get(issue.type)
            if template is None:
                logger.debug("No fix template for %s", issue.type.value)
                continue
            fixes.append(self._build_fix(issue, template, by_url.get(issue.page_url)))
        logger.info("Generated %d fix suggestions for %d issues", len(fixes), len(audit_result.issues))
        return fixes

    def generate_bulk_fixes(
        self, audit_result: AuditResult, pages: list[CrawledPage] | tuple[CrawledPage, ...],
    ) -> list[BulkFix]:
        """Group fix suggestions by issue category, in category order.

        Categories without a single fix are left out. Affected pages are
        listed once each, in issue order.
        """
        by_category: dict[IssueCategory, list[FixSuggestion]] = {}
        for fix in self.generate_fixes(audit_result, pages):
            issue = audit_result.find(fix.issue_ref)
            by_category.setdefault(issue.category, []).append(fix)

        bulk: list[BulkFix] = []
        for category in IssueCategory:
            fixes = by_category.get(category)
            if not fixes:
                continue
            bulk.append(BulkFix(
                category=category,
                affected_pages=tuple(dict.fromkeys(f.issue_ref.page_url for f in fixes)),
                fixes=tuple(fixes),
                estimated_impact=estimate_impact(category, len(fixes)),
            ))
        return bulk

    @staticmethod
    def _build_fix(issue: AuditIssue, template: FixTemplate, page: Optional[CrawledPage]) -> FixSuggestion:
        suggested, code = None, None
        if template.generator is not None and page is not None:
            suggested, code = template.generator(issue, page)
        return FixSuggestion(
            issue_ref=issue.ref,
            title=template.title,
            description=template.description,
            impact=template.impact,
            priority=PRIORITY_BY_SEVERITY[issue.severity],
            automated=template.automated,
            effort=template.effort,
            suggested_value=suggested,
            code=code,
        )

    def generate_internal_link_suggestions(
        self, pages: list[CrawledPage] | tuple[CrawledPage, ...],
    ) -> list[InternalLinkSuggestion]:
        """Propose one inbound link for every weakly linked page.

        For each page with fewer than ``INBOUND_LINK_THRESHOLD`` inbound
        internal links, pick the most related other page (Jaccard overlap
        of title and heading keywords above ``MIN_LINK_RELEVANCE``) that
        does not already link to it.
        """
        inbound: dict[str, int] = {page.url: 0 for page in pages}
        outbound: dict[str, set[str]] = {}
        for page in pages:
            targets = {link.href for link in page.internal_links if link.href != page.url}
            outbound[page.url] = targets
            for href in targets:
                if href in inbound:
                    inbound[href] += 1

        keywords = {
            page.url: tokenize_keywords(page.title or "", *(h.text for h in page.headings))
            for page in pages
        }

        suggestions: list[InternalLinkSuggestion] = []
        for target in pages:
            if inbound[target.url] >= INBOUND_LINK_THRESHOLD:
                continue
            best: Optional[tuple[float, str]] = None
            for source in pages:
                if source.url == target.url or target.url in outbound[source.url]:
                    continue
                score = jaccard_similarity(keywords[source.url], keywords[target.url])
                if score <= MIN_LINK_RELEVANCE:
                    continue
                if best is None or score > best[0] or (score == best[0] and source.url < best[1]):
                    best = (score, source.url)
            if best is None:
                continue
            score, source_url = best
            overlap = sorted(keywords[source_url] & keywords[target.url])
            anchor = (target.h1[0] if target.h1 else None) or target.title or humanize_slug(target.url)
            suggestions.append(InternalLinkSuggestion(
                source_page=source_url,
                target_page=target.url,
                anchor_text=anchor,
                relevance_score=round(score, 3),
                context="Both pages discuss: " + ", ".join(overlap[:3]),
            ))
        logger.info("Generated %d internal link suggestions", len(suggestions))
        return suggestions

    def generate_content_suggestions(
        self, pages: list[CrawledPage] | tuple[CrawledPage, ...],
    ) -> list[ContentSuggestion]:
        """Site-wide content opportunities, each listing the pages it affects."""
        if not pages:
            return []
        thin_limit = self.thresholds.thin_content_words
        suggestions: list[ContentSuggestion] = []

        thin = tuple(p.url for p in pages if p.word_count < thin_limit)
        if thin:
            suggestions.append(ContentSuggestion(
                type="expand",
                priority=Priority.HIGH,
                suggestion=(
                    f"{len(thin)} pages have fewer than {thin_limit} words. Expand them with "
                    "detailed explanations, examples or FAQs."
                ),
                affected_pages=thin,
            ))

        if not any("FAQPage" in p.schema_types for p in pages):
            suggestions.append(ContentSuggestion(
                type="add-faq",
                priority=Priority.MEDIUM,
                suggestion=(
                    "No page carries FAQPage schema. Add an FAQ section answering common "
                    "customer questions to target 'People Also Ask' results."
                ),
            ))

        no_images = tuple(p.url for p in pages if not p.images and p.word_count >= thin_limit)
        if no_images:
            suggestions.append(ContentSuggestion(
                type="add-images",
                priority=Priority.MEDIUM,
                suggestion=(
                    f"{len(no_images)} text pages have no images. Add relevant images with "
                    "descriptive alt text."
                ),
                affected_pages=no_images,
            ))

        no_subheadings = tuple(
            p.url for p in pages
            if p.word_count > 200 and not any(h.level >= 2 for h in p.headings)
        )
        if no_subheadings:
            suggestions.append(ContentSuggestion(
                type="add-heading",
                priority=Priority.MEDIUM,
                suggestion=(
                    f"{len(no_subheadings)} pages have no subheadings. Add H2 sections roughly "
                    "every 200-300 words."
                ),
                affected_pages=no_subheadings,
            ))

        no_schema = tuple(p.url for p in pages if not p.schema_types)
        if no_schema:
            suggestions.append(ContentSuggestion(
                type="add-schema",
                priority=Priority.LOW,
                suggestion=(
                    f"{len(no_schema)} pages have no structured data. Add WebPage, Article or "
                    "Product schema as appropriate."
                ),
                affected_pages=no_schema,
            ))
        return suggestions


def estimate_impact(category: IssueCategory, count: int) -> str:
    return IMPACT_BY_CATEGORY.get(category, "{count} issues to fix").format(count=count)


def generate_fixes(audit_result: AuditResult, pages) -> list[FixSuggestion]:
    return AutoFixEngine().generate_fixes(audit_result, pages)


def generate_bulk_fixes(audit_result: AuditResult, pages) -> list[BulkFix]:
    return AutoFixEngine().generate_bulk_fixes(audit_result, pages)


def generate_internal_link_suggestions(pages) -> list[InternalLinkSuggestion]:
    return AutoFixEngine().generate_internal_link_suggestions(pages)


def generate_content_suggestions(pages) -> list[ContentSuggestion]:
    return AutoFixEngine().generate_content_suggestions(pages)
