"""Audit-side data model: issue taxonomy, issues and scored audit results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from siteaudit.utils.helpers import MAPPING_FIELD, make_serialisable


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


class IssueCategory(str, Enum):
    META = "meta"
    CONTENT = "content"
    TECHNICAL = "technical"
    STRUCTURED_DATA = "structured-data"
    PERFORMANCE = "performance"


class IssueType(str, Enum):
    """Fixed taxonomy of auditable problems, shared by audit and auto-fix."""

    MISSING_META_TITLE = "missing_meta_title"
    DUPLICATE_META_TITLE = "duplicate_meta_title"
    TITLE_TOO_SHORT = "title_too_short"
    TITLE_TOO_LONG = "title_too_long"
    MISSING_META_DESCRIPTION = "missing_meta_description"
    DUPLICATE_META_DESCRIPTION = "duplicate_meta_description"
    META_DESCRIPTION_TOO_SHORT = "meta_description_too_short"
    META_DESCRIPTION_TOO_LONG = "meta_description_too_long"
    MISSING_OPEN_GRAPH = "missing_open_graph"
    MISSING_H1 = "missing_h1"
    MULTIPLE_H1 = "multiple_h1"
    MISSING_ALT_TEXT = "missing_alt_text"
    THIN_CONTENT = "thin_content"
    EMPTY_ANCHOR_TEXT = "empty_anchor_text"
    TOO_MANY_LINKS = "too_many_links"
    MISSING_CANONICAL = "missing_canonical"
    CANONICAL_MISMATCH = "canonical_mismatch"
    NOINDEX_PAGE = "noindex_page"
    NOFOLLOW_PAGE = "nofollow_page"
    BROKEN_LINK = "broken_link"
    ORPHAN_PAGE = "orphan_page"
    WEAK_INTERNAL_LINKING = "weak_internal_linking"
    MISSING_SCHEMA = "missing_schema"
    SLOW_PAGE = "slow_page"
    LARGE_HTML = "large_html"


@dataclass(frozen=True)
class IssueRef:
    """Back-reference to an issue: ``(page_url, type)`` is unique per audit."""

    page_url: str
    type: IssueType


@dataclass(frozen=True)
class AuditIssue:
    type: IssueType
    severity: Severity
    category: IssueCategory
    page_url: str
    title: str
    description: str
    recommendation: str
    details: tuple[tuple[str, Any], ...] = field(default=(), metadata=MAPPING_FIELD)

    @property
    def ref(self) -> IssueRef:
        return IssueRef(page_url=self.page_url, type=self.type)

    def detail(self, key: str, default: Any = None) -> Any:
        for name, value in self.details:
            if name == key:
                return value
        return default

    def sort_key(self) -> tuple[int, str, str]:
        return (self.severity.rank, self.page_url, self.type.value)


@dataclass(frozen=True)
class AuditSummary:
    total_issues: int
    critical_issues: int
    warning_issues: int
    info_issues: int
    category_breakdown: tuple[tuple[str, int], ...] = field(metadata=MAPPING_FIELD)

    def category_count(self, category: IssueCategory) -> int:
        return dict(self.category_breakdown).get(category.value, 0)


@dataclass(frozen=True)
class PageScore:
    url: str
    score: float
    issues: int
    critical_issues: int


@dataclass(frozen=True)
class AuditResult:
    """Scored audit of one :class:`~siteaudit.models.crawl.CrawlResult`."""

    score: float
    summary: AuditSummary
    issues: tuple[AuditIssue, ...]
    root_url: str = ""
    total_pages: int = 0
    page_scores: tuple[PageScore, ...] = ()

    def find(self, ref: IssueRef) -> Optional[AuditIssue]:
        for issue in self.issues:
            if issue.page_url == ref.page_url and issue.type == ref.type:
                return issue
        return None

    def issues_for(self, page_url: str) -> list[AuditIssue]:
        return [issue for issue in self.issues if issue.page_url == page_url]

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)
