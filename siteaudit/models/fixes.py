"""Remediation data model produced by the auto-fix engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from siteaudit.models.audit import IssueCategory, IssueRef
from siteaudit.utils.helpers import make_serialisable


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class FixSuggestion:
    issue_ref: IssueRef
    title: str
    description: str
    impact: str
    priority: Priority
    automated: bool
    effort: str = "medium"
    suggested_value: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)


@dataclass(frozen=True)
class InternalLinkSuggestion:
    """A proposed link edge; never applied by this package."""

    source_page: str
    target_page: str
    anchor_text: str
    relevance_score: float = 0.0
    context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)


@dataclass(frozen=True)
class ContentSuggestion:
    type: str
    priority: Priority
    suggestion: str
    page_url: Optional[str] = None
    affected_pages: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)


@dataclass(frozen=True)
class BulkFix:
    """Every fix in one issue category, for batch remediation."""

    category: IssueCategory
    affected_pages: tuple[str, ...]
    fixes: tuple[FixSuggestion, ...]
    estimated_impact: str

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)
