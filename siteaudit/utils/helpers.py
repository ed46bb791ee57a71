"""General-purpose helper utilities for the site audit pipeline."""

import dataclasses
import re
import unicodedata
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import unquote, urlparse


def slugify(text: str, max_length: int = 75) -> str:
    """Convert text to a URL-safe slug.

    Args:
        text: Input text to slugify.
        max_length: Maximum slug length.

    Returns:
        Lowercase hyphen-separated slug.

    Examples:
        >>> slugify("Hello World Test")
        'hello-world-test'
        >>> slugify("  Best SEO Tools (2025)!  ")
        'best-seo-tools-2025'
    """
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    if len(text) > max_length:
        text = text[:max_length].rsplit("-", 1)[0]
    return text


def truncate_text(text: str, max_length: int = 160, suffix: str = "...") -> str:
    """Truncate text to a maximum length, breaking at word boundaries.

    Args:
        text: Input text.
        max_length: Maximum allowed length including suffix.
        suffix: String appended when truncation occurs.

    Returns:
        Truncated text with suffix if it was shortened.
    """
    if len(text) <= max_length:
        return text
    truncated = text[: max_length - len(suffix)]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated.rstrip(".,;:!? ") + suffix


def humanize_slug(url: str, fallback: str = "Home") -> str:
    """Turn the last path segment of *url* into a title-cased phrase.

    Examples:
        >>> humanize_slug("https://example.com/blog/best-seo-tools")
        'Best Seo Tools'
        >>> humanize_slug("https://example.com/")
        'Home'
    """
    path = urlparse(url).path
    segments = [s for s in path.split("/") if s]
    if not segments:
        return fallback
    last = unquote(segments[-1])
    last = re.sub(r"\.[a-z0-9]{2,5}$", "", last, flags=re.I)
    words = re.sub(r"[-_]+", " ", last).strip()
    return words.title() if words else fallback


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Dataclass field metadata for a tuple of (key, value) pairs that should
# serialise as an object.
MAPPING_FIELD = {"mapping": True}


def make_serialisable(obj: Any) -> Any:
    """Recursively convert dataclasses, enums and tuples into JSON primitives.

    Dataclass fields declared with :data:`MAPPING_FIELD` metadata become dicts,
    empty or not. Every other tuple becomes a list.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        data = {}
        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("mapping"):
                data[f.name] = {str(k): make_serialisable(v) for k, v in value}
            else:
                data[f.name] = make_serialisable(value)
        return data
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): make_serialisable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [make_serialisable(i) for i in obj]
    if isinstance(obj, (str, int, float, bool, type(None))):
        return obj
    return str(obj)
