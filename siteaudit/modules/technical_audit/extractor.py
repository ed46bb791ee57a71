"""Turn fetched HTML into a :class:`CrawledPage`."""

import json
import logging
import re
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup

from siteaudit.models.crawl import CrawledPage, Heading, Image, Link
from siteaudit.utils.text_processing import count_words, normalise_whitespace
from siteaudit.utils.url_utils import canonicalize_url, is_same_site, resolve_href

logger = logging.getLogger(__name__)

_INVISIBLE_TAGS = ("script", "style", "noscript", "template")
_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_MAX_ANCHOR_TEXT = 120


def _parse_dimension(value: Any) -> Optional[int]:
    if value is None:
        return None
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else None


def _collect_types(data: Any, out: list[str]) -> None:
    """Walk a JSON-LD value and gather every ``@type``, including ``@graph`` members."""
    if isinstance(data, list):
        for item in data:
            _collect_types(item, out)
        return
    if not isinstance(data, dict):
        return
    sd_type = data.get("@type")
    if isinstance(sd_type, str) and sd_type:
        out.append(sd_type)
    elif isinstance(sd_type, list):
        out.extend(t for t in sd_type if isinstance(t, str) and t)
    if "@graph" in data:
        _collect_types(data["@graph"], out)


class PageExtractor:
    """Extract SEO-relevant structure from static HTML.

    ``extract`` never raises. Each field is extracted on its own, so a
    failure empties only that field. If the parser itself fails the page
    keeps its transport fields and nothing else.
    """

    def __init__(self, root_url: str) -> None:
        self.root_url = root_url

    def extract(
        self,
        html: str,
        final_url: str,
        status_code: int = 200,
        load_time_ms: int = 0,
        depth: int = 0,
        content_type: str = "text/html",
    ) -> CrawledPage:
        url = canonicalize_url(final_url)
        base = dict(
            url=url,
            status_code=status_code,
            load_time_ms=load_time_ms,
            depth=depth,
            content_type=content_type,
            html_size=len(html.encode("utf-8", errors="replace")),
        )
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception:
            logger.exception("Could not parse %s; recording empty page", url)
            return CrawledPage(**base)
        return CrawledPage(**base, **self._parse(soup, final_url))

    # ------------------------------------------------------------------
    # Field extraction
    # ------------------------------------------------------------------

    def _parse(self, soup: BeautifulSoup, final_url: str) -> dict[str, Any]:
        def field(name: str, extract: Callable[[], Any], default: Any) -> Any:
            try:
                return extract()
            except Exception:
                logger.warning("Could not extract %s from %s", name, final_url, exc_info=True)
                return default

        base_url = field("base_href", lambda: self._base_url(soup, final_url), None) or final_url
        headings = field("headings", lambda: self._headings(soup), ())

        fields: dict[str, Any] = dict(
            title=field("title", lambda: self._title(soup), None),
            meta_description=field("meta_description", lambda: self._meta_content(soup, "description"), None),
            meta_keywords=field("meta_keywords", lambda: self._meta_content(soup, "keywords"), None),
            robots_directive=field("robots_directive", lambda: self._meta_content(soup, "robots"), None),
            canonical_url=field("canonical_url", lambda: self._canonical(soup, base_url), None),
            lang=field("lang", lambda: self._lang(soup), None),
            h1=tuple(h.text for h in headings if h.level == 1),
            headings=headings,
            images=field("images", lambda: self._images(soup, base_url), ()),
            links=field("links", lambda: self._links(soup, base_url), ()),
            schema_types=field("schema_types", lambda: self._schema_types(soup), ()),
            og_tags=field("og_tags", lambda: self._og_tags(soup), ()),
        )
        # Last: strips invisible tags from the tree.
        fields["word_count"] = field("word_count", lambda: self._word_count(soup), 0)
        return fields

    @staticmethod
    def _title(soup: BeautifulSoup) -> Optional[str]:
        title_tag = soup.find("title")
        title = normalise_whitespace(title_tag.get_text()) if title_tag else ""
        return title or None

    @staticmethod
    def _lang(soup: BeautifulSoup) -> Optional[str]:
        html_tag = soup.find("html")
        lang = html_tag.get("lang") if html_tag else None
        return lang.strip() if isinstance(lang, str) and lang.strip() else None

    @staticmethod
    def _base_url(soup: BeautifulSoup, final_url: str) -> Optional[str]:
        base_tag = soup.find("base", href=True)
        return resolve_href(base_tag["href"], final_url) if base_tag else None

    @staticmethod
    def _headings(soup: BeautifulSoup) -> tuple[Heading, ...]:
        return tuple(
            Heading(level=int(tag.name[1]), text=normalise_whitespace(tag.get_text(" ")))
            for tag in soup.find_all(_HEADING_TAGS)
        )

    @staticmethod
    def _word_count(soup: BeautifulSoup) -> int:
        """Words in visible body text only."""
        for tag in soup.find_all(_INVISIBLE_TAGS):
            tag.decompose()
        body = soup.find("body") or soup
        return count_words(body.get_text(separator=" "))

    @staticmethod
    def _meta_content(soup: BeautifulSoup, name: str) -> Optional[str]:
        tag = soup.find("meta", attrs={"name": re.compile(rf"^{name}$", re.I)})
        if not tag:
            return None
        content = normalise_whitespace(tag.get("content", "") or "")
        return content or None

    @staticmethod
    def _canonical(soup: BeautifulSoup, base_url: str) -> Optional[str]:
        for tag in soup.find_all("link", href=True):
            rel = tag.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in [r.lower() for r in rel]:
                resolved = resolve_href(tag["href"], base_url)
                return canonicalize_url(resolved) if resolved else None
        return None

    @staticmethod
    def _og_tags(soup: BeautifulSoup) -> tuple[tuple[str, str], ...]:
        tags: dict[str, str] = {}
        for tag in soup.find_all("meta", attrs={"property": re.compile(r"^og:", re.I)}):
            prop = tag.get("property", "").lower()
            content = normalise_whitespace(tag.get("content", "") or "")
            if prop and content and prop not in tags:
                tags[prop] = content
        return tuple(sorted(tags.items()))

    @staticmethod
    def _images(soup: BeautifulSoup, base_url: str) -> tuple[Image, ...]:
        images: list[Image] = []
        for img in soup.find_all("img"):
            src = img.get("src") or img.get("data-src") or ""
            if not src:
                continue
            resolved = resolve_href(src, base_url) if not src.startswith("data:") else None
            alt = img.get("alt")
            images.append(Image(
                src=resolved or src,
                alt=alt if alt is None else normalise_whitespace(alt),
                width=_parse_dimension(img.get("width")),
                height=_parse_dimension(img.get("height")),
                is_lazy=(img.get("loading", "").lower() == "lazy") or bool(img.get("data-src")),
            ))
        return tuple(images)

    def _links(self, soup: BeautifulSoup, base_url: str) -> tuple[Link, ...]:
        links: list[Link] = []
        seen: set[str] = set()
        for a_tag in soup.find_all("a", href=True):
            resolved = resolve_href(a_tag["href"], base_url)
            if resolved is None:
                continue
            href = canonicalize_url(resolved)
            if href in seen:
                continue
            seen.add(href)
            rel = a_tag.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            anchor = normalise_whitespace(a_tag.get_text(" "))
            if not anchor:
                img = a_tag.find("img", alt=True)
                anchor = normalise_whitespace(img["alt"]) if img else ""
            links.append(Link(
                href=href,
                is_internal=is_same_site(href, self.root_url),
                anchor_text=anchor[:_MAX_ANCHOR_TEXT],
                is_nofollow="nofollow" in [r.lower() for r in rel],
            ))
        return tuple(links)

    @staticmethod
    def _schema_types(soup: BeautifulSoup) -> tuple[str, ...]:
        found: list[str] = []
        for script_tag in soup.find_all("script", type=re.compile(r"application/ld\+json", re.I)):
            raw = script_tag.string or script_tag.get_text() or ""
            block: list[str] = []
            try:
                _collect_types(json.loads(raw), block)
            except (ValueError, RecursionError):
                logger.debug("Skipping malformed JSON-LD block")
                continue
            found.extend(block)
        for tag in soup.find_all(attrs={"itemtype": True}):
            for itemtype in str(tag["itemtype"]).split():
                name = itemtype.rstrip("/").rsplit("/", 1)[-1]
                if name:
                    found.append(name)
        return tuple(dict.fromkeys(found))
