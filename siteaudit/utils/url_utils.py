"""URL canonicalization and same-site helpers used across the crawler."""

import ipaddress
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

# Two-label public suffixes common enough to matter for same-site checks.
# Anything not listed falls back to "last two labels".
_MULTI_LABEL_SUFFIXES = frozenset({
    "co.uk", "org.uk", "ac.uk", "gov.uk", "ltd.uk", "plc.uk", "me.uk",
    "com.au", "net.au", "org.au", "edu.au", "gov.au",
    "co.nz", "org.nz", "net.nz",
    "co.jp", "ne.jp", "or.jp",
    "com.br", "net.br", "org.br",
    "co.in", "net.in", "org.in",
    "co.za", "org.za",
    "com.mx", "com.cn", "com.tw", "com.hk", "com.sg", "com.tr", "com.ar",
    "co.kr", "co.il", "co.id", "com.my", "com.ph", "com.pk", "com.ua",
})

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "ftp:", "sms:")


def canonicalize_url(url: str) -> str:
    """Normalise *url* so equivalent addresses dedupe.

    Lower-cases scheme and host, drops default ports, the query string and
    the fragment, and strips the trailing slash from non-root paths.

    Examples:
        >>> canonicalize_url("HTTPS://Example.com:443/About/?utm=1#team")
        'https://example.com/About'
        >>> canonicalize_url("http://example.com")
        'http://example.com/'
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    try:
        port = parsed.port
    except ValueError:
        port = None
    netloc = f"[{host}]" if ":" in host else host
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    path = parsed.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"
    return urlunparse((scheme, netloc, path, "", "", ""))


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for *url*."""
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def path_of(url: str) -> str:
    """Path plus query string, as robots.txt rules expect to match it."""
    parsed = urlparse(url)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return path


def registrable_domain(host: str) -> str:
    """Best-effort registrable domain (eTLD+1) for *host*.

    Examples:
        >>> registrable_domain("blog.example.com")
        'example.com'
        >>> registrable_domain("shop.example.co.uk")
        'example.co.uk'
    """
    host = host.lower().strip(".")
    if not host:
        return ""
    try:
        ipaddress.ip_address(host.strip("[]"))
        return host
    except ValueError:
        pass
    labels = host.split(".")
    if len(labels) <= 2:
        return host
    if ".".join(labels[-2:]) in _MULTI_LABEL_SUFFIXES:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def is_same_site(url: str, root_url: str) -> bool:
    """True when *url* shares the registrable domain of *root_url*."""
    host = urlparse(url).hostname or ""
    root_host = urlparse(root_url).hostname or ""
    if not host or not root_host:
        return False
    return registrable_domain(host) == registrable_domain(root_host)


def resolve_href(href: str, base_url: str) -> Optional[str]:
    """Resolve an ``<a href>`` against *base_url*.

    Returns ``None`` for fragment-only, non-HTTP, or unparsable references.
    """
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return None
    if href.lower().startswith(_SKIPPED_SCHEMES):
        return None
    try:
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
        parsed.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    return absolute
