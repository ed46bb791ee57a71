"""Single-URL HTTP fetcher built on aiohttp.

The fetcher never retries: one call is one GET (plus redirects). Retry and
politeness policy live in the crawler.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from siteaudit.exceptions import FetchError
from siteaudit.models.crawl import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
XML_ACCEPT = "application/xml,text/xml,*/*;q=0.8"
TEXT_ACCEPT = "text/plain,*/*;q=0.8"


@dataclass(frozen=True)
class FetchResponse:
    url: str
    final_url: str
    status_code: int
    content_type: str
    text: str
    load_time_ms: int
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        ctype = self.content_type.lower()
        return "text/html" in ctype or "application/xhtml" in ctype or not ctype


class PageFetcher:
    """Fetch one URL and report raw body, timing and HTTP status.

    Usage::

        async with PageFetcher(user_agent="MyBot/1.0") as fetcher:
            response = await fetcher.fetch("https://example.com/")
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_s: float = 10.0,
        max_redirects: int = 5,
        max_body_bytes: int = 5 * 1024 * 1024,
        verify_ssl: bool = True,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._max_redirects = max_redirects
        self._max_body_bytes = max_body_bytes
        self._verify_ssl = verify_ssl
        self._session = session
        self._owns_session = session is None

    @property
    def user_agent(self) -> str:
        return self._user_agent

    async def __aenter__(self) -> "PageFetcher":
        self._ensure_session()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch(self, url: str, accept: str = HTML_ACCEPT) -> FetchResponse:
        """GET *url*, following at most ``max_redirects`` redirects.

        Any HTTP status is returned as a :class:`FetchResponse`; only
        network-level failures (DNS, connection, timeout, redirect loops)
        raise :class:`FetchError`.
        """
        session = self._ensure_session()
        headers = {
            "User-Agent": self._user_agent,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.5",
        }
        t0 = time.monotonic()
        try:
            async with session.get(
                url,
                headers=headers,
                allow_redirects=True,
                max_redirects=self._max_redirects,
                ssl=self._verify_ssl,
            ) as resp:
                buffer = bytearray()
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    buffer.extend(chunk)
                    if len(buffer) > self._max_body_bytes:
                        break
                body = bytes(buffer)
                truncated = len(body) > self._max_body_bytes
                if truncated:
                    body = body[: self._max_body_bytes]
                    logger.warning("Body of %s truncated at %d bytes", url, self._max_body_bytes)
                text = _decode(body, resp.charset)
                status = resp.status
                final_url = str(resp.url)
                content_type = resp.headers.get("Content-Type", "")
        except aiohttp.TooManyRedirects as exc:
            raise FetchError(url, f"too many redirects (>{self._max_redirects})") from exc
        except asyncio.TimeoutError as exc:
            raise FetchError(url, "timeout") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc

        load_time_ms = int(round((time.monotonic() - t0) * 1000))
        logger.debug("Fetched %s -> %s (status=%d, %dms)", url, final_url, status, load_time_ms)
        return FetchResponse(
            url=url,
            final_url=final_url,
            status_code=status,
            content_type=content_type,
            text=text,
            load_time_ms=load_time_ms,
            truncated=truncated,
        )


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
