import asyncio
import codecs
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from scraper_settings import (
    MAX_RETRIES,
    PAGE_TIMEOUT,
    REQUEST_DELAY,
    RETRY_DELAY,
    SHORTENER_TIMEOUT,
    USER_AGENT,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError, asyncio.TimeoutError)


@dataclass(frozen=True)
class FetchResult:
    status: int
    url: str
    text: str = ""


async def retry_with_backoff(func, *args, max_retries=MAX_RETRIES, delay=RETRY_DELAY, **kwargs):
    """Retry a coroutine function on connection errors and timeouts with exponential backoff."""
    for attempt in range(max_retries):
        try:
            return await func(*args, **kwargs)
        except TRANSIENT_ERRORS as e:
            if attempt == max_retries - 1:
                logger.error(f"Failed after {max_retries} attempts: {e!r}")
                raise
            wait_time = delay * (2 ** attempt)
            logger.warning(f"Attempt {attempt + 1} failed, retrying in {wait_time}s: {e!r}")
            await asyncio.sleep(wait_time)


def decode_body(body: bytes, charset: Optional[str]) -> str:
    """Decode a response body; unknown or missing charsets fall back to UTF-8."""
    encoding = "utf-8"
    if charset:
        try:
            encoding = codecs.lookup(charset).name
        except LookupError:
            logger.debug(f"Unknown charset {charset!r}, decoding as utf-8")
    return body.decode(encoding, "ignore")


async def read_limited(resp, max_bytes: int) -> bytes:
    """Read at most ``max_bytes`` from the response stream."""
    chunks = []
    remaining = max_bytes
    while remaining > 0:
        chunk = await resp.content.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class HttpClient:
    """
    Thin wrapper around an aiohttp session.

    Every call carries its own timeout. Statuses are returned rather than
    raised so callers decide what a non-200 means for them.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None,
                 user_agent: str = USER_AGENT, request_delay: float = REQUEST_DELAY):
        self.session = session
        self.user_agent = user_agent
        self.request_delay = max(0.0, request_delay)
        self._owns_session = session is None

    async def __aenter__(self):
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=PAGE_TIMEOUT, connect=10)
            connector = aiohttp.TCPConnector(limit=20, limit_per_host=5)
            self.session = aiohttp.ClientSession(timeout=timeout, connector=connector)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if extra:
            headers.update(extra)
        return headers

    async def _pause(self) -> None:
        if self.request_delay:
            await asyncio.sleep(self.request_delay)

    async def _request(self, method: str, url: str, timeout: float,
                       headers: Optional[Dict[str, str]] = None, read_body: bool = True,
                       max_bytes: Optional[int] = None) -> FetchResult:
        await self._pause()
        async with self.session.request(
            method,
            url,
            headers=self._headers(headers),
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as resp:
            text = ""
            if read_body:
                # Some hosts ignore Range and send the whole document.
                body = await read_limited(resp, max_bytes) if max_bytes else await resp.read()
                text = decode_body(body, resp.charset)
            return FetchResult(resp.status, str(resp.url), text)

    async def fetch_text(self, url: str, timeout: float = PAGE_TIMEOUT,
                         headers: Optional[Dict[str, str]] = None,
                         max_bytes: Optional[int] = None) -> FetchResult:
        """Single GET attempt; transport errors propagate."""
        return await self._request("GET", url, timeout, headers, max_bytes=max_bytes)

    async def fetch_page(self, url: str, timeout: float = PAGE_TIMEOUT) -> FetchResult:
        """GET a connpass page, retrying transient transport errors."""
        return await retry_with_backoff(self.fetch_text, url, timeout)

    async def resolve_final_url(self, url: str, timeout: float = SHORTENER_TIMEOUT) -> FetchResult:
        """
        Follow redirects from a shortened link to its destination.

        HEAD first, GET if HEAD fails. When both fail the original URL comes
        back with status 0.
        """
        try:
            return await self._request("HEAD", url, timeout, read_body=False)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"HEAD failed for {url}, trying GET: {e!r}")
        try:
            return await self._request("GET", url, timeout, read_body=False)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not resolve shortened link {url}: {e!r}")
            return FetchResult(0, url)
