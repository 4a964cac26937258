"""
Slide link validation with a persistent verdict cache.

Decks on Speaker Deck, SlideShare and Google Slides disappear over time and
several of those services answer a deleted deck with a branded 200 page, so
each candidate is fetched once and judged from its status, title and the
head of its body. Verdicts are kept in a JSON file so later runs never fetch
the same URL again.
"""

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional

import aiohttp

from scraper_settings import SLIDE_RANGE_BYTES, SLIDE_TIMEOUT

logger = logging.getLogger(__name__)

NOT_FOUND_TITLE_MARKERS = ("not found", "404")
NOT_FOUND_TITLE_MARKERS_JA = ("ページが見つかりません",)
SNIPPET_CHARS = 2000

_TITLE_RE = re.compile(r"<title>\s*(.*?)\s*</title>", re.IGNORECASE | re.DOTALL)


class SlideValidationCache:
    """Slide URL -> liveness verdict, persisted as a flat JSON object."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self.verdicts: Dict[str, bool] = {}

    def load(self) -> "SlideValidationCache":
        """Read verdicts from disk. A missing or unreadable file starts empty."""
        self.verdicts = {}
        if self.path is None or not self.path.exists():
            return self
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable slide cache {self.path}: {e}")
            return self
        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring slide cache {self.path}: expected a JSON object")
            return self
        self.verdicts = {str(url): bool(ok) for url, ok in loaded.items()}
        logger.info(f"Loaded {len(self.verdicts)} slide verdicts from {self.path}")
        return self

    def save(self) -> None:
        """Write verdicts atomically: temp file first, then rename over the target."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(self.verdicts, ensure_ascii=False, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved {len(self.verdicts)} slide verdicts to {self.path}")

    def get(self, url: str) -> Optional[bool]:
        return self.verdicts.get(url)

    def record(self, url: str, ok: bool) -> bool:
        self.verdicts[url] = bool(ok)
        return bool(ok)

    def __contains__(self, url: str) -> bool:
        return url in self.verdicts

    def __len__(self) -> int:
        return len(self.verdicts)


def page_title(html: str) -> str:
    m = _TITLE_RE.search(html)
    if not m:
        return ""
    return re.sub(r"\s+", " ", m.group(1)).strip()


def looks_like_missing_page(html: str) -> bool:
    """Detect branded 'not found' pages served with a 200 status."""
    title = page_title(html)
    lowered = title.lower()
    if any(marker in lowered for marker in NOT_FOUND_TITLE_MARKERS):
        return True
    if any(marker in title for marker in NOT_FOUND_TITLE_MARKERS_JA):
        return True
    snippet = re.sub(r"\s+", " ", html[:SNIPPET_CHARS]).lower()
    return "404" in snippet and "not found" in snippet


class SlideValidator:
    """Memoized liveness check for slide candidates."""

    def __init__(self, client, cache: SlideValidationCache):
        self.client = client
        self.cache = cache

    async def validate(self, url: str) -> bool:
        cached = self.cache.get(url)
        if cached is not None:
            logger.debug(f"Slide cache hit for {url}: {cached}")
            return cached

        try:
            result = await self.client.fetch_text(
                url,
                timeout=SLIDE_TIMEOUT,
                headers={"Range": f"bytes=0-{SLIDE_RANGE_BYTES}"},
                max_bytes=SLIDE_RANGE_BYTES,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.info(f"Slide check failed for {url}: {e!r}")
            return self.cache.record(url, False)

        if result.status != 200:
            logger.info(f"Slide {url} answered {result.status}; dropping it")
            return self.cache.record(url, False)
        if looks_like_missing_page(result.text[:SLIDE_RANGE_BYTES]):
            logger.info(f"Slide {url} looks like a not-found page; dropping it")
            return self.cache.record(url, False)
        # The discovered URL is recorded even when the fetch was redirected.
        return self.cache.record(url, True)
