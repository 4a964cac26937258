"""
Rebuild the IoTLT events table from connpass.

Walks the group's event listing from the oldest page to the newest, turns
every event detail page into an EventRecord (title, date, venue, participant
count, tweet-summary and slide links) and writes the whole table as markdown.
Slide link verdicts are cached on disk and checkpointed after every listing
page, so an interrupted run does not repeat that work.

    python iotlt_scraper.py --rebuild
    python iotlt_scraper.py --rebuild --start-page 3 --end-page 1 --csv data/iotlt_events.csv
"""

import argparse
import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import aiohttp
from bs4 import BeautifulSoup, FeatureNotFound

from connpass_fields import (
    extract_date,
    extract_participants,
    extract_title,
    extract_venue_and_address,
    extract_weekday_and_time_range,
    infer_mode,
    infer_type_and_volume,
)
from event_record import EventRecord
from http_client import HttpClient
from link_rules import SLIDE, TWEET, classify_link, extract_links, is_shortener
from markdown_table import dedupe_and_sort, write_csv, write_table
from scrape_errors import EventPageError, ExtractionError, ListPageError, ScrapeError, UnsupportedModeError
from scraper_settings import (
    LIST_URL_TEMPLATE,
    LOG_LEVEL,
    OUTPUT_PATH,
    REQUEST_DELAY,
    SLIDE_CACHE_PATH,
    setup_logging,
)
from slide_validator import SlideValidationCache, SlideValidator

logger = logging.getLogger(__name__)

TOTAL_COUNT_RE = re.compile(r'イベント[（(]\s*(\d+)\s*件[）)]')

# Failures that skip a single event instead of aborting the run.
EVENT_ERRORS = (EventPageError, ExtractionError, aiohttp.ClientError, asyncio.TimeoutError)


@dataclass
class RebuildResult:
    records: List[EventRecord] = field(default_factory=list)
    failed_urls: List[str] = field(default_factory=list)


def make_soup(html: str) -> BeautifulSoup:
    """Prefer lxml parser; fall back to built-in if unavailable."""
    try:
        return BeautifulSoup(html, "lxml")
    except FeatureNotFound:
        return BeautifulSoup(html, "html.parser")


# --- EVENT ASSEMBLY ---

async def participants_for(url: str, html: str, client) -> int:
    """Participant count from the detail page, else from the participation tab."""
    count = extract_participants(html)
    if count is not None:
        return count

    participation_url = url.rstrip("/") + "/participation/"
    result = await client.fetch_page(participation_url)
    if result.status != 200:
        logger.warning(f"Participation page answered {result.status} for {url}; using 0 participants")
        return 0
    count = extract_participants(result.text)
    if count is None:
        raise ExtractionError(f"could not extract participants (including fallback) (url={url})")
    return count


async def collect_links(html: str, client, validator: SlideValidator) -> Tuple[List[str], List[str]]:
    """Return (tweet_urls, slide_urls) found on an event page, in discovery order."""
    tweet_urls: List[str] = []
    slide_candidates: List[str] = []
    for link in extract_links(html):
        if is_shortener(link):
            resolved = await client.resolve_final_url(link)
            if resolved.status == 0:
                # Unresolved short links stay as they are and are never classified.
                continue
            logger.debug(f"Resolved {link} -> {resolved.url}")
            link = resolved.url

        kind = classify_link(link)
        if kind == TWEET and link not in tweet_urls:
            tweet_urls.append(link)
        elif kind == SLIDE and link not in slide_candidates:
            slide_candidates.append(link)

    slide_urls = [link for link in slide_candidates if await validator.validate(link)]
    return tweet_urls, slide_urls


async def assemble_event(url: str, client, validator: SlideValidator) -> EventRecord:
    """Fetch one event detail page and build its record."""
    result = await client.fetch_page(url)
    if result.status != 200:
        raise EventPageError(url, result.status)
    html = result.text

    title = extract_title(html) or ""
    if not title:
        logger.warning(f"No title found for {url}; keeping the row with an empty title")
    date = extract_date(html)
    if not date:
        raise ExtractionError(f"could not extract date (url={url})")

    event_type, volume = infer_type_and_volume(title)
    weekday, time_range = extract_weekday_and_time_range(html)
    venue_name, address = extract_venue_and_address(html)
    participants = await participants_for(url, html, client)
    tweet_urls, slide_urls = await collect_links(html, client, validator)

    return EventRecord(
        event_url=url,
        volume_label=volume,
        event_type=event_type,
        title=title,
        mode=infer_mode(venue_name, address),
        venue_name=venue_name,
        address=address,
        date=date,
        weekday_ja=weekday,
        time_range=time_range,
        participants=participants,
        tweet_urls=tweet_urls,
        slide_urls=slide_urls,
    )


# --- LIST TRAVERSAL ---

async def event_urls_from_list_page(page: int, client, list_url_template: str = LIST_URL_TEMPLATE) -> List[str]:
    """Detail-page URLs linked from one listing page, first-seen order."""
    list_url = list_url_template.format(page=page)
    result = await client.fetch_page(list_url)
    if result.status != 200:
        raise ListPageError(f"unexpected status {result.status} for list page {list_url}")

    urls: List[str] = []
    seen = set()
    # Class token order varies between templates; both tokens are required.
    for anchor in make_soup(result.text).select("a.url.summary"):
        href = (anchor.get("href") or "").strip()
        if not href or href in seen:
            continue
        seen.add(href)
        urls.append(href)

    if not urls:
        raise ListPageError(f"no event URLs found on page={page}")
    return urls


async def detect_oldest_page(client, list_url_template: str = LIST_URL_TEMPLATE) -> int:
    """
    Compute the highest listing page index from page 1.

    connpass shows the group's total event count ("イベント（123件）") and
    renders a fixed number of event blocks per page.
    """
    list_url = list_url_template.format(page=1)
    result = await client.fetch_page(list_url)
    if result.status != 200:
        raise ListPageError(f"unexpected status {result.status} for list page {list_url}")

    m = TOTAL_COUNT_RE.search(result.text)
    if not m:
        raise ListPageError("could not detect total event count from list page=1")
    total = int(m.group(1))

    per_page = len(make_soup(result.text).select(".group_event_list.vevent"))
    if per_page <= 0:
        raise ListPageError("could not detect per-page event count from list page=1")

    oldest = max(1, math.ceil(total / per_page))
    logger.info(f"Detected {total} events at {per_page} per page; oldest page is {oldest}")
    return oldest


# --- REBUILD PIPELINE ---

async def collect_events(start_page: int, end_page: int, client, cache: SlideValidationCache,
                         fail_fast: bool = False,
                         list_url_template: str = LIST_URL_TEMPLATE) -> RebuildResult:
    """
    Process listing pages from ``start_page`` down to ``end_page``, one event at a time.

    The slide cache is saved after each page. Per-event failures are logged
    and skipped unless ``fail_fast`` is set.
    """
    if end_page > start_page:
        raise ValueError("--end-page must be <= --start-page")

    validator = SlideValidator(client, cache)
    result = RebuildResult()
    seen_urls = set()
    for page in range(start_page, end_page - 1, -1):
        urls = await event_urls_from_list_page(page, client, list_url_template)
        logger.info(f"Page {page}: {len(urls)} events")
        for url in urls:
            if url in seen_urls:
                continue
            seen_urls.add(url)
            try:
                record = await assemble_event(url, client, validator)
            except EVENT_ERRORS as e:
                if fail_fast:
                    raise
                logger.warning(f"Skipping event {url}: {e!r}")
                result.failed_urls.append(url)
                continue
            result.records.append(record)
        cache.save()
    return result


async def rebuild(out_path: Path = OUTPUT_PATH, cache_path: Path = SLIDE_CACHE_PATH,
                  start_page: Union[int, str] = "auto", end_page: int = 1,
                  csv_path: Optional[Path] = None, fail_fast: bool = False,
                  request_delay: float = REQUEST_DELAY, client: Optional[HttpClient] = None,
                  list_url_template: str = LIST_URL_TEMPLATE) -> RebuildResult:
    """Rebuild the markdown table from scratch."""
    cache = SlideValidationCache(cache_path).load()
    async with (client or HttpClient(request_delay=request_delay)) as http:
        if start_page == "auto":
            start_page = await detect_oldest_page(http, list_url_template)
        result = await collect_events(int(start_page), end_page, http, cache,
                                      fail_fast=fail_fast, list_url_template=list_url_template)

    result.records = dedupe_and_sort(result.records)
    write_table(out_path, result.records)
    if csv_path:
        write_csv(csv_path, result.records)
    cache.save()
    return result


# --- MAIN EXECUTION ---

def _page_arg(raw: str) -> Union[int, str]:
    if raw == "auto":
        return raw
    try:
        page = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a page number or 'auto', got {raw!r}")
    if page < 1:
        raise argparse.ArgumentTypeError("page numbers start at 1")
    return page


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild the IoTLT connpass events table.")
    parser.add_argument("--rebuild", action="store_true", help="Rebuild the markdown from scratch (overwrites --out).")
    parser.add_argument("--start-page", type=_page_arg, default="auto",
                        help="Listing page to start from (auto = oldest page).")
    parser.add_argument("--end-page", type=_page_arg, default=1, help="Last listing page, inclusive (default: 1).")
    parser.add_argument("--out", type=Path, default=OUTPUT_PATH, help="Output markdown file.")
    parser.add_argument("--slide-cache", type=Path, default=SLIDE_CACHE_PATH,
                        help="JSON cache of slide URL verdicts.")
    parser.add_argument("--csv", type=Path, default=None, help="Also write the table as CSV.")
    parser.add_argument("--sleep", type=float, default=REQUEST_DELAY, help="Seconds to wait between requests.")
    parser.add_argument("--fail-fast", action="store_true", help="Abort on the first event that cannot be read.")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: INFO).")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level.upper())

    try:
        if not args.rebuild:
            raise UnsupportedModeError("Incremental mode is not supported. Use --rebuild.")
        if args.end_page == "auto":
            raise ValueError("--end-page must be a page number")
        if args.start_page != "auto" and args.end_page > args.start_page:
            raise ValueError("--end-page must be <= --start-page")
        result = asyncio.run(rebuild(
            out_path=args.out,
            cache_path=args.slide_cache,
            start_page=args.start_page,
            end_page=args.end_page,
            csv_path=args.csv,
            fail_fast=args.fail_fast,
            request_delay=args.sleep,
        ))
    except (ScrapeError, ValueError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Rebuild aborted: {e}")
        return 1

    if result.failed_urls:
        logger.warning(f"{len(result.failed_urls)} events skipped: {', '.join(result.failed_urls)}")
        return 2
    logger.info(f"Rebuild complete: {len(result.records)} events")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
