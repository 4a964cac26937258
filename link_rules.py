"""
Outbound link handling for connpass event pages.

Links are harvested from raw HTML, normalized into absolute URLs and sorted
into tweet-summary pages, slide decks and link shorteners by domain rules.
"""

import re
from typing import List, Optional
from urllib.parse import urlparse

TWEET_DOMAINS = {
    "togetter.com",
    "min.togetter.com",
    "posfie.com",
    "twilog.togetter.com",
}

SLIDE_DOMAINS = {
    "speakerdeck.com",
    "www.slideshare.net",
    "slideshare.net",
    "docs.google.com",
}

SHORTENER_DOMAINS = {
    "t.co",
    "bit.ly",
    "tinyurl.com",
    "goo.gl",
    "buff.ly",
    "ow.ly",
}

# Domains accepted without a scheme when they appear as plain text.
BARE_DOMAINS = (
    "togetter.com",
    "min.togetter.com",
    "posfie.com",
    "speakerdeck.com",
    "slideshare.net",
    "www.slideshare.net",
    "docs.google.com",
)

TWEET = "tweet"
SLIDE = "slide"
SHORTENER = "shortener"
OTHER = "other"

_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&nbsp;", " "),
)

_BARE_ALTERNATION = "|".join(re.escape(d) for d in BARE_DOMAINS)

COMPILED_PATTERNS = {
    "anchor_tag": re.compile(r"<a\b[^>]*>", re.IGNORECASE),
    "href_attr": re.compile(r'\bhref="([^"]+)"', re.IGNORECASE),
    "url": re.compile(r"https?://[^\s\"'<>]+"),
    "bare_url": re.compile(
        r"(?:(?<=\s)|(?<=\()|(?<=\[)|(?<=\{)|^)"
        r"((?:www\.)?(?:" + _BARE_ALTERNATION + r")/[^\s\"'<>]+)",
        re.MULTILINE,
    ),
    "bare_prefix": re.compile(r"^(?:" + _BARE_ALTERNATION + r")/"),
}


def decode_entities(text: str) -> str:
    """Decode the handful of entities connpass emits inside hrefs and text."""
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def normalize_candidate_url(raw: Optional[str]) -> Optional[str]:
    """Turn an href or a URL-looking substring into an absolute URL, or None."""
    s = (raw or "").strip()
    s = s.strip("<>\"'")
    s = s.rstrip(").,;]")
    s = decode_entities(s).strip()
    if not s:
        return None
    if s.startswith("//"):
        return "https:" + s
    if s.startswith("http://") or s.startswith("https://"):
        return s
    if s.startswith("www."):
        return "https://" + s
    if COMPILED_PATTERNS["bare_prefix"].match(s):
        return "https://" + s
    return None


def domain_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _matches_domain(host: str, domains) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def is_tweet_summary_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = (parsed.hostname or "").lower()
    path = parsed.path or ""

    # Togetter: only summary pages count; image/CDN subdomains are excluded.
    if host == "togetter.com":
        return path.startswith("/li/") or path.startswith("/id/")
    if host in {"min.togetter.com", "twilog.togetter.com"}:
        return True
    if host.endswith(".togetter.com"):
        return False
    return host == "posfie.com" or host.endswith(".posfie.com")


def is_slide_candidate(url: str) -> bool:
    host = domain_of(url)
    if not _matches_domain(host, SLIDE_DOMAINS):
        return False
    # Google Docs hosts many document kinds; only presentations are decks.
    if host == "docs.google.com":
        return "/presentation/" in (urlparse(url).path or "")
    return True


def is_shortener(url: str) -> bool:
    return domain_of(url) in SHORTENER_DOMAINS


def classify_link(url: str) -> str:
    """Return TWEET, SLIDE, SHORTENER or OTHER for a normalized URL."""
    if is_tweet_summary_url(url):
        return TWEET
    if is_slide_candidate(url):
        return SLIDE
    if is_shortener(url):
        return SHORTENER
    return OTHER


def extract_links(html: str) -> List[str]:
    """
    Collect outbound links from anchor tags and from free text.

    Both passes are merged, normalized and de-duplicated in first-seen order.
    """
    candidates: List[str] = []
    for tag in COMPILED_PATTERNS["anchor_tag"].findall(html):
        href = COMPILED_PATTERNS["href_attr"].search(tag)
        if href:
            candidates.append(href.group(1))
    candidates.extend(COMPILED_PATTERNS["url"].findall(html))
    candidates.extend(COMPILED_PATTERNS["bare_url"].findall(html))

    links: List[str] = []
    seen = set()
    for raw in candidates:
        if raw.startswith("#") or raw.lower().startswith("javascript:"):
            continue
        url = normalize_candidate_url(raw)
        if not url or url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links
