"""
Field extractors for connpass event detail pages.

Each extractor is a standalone function from raw page text to a value (or
None when the field is absent) so a single rule can be fixed when connpass
changes its markup without touching the others.
"""

import re
from typing import List, Optional, Tuple

from link_rules import decode_entities

ONLINE_KEYWORDS = ["オンライン", "Zoom", "Teams", "Google Meet", "YouTube", "配信", "ウェビナー"]

MODE_UNDECIDED = "未定"
MODE_ONLINE = "オンライン"
MODE_ONSITE = "対面"
MODE_HYBRID = "オンライン / 対面"

TYPE_OTHER = "その他"
TYPE_MAIN = "本体"

NO_RSVP_MARKERS = ("当サイト以外で申し込み", "申し込み不要")

COMPILED_PATTERNS = {
    'tags': re.compile(r'<[^>]+>'),
    'control_chars': re.compile(r'[\x00-\x1f\x7f]'),
    'event_title': re.compile(r'<div\s+class="current_event_title">\s*(.*?)\s*</div>', re.IGNORECASE | re.DOTALL),
    'doc_title': re.compile(r'<title>\s*(.*?)\s*</title>', re.IGNORECASE | re.DOTALL),
    'date_with_weekday': re.compile(r'(\d{4})/(\d{2})/(\d{2})\([^)]*\)'),
    'date_only': re.compile(r'(\d{4})/(\d{2})/(\d{2})'),
    'time_range': re.compile(r'\d{4}/\d{2}/\d{2}\(([^)]+)\)\s*(\d{1,2}:\d{2})\s*(?:～|〜|~|-)\s*(\d{1,2}:\d{2})'),
    'start_time': re.compile(r'\d{4}/\d{2}/\d{2}\(([^)]+)\)\s*(\d{1,2}:\d{2})'),
    'place_name': re.compile(r'<p\s+class="place_name[^"]*">\s*(.*?)\s*</p>', re.IGNORECASE | re.DOTALL),
    'address': re.compile(r'<p\s+class="adr">\s*(.*?)\s*</p>', re.IGNORECASE | re.DOTALL),
    'sub_brand': re.compile(r'([A-Za-z0-9一-龥ぁ-んァ-ンー]+)IoTLT'),
}

# Tried in order; the first match wins.
PARTICIPANT_PATTERNS = [
    re.compile(r'参加者（\s*(\d+)\s*人）'),
    re.compile(r'参加者（\s*(\d+)\s*名）'),
    re.compile(r'参加者\s*[（(]\s*(\d+)\s*(?:人|名)\s*[）)]'),
    re.compile(r'参加者一覧（\s*(\d+)\s*(?:人|名)）'),
    re.compile(r'参加者一覧\s*[（(]\s*(\d+)\s*(?:人|名)\s*[）)]'),
]

VOLUME_PATTERNS = [
    re.compile(r'vol\.?\s*(\d+)', re.IGNORECASE),
    re.compile(r'IoTLTvol\.?\s*(\d+)', re.IGNORECASE),
    re.compile(r'IoTLT\s*vol\.?\s*(\d+)', re.IGNORECASE),
    re.compile(r'(?:^|[^\w])IoTLT\s*#\s*(\d+)\b', re.IGNORECASE),
    re.compile(r'(?:^|[^\w])[A-Za-z0-9]+IoTLT\s*#\s*(\d+)\b', re.IGNORECASE),
    re.compile(r'第\s*(\d+)\s*(?:回|回目)'),
    re.compile(r'#\s*(\d+)\b'),
]

_FULLWIDTH_DIGITS = str.maketrans('０１２３４５６７８９', '0123456789')


def clean_text(value: Optional[str]) -> str:
    """Normalize whitespace and drop stray control characters."""
    if not value:
        return ""
    text = value.replace("\xa0", " ").replace("\u200b", " ")
    text = re.sub(r"\s+", " ", text)
    text = COMPILED_PATTERNS['control_chars'].sub("", text)
    return text.strip()


def html_to_text(fragment: str) -> str:
    """Strip tags and decode entities from a small HTML fragment."""
    return clean_text(decode_entities(COMPILED_PATTERNS['tags'].sub("", fragment or "")))


def extract_title(html: str) -> Optional[str]:
    m = COMPILED_PATTERNS['event_title'].search(html)
    if m:
        title = html_to_text(m.group(1))
        if title:
            return title
    m = COMPILED_PATTERNS['doc_title'].search(html)
    if m:
        return html_to_text(m.group(1)) or None
    return None


def extract_date(html: str) -> Optional[str]:
    """Return the event date as YYYY/MM/DD, preferring the weekday-annotated form."""
    m = COMPILED_PATTERNS['date_with_weekday'].search(html) or COMPILED_PATTERNS['date_only'].search(html)
    if not m:
        return None
    return f"{m.group(1)}/{m.group(2)}/{m.group(3)}"


def extract_weekday_and_time_range(html: str) -> Tuple[str, str]:
    # Example: 2016/01/12(火) 19:00 ～ 22:00
    html = html.replace("&nbsp;", " ").replace("&#160;", " ")
    m = COMPILED_PATTERNS['time_range'].search(html)
    if m:
        return clean_text(m.group(1)), f"{m.group(2)}~{m.group(3)}"

    # Start time only: keep the range open-ended.
    m = COMPILED_PATTERNS['start_time'].search(html)
    if m:
        return clean_text(m.group(1)), f"{m.group(2)}~"
    return "", ""


def extract_venue_and_address(html: str) -> Tuple[str, str]:
    place = COMPILED_PATTERNS['place_name'].search(html)
    adr = COMPILED_PATTERNS['address'].search(html)
    venue_name = html_to_text(place.group(1)) if place else ""
    address = html_to_text(adr.group(1)) if adr else ""
    return venue_name, address


def extract_participants(html: str) -> Optional[int]:
    """
    Read the participant count shown on the tab, e.g. "参加者（60人）".

    Events whose registration happens outside connpass report 0. Returns
    None when the page carries neither a count nor a no-RSVP marker.
    """
    for pattern in PARTICIPANT_PATTERNS:
        m = pattern.search(html)
        if m:
            return int(m.group(1))
    if any(marker in html for marker in NO_RSVP_MARKERS):
        return 0
    return None


def infer_mode(venue_name: str, address: str) -> str:
    venue = (venue_name or "").strip()
    adr = (address or "").strip()
    combined = f"{venue} {adr}"
    is_online = any(k in combined for k in ONLINE_KEYWORDS)

    if venue == MODE_UNDECIDED and not adr:
        return MODE_UNDECIDED
    if is_online and adr and adr != MODE_ONLINE:
        return MODE_HYBRID
    if is_online or venue == MODE_ONLINE or adr == MODE_ONLINE:
        return MODE_ONLINE
    if adr:
        return MODE_ONSITE
    return MODE_UNDECIDED


def infer_type_and_volume(title: str) -> Tuple[str, str]:
    """Return (event_type, volume_label) inferred from an event title."""
    title = (title or "").translate(_FULLWIDTH_DIGITS)

    volume = ""
    for pattern in VOLUME_PATTERNS:
        m = pattern.search(title)
        if m:
            volume = f"vol.{m.group(1)}"
            break

    if "iotlt" not in title.lower():
        return TYPE_OTHER, volume

    # Sub-events like "ねこIoTLT" or "大阪IoTLT"
    sub_types: List[str] = []
    for m in COMPILED_PATTERNS['sub_brand'].finditer(title):
        name = f"{m.group(1)}IoTLT"
        if name not in sub_types:
            sub_types.append(name)

    if sub_types:
        return " / ".join(sub_types), volume
    return TYPE_MAIN, volume
