import re
from dataclasses import dataclass, field
from typing import Tuple

DATE_RE = re.compile(r"^\d{4}/\d{2}/\d{2}$")


@dataclass(frozen=True)
class EventRecord:
    """One row of the events table, built from a single connpass detail page."""

    event_url: str
    volume_label: str
    event_type: str
    title: str
    mode: str
    venue_name: str
    address: str
    date: str
    weekday_ja: str = ""
    time_range: str = ""
    participants: int = 0
    tweet_urls: Tuple[str, ...] = field(default_factory=tuple)
    slide_urls: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not DATE_RE.match(self.date or ""):
            raise ValueError(f"malformed date {self.date!r} for {self.event_url}")
        if self.participants < 0:
            raise ValueError(f"negative participant count for {self.event_url}")
        # Accept lists from callers but store immutable tuples.
        object.__setattr__(self, "tweet_urls", tuple(self.tweet_urls))
        object.__setattr__(self, "slide_urls", tuple(self.slide_urls))

    def sort_key(self) -> Tuple[str, str, str]:
        return self.date, self.time_range, self.event_url
