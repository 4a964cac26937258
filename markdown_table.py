"""
Markdown (and CSV) rendering of the events table.

The markdown document is rebuilt in full on every run. Its column order and
cell escaping are relied upon by the tool that turns it into map JSON.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from event_record import EventRecord

logger = logging.getLogger(__name__)

COLUMNS = [
    "id",
    "vol",
    "タイプ",
    "タイトル",
    "実施形態",
    "会場名",
    "住所",
    "connpass URL",
    "ツイートまとめ URL",
    "LTスライド",
    "参加者数",
    "日付",
    "曜日",
    "時間",
]
ALIGNMENT_ROW = "|---:|:---:|:---|:---|:---:|:---|:---|:---|:---|:---|---:|:---:|:---:|:---:|"
HEADER_ROW = "| " + " | ".join(COLUMNS) + " |"
LINK_SEPARATOR = "<br>"


def escape_cell(value) -> str:
    """Keep a value on one table line: newlines become spaces, pipes become &#124;."""
    text = "" if value is None else str(value)
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", " ")
    return text.replace("|", "&#124;").strip()


def format_links(urls: Iterable[str]) -> str:
    return LINK_SEPARATOR.join(urls)


def dedupe_and_sort(records: Iterable[EventRecord]) -> List[EventRecord]:
    """Keep the first record per event URL, ordered by date, time range, then URL."""
    unique: List[EventRecord] = []
    seen = set()
    for record in records:
        if record.event_url in seen:
            logger.debug(f"Dropping duplicate event {record.event_url}")
            continue
        seen.add(record.event_url)
        unique.append(record)
    unique.sort(key=EventRecord.sort_key)
    return unique


def _row_values(row_id: int, record: EventRecord) -> List[str]:
    return [
        str(row_id),
        escape_cell(record.volume_label),
        escape_cell(record.event_type),
        escape_cell(record.title),
        escape_cell(record.mode),
        escape_cell(record.venue_name),
        escape_cell(record.address),
        escape_cell(record.event_url),
        escape_cell(format_links(record.tweet_urls)),
        escape_cell(format_links(record.slide_urls)),
        str(record.participants),
        escape_cell(record.date),
        escape_cell(record.weekday_ja),
        escape_cell(record.time_range),
    ]


def render_table(records: Iterable[EventRecord]) -> str:
    """Render records (already deduplicated and sorted) as a markdown table."""
    lines = [HEADER_ROW, ALIGNMENT_ROW]
    for row_id, record in enumerate(records, start=1):
        lines.append("| " + " | ".join(_row_values(row_id, record)) + " |")
    return "\n".join(lines) + "\n"


def write_table(path: Path, records: Iterable[EventRecord]) -> None:
    """Overwrite ``path`` with the complete table."""
    rows = list(records)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_table(rows), encoding="utf-8")
    logger.info(f"Wrote {len(rows)} events to {path}")


def write_csv(path: Path, records: Iterable[EventRecord]) -> None:
    """Write the same columns as the markdown table to a CSV file."""
    rows = []
    for row_id, record in enumerate(records, start=1):
        rows.append({
            "id": row_id,
            "vol": record.volume_label,
            "タイプ": record.event_type,
            "タイトル": record.title,
            "実施形態": record.mode,
            "会場名": record.venue_name,
            "住所": record.address,
            "connpass URL": record.event_url,
            "ツイートまとめ URL": "\n".join(record.tweet_urls),
            "LTスライド": "\n".join(record.slide_urls),
            "参加者数": record.participants,
            "日付": record.date,
            "曜日": record.weekday_ja,
            "時間": record.time_range,
        })
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(rows, columns=COLUMNS)
    df.to_csv(path, index=False, quoting=csv.QUOTE_ALL, encoding="utf-8")
    logger.info(f"CSV report saved to {path}")
