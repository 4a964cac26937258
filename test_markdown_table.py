import pandas as pd
import pytest

from event_record import EventRecord
from markdown_table import (
    ALIGNMENT_ROW,
    HEADER_ROW,
    dedupe_and_sort,
    escape_cell,
    render_table,
    write_csv,
    write_table,
)


def make_record(url, date="2024/05/10", time_range="19:00~21:00", **kwargs):
    fields = dict(
        event_url=url,
        volume_label="vol.1",
        event_type="本体",
        title="IoTLT vol.1",
        mode="オンライン",
        venue_name="オンライン",
        address="",
        date=date,
        weekday_ja="金",
        time_range=time_range,
        participants=10,
    )
    fields.update(kwargs)
    return EventRecord(**fields)


def test_escape_cell_removes_pipes_and_newlines():
    escaped = escape_cell(" IoTLT | 特別編\r\n夏\n ")
    assert "|" not in escaped.replace("&#124;", "")
    assert "\n" not in escaped and "\r" not in escaped
    assert escaped == "IoTLT &#124; 特別編 夏"
    assert escape_cell(None) == ""


def test_record_rejects_malformed_date():
    with pytest.raises(ValueError):
        make_record("https://iotlt.connpass.com/event/1/", date="2024-05-10")


def test_render_table_layout():
    record = make_record(
        "https://iotlt.connpass.com/event/1/",
        title="A | B",
        tweet_urls=["https://togetter.com/li/1", "https://posfie.com/@a/p/b"],
        slide_urls=["https://speakerdeck.com/u/d"],
    )
    lines = render_table([record]).split("\n")
    assert lines[0] == HEADER_ROW
    assert lines[1] == ALIGNMENT_ROW
    assert lines[2] == (
        "| 1 | vol.1 | 本体 | A &#124; B | オンライン | オンライン |  | https://iotlt.connpass.com/event/1/ | "
        "https://togetter.com/li/1<br>https://posfie.com/@a/p/b | https://speakerdeck.com/u/d | 10 | "
        "2024/05/10 | 金 | 19:00~21:00 |"
    )
    assert lines[3] == ""
    assert HEADER_ROW.count("|") == 15


def test_empty_table_still_has_header():
    assert render_table([]) == HEADER_ROW + "\n" + ALIGNMENT_ROW + "\n"


def test_dedupe_and_sort():
    records = [
        make_record("https://x/event/3/", date="2024/06/01"),
        make_record("https://x/event/2/", date="2024/05/10", time_range="19:00~21:00"),
        make_record("https://x/event/1/", date="2024/05/10", time_range="19:00~21:00"),
        make_record("https://x/event/4/", date="2024/05/10", time_range="12:00~13:00"),
        make_record("https://x/event/3/", date="2023/01/01", title="duplicate"),
    ]
    ordered = dedupe_and_sort(records)
    assert [r.event_url for r in ordered] == [
        "https://x/event/4/",
        "https://x/event/1/",
        "https://x/event/2/",
        "https://x/event/3/",
    ]
    assert ordered[-1].title == "IoTLT vol.1"
    for a, b in zip(ordered, ordered[1:]):
        assert a.sort_key() <= b.sort_key()


def test_write_table_overwrites_and_is_idempotent(tmp_path):
    out = tmp_path / "data" / "events.md"
    out.parent.mkdir()
    out.write_text("stale content\n", encoding="utf-8")
    records = dedupe_and_sort([make_record("https://x/event/2/"), make_record("https://x/event/1/")])

    write_table(out, records)
    first = out.read_bytes()
    write_table(out, records)
    assert out.read_bytes() == first
    text = first.decode("utf-8")
    assert "stale" not in text
    assert text.endswith(" |\n")
    assert text.splitlines()[2].startswith("| 1 |")
    assert text.splitlines()[3].startswith("| 2 |")


def test_write_csv(tmp_path):
    out = tmp_path / "events.csv"
    write_csv(out, [make_record("https://x/event/1/", slide_urls=["https://speakerdeck.com/u/a", "https://speakerdeck.com/u/b"])])
    df = pd.read_csv(out)
    assert list(df.columns)[:4] == ["id", "vol", "タイプ", "タイトル"]
    assert df.loc[0, "connpass URL"] == "https://x/event/1/"
    assert df.loc[0, "LTスライド"] == "https://speakerdeck.com/u/a\nhttps://speakerdeck.com/u/b"
    assert df.loc[0, "参加者数"] == 10
