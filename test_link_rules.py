import pytest

from link_rules import (
    OTHER,
    SHORTENER,
    SLIDE,
    TWEET,
    classify_link,
    domain_of,
    extract_links,
    is_slide_candidate,
    is_tweet_summary_url,
    normalize_candidate_url,
)


@pytest.mark.parametrize("raw,expected", [
    ("  https://speakerdeck.com/a/b  ", "https://speakerdeck.com/a/b"),
    ("<https://speakerdeck.com/a/b>", "https://speakerdeck.com/a/b"),
    ('"https://togetter.com/li/1"', "https://togetter.com/li/1"),
    ("https://togetter.com/li/1).", "https://togetter.com/li/1"),
    ("https://example.com/?a=1&amp;b=2", "https://example.com/?a=1&b=2"),
    ("//www.slideshare.net/x/y", "https://www.slideshare.net/x/y"),
    ("www.example.com/page", "https://www.example.com/page"),
    ("speakerdeck.com/a/b", "https://speakerdeck.com/a/b"),
    ("docs.google.com/presentation/d/abc", "https://docs.google.com/presentation/d/abc"),
])
def test_normalize_candidate_url(raw, expected):
    assert normalize_candidate_url(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "#top", "javascript:void(0)", "mailto:a@b.c", "example.com/x", "participation/"])
def test_normalize_drops_unrecognized_shapes(raw):
    assert normalize_candidate_url(raw) is None


def test_domain_of_lowercases_and_tolerates_garbage():
    assert domain_of("https://SpeakerDeck.com/a") == "speakerdeck.com"
    assert domain_of("not a url") == ""


@pytest.mark.parametrize("url,expected", [
    ("https://togetter.com/li/12345", True),
    ("https://togetter.com/id/someone", True),
    ("https://min.togetter.com/li/abc", True),
    ("https://min.togetter.com/AbCd12", True),
    ("https://togetter.com/t/tag", False),
    ("https://img.togetter.com/li/12345", False),
    ("https://twilog.togetter.com/someone", True),
    ("https://posfie.com/@user/p/abc", True),
    ("https://sub.posfie.com/anything", True),
    ("https://twitter.com/iotlt", False),
])
def test_is_tweet_summary_url(url, expected):
    assert is_tweet_summary_url(url) is expected


def test_google_docs_only_counts_presentations():
    assert is_slide_candidate("https://docs.google.com/presentation/d/abc/edit")
    assert not is_slide_candidate("https://docs.google.com/document/d/abc/edit")
    assert not is_slide_candidate("https://docs.google.com/spreadsheets/d/abc")


def test_slide_domains_match_on_suffix():
    assert is_slide_candidate("https://speakerdeck.com/user/deck")
    assert is_slide_candidate("https://jp.slideshare.net/user/deck")
    assert not is_slide_candidate("https://notspeakerdeck.com/user/deck")


def test_classify_link():
    assert classify_link("https://togetter.com/li/1") == TWEET
    assert classify_link("https://speakerdeck.com/u/d") == SLIDE
    assert classify_link("https://bit.ly/abc") == SHORTENER
    assert classify_link("https://t.co/xyz") == SHORTENER
    assert classify_link("https://connpass.com/") == OTHER


def test_extract_links_merges_both_passes_in_first_seen_order():
    html = """
    <a href="https://togetter.com/li/1">まとめ</a>
    <a class="btn" href="https://speakerdeck.com/u/d">slide</a>
    <p>資料: docs.google.com/presentation/d/abc/edit と https://speakerdeck.com/u/d</p>
    <p>(https://bit.ly/short).</p>
    <a href="#top">top</a>
    """
    assert extract_links(html) == [
        "https://togetter.com/li/1",
        "https://speakerdeck.com/u/d",
        "https://bit.ly/short",
        "https://docs.google.com/presentation/d/abc/edit",
    ]


def test_extract_links_decodes_entities_before_dedup():
    html = '<a href="https://example.com/?a=1&amp;b=2">x</a> https://example.com/?a=1&b=2'
    assert extract_links(html) == ["https://example.com/?a=1&b=2"]
