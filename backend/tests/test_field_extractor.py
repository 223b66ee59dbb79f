import math
from datetime import datetime, timezone

import pytest

from backend.app.services.field_extractor import (
    extract_channel,
    extract_duration_seconds,
    extract_age_hours,
    extract_thumbnail,
    extract_title,
    extract_video_id,
    extract_views,
    iso8601_duration_to_seconds,
    parse_view_count,
    published_text_to_hours,
)

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1.2k", 1200),
        ("3.4M", 3_400_000),
        ("2.1B", 2_100_000_000),
        ("52만", 520_000),
        ("조회수 1.2만회", 12_000),
        ("3억", 300_000_000),
        ("1.5万 回視聴", 15_000),
        ("2億", 200_000_000),
        ("1,234,567 views", 1_234_567),
        ("1,5 mil visualizaciones", 1_500),
        ("3 mil visualizações", 3_000),
        ("1,5 mi de visualizações", 1_500_000),
        ("2.3 million views", 2_300_000),
        ("1.234.567 Aufrufe", 1_234_567),
        ("No views", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_parse_view_count(text, expected):
    assert parse_view_count(text) == expected


def test_extract_views_prefers_numeric_then_text_then_deep_scan():
    assert extract_views({"view_count": 42, "viewCountText": {"simpleText": "9 views"}}) == 42
    assert extract_views({"viewCountText": {"simpleText": "13,219,150 views"}}) == 13_219_150
    assert extract_views({"shortViewCountText": {"runs": [{"text": "7.5K"}, {"text": " views"}]}}) == 7_500
    assert extract_views({"statistics": {"viewCount": "981"}}) == 981
    nested = {"videoId": "deep", "metadata": {"lines": [{"text": "1.2M views"}]}}
    assert extract_views(nested) == 1_200_000
    assert extract_views({"videoId": "none"}) == 0


def test_extract_views_from_portuguese_lockup():
    lockup = {
        "entityId": "shorts-shelf-item-br1",
        "overlayMetadata": {
            "primaryText": {"content": "Receita rápida"},
            "secondaryText": {"content": "2,3 mi de visualizações"},
        },
    }
    assert extract_views(lockup) == 2_300_000


def test_duration_representations_agree():
    assert extract_duration_seconds({"duration": "PT1M8S"}) == 68
    assert extract_duration_seconds({"lengthText": {"simpleText": "1:08"}}) == 68
    assert extract_duration_seconds({"duration": {"seconds": 45, "text": "0:45"}}) == 45
    assert extract_duration_seconds({"length_text": "1:02:03"}) == 3723
    assert extract_duration_seconds({"lengthSeconds": "59"}) == 59
    assert extract_duration_seconds({"lengthText": "live"}) == 0
    assert extract_duration_seconds({}) == 0


def test_iso8601_duration_to_seconds():
    assert iso8601_duration_to_seconds("PT1H2M3S") == 3723
    assert iso8601_duration_to_seconds("PT45S") == 45
    assert iso8601_duration_to_seconds("PT5M") == 300
    assert iso8601_duration_to_seconds("1:00") == 0


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2 days ago", 48),
        ("Streamed 3 weeks ago", 504),
        ("an hour ago", 1),
        ("30 minutes ago", 0.5),
        ("3시간 전", 3),
        ("2개월 전", 1440),
        ("5日前", 120),
        ("2 週間前", 336),
        ("1年前", 8760),
        ("3天前", 72),
        ("hace 1 semana", 168),
        ("há 2 dias", 48),
        ("há 1 mês", 720),
        ("há 3 meses", 2160),
        ("vor 2 Monaten", 1440),
        ("il y a 1 an", 8760),
        ("gestern", 24),
    ],
)
def test_relative_published_text(text, expected):
    assert published_text_to_hours(text, NOW) == pytest.approx(expected)


def test_absolute_published_dates():
    assert published_text_to_hours("2024-03-08T12:00:00Z", NOW) == pytest.approx(48)
    assert published_text_to_hours("Premiered Mar 9, 2024", NOW) == pytest.approx(36)
    assert published_text_to_hours("2024. 3. 9.", NOW) == pytest.approx(36)
    assert published_text_to_hours("2024年3月9日", NOW) == pytest.approx(36)


def test_unparseable_published_text_is_unknown():
    assert math.isinf(published_text_to_hours("Streaming now", NOW))
    assert math.isinf(published_text_to_hours("", NOW))
    assert math.isinf(published_text_to_hours(None, NOW))


def test_identity_and_labels():
    item = {
        "id": {"videoId": "abc123"},
        "title": {"runs": [{"text": "Cat "}, {"text": "jumps"}]},
        "ownerText": {"runs": [{"text": "Cat Channel"}]},
    }
    assert extract_video_id(item) == "abc123"
    assert extract_title(item) == "Cat jumps"
    assert extract_channel(item) == "Cat Channel"

    lockup = {
        "onTap": {"innertubeCommand": {"reelWatchEndpoint": {"videoId": "reel1"}}},
        "overlayMetadata": {"primaryText": {"content": "Reel title"}},
    }
    assert extract_video_id(lockup) == "reel1"
    assert extract_title(lockup) == "Reel title"
    assert extract_channel({"author": {"name": "Named"}}) == "Named"


def test_thumbnail_picks_largest_area_and_falls_back_to_id():
    item = {
        "videoId": "vid1",
        "thumbnail": {
            "thumbnails": [
                {"url": "https://img/small.jpg", "width": 120, "height": 90},
                {"url": "https://img/big.jpg", "width": 720, "height": 1280},
                {"url": "https://img/mid.jpg", "width": 360, "height": 640},
            ]
        },
    }
    assert extract_thumbnail(item) == "https://img/big.jpg"
    assert extract_thumbnail({"thumbnail": {"sources": [{"url": "//i.ytimg.com/x.jpg"}]}}) == "https://i.ytimg.com/x.jpg"
    assert extract_thumbnail({"videoId": "vid2"}) == "https://i.ytimg.com/vi/vid2/hqdefault.jpg"
    assert extract_thumbnail({}) is None


def test_extractors_never_raise_on_odd_input():
    for odd in (None, 42, "text", [], {"title": 5, "duration": float("inf")}):
        assert extract_views(odd) >= 0
        assert extract_duration_seconds(odd) >= 0
        assert isinstance(extract_video_id(odd), str)
        assert isinstance(extract_title(odd), str)


def test_extract_age_hours():
    assert extract_age_hours({"publishedTimeText": {"simpleText": "há 1 mês"}}, NOW) == pytest.approx(720)
    assert extract_age_hours({"snippet": {"publishedAt": "2024-03-09T12:00:00Z"}}, NOW) == pytest.approx(24)
    assert math.isinf(extract_age_hours({"videoId": "x1"}, NOW))
