from datetime import datetime, timezone

from backend.app.services.result_pipeline import collect_shorts, process_pool, to_normalized_video

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_item(video_id, views, published="1 hour ago", length="0:40", title=None):
    return {
        "videoId": video_id,
        "title": {"runs": [{"text": title or f"Video {video_id}"}]},
        "viewCountText": {"simpleText": f"{views:,} views"},
        "publishedTimeText": {"simpleText": published},
        "lengthText": {"simpleText": length},
        "ownerText": {"runs": [{"text": "Pipeline Channel"}]},
    }


def ids(videos):
    return [video.video_id for video in videos]


def test_normalized_record_shape():
    video = to_normalized_video(make_item("abc", 1500, "2 days ago"), "KR", NOW)
    payload = video.to_response()

    assert payload == {
        "videoId": "abc",
        "title": "Video abc",
        "views": 1500,
        "durationSeconds": 40,
        "publishedRaw": "2 days ago",
        "ageHours": 48.0,
        "channel": "Pipeline Channel",
        "thumbnailUrl": "https://i.ytimg.com/vi/abc/hqdefault.jpg",
        "region": "KR",
        "url": "https://www.youtube.com/shorts/abc",
    }


def test_unknown_age_serializes_as_null():
    video = to_normalized_video(make_item("abc", 10, "Streaming now"), "US", NOW)
    assert video.age_known is False
    assert video.to_response()["ageHours"] is None


def test_dedup_keeps_first_occurrence():
    pool = [
        make_item("dup", 100, title="first"),
        make_item("other", 50),
        make_item("dup", 900, title="second"),
    ]
    videos, dropped = process_pool(pool, "US", now=NOW)

    assert ids(videos) == ["dup", "other"]
    assert videos[0].title == "first"
    assert dropped["duplicate"] == 1


def test_sort_is_views_descending_and_stable():
    pool = [
        make_item("a", 100),
        make_item("b", 300),
        make_item("c", 100),
        make_item("d", 300),
        make_item("e", 200),
    ]
    videos, _ = process_pool(pool, "US", now=NOW)

    assert ids(videos) == ["b", "d", "e", "a", "c"]
    views = [video.views for video in videos]
    assert views == sorted(views, reverse=True)


def test_age_bound_is_inclusive_and_drops_unknown():
    pool = [
        make_item("edge", 10, "48 hours ago"),
        make_item("old", 10, "49 hours ago"),
        make_item("unknown", 10, "Streaming now"),
    ]
    bounded, dropped = process_pool(pool, "US", max_age_hours=48, now=NOW)
    unbounded, _ = process_pool(pool, "US", max_age_hours=None, now=NOW)

    assert ids(bounded) == ["edge"]
    assert dropped["too_old"] == 2
    assert ids(unbounded) == ["edge", "old", "unknown"]


def test_min_views_cap_and_missing_ids():
    pool = [
        make_item("a", 10),
        make_item("b", 1000),
        make_item("c", 5000),
        make_item("d", 2000),
        {"title": "no id here", "viewCountText": "9,999 views"},
    ]
    videos, dropped = process_pool(pool, "US", min_views=1000, result_cap=2, now=NOW)

    assert ids(videos) == ["c", "d"]
    assert dropped == {
        "missing_id": 1,
        "duplicate": 0,
        "below_min_views": 1,
        "too_old": 0,
        "over_cap": 1,
    }


def test_upstream_order_kept_when_sorting_disabled():
    pool = [make_item("a", 1), make_item("b", 3), make_item("c", 2)]
    videos, _ = process_pool(pool, "US", sort_by_views=False, now=NOW)
    assert ids(videos) == ["a", "b", "c"]


def test_collect_shorts_drops_long_form():
    pool = [make_item("short", 10), make_item("long", 99, length="14:20")]
    videos, dropped = collect_shorts(pool, "US", now=NOW)

    assert ids(videos) == ["short"]
    assert dropped["not_short"] == 1
