from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module

SMOKE_CHANNEL_ID = "UC" + "s" * 22


def make_short(video_id: str, views: int, published: str = "1 hour ago", length: str = "0:30") -> dict:
    return {
        "videoId": video_id,
        "title": {"runs": [{"text": f"Smoke {video_id}"}]},
        "viewCountText": {"simpleText": f"{views:,} views"},
        "publishedTimeText": {"simpleText": published},
        "lengthText": {"simpleText": length},
        "ownerText": {"runs": [{"text": "Smoke Channel"}]},
        "thumbnail": {
            "thumbnails": [
                {"url": f"https://img/{video_id}-small.jpg", "width": 120, "height": 90},
                {"url": f"https://img/{video_id}.jpg", "width": 1080, "height": 1920},
            ]
        },
    }


class SmokeClient:
    """Offline stand-in for YouTubeClient; counts how often each region gets a client."""

    created: dict[str, int] = {}

    def __init__(self, region: str = "US"):
        self.region = region
        SmokeClient.created[region] = SmokeClient.created.get(region, 0) + 1

    def get_trending(self):
        return SimpleNamespace(
            contents=[
                {
                    "title": "Trending",
                    "contents": [
                        make_short("trend1", 5000, "3 hours ago"),
                        make_short("trend2", 9000, "20 hours ago"),
                        make_short("long1", 99000, "1 hour ago", length="12:00"),
                    ],
                }
            ]
        )

    def search(self, query: str):
        if query.startswith("@") or query == SMOKE_CHANNEL_ID:
            return {"results": []}
        return {"results": [make_short("found1", 1500, "2 days ago"), make_short("found2", 10, "1 day ago")]}

    def get_channel_shorts(self, channel_id: str):
        return [make_short("chan1", 1, "5 days ago"), make_short("chan2", 3, "1 day ago")]

    def resolve_handle(self, handle: str):
        return SMOKE_CHANNEL_ID if handle == "smoke" else None

    def close(self) -> None:
        return None


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def smoke_client() -> TestClient:
    SmokeClient.created.clear()
    return TestClient(main_module.app)


def test_health() -> None:
    with patch.object(main_module, "YouTubeClient", SmokeClient), smoke_client() as client:
        response = client.get("/health")
    assert_true(response.status_code == 200, "/health should answer 200")
    assert_true(response.json().get("ok") is True, "/health should return ok=true")


def test_trending() -> None:
    with patch.object(main_module, "YouTubeClient", SmokeClient), smoke_client() as client:
        response = client.get("/shorts/trending", params={"region": "kr", "minViews": 6000, "hours": 48})
        client.get("/shorts/trending", params={"region": "KR"})

    payload = response.json()
    assert_true(response.status_code == 200, "/shorts/trending should answer 200")
    assert_true([item["videoId"] for item in payload] == ["trend2"], "minViews should drop trend1, classifier should drop long1")
    assert_true(payload[0]["thumbnailUrl"] == "https://img/trend2.jpg", "largest thumbnail should win")
    assert_true(SmokeClient.created == {"KR": 1}, "one upstream client per region")


def test_search() -> None:
    with patch.object(main_module, "YouTubeClient", SmokeClient), smoke_client() as client:
        missing = client.get("/shorts/search")
        response = client.get("/shorts/search", params={"q": "cats", "max": 1})

    assert_true(missing.status_code == 400, "/shorts/search without q should answer 400")
    assert_true([item["videoId"] for item in response.json()] == ["found1"], "/shorts/search should honour max")


def test_by_channel() -> None:
    with patch.object(main_module, "YouTubeClient", SmokeClient), smoke_client() as client:
        response = client.get("/shorts/by-channel", params={"input": "@smoke", "limit": 5})
        unknown = client.get("/shorts/by-channel", params={"input": "@nobody"})

    payload = response.json()
    assert_true([item["videoId"] for item in payload] == ["chan1", "chan2"], "by-channel should keep upstream order")
    assert_true(unknown.json() == [], "unresolvable channel should answer an empty list")


def run() -> int:
    checks = [
        ("health", test_health),
        ("trending", test_trending),
        ("search", test_search),
        ("by-channel", test_by_channel),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
