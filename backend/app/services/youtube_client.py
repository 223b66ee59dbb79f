"""
Thin YouTube client built on the public pages' embedded ytInitialData.

The client exposes a small capability surface (trending feed, search,
channel shorts tab, handle resolution). Results are wrappers around raw
renderer dicts; callers treat every capability as optional and every call as
fallible.
"""
import asyncio
import inspect
import json
import logging
import re
from collections.abc import Mapping
from typing import Any

import requests

from .field_extractor import lookup, text_of

log = logging.getLogger(__name__)

YOUTUBE_BASE_URL = "https://www.youtube.com"
YOUTUBE_TRENDING_URL = f"{YOUTUBE_BASE_URL}/feed/trending"
YOUTUBE_SEARCH_URL = f"{YOUTUBE_BASE_URL}/results"
YOUTUBE_CHANNEL_SHORTS_URL = f"{YOUTUBE_BASE_URL}/channel/{{channel_id}}/shorts"
YOUTUBE_HANDLE_URL = f"{YOUTUBE_BASE_URL}/{{handle}}"

HTTP_TIMEOUT_SECONDS = 15
USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

# Search "type" filter values, keyed by lowercased filter name.
SEARCH_FILTER_PARAMS = {
    "shorts": "EgIQCQ==",
    "video": "EgIQAQ==",
    "channel": "EgIQAg==",
}

ITEM_RENDERERS = {
    "videoRenderer": "video",
    "gridVideoRenderer": "video",
    "reelItemRenderer": "reel",
    "shortsLockupViewModel": "shorts_lockup",
    "channelRenderer": "channel",
}

YT_INITIAL_DATA_RE = re.compile(
    r"(?:var ytInitialData|window\[\"ytInitialData\"\])\s*=\s*(\{.*?\});\s*</script>",
    re.DOTALL,
)
CHANNEL_ID_PATTERNS = (
    re.compile(r'"externalId":"(UC[a-zA-Z0-9_-]{22})"'),
    re.compile(r'<link[^>]+rel="canonical"[^>]+href="https://www\.youtube\.com/channel/(UC[\w-]{22})"'),
    re.compile(r'"channelId":"(UC[a-zA-Z0-9_-]{22})"'),
)

# Region -> interface language (bias, not guarantee)
REGION_LANG = {
    "AU": "en",
    "CA": "en",
    "GB": "en",
    "US": "en",
    "KR": "ko",
    "JP": "ja",
    "TW": "zh-TW",
    "HK": "zh-HK",
    "CN": "zh-CN",
    "ES": "es",
    "MX": "es",
    "AR": "es",
    "BR": "pt",
    "PT": "pt",
    "DE": "de",
    "AT": "de",
    "FR": "fr",
}


class UpstreamError(Exception):
    pass


class UpstreamTimeoutError(UpstreamError):
    pass


def lang_for_region(region: str) -> str:
    return REGION_LANG.get(region.upper(), "en")


async def call_upstream(label: str, fn, *args, timeout: float) -> Any:
    """Run a blocking (or async) upstream call, racing it against `timeout` seconds."""
    async def invoke():
        result = await asyncio.to_thread(fn, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

    try:
        return await asyncio.wait_for(invoke(), timeout)
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeoutError(f"{label} timed out after {timeout}s") from exc


def extract_initial_data(html: str) -> dict[str, Any] | None:
    match = YT_INITIAL_DATA_RE.search(html or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def extract_channel_id(html: str) -> str | None:
    for pattern in CHANNEL_ID_PATTERNS:
        match = pattern.search(html or "")
        if match:
            return match.group(1)
    return None


def find_items(node: Any) -> list[dict[str, Any]]:
    """Collect known item renderers anywhere under `node`, tagged with a `type`."""
    found: list[dict[str, Any]] = []
    if isinstance(node, Mapping):
        for key, value in node.items():
            kind = ITEM_RENDERERS.get(key)
            if kind and isinstance(value, Mapping):
                found.append({**value, "type": kind})
            else:
                found.extend(find_items(value))
    elif isinstance(node, list):
        for value in node:
            found.extend(find_items(value))
    return found


def _browse_tabs(data: Any) -> list[dict[str, Any]]:
    tabs = lookup(data, "contents.twoColumnBrowseResultsRenderer.tabs") or []
    return [tab["tabRenderer"] for tab in tabs if isinstance(tab, Mapping) and isinstance(tab.get("tabRenderer"), Mapping)]


def _selected_tab(data: Any) -> dict[str, Any] | None:
    tabs = _browse_tabs(data)
    for tab in tabs:
        if tab.get("selected"):
            return tab
    return tabs[0] if tabs else None


SHELF_TITLE_PATHS = (
    "itemSectionRenderer.contents.0.shelfRenderer.title",
    "itemSectionRenderer.contents.0.reelShelfRenderer.title",
    "richSectionRenderer.content.richShelfRenderer.title",
    "reelShelfRenderer.title",
    "shelfRenderer.title",
)


def _shelf_title(section: Any) -> str:
    for path in SHELF_TITLE_PATHS:
        title = text_of(lookup(section, path))
        if title:
            return title
    return ""


def trending_shelves(data: Any) -> list[dict[str, Any]]:
    tab = _selected_tab(data)
    if tab is None:
        return []
    sections = (
        lookup(tab, "content.sectionListRenderer.contents")
        or lookup(tab, "content.richGridRenderer.contents")
        or []
    )
    shelves = []
    for section in sections:
        items = find_items(section)
        if items:
            shelves.append({"title": _shelf_title(section), "contents": items})
    return shelves


class TrendingFeed:
    def __init__(self, client: "YouTubeClient", data: dict[str, Any]):
        self._client = client
        self.data = data
        self.contents = trending_shelves(data)

    @property
    def items(self) -> list[dict[str, Any]]:
        return [item for shelf in self.contents for item in shelf["contents"]]

    def apply_content_type_filter(self, kind: str) -> "TrendingFeed":
        for tab in _browse_tabs(self.data):
            if (text_of(tab.get("title")) or "").lower() != kind.lower():
                continue
            params = lookup(tab, "endpoint.browseEndpoint.params")
            if not params:
                break
            data = self._client.fetch_initial_data(YOUTUBE_TRENDING_URL, {"bp": params})
            return TrendingFeed(self._client, data)
        raise UpstreamError(f"trending feed has no {kind!r} tab")


class SearchResults:
    def __init__(self, client: "YouTubeClient", query: str, data: dict[str, Any]):
        self._client = client
        self.query = query
        self.data = data
        self.results = find_items(lookup(data, "contents") or data)

    def apply_filter(self, kind: str) -> "SearchResults":
        sp = SEARCH_FILTER_PARAMS.get(kind.lower())
        if sp is None:
            raise UpstreamError(f"unsupported search filter: {kind}")
        return self._client.search(self.query, sp=sp)


class YouTubeClient:
    def __init__(self, region: str = "US", session: requests.Session | None = None):
        self.region = region.upper()
        self.language = lang_for_region(self.region)
        if session is None:
            session = requests.Session()
            session.headers.update(
                {
                    "User-Agent": USER_AGENT,
                    "Accept-Language": f"{self.language},en;q=0.8",
                }
            )
            session.cookies.set("CONSENT", "YES+1", domain=".youtube.com")
        self.session = session

    def fetch_page(self, url: str, params: dict[str, Any] | None = None) -> str:
        merged = {"gl": self.region, "hl": self.language}
        merged.update(params or {})
        try:
            response = self.session.get(url, params=merged, timeout=HTTP_TIMEOUT_SECONDS)
        except requests.RequestException as exc:
            raise UpstreamError(f"request to {url} failed: {exc}") from exc
        if response.status_code != 200:
            raise UpstreamError(f"{url} returned HTTP {response.status_code}")
        return response.text

    def fetch_initial_data(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        data = extract_initial_data(self.fetch_page(url, params))
        if data is None:
            raise UpstreamError(f"{url} did not embed ytInitialData")
        return data

    def get_trending(self) -> TrendingFeed:
        return TrendingFeed(self, self.fetch_initial_data(YOUTUBE_TRENDING_URL))

    def search(self, query: str, sp: str | None = None) -> SearchResults:
        params = {"search_query": query}
        if sp:
            params["sp"] = sp
        return SearchResults(self, query, self.fetch_initial_data(YOUTUBE_SEARCH_URL, params))

    def get_channel_shorts(self, channel_id: str) -> list[dict[str, Any]]:
        data = self.fetch_initial_data(YOUTUBE_CHANNEL_SHORTS_URL.format(channel_id=channel_id))
        channel_name = text_of(lookup(data, "metadata.channelMetadataRenderer.title")) or ""
        tab = _selected_tab(data)
        items = find_items(tab if tab is not None else data)
        return [{**item, "author": {"id": channel_id, "name": channel_name}} for item in items]

    def resolve_handle(self, handle: str) -> str | None:
        handle = "@" + handle.lstrip("@")
        try:
            html = self.fetch_page(YOUTUBE_HANDLE_URL.format(handle=handle))
        except UpstreamError as exc:
            log.info("handle %s did not resolve: %s", handle, exc)
            return None
        return extract_channel_id(html)

    def close(self) -> None:
        self.session.close()
