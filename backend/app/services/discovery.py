"""
Trending shorts discovery.

The trending surface is tried three ways, in order, and the first strategy that
produces a non-empty pool wins:

1. content filter: ask the trending feed for its Shorts view
2. shelf scan: flatten every trending shelf and keep short-like items
3. search backup: search a generic shorts hashtag and keep short-like items

Each stage returns a pool (possibly empty). Upstream faults and timeouts inside
a stage are logged and count as an empty pool, so the cascade always completes.
"""
import logging
from collections.abc import Mapping
from typing import Any

from .field_extractor import lookup
from .short_classifier import is_short_like
from .youtube_client import call_upstream

log = logging.getLogger(__name__)

SHORTS_CONTENT_KIND = "Shorts"
SEARCH_BACKUP_QUERY = "#shorts"
SEARCH_BACKUP_POOL_CAP = 150

STAGE_CONTENT_FILTER = "content_filter"
STAGE_SHELF_SCAN = "shelf_scan"
STAGE_SEARCH_BACKUP = "search_backup"


def capability(obj: Any, name: str):
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        fn = obj.get(name)
    else:
        fn = getattr(obj, name, None)
    return fn if callable(fn) else None


def item_list(obj: Any, *names: str) -> list[Any]:
    if isinstance(obj, (list, tuple)):
        return list(obj)
    for name in names:
        value = lookup(obj, name)
        if isinstance(value, (list, tuple)) and value:
            return list(value)
    return []


async def apply_search_filter(results: Any, timeout: float) -> Any:
    """Narrow search results to Shorts when the result set supports it."""
    apply = capability(results, "apply_filter")
    if apply is None:
        return results
    try:
        return await call_upstream("search.apply_filter", apply, SHORTS_CONTENT_KIND, timeout=timeout)
    except Exception as exc:
        log.warning("search filter(%s) failed: %s", SHORTS_CONTENT_KIND, exc)
        return results


class DiscoveryCascade:
    def __init__(self, client: Any, call_timeout: float = 7, filter_timeout: float = 5):
        self.client = client
        self.call_timeout = call_timeout
        self.filter_timeout = filter_timeout
        self.trending: Any = None

    def stages(self):
        return (
            (STAGE_CONTENT_FILTER, self.content_filter_stage),
            (STAGE_SHELF_SCAN, self.shelf_scan_stage),
            (STAGE_SEARCH_BACKUP, self.search_backup_stage),
        )

    async def load_trending(self) -> Any:
        get_trending = capability(self.client, "get_trending")
        if get_trending is None:
            log.warning("client has no trending capability")
            return None
        try:
            trending = await call_upstream("get_trending", get_trending, timeout=self.call_timeout)
        except Exception as exc:
            log.warning("get_trending failed: %s", exc)
            return None
        log.info("get_trending ok")
        return trending

    async def run(self) -> tuple[list[Any], str | None]:
        """Return (pool, name of the stage that produced it); ([], None) when every stage came up empty."""
        self.trending = await self.load_trending()
        for name, stage in self.stages():
            try:
                pool = await stage()
            except Exception as exc:
                log.warning("stage %s failed: %s", name, exc)
                pool = []
            log.info("stage %s pool=%d", name, len(pool))
            if pool:
                return pool, name
        return [], None

    async def content_filter_stage(self) -> list[Any]:
        apply = capability(self.trending, "apply_content_type_filter")
        if apply is None:
            return []
        filtered = await call_upstream(
            "trending.apply_content_type_filter",
            apply,
            SHORTS_CONTENT_KIND,
            timeout=self.filter_timeout,
        )
        return item_list(filtered, "items", "videos")

    async def shelf_scan_stage(self) -> list[Any]:
        if self.trending is None:
            return []
        pool: list[Any] = []
        for shelf in item_list(self.trending, "contents", "sections", "items"):
            pool.extend(item_list(shelf, "contents", "items"))
        return [item for item in pool if is_short_like(item)]

    async def search_backup_stage(self) -> list[Any]:
        search = capability(self.client, "search")
        if search is None:
            return []
        results = await call_upstream("search", search, SEARCH_BACKUP_QUERY, timeout=self.call_timeout)
        results = await apply_search_filter(results, self.filter_timeout)
        shorts = [item for item in item_list(results, "results") if is_short_like(item)]
        return shorts[:SEARCH_BACKUP_POOL_CAP]
