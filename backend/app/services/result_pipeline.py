import logging
import math
from datetime import datetime, timezone
from typing import Any

from .field_extractor import (
    extract_channel,
    extract_duration_seconds,
    extract_published_text,
    extract_thumbnail,
    extract_title,
    extract_video_id,
    extract_views,
    published_text_to_hours,
)
from .models import SHORTS_URL, NormalizedVideo
from .short_classifier import is_short_like

log = logging.getLogger(__name__)


def to_normalized_video(item: Any, region: str, now: datetime | None = None) -> NormalizedVideo | None:
    video_id = extract_video_id(item)
    if not video_id:
        return None
    published_raw = extract_published_text(item)
    return NormalizedVideo(
        video_id=video_id,
        title=extract_title(item),
        views=extract_views(item),
        duration_seconds=extract_duration_seconds(item),
        published_raw=published_raw,
        age_hours=published_text_to_hours(published_raw, now),
        channel=extract_channel(item),
        thumbnail_url=extract_thumbnail(item),
        region=region,
        url=SHORTS_URL.format(video_id=video_id),
    )


def process_pool(
    pool: list[Any],
    region: str,
    min_views: int = 0,
    max_age_hours: float | None = None,
    result_cap: int = 120,
    now: datetime | None = None,
    sort_by_views: bool = True,
) -> tuple[list[NormalizedVideo], dict[str, int]]:
    """
    Map, dedupe, filter, sort and cap a pool of already-classified raw items.

    Returns the videos plus the number of records dropped at each step. A
    `max_age_hours` of None (or infinity) disables the age filter; otherwise
    records with unknown age are dropped along with those older than the bound.
    Sorting is by views descending and stable, so equal counts keep pool order.
    """
    now = now or datetime.now(timezone.utc)
    dropped = {"missing_id": 0, "duplicate": 0, "below_min_views": 0, "too_old": 0, "over_cap": 0}

    videos: list[NormalizedVideo] = []
    for item in pool:
        video = to_normalized_video(item, region, now)
        if video is None:
            dropped["missing_id"] += 1
            continue
        videos.append(video)

    unique: list[NormalizedVideo] = []
    seen_ids: set[str] = set()
    for video in videos:
        if video.video_id in seen_ids:
            dropped["duplicate"] += 1
            continue
        seen_ids.add(video.video_id)
        unique.append(video)

    kept = [video for video in unique if video.views >= min_views]
    dropped["below_min_views"] = len(unique) - len(kept)

    if max_age_hours is not None and not math.isinf(max_age_hours):
        fresh = [video for video in kept if video.age_known and video.age_hours <= max_age_hours]
        dropped["too_old"] = len(kept) - len(fresh)
        kept = fresh

    if sort_by_views:
        kept = sorted(kept, key=lambda video: video.views, reverse=True)

    capped = kept[:max(0, result_cap)]
    dropped["over_cap"] = len(kept) - len(capped)
    log.debug("pipeline region=%s input=%d output=%d dropped=%s", region, len(pool), len(capped), dropped)
    return capped, dropped


def collect_shorts(pool: list[Any], region: str, **options) -> tuple[list[NormalizedVideo], dict[str, int]]:
    """Keep short-like items from a raw pool and run them through `process_pool`."""
    shorts = [item for item in pool if is_short_like(item)]
    videos, dropped = process_pool(shorts, region, **options)
    dropped["not_short"] = len(pool) - len(shorts)
    return videos, dropped
