import re
from collections.abc import Mapping
from typing import Any

from .field_extractor import extract_duration_seconds, extract_title, lookup, serialize

# Upper bound (inclusive) for duration-based classification. A couple of
# seconds above 60 absorbs rounding in upstream duration labels.
SHORTS_MAX_DURATION_SECONDS = 62

SHORTS_PATH_SEGMENT = "/shorts/"
SHORTS_HASHTAG_RE = re.compile(r"#shorts\b", re.IGNORECASE)
SHORTS_BADGE_MARKERS = ("shorts", "쇼츠", "ショート")

URL_PATHS = (
    "url",
    "navigationEndpoint.commandMetadata.webCommandMetadata.url",
    "onTap.innertubeCommand.commandMetadata.webCommandMetadata.url",
    "endpoint.commandMetadata.webCommandMetadata.url",
)

SHORT_FLAG_PATHS = (
    "is_short",
    "isShort",
    "is_shorts",
)

SHORT_ENDPOINT_PATHS = (
    "navigationEndpoint.reelWatchEndpoint",
    "onTap.innertubeCommand.reelWatchEndpoint",
)

SHORT_ITEM_TYPES = {"short", "shorts", "reel", "reel_item", "shorts_lockup"}

BADGE_PATHS = (
    "badges",
    "thumbnailOverlays",
    "overlayMetadata",
    "overlay",
)


def _has_short_url(item: Any) -> bool:
    for path in URL_PATHS:
        value = lookup(item, path)
        if isinstance(value, str) and SHORTS_PATH_SEGMENT in value:
            return True
    return False


def _has_short_flag(item: Any) -> bool:
    for path in SHORT_FLAG_PATHS:
        if lookup(item, path) is True:
            return True
    item_type = lookup(item, "type")
    if isinstance(item_type, str) and item_type.lower() in SHORT_ITEM_TYPES:
        return True
    for path in SHORT_ENDPOINT_PATHS:
        if isinstance(lookup(item, path), Mapping):
            return True
    return False


def _has_short_badge(item: Any) -> bool:
    for path in BADGE_PATHS:
        value = lookup(item, path)
        if value is None:
            continue
        text = serialize(value).lower()
        if any(marker in text for marker in SHORTS_BADGE_MARKERS):
            return True
    return False


def is_short_like(item: Any) -> bool:
    """
    Decide whether a raw item is short-form content.

    Signals are checked strongest first: duration, shorts URL, explicit
    upstream flag or item type, badge/overlay text, then a #shorts hashtag in
    the title. Missing signals mean "not short"; the check has no side effects
    so it can be repeated on the same item.
    """
    seconds = extract_duration_seconds(item)
    if 0 < seconds <= SHORTS_MAX_DURATION_SECONDS:
        return True
    if _has_short_url(item):
        return True
    if _has_short_flag(item):
        return True
    if _has_short_badge(item):
        return True
    return bool(SHORTS_HASHTAG_RE.search(extract_title(item)))
