"""
Best-effort field extraction for raw upstream video items.

Raw items have no fixed schema: the same value lives under different keys
depending on which surface produced the item (trending shelf, search result,
channel tab) and which locale the page was rendered in. Every field is
resolved through an ordered table of key paths; the first usable value wins.
Nothing in this module raises for malformed input; absence resolves to the
documented empty value of each field.
"""
import json
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

UNKNOWN_AGE = math.inf

THUMBNAIL_FALLBACK_URL = "https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"

# ---------------------------
# Candidate path tables
# ---------------------------

VIDEO_ID_PATHS = (
    "videoId",
    "video_id",
    "id.videoId",
    "id",
    "onTap.innertubeCommand.reelWatchEndpoint.videoId",
    "navigationEndpoint.reelWatchEndpoint.videoId",
    "navigationEndpoint.watchEndpoint.videoId",
    "compact_video_renderer.video_id",
)

TITLE_PATHS = (
    "title",
    "headline",
    "overlayMetadata.primaryText",
    "snippet.title",
)

CHANNEL_PATHS = (
    "author.name",
    "channel.name",
    "owner.name",
    "ownerText",
    "longBylineText",
    "shortBylineText",
    "snippet.channelTitle",
    "author",
    "channel",
)

PUBLISHED_PATHS = (
    "publishedTimeText",
    "published.text",
    "published_text",
    "published_time_text",
    "published",
    "snippet.publishedAt",
    "publishedAt",
)

VIEW_COUNT_NUMERIC_PATHS = (
    "view_count",
    "viewCount",
    "statistics.viewCount",
    "stats.views",
    "metadata.view_count",
)

VIEW_COUNT_TEXT_PATHS = (
    "viewCountText",
    "view_count.text",
    "shortViewCountText",
    "short_view_count.text",
    "short_view_count_text",
    "views.text",
    "views",
    "shorts.view_count.text",
    "shorts_view_count.text",
    "overlayMetadata.secondaryText",
    "accessibility.accessibilityData.label",
)

DURATION_SECONDS_PATHS = (
    "duration.seconds",
    "duration",
    "lengthSeconds",
    "length_seconds",
    "duration_seconds",
)

DURATION_ISO_PATHS = (
    "duration.text",
    "duration",
    "contentDetails.duration",
)

DURATION_CLOCK_PATHS = (
    "lengthText",
    "length_text",
    "length.text",
    "duration.text",
    "duration",
    "thumbnailOverlays.0.thumbnailOverlayTimeStatusRenderer.text",
)

THUMBNAIL_PATHS = (
    "thumbnails",
    "thumbnail.thumbnails",
    "thumbnail.sources",
    "thumbnail",
    "thumbnails_all",
    "snippet.thumbnails",
)

# ---------------------------
# Locale parsing tables
# ---------------------------

_MANTISSA = r"(\d+(?:[.,]\d+)?)"

# First matching rule wins, so larger units come first within each script.
VIEW_COUNT_UNIT_RULES = (
    (re.compile(_MANTISSA + r"\s*억"), 100_000_000),
    (re.compile(_MANTISSA + r"\s*[億亿]"), 100_000_000),
    (re.compile(_MANTISSA + r"\s*만"), 10_000),
    (re.compile(_MANTISSA + r"\s*[万萬]"), 10_000),
    (re.compile(_MANTISSA + r"\s*천"), 1_000),
    (re.compile(_MANTISSA + r"\s*千"), 1_000),
    (re.compile(_MANTISSA + r"\s*(?:billion|mrd|bn|b)(?![a-z])", re.IGNORECASE), 1_000_000_000),
    (re.compile(_MANTISSA + r"\s*(?:million|mio|mln|mi|m)(?![a-z])", re.IGNORECASE), 1_000_000),
    (re.compile(_MANTISSA + r"\s*(?:thousand|mil|k)(?![a-z])", re.IGNORECASE), 1_000),
)

PLAIN_NUMBER_RE = re.compile(r"\d[\d,.\s  ']*")
DEEP_VIEWS_RE = re.compile(
    r"(\d[\d,.]*\s*(?:[kmb]|만|억|万|億|亿)?)\s*(?:views?|회|回視聴|次观看)(?![a-z])",
    re.IGNORECASE,
)

ISO_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

HOURS_PER_UNIT = {
    "second": 1 / 3600,
    "minute": 1 / 60,
    "hour": 1.0,
    "day": 24.0,
    "week": 24.0 * 7,
    "month": 24.0 * 30,
    "year": 24.0 * 365,
}

# (token prefix, unit); checked in order against the captured unit token.
UNIT_PREFIXES = (
    ("sec", "second"), ("segund", "second"), ("sekund", "second"), ("초", "second"), ("秒", "second"),
    ("min", "minute"), ("분", "minute"), ("分", "minute"),
    ("hour", "hour"), ("hr", "hour"), ("hora", "hour"), ("stund", "hour"), ("heure", "hour"),
    ("시간", "hour"), ("時間", "hour"), ("小时", "hour"), ("小時", "hour"),
    ("day", "day"), ("día", "day"), ("dia", "day"), ("tag", "day"), ("jour", "day"),
    ("일", "day"), ("日", "day"), ("天", "day"),
    ("week", "week"), ("semana", "week"), ("woche", "week"), ("semaine", "week"),
    ("주", "week"), ("週", "week"), ("周", "week"),
    ("month", "month"), ("mês", "month"), ("mes", "month"), ("monat", "month"), ("mois", "month"),
    ("개월", "month"), ("달", "month"), ("か月", "month"), ("ヶ月", "month"), ("カ月", "month"),
    ("个月", "month"), ("個月", "month"),
    ("year", "year"), ("año", "year"), ("ano", "year"), ("jahr", "year"), ("an", "year"),
    ("년", "year"), ("年", "year"),
)

RELATIVE_AGE_RULES = (
    re.compile(
        r"(?P<n>\d+|\ban?\b)\s*(?P<unit>seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?|years?)\b",
        re.IGNORECASE,
    ),
    re.compile(r"(?P<n>\d+)\s*(?P<unit>초|분|시간|일|주|개월|달|년)\s*전"),
    re.compile(r"(?P<n>\d+)\s*(?P<unit>秒|分|時間|日|週間|か月|ヶ月|カ月|年)前"),
    re.compile(r"(?P<n>\d+)\s*(?P<unit>秒|分钟|分鐘|小时|小時|天|周|週|个月|個月|年)前"),
    re.compile(r"(?:hace|há)\s+(?P<n>\d+)\s+(?P<unit>\w+)", re.IGNORECASE),
    re.compile(r"vor\s+(?P<n>\d+)\s+(?P<unit>\w+)", re.IGNORECASE),
    re.compile(r"il y a\s+(?P<n>\d+)\s+(?P<unit>\w+)", re.IGNORECASE),
)

YESTERDAY_RE = re.compile(r"yesterday|어제|昨日|昨天|ayer|ontem|gestern|\bhier\b", re.IGNORECASE)

NUMERIC_DATE_RE = re.compile(r"(\d{4})\s*[-./年]\s*(\d{1,2})\s*[-./月]\s*(\d{1,2})")
ENGLISH_DATE_RE = re.compile(r"([A-Z][a-z]{2})[a-z]*\.?\s+(\d{1,2}),\s*(\d{4})")


# ---------------------------
# Tree access
# ---------------------------

def lookup(node: Any, path: str) -> Any:
    """Walk a dotted key path through dicts, lists and plain objects."""
    current = node
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)):
            if not part.isdigit() or int(part) >= len(current):
                return None
            current = current[int(part)]
        else:
            current = getattr(current, part, None)
    return current


def text_of(value: Any) -> str | None:
    """Flatten the text node shapes the upstream uses into a plain string."""
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("simpleText", "text", "content"):
            found = text_of(value.get(key))
            if found:
                return found
        runs = value.get("runs")
        if isinstance(runs, list):
            parts = [run.get("text") for run in runs if isinstance(run, Mapping)]
            joined = "".join(part for part in parts if isinstance(part, str)).strip()
            return joined or None
        return None
    for attr in ("text", "content"):
        found = getattr(value, attr, None)
        if isinstance(found, str) and found.strip():
            return found.strip()
    return None


def serialize(item: Any) -> str:
    try:
        return json.dumps(item, ensure_ascii=False, default=str)
    except (TypeError, ValueError, RecursionError):
        return ""


def first_text(item: Any, paths: tuple[str, ...]) -> str:
    for path in paths:
        found = text_of(lookup(item, path))
        if found:
            return found
    return ""


# ---------------------------
# View counts
# ---------------------------

def _to_float(mantissa: str) -> float:
    if "," in mantissa:
        whole, _, frac = mantissa.partition(",")
        if len(frac) == 3:
            return float(whole + frac)
        return float(f"{whole}.{frac}")
    return float(mantissa)


def parse_view_count(text: str | None) -> int:
    if not isinstance(text, str) or not text.strip():
        return 0
    for pattern, multiplier in VIEW_COUNT_UNIT_RULES:
        match = pattern.search(text)
        if match:
            try:
                return int(round(_to_float(match.group(1)) * multiplier))
            except ValueError:
                continue
    match = PLAIN_NUMBER_RE.search(text)
    if not match:
        return 0
    digits = re.sub(r"\D", "", match.group(0))
    return int(digits) if digits else 0


def _count_from_value(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(0, int(value))
    return parse_view_count(text_of(value))


def extract_views(item: Any) -> int:
    for path in VIEW_COUNT_NUMERIC_PATHS + VIEW_COUNT_TEXT_PATHS:
        count = _count_from_value(lookup(item, path))
        if count > 0:
            return count
    for match in DEEP_VIEWS_RE.finditer(serialize(item)):
        count = parse_view_count(match.group(1))
        if count > 0:
            return count
    return 0


# ---------------------------
# Durations
# ---------------------------

def iso8601_duration_to_seconds(duration: str) -> int:
    match = ISO_DURATION_RE.match((duration or "").strip())
    if not match:
        return 0
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def parse_clock_duration(value: str | None) -> int:
    if not value:
        return 0
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
        return 0
    numbers = [int(p) for p in parts]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]


def extract_duration_seconds(item: Any) -> int:
    for path in DURATION_SECONDS_PATHS:
        value = lookup(item, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and value > 0 and not math.isinf(value):
            return int(value)
        if isinstance(value, str) and value.isdigit() and int(value) > 0:
            return int(value)
    for path in DURATION_ISO_PATHS:
        value = lookup(item, path)
        if isinstance(value, str) and value.startswith("PT"):
            seconds = iso8601_duration_to_seconds(value)
            if seconds > 0:
                return seconds
    for path in DURATION_CLOCK_PATHS:
        seconds = parse_clock_duration(text_of(lookup(item, path)))
        if seconds > 0:
            return seconds
    return 0


# ---------------------------
# Ages
# ---------------------------

def _canonical_unit(token: str) -> str | None:
    lowered = token.lower()
    for prefix, unit in UNIT_PREFIXES:
        if lowered.startswith(prefix):
            return unit
    return None


def _parse_absolute_date(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    match = NUMERIC_DATE_RE.search(text)
    if match:
        try:
            return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)), tzinfo=timezone.utc)
        except ValueError:
            return None
    match = ENGLISH_DATE_RE.search(text)
    if match:
        try:
            parsed = datetime.strptime(" ".join(match.groups()), "%b %d %Y")
        except ValueError:
            return None
        return parsed.replace(tzinfo=timezone.utc)
    return None


def published_text_to_hours(text: str | None, now: datetime | None = None) -> float:
    if not isinstance(text, str) or not text.strip():
        return UNKNOWN_AGE
    now = now or datetime.now(timezone.utc)

    absolute = _parse_absolute_date(text)
    if absolute is not None:
        return max(0.0, (now - absolute).total_seconds() / 3600)

    for pattern in RELATIVE_AGE_RULES:
        match = pattern.search(text)
        if not match:
            continue
        unit = _canonical_unit(match.group("unit"))
        if unit is None:
            continue
        raw_n = match.group("n")
        n = 1 if raw_n.lower() in ("a", "an") else int(raw_n)
        return n * HOURS_PER_UNIT[unit]

    if YESTERDAY_RE.search(text):
        return HOURS_PER_UNIT["day"]
    return UNKNOWN_AGE


def extract_published_text(item: Any) -> str:
    return first_text(item, PUBLISHED_PATHS)


def extract_age_hours(item: Any, now: datetime | None = None) -> float:
    return published_text_to_hours(extract_published_text(item), now)


# ---------------------------
# Identity, labels, thumbnails
# ---------------------------

def extract_video_id(item: Any) -> str:
    for path in VIDEO_ID_PATHS:
        value = lookup(item, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def extract_title(item: Any) -> str:
    return first_text(item, TITLE_PATHS)


def extract_channel(item: Any) -> str:
    return first_text(item, CHANNEL_PATHS)


def _area(thumb: Mapping) -> float:
    try:
        return float(thumb.get("width") or 0) * float(thumb.get("height") or 0)
    except (TypeError, ValueError):
        return 0.0


def _normalize_thumb_url(url: Any) -> str | None:
    if not isinstance(url, str) or not url.strip():
        return None
    url = url.strip()
    if url.startswith("//"):
        return "https:" + url
    return url


def extract_thumbnail(item: Any) -> str | None:
    for path in THUMBNAIL_PATHS:
        value = lookup(item, path)
        if isinstance(value, Mapping):
            if "url" in value:
                value = [value]
            else:
                # Named variants ({"high": {...}, "default": {...}}).
                value = [v for v in value.values() if isinstance(v, Mapping)]
        if isinstance(value, str):
            url = _normalize_thumb_url(value)
            if url:
                return url
            continue
        if not isinstance(value, (list, tuple)):
            continue
        sized = [t for t in value if isinstance(t, Mapping) and _normalize_thumb_url(t.get("url"))]
        if not sized:
            continue
        # max() keeps the first of equal areas.
        best = max(sized, key=_area)
        return _normalize_thumb_url(best.get("url"))

    video_id = extract_video_id(item)
    if video_id:
        return THUMBNAIL_FALLBACK_URL.format(video_id=video_id)
    return None
