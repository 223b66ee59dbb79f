import logging
import math
import os
import re
import time
from typing import Annotated, Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
try:
    from backend.app.services.client_cache import RegionClientCache
    from backend.app.services.discovery import DiscoveryCascade, apply_search_filter, capability, item_list
    from backend.app.services.field_extractor import extract_channel, extract_title, lookup
    from backend.app.services.result_pipeline import collect_shorts
    from backend.app.services.youtube_client import YouTubeClient, call_upstream
except ModuleNotFoundError:
    from app.services.client_cache import RegionClientCache
    from app.services.discovery import DiscoveryCascade, apply_search_filter, capability, item_list
    from app.services.field_extractor import extract_channel, extract_title, lookup
    from app.services.result_pipeline import collect_shorts
    from app.services.youtube_client import YouTubeClient, call_upstream


# ---------------------------
# Config
# ---------------------------

load_dotenv()


def env_number(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger("shorts_api")

UPSTREAM_TIMEOUT_SECONDS = env_number("UPSTREAM_TIMEOUT_SECONDS", 7)
FILTER_TIMEOUT_SECONDS = env_number("FILTER_TIMEOUT_SECONDS", 5)
TRENDING_DEFAULT_HOURS = env_number("TRENDING_DEFAULT_HOURS", 48)
SEARCH_DEFAULT_HOURS = env_number("SEARCH_DEFAULT_HOURS", 168)
RESULT_CAP_DEFAULT = int(env_number("RESULT_CAP_DEFAULT", 120))
RESULT_CAP_LIMIT = int(env_number("RESULT_CAP_LIMIT", 400))
CHANNEL_LIMIT_DEFAULT = int(env_number("CHANNEL_LIMIT_DEFAULT", 30))
CHANNEL_LIMIT_MAX = int(env_number("CHANNEL_LIMIT_MAX", 50))

REGION_RE = re.compile(r"^[A-Z]{2}$")
CHANNEL_ID_RE = re.compile(r"(UC[0-9A-Za-z_-]{22,})")
HANDLE_RE = re.compile(r"(?:^|/)@([A-Za-z0-9._-]{3,})")

OWNER_ID_PATHS = (
    "author.id",
    "channel.id",
    "ownerText.runs.0.navigationEndpoint.browseEndpoint.browseId",
    "longBylineText.runs.0.navigationEndpoint.browseEndpoint.browseId",
    "shortBylineText.runs.0.navigationEndpoint.browseEndpoint.browseId",
)


# ---------------------------
# Helpers
# ---------------------------

def normalize_region(region: str | None) -> str:
    region = (region or "US").strip().upper()
    if not REGION_RE.match(region):
        raise HTTPException(status_code=400, detail="region must be a two-letter territory code")
    return region


def validate_filters(hours: float, min_views: int) -> None:
    if math.isnan(hours) or hours <= 0:
        raise HTTPException(status_code=400, detail="hours must be positive")
    if min_views < 0:
        raise HTTPException(status_code=400, detail="minViews must be zero or more")


def clamp_result_cap(max_results: int) -> int:
    return max(1, min(max_results, RESULT_CAP_LIMIT))


def error_response(tag: str, exc: Exception) -> JSONResponse:
    log.exception("[%s] ERROR: %s", tag, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def owner_id(item: Any) -> str | None:
    for path in OWNER_ID_PATHS:
        value = lookup(item, path)
        if isinstance(value, str) and value:
            return value
    return None


async def resolve_channel(client: Any, raw_input: str) -> tuple[str | None, str]:
    """
    Resolve a channel id from an id, URL, @handle or free text.

    Returns (channel_id, channel_title); the title is only known when the
    channel was found through search. The search fallback relies on the
    upstream tagging results with a "channel" type, so it is best-effort.
    """
    match = CHANNEL_ID_RE.search(raw_input)
    if match:
        return match.group(1), ""

    handle_match = HANDLE_RE.search(raw_input)
    resolve_handle = capability(client, "resolve_handle")
    if handle_match and resolve_handle is not None:
        try:
            channel_id = await call_upstream(
                "resolve_handle", resolve_handle, handle_match.group(1), timeout=UPSTREAM_TIMEOUT_SECONDS
            )
        except Exception as exc:
            log.warning("[BY-CHANNEL] handle lookup failed: %s", exc)
            channel_id = None
        if channel_id:
            return channel_id, ""

    search = capability(client, "search")
    if search is None:
        return None, ""
    results = await call_upstream("search", search, raw_input, timeout=UPSTREAM_TIMEOUT_SECONDS)
    for item in item_list(results, "results"):
        if str(lookup(item, "type") or "").lower() != "channel":
            continue
        channel_id = lookup(item, "id") or lookup(item, "channelId")
        if isinstance(channel_id, str) and channel_id:
            return channel_id, extract_channel(item) or extract_title(item)
    return None, ""


async def fetch_channel_items(client: Any, channel_id: str) -> list[Any]:
    get_channel_shorts = capability(client, "get_channel_shorts")
    if get_channel_shorts is not None:
        try:
            items = await call_upstream(
                "get_channel_shorts", get_channel_shorts, channel_id, timeout=UPSTREAM_TIMEOUT_SECONDS
            )
        except Exception as exc:
            log.warning("[BY-CHANNEL] shorts tab failed for %s: %s", channel_id, exc)
            items = []
        items = item_list(items, "items", "contents")
        if items:
            return items

    search = capability(client, "search")
    if search is None:
        return []
    results = await call_upstream("search", search, channel_id, timeout=UPSTREAM_TIMEOUT_SECONDS)
    return [item for item in item_list(results, "results") if owner_id(item) == channel_id]


# ---------------------------
# App setup
# ---------------------------

def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:5173"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:5173"], True
    return origins, True


app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    query = f"?{request.url.query}" if request.url.query else ""
    log.info("%s %s%s", request.method, request.url.path, query)
    return await call_next(request)


@app.on_event("startup")
def on_startup_create_client_cache():
    app.state.client_cache = RegionClientCache(YouTubeClient)


@app.on_event("shutdown")
def on_shutdown_close_clients():
    cache = getattr(app.state, "client_cache", None)
    if cache is not None:
        cache.close()


def get_client_cache(request: Request) -> RegionClientCache:
    return request.app.state.client_cache


# ---------------------------
# Routes
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/shorts/trending")
async def shorts_trending(
    cache: Annotated[RegionClientCache, Depends(get_client_cache)],
    region: str = "US",
    hours: float = TRENDING_DEFAULT_HOURS,
    min_views: Annotated[int, Query(alias="minViews")] = 0,
    max_results: Annotated[int, Query(alias="max")] = RESULT_CAP_DEFAULT,
):
    """
    Trending shorts for a region: content filter -> shelf scan -> search backup,
    then views/age filters, views-descending order and the result cap.
    """
    started = time.monotonic()
    region = normalize_region(region)
    validate_filters(hours, min_views)
    result_cap = clamp_result_cap(max_results)
    log.info("[TREND] region=%s hours=%s minViews=%s max=%s", region, hours, min_views, result_cap)

    try:
        client = await cache.get(region)
        pool, stage = await DiscoveryCascade(
            client,
            call_timeout=UPSTREAM_TIMEOUT_SECONDS,
            filter_timeout=FILTER_TIMEOUT_SECONDS,
        ).run()
        videos, dropped = collect_shorts(
            pool,
            region,
            min_views=min_views,
            max_age_hours=hours,
            result_cap=result_cap,
        )
    except Exception as exc:
        return error_response("TREND", exc)

    elapsed_ms = int((time.monotonic() - started) * 1000)
    log.info("[TREND] final len=%d stage=%s dropped=%s (%dms)", len(videos), stage, dropped, elapsed_ms)
    return [video.to_response() for video in videos]


@app.get("/shorts/search")
async def shorts_search(
    cache: Annotated[RegionClientCache, Depends(get_client_cache)],
    q: str = "",
    region: str = "US",
    hours: float = SEARCH_DEFAULT_HOURS,
    min_views: Annotated[int, Query(alias="minViews")] = 0,
    max_results: Annotated[int, Query(alias="max")] = RESULT_CAP_DEFAULT,
):
    query = (q or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="q is required")
    region = normalize_region(region)
    validate_filters(hours, min_views)
    result_cap = clamp_result_cap(max_results)

    try:
        client = await cache.get(region)
        search = capability(client, "search")
        if search is None:
            raise RuntimeError("upstream client cannot search")
        results = await call_upstream("search", search, query, timeout=UPSTREAM_TIMEOUT_SECONDS)
        results = await apply_search_filter(results, FILTER_TIMEOUT_SECONDS)
        videos, dropped = collect_shorts(
            item_list(results, "results"),
            region,
            min_views=min_views,
            max_age_hours=hours,
            result_cap=result_cap,
        )
    except Exception as exc:
        return error_response("SEARCH", exc)

    log.info("[SEARCH] q=%r region=%s final len=%d dropped=%s", query, region, len(videos), dropped)
    return [video.to_response() for video in videos]


@app.get("/shorts/by-channel")
async def shorts_by_channel(
    cache: Annotated[RegionClientCache, Depends(get_client_cache)],
    input: str = "",
    region: str = "US",
    limit: int = CHANNEL_LIMIT_DEFAULT,
):
    """
    Latest shorts of one channel. `input` may be a channel id, a channel or
    handle URL, an @handle, or free text. Upstream order is kept.
    """
    raw_input = (input or "").strip()
    if not raw_input:
        raise HTTPException(status_code=400, detail="input is required")
    region = normalize_region(region)
    limit = max(1, min(limit, CHANNEL_LIMIT_MAX))

    try:
        client = await cache.get(region)
        channel_id, channel_title = await resolve_channel(client, raw_input)
        if not channel_id:
            log.info("[BY-CHANNEL] could not resolve %r", raw_input)
            return []

        items = await fetch_channel_items(client, channel_id)
        videos, dropped = collect_shorts(items, region, result_cap=limit, sort_by_views=False)
    except Exception as exc:
        return error_response("BY-CHANNEL", exc)

    if channel_title:
        videos = [video.model_copy(update={"channel": channel_title}) for video in videos]
    log.info("[BY-CHANNEL] channel=%s final len=%d dropped=%s", channel_id, len(videos), dropped)
    return [video.to_response() for video in videos]
