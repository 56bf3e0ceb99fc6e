import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from stremio_jackett.core.exceptions import InvalidConfig
from stremio_jackett.models.stremio import AddonConfig, StreamItem, StreamResponse
from stremio_jackett.models.torrent import SortBy
from stremio_jackett.services.usecases.stream_resolution import StreamResolutionUseCase

log = logging.getLogger(__name__)
router = APIRouter(prefix="")

MANIFEST_ID = "org.stremio.jackettaddon"
MANIFEST_VERSION = "1.1.0"
SUPPORTED_TYPES = ("movie", "series")


def get_stream_usecase(request: Request) -> StreamResolutionUseCase:
    # built by the app lifespan, which also owns and closes the HTTP session
    uc = getattr(request.app.state, "stream_usecase", None)
    if uc is None:
        raise RuntimeError("stream use case not initialized (app lifespan did not run)")
    return uc


def build_manifest(config: AddonConfig) -> Dict[str, Any]:
    return {
        "id": MANIFEST_ID,
        "version": MANIFEST_VERSION,
        "name": "Jackett Direct Torrents (Expanded Categories)",
        "description": (
            "Stremio addon to search Jackett for direct torrents with flexible "
            "configuration and metadata resolution."
        ),
        "resources": ["stream"],
        "types": list(SUPPORTED_TYPES),
        "catalogs": [],
        "idPrefixes": ["tt"],
        "behaviorHints": {
            "configurable": True,
            "configuration": [
                {
                    "key": "jackettHost",
                    "type": "text",
                    "title": "Jackett Host URL (e.g., http://localhost:9117)",
                    "required": True,
                    "default": config.jackett_host or "",
                },
                {
                    "key": "jackettApiKey",
                    "type": "text",
                    "title": "Jackett API Key",
                    "required": True,
                    "default": config.jackett_api_key or "",
                },
                {
                    "key": "tmdbApiKey",
                    "type": "text",
                    "title": "TMDb API Key (optional, for better title resolution)",
                    "required": False,
                    "default": config.tmdb_api_key or "",
                },
                {
                    "key": "omdbApiKey",
                    "type": "text",
                    "title": "OMDb API Key (optional, fallback to TMDb)",
                    "required": False,
                    "default": config.omdb_api_key or "",
                },
                {
                    "key": "maxResults",
                    "type": "number",
                    "title": "Max Results (default: 20, max: 20)",
                    "required": False,
                    "default": str(config.max_results),
                    "min": 1,
                    "max": 20,
                },
                {
                    "key": "filterBySeeders",
                    "type": "number",
                    "title": "Minimum Seeders (optional)",
                    "required": False,
                    "default": str(config.min_seeders),
                    "min": 0,
                },
                {
                    "key": "sortBy",
                    "type": "select",
                    "title": "Sort By",
                    "options": [
                        {"value": SortBy.PUBLISH_DATE.value, "label": "Recently Published"},
                        {"value": SortBy.SEEDERS.value, "label": "Most Seeders"},
                    ],
                    "required": False,
                    "default": config.sort_by.value,
                },
                {
                    "key": "trackerGithubUrl",
                    "type": "text",
                    "title": "GitHub Raw URL for Trackers (optional)",
                    "description": (
                        "e.g., https://raw.githubusercontent.com/ngosang/"
                        "trackerslist/master/trackers_all.txt"
                    ),
                    "required": False,
                    "default": config.tracker_url or "",
                },
            ],
        },
    }


@router.get("/manifest.json", summary="Stremio add-on manifest")
async def manifest(request: Request):
    config = AddonConfig.from_query(request.query_params)
    return build_manifest(config)


@router.get(
    "/stream/{media_type}/{stremio_id}.json",
    response_model=StreamResponse,
    response_model_exclude_none=True,
    summary="Resolve playable torrent streams for an IMDb id",
)
async def streams(request: Request, media_type: str, stremio_id: str):
    log.info("Stream request type=%s id=%s", media_type, stremio_id)
    if media_type not in SUPPORTED_TYPES:
        raise HTTPException(status_code=404, detail=f"Unsupported type: {media_type}")

    config = AddonConfig.from_query(request.query_params)
    usecase = get_stream_usecase(request)
    try:
        sources = await usecase.resolve_streams(media_type, stremio_id, config)
    except InvalidConfig as e:
        log.error("Cannot serve stream request for %s: %s", stremio_id, e)
        return JSONResponse(
            status_code=500,
            content=StreamResponse(error=str(e)).model_dump(),
        )
    return StreamResponse(streams=[StreamItem.from_source(s) for s in sources])
