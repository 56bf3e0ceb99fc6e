import re
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from stremio_jackett.core.config import Settings, settings
from stremio_jackett.models.torrent import SortBy, StreamSource
from stremio_jackett.services.ranking import clamp_max_results

ADDON_NAME = "Jackett"
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _int_or(value: Optional[str], default: int, zero_is_default: bool = False) -> int:
    # add-on URLs carry things like "20" or "20abc"; read the leading number only
    m = _LEADING_INT_RE.match(str(value or ""))
    if not m:
        return default
    parsed = int(m.group(1))
    if parsed == 0 and zero_is_default:
        return default
    return parsed


def _str_or(value: Optional[str], default: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or default


class AddonConfig(BaseModel):
    """Per-install configuration carried in the add-on URL query string."""

    jackett_host: Optional[str] = None
    jackett_api_key: Optional[str] = None
    tmdb_api_key: Optional[str] = None
    omdb_api_key: Optional[str] = None
    tracker_url: Optional[str] = None
    max_results: int = Field(default=20, ge=1, le=20)
    min_seeders: int = Field(default=0, ge=0)
    sort_by: SortBy = SortBy.PUBLISH_DATE

    @classmethod
    def from_query(
        cls,
        params: Mapping[str, str],
        defaults: Optional[Settings] = None,
    ) -> "AddonConfig":
        d = defaults or settings
        return cls(
            jackett_host=_str_or(params.get("jackettHost"), d.jackett_host),
            jackett_api_key=_str_or(params.get("jackettApiKey"), d.jackett_api_key),
            tmdb_api_key=_str_or(params.get("tmdbApiKey"), d.tmdb_api_key),
            omdb_api_key=_str_or(params.get("omdbApiKey"), d.omdb_api_key),
            tracker_url=_str_or(params.get("trackerGithubUrl"), d.tracker_github_url),
            max_results=clamp_max_results(
                _int_or(params.get("maxResults"), d.max_results, zero_is_default=True)
            ),
            min_seeders=max(0, _int_or(params.get("filterBySeeders"), d.filter_by_seeders)),
            sort_by=SortBy.parse(_str_or(params.get("sortBy"), d.sort_by)),
        )


class StreamItem(BaseModel):
    name: str = ADDON_NAME
    title: str
    infoHash: str
    sources: List[str] = Field(default_factory=list)

    @classmethod
    def from_source(cls, source: StreamSource) -> "StreamItem":
        return cls(
            title=source.display_title,
            infoHash=source.info_hash,
            sources=list(source.source_uris),
        )


class StreamResponse(BaseModel):
    streams: List[StreamItem] = Field(default_factory=list)
    error: Optional[str] = None
