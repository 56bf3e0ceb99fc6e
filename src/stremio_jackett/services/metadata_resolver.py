# -*- coding: utf-8 -*-
import logging
import re
from typing import Any, List, Optional, Protocol, Sequence

from stremio_jackett.core.exceptions import CollaboratorUnavailable
from stremio_jackett.models.torrent import UNRESOLVED, ResolvedMetadata
from stremio_jackett.services.http_session import AsyncHTTPSession

log = logging.getLogger(__name__)

IMDB_PREFIX = "tt"
_YEAR_RE = re.compile(r"\d{4}")


def imdb_id_from(external_id: str) -> Optional[str]:
    """``tt0133093`` -> itself; ``tt0944947:1:2`` (series episode) -> ``tt0944947``."""
    base = (external_id or "").strip().split(":", 1)[0]
    return base if base.startswith(IMDB_PREFIX) else None


def _year_from(value: Any) -> Optional[int]:
    m = _YEAR_RE.search(str(value or ""))
    return int(m.group(0)) if m else None


class MetadataProvider(Protocol):
    name: str

    @property
    def enabled(self) -> bool:
        ...

    async def lookup(self, imdb_id: str, media_type: str) -> Optional[ResolvedMetadata]:
        ...


class TmdbProvider:
    name = "tmdb"

    def __init__(
        self,
        api_key: Optional[str],
        http: AsyncHTTPSession,
        api_base: str = "https://api.themoviedb.org/3",
        timeout: float = 8.0,
    ):
        self.api_key = (api_key or "").strip()
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, **params: Any) -> Any:
        return await self.http.get_json(
            f"{self.api_base}{path}",
            params={**params, "api_key": self.api_key},
            timeout=self.timeout,
            collaborator=self.name,
        )

    async def lookup(self, imdb_id: str, media_type: str) -> Optional[ResolvedMetadata]:
        data = await self._get(f"/find/{imdb_id}", external_source="imdb_id")
        if not isinstance(data, dict):
            return None

        if media_type == "series":
            results = data.get("tv_results") or []
            title_key, date_key, kind = "name", "first_air_date", "tv"
        else:
            results = data.get("movie_results") or []
            title_key, date_key, kind = "title", "release_date", "movie"
        if media_type not in ("movie", "series") or not results:
            log.debug("TMDb found no %s results for %s", media_type, imdb_id)
            return None

        first = results[0] or {}
        title = (first.get(title_key) or "").strip()
        if not title:
            return None
        year = _year_from((first.get(date_key) or "")[:4])
        alternates = await self._alternative_titles(kind, first.get("id"), imdb_id)
        return ResolvedMetadata(title=title, year=year, alternate_titles=tuple(alternates))

    async def _alternative_titles(self, kind: str, tmdb_id: Any, imdb_id: str) -> List[str]:
        if not tmdb_id:
            return []
        try:
            data = await self._get(f"/{kind}/{tmdb_id}/alternative_titles")
        except CollaboratorUnavailable as e:
            log.warning("Error fetching alternative titles from TMDb for %s: %s", imdb_id, e)
            return []
        if not isinstance(data, dict):
            return []
        # movie payloads use "titles", tv payloads use "results"
        rows = data.get("titles") or data.get("results") or []
        titles = [
            str(row.get("title")).strip()
            for row in rows
            if isinstance(row, dict) and row.get("title")
        ]
        log.debug("Found %d alternative titles on TMDb for %s", len(titles), imdb_id)
        return titles


class OmdbProvider:
    name = "omdb"

    def __init__(
        self,
        api_key: Optional[str],
        http: AsyncHTTPSession,
        api_base: str = "http://www.omdbapi.com",
        timeout: float = 8.0,
    ):
        self.api_key = (api_key or "").strip()
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def lookup(self, imdb_id: str, media_type: str) -> Optional[ResolvedMetadata]:
        data = await self.http.get_json(
            f"{self.api_base}/",
            params={"i": imdb_id, "apikey": self.api_key},
            timeout=self.timeout,
            collaborator=self.name,
        )
        if not isinstance(data, dict) or data.get("Response") != "True":
            err = data.get("Error") if isinstance(data, dict) else None
            log.debug("OMDb found no results for %s: %s", imdb_id, err)
            return None
        title = (data.get("Title") or "").strip()
        if not title:
            return None
        return ResolvedMetadata(title=title, year=_year_from(data.get("Year")))


class MetadataResolver:
    """Tries each configured provider in order; the first one with a title wins."""

    def __init__(self, providers: Sequence[MetadataProvider]):
        self.providers = list(providers)

    async def resolve(self, external_id: str, media_type: str) -> ResolvedMetadata:
        imdb_id = imdb_id_from(external_id)
        if not imdb_id:
            return UNRESOLVED

        for provider in self.providers:
            if not provider.enabled:
                continue
            try:
                meta = await provider.lookup(imdb_id, media_type)
            except CollaboratorUnavailable as e:
                log.warning("Error fetching metadata from %s for %s: %s", provider.name, imdb_id, e)
                continue
            except Exception as e:
                log.warning(
                    "Unexpected %s response for %s: %s", provider.name, imdb_id, e,
                    exc_info=True,
                )
                continue
            if meta is not None and meta.title:
                log.info(
                    "Resolved %s to %r (%s) via %s",
                    imdb_id, meta.title, meta.year or "N/A", provider.name,
                )
                return meta

        log.info("Could not resolve metadata for %s", external_id)
        return UNRESOLVED
