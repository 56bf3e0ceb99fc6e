import asyncio
import logging
from typing import Callable, List, Optional

from stremio_jackett.core.config import settings
from stremio_jackett.models.stremio import AddonConfig
from stremio_jackett.models.torrent import ResolvedMetadata, SearchQuery, StreamSource
from stremio_jackett.services.http_session import AsyncHTTPSession
from stremio_jackett.services.indexers.contracts import IndexerSearchClient
from stremio_jackett.services.jackett_service import JackettService
from stremio_jackett.services.metadata_resolver import (
    MetadataResolver,
    OmdbProvider,
    TmdbProvider,
)
from stremio_jackett.services.ranking import extract_info_hash, rank, shape
from stremio_jackett.services.relevance import filter_relevant
from stremio_jackett.services.tracker_cache import TrackerCache
from stremio_jackett.services.usecases.torrent_search import (
    TorrentSearchUseCase,
    normalize_queries,
)

log = logging.getLogger(__name__)

IndexerFactory = Callable[[AddonConfig], IndexerSearchClient]
ResolverFactory = Callable[[AddonConfig], MetadataResolver]


def build_queries(external_id: str, metadata: ResolvedMetadata) -> List[str]:
    """Alternate titles, then the resolved title, then the raw id as a last resort."""
    return normalize_queries([*metadata.alternate_titles, metadata.title, external_id])


class StreamResolutionUseCase:
    def __init__(
        self,
        http: AsyncHTTPSession,
        tracker_cache: TrackerCache,
        indexer_factory: Optional[IndexerFactory] = None,
        resolver_factory: Optional[ResolverFactory] = None,
        fetch_limit: int = 50,
    ):
        self.http = http
        self.tracker_cache = tracker_cache
        self.indexer_factory = indexer_factory or self._jackett_for
        self.resolver_factory = resolver_factory or self._resolver_for
        self.fetch_limit = fetch_limit

    def _jackett_for(self, config: AddonConfig) -> IndexerSearchClient:
        return JackettService(
            config.jackett_host,
            config.jackett_api_key,
            self.http,
            timeout=settings.jackett_timeout_sec,
        )

    def _resolver_for(self, config: AddonConfig) -> MetadataResolver:
        return MetadataResolver(
            [
                TmdbProvider(
                    config.tmdb_api_key,
                    self.http,
                    api_base=settings.tmdb_api_base,
                    timeout=settings.metadata_timeout_sec,
                ),
                OmdbProvider(
                    config.omdb_api_key,
                    self.http,
                    api_base=settings.omdb_api_base,
                    timeout=settings.metadata_timeout_sec,
                ),
            ]
        )

    async def resolve_streams(
        self,
        media_type: str,
        external_id: str,
        config: AddonConfig,
    ) -> List[StreamSource]:
        # raises InvalidConfig before any upstream call is made
        indexer = self.indexer_factory(config)
        search = TorrentSearchUseCase(indexer)

        trackers_task = asyncio.create_task(self.tracker_cache.get(config.tracker_url))
        try:
            metadata = await self.resolver_factory(config).resolve(external_id, media_type)
            query = SearchQuery(
                queries=tuple(build_queries(external_id, metadata)),
                year=metadata.year,
                fetch_limit=self.fetch_limit,
                min_seeders=config.min_seeders,
                sort_by=config.sort_by,
            )
            log.info("Final %s queries: %s", indexer.source, list(query.queries))
            candidates = await search.search(
                query.queries, year=query.year, fetch_limit=query.fetch_limit
            )
        except BaseException:
            trackers_task.cancel()
            raise

        relevant = filter_relevant(candidates, metadata)
        playable = [c for c in relevant if extract_info_hash(c.magnet_or_link)]
        if len(playable) != len(relevant):
            log.warning("Dropped %d results without an info hash", len(relevant) - len(playable))
        ranked = rank(playable, query.min_seeders, query.sort_by, config.max_results)

        trackers = await trackers_task
        log.info("Using %d trackers", len(trackers))
        streams = [s for s in (shape(c, trackers) for c in ranked) if s is not None]
        log.info(
            "Resolved %d streams for %s %s (max %d)",
            len(streams), media_type, external_id, config.max_results,
        )
        return streams
