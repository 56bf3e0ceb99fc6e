import asyncio
import logging
from typing import Iterable, Optional

from stremio_jackett.core.exceptions import InvalidConfig
from stremio_jackett.models.torrent import TorrentCandidate
from stremio_jackett.services.indexers.contracts import IndexerSearchClient

log = logging.getLogger(__name__)


def normalize_queries(queries: Iterable[Optional[str]]) -> list[str]:
    """Trim, drop blanks and repeat queries, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for q in queries:
        q = (q or "").strip()
        if q and q not in seen:
            seen.add(q)
            out.append(q)
    return out


def merge_unique(candidates: Iterable[TorrentCandidate]) -> list[TorrentCandidate]:
    """Drop repeated guids; the first occurrence wins."""
    seen: set[str] = set()
    merged: list[TorrentCandidate] = []
    for c in candidates:
        if c.guid in seen:
            continue
        seen.add(c.guid)
        merged.append(c)
    return merged


class TorrentSearchUseCase:
    def __init__(self, indexer: IndexerSearchClient):
        self.indexer = indexer

    async def search(
        self,
        queries: Iterable[Optional[str]],
        year: Optional[int] = None,
        fetch_limit: Optional[int] = None,
    ) -> list[TorrentCandidate]:
        cleaned = normalize_queries(queries)
        if not cleaned:
            raise InvalidConfig("Queries must be a non-empty list.")

        tasks = [
            asyncio.create_task(self.indexer.search(q, year=year, limit=fetch_limit))
            for q in cleaned
        ]
        responses = await asyncio.gather(*tasks, return_exceptions=True)

        collected: list[TorrentCandidate] = []
        for query, response in zip(cleaned, responses):
            if isinstance(response, BaseException):
                log.warning(
                    "Error searching %s with query %r: %s",
                    self.indexer.source, query, response,
                )
                continue
            collected.extend(response)

        merged = merge_unique(collected)
        log.info(
            "Collected %d results (%d unique) from %d queries",
            len(collected), len(merged), len(cleaned),
        )
        return merged
