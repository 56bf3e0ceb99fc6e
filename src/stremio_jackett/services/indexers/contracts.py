from typing import Optional, Protocol

from stremio_jackett.models.torrent import TorrentCandidate


class IndexerSearchClient(Protocol):
    source: str

    async def search(
        self,
        query: str,
        year: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[TorrentCandidate]:
        ...


class TextFetcher(Protocol):
    async def get_text(
        self,
        url: str,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
        collaborator: str = "http",
    ) -> str:
        ...
