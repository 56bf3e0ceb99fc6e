from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SortBy(str, Enum):
    PUBLISH_DATE = "publishDate"
    SEEDERS = "seeders"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortBy":
        # "publishAt" is what older add-on URLs carry.
        if (value or "").strip() == cls.SEEDERS.value:
            return cls.SEEDERS
        return cls.PUBLISH_DATE


@dataclass(frozen=True)
class TorrentCandidate:
    title: str
    magnet_or_link: str
    size_bytes: Optional[str]
    seeders: int
    peers: int
    published_at: Optional[datetime]
    guid: str


@dataclass(frozen=True)
class ResolvedMetadata:
    title: Optional[str] = None
    year: Optional[int] = None
    alternate_titles: tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return bool(self.title) or bool(self.year)


UNRESOLVED = ResolvedMetadata()


@dataclass(frozen=True)
class SearchQuery:
    queries: tuple[str, ...]
    year: Optional[int]
    fetch_limit: int
    min_seeders: int = 0
    sort_by: SortBy = SortBy.PUBLISH_DATE


@dataclass(frozen=True)
class TrackerSnapshot:
    trackers: frozenset[str]
    fetched_at: float


@dataclass(frozen=True)
class StreamSource:
    display_title: str
    info_hash: str
    source_uris: tuple[str, ...] = ()
