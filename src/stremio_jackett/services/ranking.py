import logging
import re
from typing import Iterable, List, Optional

from stremio_jackett.models.torrent import SortBy, StreamSource, TorrentCandidate

log = logging.getLogger(__name__)

MAX_RESULTS_CEILING = 20
_BTIH_RE = re.compile(r"xt=urn:btih:([0-9a-f]{40})(?![0-9a-f])", re.I)


def clamp_max_results(max_results: Optional[int]) -> int:
    if not max_results or max_results < 1:
        return MAX_RESULTS_CEILING
    return min(max_results, MAX_RESULTS_CEILING)


def _published_key(c: TorrentCandidate) -> float:
    return c.published_at.timestamp() if c.published_at else 0.0


def rank(
    candidates: Iterable[TorrentCandidate],
    min_seeders: int = 0,
    sort_by: SortBy = SortBy.PUBLISH_DATE,
    max_results: Optional[int] = MAX_RESULTS_CEILING,
) -> List[TorrentCandidate]:
    kept = [c for c in candidates if c.seeders >= min_seeders]
    if sort_by == SortBy.SEEDERS:
        kept.sort(key=lambda c: c.seeders, reverse=True)
    else:
        kept.sort(key=_published_key, reverse=True)
    return kept[: clamp_max_results(max_results)]


def extract_info_hash(magnet_uri: str) -> Optional[str]:
    m = _BTIH_RE.search(magnet_uri or "")
    return m.group(1) if m else None


def shape(candidate: TorrentCandidate, trackers: Iterable[str]) -> Optional[StreamSource]:
    info_hash = extract_info_hash(candidate.magnet_or_link)
    if not info_hash:
        log.warning("Could not extract info hash for %r, skipping stream", candidate.title)
        return None
    sources = [f"tracker:{t}" for t in sorted(trackers)]
    sources.append(f"dht:{info_hash}")
    return StreamSource(
        display_title=f"{candidate.title} ({candidate.seeders} Seeders)",
        info_hash=info_hash,
        source_uris=tuple(sources),
    )
