import logging
import re
from typing import Iterable, List, Optional

from stremio_jackett.models.torrent import ResolvedMetadata, TorrentCandidate

log = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_TITLE_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
YEAR_TOLERANCE = 1


def normalize_title(s: str) -> str:
    return _NON_ALNUM_RE.sub("", (s or "").lower()).strip()


def torrent_year(candidate: TorrentCandidate) -> Optional[int]:
    if candidate.published_at is not None:
        return candidate.published_at.year
    m = _TITLE_YEAR_RE.search(candidate.title or "")
    return int(m.group(0)) if m else None


def title_matches(candidate_title: str, reference_titles: Iterable[str]) -> bool:
    # plain substring test both ways; an empty normalized title (e.g. a
    # non-latin alternate title) is a substring of everything
    normalized = normalize_title(candidate_title)
    for ref in reference_titles:
        ref_norm = normalize_title(ref)
        if ref_norm in normalized or normalized in ref_norm:
            return True
    return False


def year_matches(expected: Optional[int], found: Optional[int]) -> bool:
    if not expected:
        return True
    if not found:
        return False
    return abs(expected - found) <= YEAR_TOLERANCE


def is_relevant(candidate: TorrentCandidate, metadata: ResolvedMetadata) -> bool:
    if not metadata.is_resolved:
        return True

    references = [t for t in (metadata.title, *metadata.alternate_titles) if t]
    title_ok = title_matches(candidate.title, references)
    year_ok = year_matches(metadata.year, torrent_year(candidate))

    if not (title_ok and year_ok):
        log.debug(
            "Filtering out %r (title_match=%s year_match=%s resolved=%r (%s))",
            candidate.title, title_ok, year_ok, metadata.title, metadata.year,
        )
        return False
    return True


def filter_relevant(
    candidates: List[TorrentCandidate], metadata: ResolvedMetadata
) -> List[TorrentCandidate]:
    if not metadata.is_resolved:
        log.info("No resolved metadata, skipping relevance filter")
        return list(candidates)
    kept = [c for c in candidates if is_relevant(c, metadata)]
    log.info("Relevance filter dropped %d of %d results", len(candidates) - len(kept), len(candidates))
    return kept
