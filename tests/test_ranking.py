from datetime import datetime, timezone

from stremio_jackett.models.torrent import SortBy, TorrentCandidate
from stremio_jackett.services.ranking import (
    MAX_RESULTS_CEILING,
    clamp_max_results,
    extract_info_hash,
    rank,
    shape,
)

HASH = "ABCDEF0123456789ABCDEF0123456789ABCDEF01"


def _cand(guid, seeders=1, published_at=None, magnet=None, title=None) -> TorrentCandidate:
    return TorrentCandidate(
        title=title or f"Torrent {guid}",
        magnet_or_link=magnet or f"magnet:?xt=urn:btih:{HASH}&dn=x",
        size_bytes=None,
        seeders=seeders,
        peers=0,
        published_at=published_at,
        guid=guid,
    )


def _at(year: int) -> datetime:
    return datetime(year, 1, 1, tzinfo=timezone.utc)


def test_sort_by_seeders_descending():
    ranked = rank([_cand("a", 3), _cand("b", 5), _cand("c", 1)], sort_by=SortBy.SEEDERS)
    assert [c.seeders for c in ranked] == [5, 3, 1]


def test_sort_by_seeders_is_stable_for_ties():
    ranked = rank([_cand("a", 2), _cand("b", 2), _cand("c", 9)], sort_by=SortBy.SEEDERS)
    assert [c.guid for c in ranked] == ["c", "a", "b"]


def test_sort_by_publish_date_missing_is_oldest():
    ranked = rank(
        [_cand("none"), _cand("old", published_at=_at(2001)), _cand("new", published_at=_at(2020))],
        sort_by=SortBy.PUBLISH_DATE,
    )
    assert [c.guid for c in ranked] == ["new", "old", "none"]


def test_min_seeders_filter():
    ranked = rank([_cand("a", 0), _cand("b", 4), _cand("c", 5)], min_seeders=5)
    assert [c.guid for c in ranked] == ["c"]


def test_max_results_is_clamped_to_ceiling():
    candidates = [_cand(str(i), seeders=i) for i in range(50)]
    assert len(rank(candidates, max_results=100)) == MAX_RESULTS_CEILING
    assert len(rank(candidates, max_results=3)) == 3


def test_clamp_max_results():
    assert clamp_max_results(100) == 20
    assert clamp_max_results(7) == 7
    assert clamp_max_results(0) == 20
    assert clamp_max_results(-4) == 20
    assert clamp_max_results(None) == 20


def test_sort_by_parse_accepts_legacy_value():
    assert SortBy.parse("seeders") is SortBy.SEEDERS
    assert SortBy.parse("publishAt") is SortBy.PUBLISH_DATE
    assert SortBy.parse("publishDate") is SortBy.PUBLISH_DATE
    assert SortBy.parse(None) is SortBy.PUBLISH_DATE


def test_extract_info_hash():
    assert extract_info_hash(f"magnet:?xt=urn:btih:{HASH}&dn=x") == HASH
    assert extract_info_hash(f"magnet:?dn=x&xt=urn:btih:{HASH.lower()}") == HASH.lower()
    assert extract_info_hash("magnet:?dn=no-hash") is None
    assert extract_info_hash("magnet:?xt=urn:btih:ABC123") is None
    # 32-char base32 hashes are not accepted
    assert extract_info_hash("magnet:?xt=urn:btih:MFRGGZDFMZTWQ2LKNNWG23TPOBYXE43U") is None


def test_shape_builds_tracker_and_dht_sources():
    trackers = {"udp://b.example:1337/announce", "http://a.example/announce"}

    stream = shape(_cand("a", seeders=12, title="The Matrix 1999 1080p"), trackers)

    assert stream.display_title == "The Matrix 1999 1080p (12 Seeders)"
    assert stream.info_hash == HASH
    assert stream.source_uris == (
        "tracker:http://a.example/announce",
        "tracker:udp://b.example:1337/announce",
        f"dht:{HASH}",
    )


def test_shape_without_trackers_has_only_dht():
    stream = shape(_cand("a"), frozenset())
    assert stream.source_uris == (f"dht:{HASH}",)


def test_shape_drops_missing_info_hash():
    assert shape(_cand("a", magnet="magnet:?dn=broken"), frozenset()) is None
