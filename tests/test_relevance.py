from datetime import datetime, timezone

from stremio_jackett.models.torrent import UNRESOLVED, ResolvedMetadata, TorrentCandidate
from stremio_jackett.services.relevance import (
    filter_relevant,
    is_relevant,
    normalize_title,
    torrent_year,
)

MATRIX = ResolvedMetadata(title="The Matrix", year=1999)


def _cand(title: str, published_at=None, guid=None) -> TorrentCandidate:
    return TorrentCandidate(
        title=title,
        magnet_or_link="magnet:?xt=urn:btih:" + "c" * 40,
        size_bytes=None,
        seeders=5,
        peers=1,
        published_at=published_at,
        guid=guid or title,
    )


def test_normalize_title():
    assert normalize_title("  The.Matrix: Reloaded! (2003) ") == "thematrix reloaded 2003"
    assert normalize_title("Amélie") == "amlie"


def test_torrent_year_prefers_publish_date():
    published = datetime(2000, 5, 1, tzinfo=timezone.utc)
    assert torrent_year(_cand("The Matrix 1999", published_at=published)) == 2000
    assert torrent_year(_cand("The Matrix 1999 1080p")) == 1999
    assert torrent_year(_cand("The Matrix 1080p")) is None
    assert torrent_year(_cand("Movie.21999.x264")) is None


def test_matching_title_and_year_is_kept():
    assert is_relevant(_cand("The Matrix 1999 1080p"), MATRIX)


def test_sequel_with_distant_year_is_excluded():
    assert not is_relevant(_cand("The Matrix Reloaded 2003"), MATRIX)


def test_year_tolerance_is_one():
    assert is_relevant(_cand("The Matrix 2000 REMUX"), MATRIX)
    assert is_relevant(_cand("The Matrix 1998"), MATRIX)
    assert not is_relevant(_cand("The Matrix 2001"), MATRIX)


def test_missing_year_is_excluded_when_year_required():
    assert not is_relevant(_cand("The Matrix 1080p BluRay"), MATRIX)


def test_year_not_required_when_unknown():
    meta = ResolvedMetadata(title="The Matrix")
    assert is_relevant(_cand("The Matrix 1080p BluRay"), meta)


def test_reverse_containment_matches():
    # candidate title is a substring of the reference title
    meta = ResolvedMetadata(title="The Fellowship of the Ring 2001 Extended", year=2001)
    assert is_relevant(_cand("Fellowship of the Ring 2001"), meta)
    assert not is_relevant(_cand("Unrelated Film 2001"), meta)


def test_alternate_titles_are_references():
    meta = ResolvedMetadata(title="Léon: The Professional", year=1994, alternate_titles=("Leon",))
    assert is_relevant(_cand("Leon 1994 Directors Cut"), meta)


def test_non_latin_alternate_title_matches_any_title():
    # normalizes to "", which is a substring of every candidate
    meta = ResolvedMetadata(title="Spirited Away", year=2001, alternate_titles=("千と千尋の神隠し",))
    assert is_relevant(_cand("Totally Different 2001"), meta)
    # the year check still applies
    assert not is_relevant(_cand("Totally Different 2010"), meta)


def test_non_latin_candidate_title_matches_any_reference():
    assert is_relevant(_cand("千と千尋の神隠し 2001"), ResolvedMetadata(title="Spirited Away", year=2001))
    assert not is_relevant(_cand("千と千尋の神隠し 1980"), ResolvedMetadata(title="Spirited Away", year=2001))


def test_unresolved_metadata_is_passthrough():
    candidates = [_cand("anything"), _cand("tt0133093 no year")]
    assert filter_relevant(candidates, UNRESOLVED) == candidates


def test_filter_preserves_order():
    candidates = [
        _cand("The Matrix 1999 2160p"),
        _cand("The Matrix Reloaded 2003"),
        _cand("The Matrix 1999 720p"),
    ]
    kept = filter_relevant(candidates, MATRIX)
    assert [c.title for c in kept] == ["The Matrix 1999 2160p", "The Matrix 1999 720p"]


def test_year_only_metadata_filters_by_year():
    meta = ResolvedMetadata(year=1999)
    # no reference titles, so nothing can title-match
    assert not is_relevant(_cand("The Matrix 1999"), meta)
