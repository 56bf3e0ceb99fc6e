from datetime import datetime, timezone

import pytest

from stremio_jackett.core.exceptions import CollaboratorUnavailable, InvalidConfig
from stremio_jackett.services.jackett_service import (
    JACKETT_CATEGORIES,
    JackettService,
    parse_torznab,
)

HASH = "0123456789ABCDEF0123456789ABCDEF01234567"

SAMPLE_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom" xmlns:torznab="http://torznab.com/schemas/2015/feed">
  <channel>
    <title>AggregateSearch</title>
    <item>
      <title>The Matrix 1999 1080p BluRay</title>
      <guid>https://jackett.example/guid/1</guid>
      <link>magnet:?xt=urn:btih:{HASH}&amp;dn=matrix</link>
      <pubDate>Wed, 31 Mar 1999 12:00:00 +0000</pubDate>
      <size>2147483648</size>
      <torznab:attr name="seeders" value="42" />
      <torznab:attr name="peers" value="50" />
    </item>
    <item>
      <title>The Matrix 1999 720p</title>
      <guid>https://jackett.example/guid/2</guid>
      <link>https://jackett.example/dl/2.torrent</link>
      <torznab:attr name="seeders" value="10" />
    </item>
    <item>
      <title>The Matrix (1999) 2160p</title>
      <guid>https://jackett.example/guid/3</guid>
      <link>https://jackett.example/dl/3.torrent</link>
      <torznab:attr name="magneturl" value="magnet:?xt=urn:btih:{'b' * 40}" />
      <torznab:attr name="seeders" value="not-a-number" />
    </item>
  </channel>
</rss>
"""


class _FakeHTTP:
    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    async def get_text(self, url, params=None, timeout=None, collaborator="http"):
        self.calls.append((url, params, timeout, collaborator))
        if self.error:
            raise self.error
        return self.body


def test_parse_torznab_keeps_only_magnet_items():
    results = parse_torznab(SAMPLE_XML)

    assert [r.guid for r in results] == [
        "https://jackett.example/guid/1",
        "https://jackett.example/guid/3",
    ]
    first = results[0]
    assert first.title == "The Matrix 1999 1080p BluRay"
    assert first.magnet_or_link.startswith(f"magnet:?xt=urn:btih:{HASH}")
    assert first.seeders == 42
    assert first.peers == 50
    assert first.size_bytes == "2147483648"
    assert first.published_at == datetime(1999, 3, 31, 12, 0, tzinfo=timezone.utc)


def test_parse_torznab_reads_magneturl_attr_and_tolerates_bad_numbers():
    third = parse_torznab(SAMPLE_XML)[1]

    assert third.magnet_or_link == f"magnet:?xt=urn:btih:{'b' * 40}"
    assert third.seeders == 0
    assert third.published_at is None


def test_parse_torznab_empty_channel():
    xml = '<rss version="2.0"><channel><title>x</title></channel></rss>'
    assert parse_torznab(xml) == []


def test_parse_torznab_error_document():
    xml = '<?xml version="1.0" encoding="UTF-8"?><error code="100" description="Invalid API Key" />'
    with pytest.raises(CollaboratorUnavailable) as exc:
        parse_torznab(xml)
    assert "Invalid API Key" in str(exc.value)


def test_parse_torznab_garbage():
    with pytest.raises(CollaboratorUnavailable):
        parse_torznab("<html><body>Bad gateway")


def test_missing_credentials_are_invalid_config():
    with pytest.raises(InvalidConfig):
        JackettService("", "key", _FakeHTTP())
    with pytest.raises(InvalidConfig):
        JackettService("http://localhost:9117", None, _FakeHTTP())


def test_build_params():
    svc = JackettService("http://localhost:9117/", "secret", _FakeHTTP())

    params = svc.build_params("The Matrix", year=1999, limit=50)

    assert svc.api_url == "http://localhost:9117/api/v2.0/indexers/all/results/torznab/api"
    assert params == {
        "apikey": "secret",
        "t": "search",
        "cat": ",".join(JACKETT_CATEGORIES),
        "q": "The Matrix",
        "year": "1999",
        "limit": "50",
    }
    assert "year" not in svc.build_params("tt0133093")
    assert "102045" in params["cat"].split(",")


@pytest.mark.asyncio
async def test_search_uses_http_and_parses():
    http = _FakeHTTP(body=SAMPLE_XML)
    svc = JackettService("http://localhost:9117", "secret", http, timeout=7.0)

    results = await svc.search("The Matrix", year=1999, limit=50)

    assert len(results) == 2
    url, params, timeout, collaborator = http.calls[0]
    assert url.endswith("/torznab/api")
    assert params["q"] == "The Matrix"
    assert timeout == 7.0
    assert collaborator == "jackett"
    assert svc.metrics.total_requests == 1
    assert svc.metrics.items_parsed == 2


@pytest.mark.asyncio
async def test_search_propagates_collaborator_failure():
    http = _FakeHTTP(error=CollaboratorUnavailable("jackett", "HTTP 502"))
    svc = JackettService("http://localhost:9117", "secret", http)

    with pytest.raises(CollaboratorUnavailable):
        await svc.search("The Matrix")
    assert svc.metrics.failed_requests == 1
