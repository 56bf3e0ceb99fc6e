import logging
import time
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from stremio_jackett.core.exceptions import (
    CollaboratorUnavailable,
    InvalidConfig,
    MalformedRecord,
)
from stremio_jackett.models.torrent import TorrentCandidate
from stremio_jackett.services.http_session import AsyncHTTPSession

log = logging.getLogger(__name__)

TORZNAB_NS = "http://torznab.com/schemas/2015/feed"

# Standard movie/TV categories plus the 10xxxx variants some trackers report.
JACKETT_CATEGORIES: tuple[str, ...] = (
    "2000", "2030", "2040", "2045", "2060",
    "5000", "5030", "5040", "5045",
    "102000", "102060", "102040", "102030", "102045",
    "105000", "105040", "105030", "105045",
)

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)


@dataclass
class PerformanceMetrics:
    total_requests: int = 0
    failed_requests: int = 0
    items_parsed: int = 0
    avg_response_time: float = 0.0


def _safe_int(value: Any) -> int:
    try:
        parsed = int(str(value).strip())
        return parsed if parsed >= 0 else 0
    except (TypeError, ValueError):
        return 0


def _child_text(item: etree._Element, tag: str) -> Optional[str]:
    el = item.find(tag)
    if el is None or el.text is None:
        return None
    text = el.text.strip()
    return text or None


def _parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _torznab_attrs(item: etree._Element) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for attr in item.findall(f"{{{TORZNAB_NS}}}attr"):
        name = attr.get("name")
        if name and name not in attrs:
            attrs[name] = attr.get("value") or ""
    return attrs


def candidate_from_item(item: etree._Element) -> TorrentCandidate:
    """Normalize one Torznab ``<item>``; raises ``MalformedRecord`` when unusable."""
    title = _child_text(item, "title")
    if not title:
        raise MalformedRecord("item has no title")

    attrs = _torznab_attrs(item)
    link = (
        _child_text(item, "magnetUri")
        or (attrs.get("magneturl") or "").strip()
        or _child_text(item, "link")
    )
    if not link or not link.startswith("magnet:"):
        raise MalformedRecord(f"no magnet link for {title!r}")

    return TorrentCandidate(
        title=title,
        magnet_or_link=link,
        size_bytes=_child_text(item, "size") or attrs.get("size") or None,
        seeders=_safe_int(attrs.get("seeders")),
        peers=_safe_int(attrs.get("peers")),
        published_at=_parse_pub_date(_child_text(item, "pubDate")),
        guid=_child_text(item, "guid") or link,
    )


def parse_torznab(payload: Union[str, bytes]) -> List[TorrentCandidate]:
    """Parse a Torznab RSS document into magnet-only candidates, in feed order."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not payload.strip():
        return []
    try:
        root = etree.fromstring(payload, parser=_XML_PARSER)
    except etree.XMLSyntaxError as e:
        raise CollaboratorUnavailable("jackett", f"unparsable Torznab response: {e}")

    if root.tag == "error":
        raise CollaboratorUnavailable(
            "jackett",
            f"error {root.get('code', '?')}: {root.get('description', 'unknown')}",
        )

    out: List[TorrentCandidate] = []
    for item in root.iterfind("./channel/item"):
        try:
            out.append(candidate_from_item(item))
        except MalformedRecord as e:
            log.debug("Dropping Torznab item: %s", e)
    return out


class JackettService:
    """Torznab client for the Jackett "all indexers" aggregate endpoint."""

    source = "jackett"

    def __init__(
        self,
        host: Optional[str],
        api_key: Optional[str],
        http: AsyncHTTPSession,
        timeout: float = 20.0,
    ) -> None:
        if not host or not api_key:
            raise InvalidConfig("Jackett host and API key must be provided.")
        self.base_url = host.strip().rstrip("/")
        self.api_key = api_key.strip()
        self.http = http
        self.timeout = timeout
        self.metrics = PerformanceMetrics()

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/v2.0/indexers/all/results/torznab/api"

    def build_params(
        self,
        query: str,
        year: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "apikey": self.api_key,
            "t": "search",
            "cat": ",".join(JACKETT_CATEGORIES),
            "q": query,
        }
        if year:
            params["year"] = str(year)
        if limit:
            params["limit"] = str(limit)
        return params

    def _record_timing(self, start_time: float, failed: bool = False) -> None:
        duration = time.time() - start_time
        self.metrics.total_requests += 1
        if failed:
            self.metrics.failed_requests += 1
        alpha = 0.1
        self.metrics.avg_response_time = (
            alpha * duration + (1 - alpha) * self.metrics.avg_response_time
        )

    async def search(
        self,
        query: str,
        year: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[TorrentCandidate]:
        start_time = time.time()
        log.debug(
            "Searching Jackett q=%r year=%s limit=%s",
            query, year or "N/A", limit or "N/A",
        )
        try:
            body = await self.http.get_text(
                self.api_url,
                params=self.build_params(query, year=year, limit=limit),
                timeout=self.timeout,
                collaborator=self.source,
            )
            results = parse_torznab(body)
        except CollaboratorUnavailable:
            self._record_timing(start_time, failed=True)
            raise

        self.metrics.items_parsed += len(results)
        self._record_timing(start_time)
        log.debug("Jackett returned %d magnet results for %r", len(results), query)
        return results
