import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional

from stremio_jackett.core.exceptions import CollaboratorUnavailable
from stremio_jackett.models.torrent import TrackerSnapshot
from stremio_jackett.services.indexers.contracts import TextFetcher

log = logging.getLogger(__name__)

TRACKER_SCHEMES = ("udp://", "http://", "https://")
DEFAULT_TTL_SEC = 60 * 60
DEFAULT_MAX_URLS = 32


def parse_tracker_list(text: str) -> frozenset[str]:
    lines = (line.strip() for line in (text or "").split("\n"))
    return frozenset(line for line in lines if line.startswith(TRACKER_SCHEMES))


class TrackerCache:
    """Process-wide tracker list cache.

    One snapshot per list URL, at most ``max_urls`` of them; the least recently
    used URL is evicted first, except ``pinned_url`` (the server-configured
    list), which is never evicted. Snapshots are immutable and swapped whole,
    so a reader never sees a tracker set paired with the wrong timestamp.

    Refreshes are serialized per URL: a caller that waited on the lock
    re-checks freshness first and reuses whatever the previous holder fetched,
    while a slow list never holds up callers of another one. A failed refresh
    keeps serving the last non-empty set.
    """

    def __init__(
        self,
        http: TextFetcher,
        ttl: float = DEFAULT_TTL_SEC,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        max_urls: int = DEFAULT_MAX_URLS,
        pinned_url: Optional[str] = None,
    ):
        self.http = http
        self.ttl = ttl
        self.timeout = timeout
        self.max_urls = max(1, max_urls)
        self.pinned_url = pinned_url
        self._clock = clock
        self._snapshots: "OrderedDict[str, TrackerSnapshot]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    def snapshot(self, source_url: str) -> Optional[TrackerSnapshot]:
        return self._snapshots.get(source_url)

    def _fresh(self, snap: Optional[TrackerSnapshot]) -> bool:
        return snap is not None and (self._clock() - snap.fetched_at) < self.ttl

    def _lock_for(self, source_url: str) -> asyncio.Lock:
        lock = self._locks.get(source_url)
        if lock is None:
            lock = self._locks[source_url] = asyncio.Lock()
        return lock

    def _touch(self, source_url: str) -> None:
        if source_url in self._snapshots:
            self._snapshots.move_to_end(source_url)

    def _store(self, source_url: str, snap: TrackerSnapshot) -> None:
        self._snapshots[source_url] = snap
        self._snapshots.move_to_end(source_url)
        while len(self._snapshots) > self.max_urls:
            victim = next((u for u in self._snapshots if u != self.pinned_url), None)
            if victim is None:
                break
            del self._snapshots[victim]
            lock = self._locks.get(victim)
            if lock is not None and not lock.locked():
                del self._locks[victim]
            log.debug("Evicted tracker list %s", victim)

    async def get(self, source_url: Optional[str]) -> frozenset[str]:
        if not source_url:
            log.debug("No tracker list URL configured, skipping tracker fetch")
            return frozenset()

        snap = self._snapshots.get(source_url)
        if self._fresh(snap):
            log.debug("Using cached trackers for %s", source_url)
            self._touch(source_url)
            return snap.trackers

        lock = self._lock_for(source_url)
        try:
            async with lock:
                snap = self._snapshots.get(source_url)
                if self._fresh(snap):
                    self._touch(source_url)
                    return snap.trackers
                return await self._refresh(source_url, snap)
        finally:
            # lists that never produced a snapshot keep no lock around
            if source_url not in self._snapshots and not lock.locked():
                self._locks.pop(source_url, None)

    async def _refresh(
        self, source_url: str, previous: Optional[TrackerSnapshot]
    ) -> frozenset[str]:
        log.info("Fetching trackers from %s", source_url)
        try:
            text = await self.http.get_text(
                source_url, timeout=self.timeout, collaborator="tracker-list"
            )
        except CollaboratorUnavailable as e:
            log.error("Error fetching trackers from %s: %s", source_url, e)
            if previous is not None and previous.trackers:
                return previous.trackers
            return frozenset()

        trackers = parse_tracker_list(text)
        self._store(source_url, TrackerSnapshot(trackers=trackers, fetched_at=self._clock()))
        log.info("Fetched %d trackers", len(trackers))
        return trackers
