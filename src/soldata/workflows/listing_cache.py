"""Per-day cache of remote directory listings (filename -> remote URL).

Listings are persisted as ``<root>/<yyyyMMdd>_listing.json``. A past day's
listing never changes, so once it was saved after the day ended it is reused
forever. Today's listing grows as new images land and is refetched once its
file is older than the refresh interval.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Protocol
from urllib.parse import quote, unquote, urlparse

from .data_store import FilesystemStore
from .errors import StoreError
from .fetcher_config import LISTING_REFRESH_INTERVAL, LISTING_SUFFIX, SDO_BASE_URL
from .image_types import day_key

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class LinkScraper(Protocol):
    async def parse_links(self, directory_url: str) -> List[str]:
        ...


def listing_from_links(links: List[str], directory_url: str) -> Dict[str, str]:
    """Map filename to URL for links that name a file directly inside the directory."""

    listing: Dict[str, str] = {}
    for link in links:
        if not link.startswith(directory_url):
            continue
        parsed = urlparse(link)
        if parsed.query or parsed.path.endswith("/"):
            continue
        filename = unquote(PurePosixPath(parsed.path).name)
        if filename:
            listing[filename] = link
    return listing


class RemoteListingCache:
    def __init__(
        self,
        root: Path,
        scraper: LinkScraper,
        *,
        base_url: str = SDO_BASE_URL,
        refresh_interval: timedelta = LISTING_REFRESH_INTERVAL,
        clock: Optional[Clock] = None,
    ) -> None:
        self.root = Path(root)
        self.scraper = scraper
        self.base_url = base_url
        self.refresh_interval = refresh_interval
        self._clock: Clock = clock or datetime.now
        self._store = FilesystemStore(self.root)
        # Guards _listing_files only; fetches and disk I/O run outside it.
        self._lock = asyncio.Lock()
        self._listing_files: Dict[str, Path] = self._load_listing_index()

    def remote_url_for(self, day: date, filename: Optional[str] = None) -> str:
        """Directory URL for ``day``, or the file URL when ``filename`` is given."""

        url = f"{self.base_url.rstrip('/')}/{day:%Y}/{day:%m}/{day:%d}/"
        if filename:
            url += quote(filename)
        return url

    def cached_days(self) -> List[str]:
        return sorted(self._listing_files)

    async def listing_for(self, day: date, allow_cached: bool = True) -> Dict[str, str]:
        key = day_key(day)
        if allow_cached:
            async with self._lock:
                known = key in self._listing_files
            if known:
                listing = await self._read_cached(day)
                if listing is not None:
                    return listing

        listing = await self.fetch_listing(day)
        await self._persist(key, listing)
        return listing

    async def fetch_listing(self, day: date) -> Dict[str, str]:
        directory_url = self.remote_url_for(day)
        links = await self.scraper.parse_links(directory_url)
        listing = listing_from_links(links, directory_url)
        logger.info("Fetched listing for %s (%d files)", day_key(day), len(listing))
        return listing

    # -------- internals --------

    def _load_listing_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for path in self.root.iterdir():
                if path.is_file() and path.name.endswith(LISTING_SUFFIX):
                    index[path.name[: -len(LISTING_SUFFIX)]] = path
        except OSError as exc:
            logger.error("Unable to load listing files from %s: %s", self.root, exc)
        return index

    async def _read_cached(self, day: date) -> Optional[Dict[str, str]]:
        key = day_key(day)
        store_key = f"{key}{LISTING_SUFFIX}"
        now = self._clock()
        try:
            mtime = await self._store.modified_at(store_key)
            if key == day_key(now.date()):
                age = now.timestamp() - mtime
                if age >= self.refresh_interval.total_seconds():
                    logger.info("Listing for %s is %.0fs old; refreshing", key, age)
                    return None
            else:
                # A past day is final only if it was listed after the day ended.
                day_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=now.tzinfo)
                if mtime < day_end.timestamp():
                    logger.info("Listing for %s was saved before the day ended; refreshing", key)
                    return None
            raw = await self._store.read(store_key)
            listing = json.loads(raw.decode("utf-8"))
            if not isinstance(listing, dict):
                raise ValueError("listing file is not a JSON object")
        except (StoreError, ValueError) as exc:
            logger.warning("Ignoring unreadable listing file for %s: %s", key, exc)
            async with self._lock:
                self._listing_files.pop(key, None)
            return None
        logger.debug("Reusing cached listing for %s", key)
        return {str(name): str(url) for name, url in listing.items()}

    async def _persist(self, key: str, listing: Dict[str, str]) -> None:
        store_key = f"{key}{LISTING_SUFFIX}"
        payload = json.dumps(listing, ensure_ascii=False, indent=2, sort_keys=True).encode("utf-8")
        try:
            await self._store.write(store_key, payload)
        except (StoreError, OSError) as exc:
            logger.warning("Unable to persist listing for %s: %s", key, exc)
            return
        async with self._lock:
            self._listing_files[key] = self._store.path_for(store_key)
