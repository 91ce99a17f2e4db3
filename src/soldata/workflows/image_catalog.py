"""Image catalog: remote listings, per-day stores, prefetch, and decoded images.

One ``ImageCatalogManager`` owns the day -> store registry and the decoded
image cache. Both maps are only mutated while holding the manager's lock;
network and disk work run outside it so many fetches proceed at once.

Concurrent ``image()`` calls for one key share a single future, so a key is
fetched and decoded at most once at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .data_store import FilesystemStore, KeyValueStore
from .decoding import Decoder, decode_image
from .errors import DecodeError, InvalidImageDataError, SolDataError, StoreError
from .fetcher_config import SDO_BASE_URL, SDO_COMPONENT
from .image_types import (
    UNINITIATED,
    Awaiting,
    CacheState,
    Cached,
    ImageDescriptor,
    ImageSet,
    Resolution,
    day_key,
    image_name_pattern,
)
from .link_scraper import ListingLinkScraper
from .listing_cache import RemoteListingCache

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 6


@dataclass
class PrefetchSummary:
    """Keys missing from the store before prefetch, and what became of them."""

    requested: List[str] = field(default_factory=list)
    fetched: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested": list(self.requested),
            "fetched": list(self.fetched),
            "failed": list(self.failed),
        }


def _failed(future: "asyncio.Future[Any]") -> bool:
    return future.done() and (future.cancelled() or future.exception() is not None)


def _mark_retrieved(future: "asyncio.Future[Any]") -> None:
    # Every awaiting caller sees the error; this only silences the
    # "exception was never retrieved" warning when all of them went away.
    if not future.cancelled():
        future.exception()


class ImageCatalogManager:
    def __init__(
        self,
        cache_root: Path,
        fetcher: Any,
        *,
        listing_cache: Optional[RemoteListingCache] = None,
        decode: Decoder = decode_image,
        base_url: str = SDO_BASE_URL,
        component: str = SDO_COMPONENT,
        link_parser: str = "regex",
        concurrency: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.root = Path(cache_root) / component
        self.fetcher = fetcher
        self.listing_cache = listing_cache or RemoteListingCache(
            self.root,
            ListingLinkScraper(fetcher, parser=link_parser),
            base_url=base_url,
            clock=clock,
        )
        self._decode = decode
        config = getattr(fetcher, "config", None)
        self._concurrency = max(1, concurrency or getattr(config, "concurrency", DEFAULT_CONCURRENCY))
        self._lock = asyncio.Lock()
        self._stores: Dict[str, KeyValueStore] = {}
        self._image_cache: Dict[str, CacheState] = {}

    # -------- stores --------

    async def store_for(self, day: date) -> KeyValueStore:
        key = day_key(day)
        async with self._lock:
            store = self._stores.get(key)
            if store is None:
                store = FilesystemStore(self.root / key)
                self._stores[key] = store
            return store

    # -------- catalog --------

    async def list_images(
        self,
        day: date,
        image_set: ImageSet,
        resolution: Resolution,
        pfss: bool = False,
        *,
        allow_cached: bool = True,
    ) -> List[ImageDescriptor]:
        """Descriptors for the criteria, most recent first."""

        pattern = image_name_pattern(day, image_set, resolution, pfss)
        logger.info(
            "Looking for images day=%s image_set=%s resolution=%s pfss=%s",
            day_key(day),
            image_set.value,
            resolution.value,
            pfss,
        )
        listing = await self.listing_cache.listing_for(day, allow_cached=allow_cached)
        descriptors = [
            ImageDescriptor(
                key=name,
                day=day,
                image_set=image_set,
                resolution=resolution,
                pfss=pfss,
                remote_url=url,
            )
            for name, url in listing.items()
            if pattern.fullmatch(name)
        ]
        descriptors.sort(reverse=True)
        return descriptors

    # -------- prefetch --------

    async def prefetch(
        self,
        day: date,
        image_set: ImageSet,
        resolution: Resolution,
        pfss: bool = False,
    ) -> PrefetchSummary:
        descriptors = await self.list_images(day, image_set, resolution, pfss)
        return await self.prefetch_descriptors(descriptors)

    async def prefetch_descriptors(self, descriptors: Iterable[ImageDescriptor]) -> PrefetchSummary:
        """Download descriptors missing from their day's store.

        Each missing item gets one attempt, failures get exactly one more,
        and items failing twice are logged and dropped.
        """

        by_day: Dict[str, List[ImageDescriptor]] = defaultdict(list)
        for descriptor in descriptors:
            by_day[day_key(descriptor.day)].append(descriptor)

        needed: List[Tuple[ImageDescriptor, KeyValueStore]] = []
        for group in by_day.values():
            store = await self.store_for(group[0].day)
            existing = set(await store.keys())
            needed.extend((d, store) for d in group if d.key not in existing)

        summary = PrefetchSummary(requested=[d.key for d, _ in needed])
        if not needed:
            return summary

        semaphore = asyncio.Semaphore(self._concurrency)
        first_failures = await self._download_pass(needed, semaphore, final=False)
        retries = [(d, s) for d, s in needed if d.key in first_failures]
        final_failures: Set[str] = set()
        if retries:
            final_failures = await self._download_pass(retries, semaphore, final=True)

        summary.failed = sorted(final_failures)
        summary.fetched = [key for key in summary.requested if key not in final_failures]
        return summary

    async def _download_pass(
        self,
        items: List[Tuple[ImageDescriptor, KeyValueStore]],
        semaphore: asyncio.Semaphore,
        *,
        final: bool,
    ) -> Set[str]:
        async def _one(descriptor: ImageDescriptor, store: KeyValueStore) -> Optional[str]:
            async with semaphore:
                try:
                    await self._download(descriptor, store)
                    return None
                except (SolDataError, OSError) as exc:
                    if final:
                        logger.error("Again failed to download %s. Will NOT retry: %s", descriptor.remote_url, exc)
                    else:
                        logger.warning("Failed to download %s. Will retry: %s", descriptor.remote_url, exc)
                    return descriptor.key

        results = await asyncio.gather(*(_one(d, s) for d, s in items))
        return {key for key in results if key}

    async def _download(self, descriptor: ImageDescriptor, store: KeyValueStore) -> None:
        data, _ = await self.fetcher.fetch(descriptor.remote_url)
        await store.write(descriptor.key, data)
        logger.info("Downloaded %s", descriptor.key)

    # -------- decoded images --------

    def cache_state(self, key: str) -> CacheState:
        return self._image_cache.get(key, UNINITIATED)

    async def image(self, descriptor: ImageDescriptor) -> Any:
        key = descriptor.key
        async with self._lock:
            state = self._image_cache.get(key, UNINITIATED)
            if isinstance(state, Cached):
                logger.debug("Image cache hit for %s", key)
                return state.image
            if isinstance(state, Awaiting) and not _failed(state.future):
                logger.debug("Joining in-flight fetch for %s", key)
                future = state.future
            else:
                future = asyncio.create_task(self._load(descriptor))
                future.add_done_callback(_mark_retrieved)
                self._image_cache[key] = Awaiting(future)

        image = await asyncio.shield(future)

        async with self._lock:
            current = self._image_cache.get(key)
            if isinstance(current, Awaiting) and current.future is future:
                self._image_cache[key] = Cached(image)
        return image

    async def clear_image_cache(self) -> int:
        """Drop decoded images; in-flight fetches are left alone."""

        async with self._lock:
            cached = [key for key, state in self._image_cache.items() if isinstance(state, Cached)]
            for key in cached:
                del self._image_cache[key]
        return len(cached)

    async def _load(self, descriptor: ImageDescriptor) -> Any:
        key = descriptor.key
        store = await self.store_for(descriptor.day)
        try:
            data = await store.read(key)
        except (StoreError, OSError) as exc:
            logger.debug("Store miss for %s (%s); fetching remote", key, exc)
            data, _ = await self.fetcher.fetch(descriptor.remote_url)
            try:
                await store.write(key, data)
            except (StoreError, OSError) as write_exc:
                logger.warning("Unable to cache %s after download: %s", key, write_exc)

        try:
            image = await asyncio.to_thread(self._decode, data)
        except (DecodeError, OSError, ValueError) as exc:
            raise InvalidImageDataError(key) from exc
        if image is None:
            raise InvalidImageDataError(key)
        return image
