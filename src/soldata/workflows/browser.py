"""Most-recent-first navigation over catalog images."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import date, timedelta
from typing import Any, Callable, List, Optional

from .errors import ContentionError, NoDataError
from .image_catalog import ImageCatalogManager, PrefetchSummary
from .image_types import ImageDescriptor, day_key
from .settings import SettingsProvider

logger = logging.getLogger(__name__)


def _log_prefetch_outcome(task: "asyncio.Future[PrefetchSummary]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background prefetch failed: %s", exc)
        return
    summary = task.result()
    logger.debug("Background prefetch fetched %d, failed %d", len(summary.fetched), len(summary.failed))


class ImageBrowser:
    """Cursor over the selected image series, newest first.

    Index 0 is the most recent image. Moving older past the loaded range pulls
    in the previous day; moving newer past index 0 re-lists the newest day.
    """

    def __init__(
        self,
        manager: ImageCatalogManager,
        settings: SettingsProvider,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.manager = manager
        self.settings = settings
        self._today = today
        self._descriptors: List[ImageDescriptor] = []
        self._index = 0
        self._older_task: Optional["asyncio.Future[List[ImageDescriptor]]"] = None
        self._prefetch_task: Optional["asyncio.Future[PrefetchSummary]"] = None
        settings.add_listener(self.reset)

    @property
    def descriptors(self) -> List[ImageDescriptor]:
        return list(self._descriptors)

    @property
    def current(self) -> Optional[ImageDescriptor]:
        if not self._descriptors:
            return None
        return self._descriptors[self._index]

    def reset(self) -> None:
        self._descriptors = []
        self._index = 0

    async def close(self) -> None:
        """Stop listening for settings changes and cancel a running prefetch."""

        self.settings.remove_listener(self.reset)
        task = self._prefetch_task
        self._prefetch_task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def latest(self) -> Any:
        day = self._today()
        descriptors = await self.manager.list_images(
            day,
            self.settings.image_set,
            self.settings.resolution,
            self.settings.pfss_enabled,
        )
        self._descriptors = descriptors
        self._index = 0
        if not descriptors:
            raise NoDataError(f"No images available for today ({day_key(day)}) yet.")
        # Warm the store for the rest of the day without holding up the caller.
        self._prefetch_task = asyncio.create_task(self.manager.prefetch_descriptors(descriptors))
        self._prefetch_task.add_done_callback(_log_prefetch_outcome)
        return await self.manager.image(descriptors[0])

    async def older(self) -> Any:
        index = self._index + 1
        if index >= len(self._descriptors):
            if self._older_task is not None:
                raise ContentionError("Older images are still loading; please wait")
            self._older_task = asyncio.create_task(self._load_previous_day())
            try:
                older = await self._older_task
            finally:
                self._older_task = None
            self._descriptors.extend(older)
        self._index = index
        descriptor = self._descriptors[index]
        logger.debug("next older: %s", descriptor.key)
        return await self.manager.image(descriptor)

    async def newer(self) -> Any:
        if not self._descriptors:
            raise NoDataError("No images available.")
        index = self._index - 1
        if index < 0:
            newest = self._descriptors[0]
            refreshed = await self.manager.list_images(
                newest.day,
                newest.image_set,
                newest.resolution,
                newest.pfss,
                allow_cached=False,
            )
            newer = [d for d in refreshed if d > newest]
            if not newer:
                raise NoDataError("No newer images available yet.")
            self._descriptors[:0] = newer
            index = len(newer) - 1
        self._index = index
        descriptor = self._descriptors[index]
        logger.debug("next newer: %s", descriptor.key)
        return await self.manager.image(descriptor)

    async def _load_previous_day(self) -> List[ImageDescriptor]:
        oldest = self._descriptors[-1] if self._descriptors else None
        if oldest is not None:
            previous_day = oldest.day - timedelta(days=1)
            criteria = (oldest.image_set, oldest.resolution, oldest.pfss)
        else:
            previous_day = self._today() - timedelta(days=1)
            criteria = (self.settings.image_set, self.settings.resolution, self.settings.pfss_enabled)
        descriptors = await self.manager.list_images(previous_day, *criteria)
        logger.debug("found %d older images in %s", len(descriptors), day_key(previous_day))
        if not descriptors:
            raise NoDataError("No older images available.")
        await self.manager.prefetch_descriptors(descriptors)
        return descriptors
