"""Read-only image selection settings with change notification."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Callable, List, Protocol

from .image_types import ImageSet, Resolution

logger = logging.getLogger(__name__)

ENV_IMAGE_SET = "SOLDATA_IMAGE_SET"
ENV_RESOLUTION = "SOLDATA_RESOLUTION"
ENV_PFSS = "SOLDATA_PFSS"

Listener = Callable[[], None]


class SettingsProvider(Protocol):
    @property
    def image_set(self) -> ImageSet:
        ...

    @property
    def resolution(self) -> Resolution:
        ...

    @property
    def pfss_enabled(self) -> bool:
        ...

    def add_listener(self, listener: Listener) -> None:
        ...

    def remove_listener(self, listener: Listener) -> None:
        ...


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass
class Selection:
    image_set: ImageSet = ImageSet.I0171
    resolution: Resolution = Resolution.X1024
    pfss_enabled: bool = False


@dataclass
class StaticSettings:
    """In-process settings; ``update`` replaces the selection and notifies listeners."""

    selection: Selection = field(default_factory=Selection)
    _listeners: List[Listener] = field(default_factory=list, repr=False)

    @property
    def image_set(self) -> ImageSet:
        return self.selection.image_set

    @property
    def resolution(self) -> Resolution:
        return self.selection.resolution

    @property
    def pfss_enabled(self) -> bool:
        return self.selection.pfss_enabled

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update(self, **changes: object) -> None:
        self.selection = replace(self.selection, **changes)
        for listener in list(self._listeners):
            listener()


def settings_from_env() -> StaticSettings:
    selection = Selection()
    raw_set = os.getenv(ENV_IMAGE_SET)
    if raw_set:
        selection.image_set = ImageSet(raw_set)
    raw_resolution = os.getenv(ENV_RESOLUTION)
    if raw_resolution:
        selection.resolution = Resolution(raw_resolution)
    raw_pfss = os.getenv(ENV_PFSS)
    if raw_pfss is not None:
        selection.pfss_enabled = _as_bool(raw_pfss)
    logger.debug("Settings from environment: %s", selection)
    return StaticSettings(selection)
