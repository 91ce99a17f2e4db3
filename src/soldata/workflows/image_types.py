"""Image selectors, descriptors, and cache states.

Image filenames look like ``20220909_034253_1024_1700pfss.jpg``:
``<yyyyMMdd>_<HHMMSS>_<resolution>_<imageSet>[pfss].jpg``. The timestamp is a
fixed-width prefix, so ordering by filename is chronological ordering.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Pattern, Union

from .fetcher_config import DAY_KEY_FORMAT, IMAGE_EXTENSION


class ImageSet(str, enum.Enum):
    # Unless noted, sets have no 3072 resolution and do have pfss variants.
    I0094 = "0094"  # no 256 resolution
    I0131 = "0131"
    I0171 = "0171"
    I0193 = "0193"
    I0211 = "0211"
    I0304 = "0304"
    I0335 = "0335"
    I1600 = "1600"
    I1700 = "1700"
    I4500 = "4500"  # no pfss variant
    HMI171 = "HMI171"
    HMIB = "HMIB"
    HMII = "HMII"  # no pfss variant
    HMID = "HMID"  # no pfss variant
    HMIBC = "HMIBC"  # no pfss variant, has 3072
    HMIIF = "HMIIF"  # no pfss variant, has 3072
    HMIIC = "HMIIC"  # no pfss variant, has 3072
    I094335193 = "094335193"
    I304211171 = "304211171"
    I211193171 = "211193171"  # has 3072
    I211193171N = "211193171n"  # dimmed corona; no pfss variant, has 3072
    I211193171RG = "211193171rg"  # no pfss variant, has 3072

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ImageSet.I0094: "AIA 94 Å",
    ImageSet.I0131: "AIA 131 Å",
    ImageSet.I0171: "AIA 171 Å",
    ImageSet.I0193: "AIA 193 Å",
    ImageSet.I0211: "AIA 211 Å",
    ImageSet.I0304: "AIA 304 Å",
    ImageSet.I0335: "AIA 335 Å",
    ImageSet.I1600: "AIA 1600 Å",
    ImageSet.I1700: "AIA 1700 Å",
    ImageSet.I4500: "AIA 4500 Å",
    ImageSet.HMI171: "AIA 171 Å & HMIB",
    ImageSet.HMIB: "HMI Magnetogram",
    ImageSet.HMII: "HMI Intensitygram",
    ImageSet.HMID: "HMI Dopplergram",
    ImageSet.HMIBC: "HMI Colorized Magnetogram",
    ImageSet.HMIIF: "HMI Intensitygram - Flattened",
    ImageSet.HMIIC: "HMI Intensitygram - Colored",
    ImageSet.I094335193: "AIA 94 Å, 335 Å, 193 Å",
    ImageSet.I304211171: "AIA 304 Å, 211 Å, 171 Å",
    ImageSet.I211193171: "AIA 211 Å, 193 Å, 171 Å",
    ImageSet.I211193171N: "AIA 211 Å, 193 Å, 171 Å n",
    ImageSet.I211193171RG: "AIA 211 Å, 193 Å, 171 Å rg",
}


class Resolution(str, enum.Enum):
    X256 = "256"
    X512 = "512"
    X1024 = "1024"
    X2048 = "2048"
    X3072 = "3072"
    X4096 = "4096"


def day_key(day: date) -> str:
    """Eight-digit ``yyyyMMdd`` partition key."""

    return day.strftime(DAY_KEY_FORMAT)


def image_filename(day: date, time_hhmmss: str, image_set: ImageSet, resolution: Resolution, pfss: bool) -> str:
    suffix = "pfss" if pfss else ""
    return f"{day_key(day)}_{time_hhmmss}_{resolution.value}_{image_set.value}{suffix}{IMAGE_EXTENSION}"


def image_name_pattern(day: date, image_set: ImageSet, resolution: Resolution, pfss: bool) -> Pattern[str]:
    """Pattern matching every filename for the criteria, any time of day.

    Use with ``fullmatch``; matching is case sensitive.
    """

    suffix = "pfss" if pfss else ""
    return re.compile(
        re.escape(day_key(day))
        + "_[0-9]{6}_"
        + re.escape(resolution.value)
        + "_"
        + re.escape(image_set.value + suffix)
        + re.escape(IMAGE_EXTENSION)
    )


@functools.total_ordering
@dataclass(eq=False)
class ImageDescriptor:
    """Metadata for one remote image. Equality and ordering use ``key`` only."""

    key: str
    day: date
    image_set: ImageSet
    resolution: Resolution
    pfss: bool
    remote_url: str

    @property
    def timestamp(self) -> datetime:
        return datetime.strptime(self.key[:15], "%Y%m%d_%H%M%S")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageDescriptor):
            return NotImplemented
        return self.key == other.key

    def __lt__(self, other: "ImageDescriptor") -> bool:
        if not isinstance(other, ImageDescriptor):
            return NotImplemented
        return self.key < other.key

    def __hash__(self) -> int:
        return hash(self.key)


class Uninitiated:
    """No fetch has been started for the key."""

    def __repr__(self) -> str:
        return "Uninitiated()"


UNINITIATED = Uninitiated()


@dataclass(frozen=True)
class Awaiting:
    """A fetch is in flight; every caller awaits the same future."""

    future: "asyncio.Future[Any]" = field(repr=False)


@dataclass(frozen=True)
class Cached:
    image: Any = field(repr=False)


CacheState = Union[Uninitiated, Awaiting, Cached]
