from datetime import date, datetime

import pytest

from soldata.workflows.image_types import (
    ImageDescriptor,
    ImageSet,
    Resolution,
    day_key,
    image_filename,
    image_name_pattern,
)

DAY = date(2022, 9, 9)


def _descriptor(key: str) -> ImageDescriptor:
    return ImageDescriptor(
        key=key,
        day=DAY,
        image_set=ImageSet.I1700,
        resolution=Resolution.X1024,
        pfss=True,
        remote_url="https://example.invalid/" + key,
    )


def test_day_key():
    assert day_key(date(2022, 1, 5)) == "20220105"


def test_image_filename():
    assert image_filename(DAY, "034253", ImageSet.I1700, Resolution.X1024, True) == "20220909_034253_1024_1700pfss.jpg"
    assert image_filename(DAY, "034253", ImageSet.HMIB, Resolution.X256, False) == "20220909_034253_256_HMIB.jpg"


@pytest.mark.parametrize(
    "name",
    [
        "20220909_034253_1024_1700pfss.jpg",
        "20220909_000000_1024_1700pfss.jpg",
        "20220909_235959_1024_1700pfss.jpg",
    ],
)
def test_pattern_accepts(name):
    assert image_name_pattern(DAY, ImageSet.I1700, Resolution.X1024, True).fullmatch(name)


@pytest.mark.parametrize(
    "name",
    [
        "20220909_034253_1024_1700.jpg",  # pfss missing
        "20220908_034253_1024_1700pfss.jpg",  # other day
        "20220909_034253_2048_1700pfss.jpg",  # other resolution
        "20220909_034253_1024_0171pfss.jpg",  # other set
        "20220909_03425_1024_1700pfss.jpg",  # short time
        "20220909_034253_1024_1700pfss.jpeg",
        "20220909_034253_1024_1700PFSS.jpg",
        "x20220909_034253_1024_1700pfss.jpg",
        "20220909_034253_1024_1700pfss.jpg.bak",
        "20220909_034253_1024_1700pfssXjpg",
    ],
)
def test_pattern_rejects(name):
    assert not image_name_pattern(DAY, ImageSet.I1700, Resolution.X1024, True).fullmatch(name)


def test_pattern_without_pfss_rejects_pfss_variant():
    pattern = image_name_pattern(DAY, ImageSet.I0171, Resolution.X4096, False)

    assert pattern.fullmatch("20220909_034258_4096_0171.jpg")
    assert not pattern.fullmatch("20220909_034258_4096_0171pfss.jpg")


def test_descriptor_equality_uses_key_only():
    a = _descriptor("20220909_034253_1024_1700pfss.jpg")
    b = ImageDescriptor(
        key=a.key,
        day=date(2000, 1, 1),
        image_set=ImageSet.I0094,
        resolution=Resolution.X256,
        pfss=False,
        remote_url="elsewhere",
    )

    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_descriptor_ordering_is_chronological():
    keys = [
        "20220909_235959_1024_1700pfss.jpg",
        "20220909_000001_1024_1700pfss.jpg",
        "20220909_120000_1024_1700pfss.jpg",
    ]
    descriptors = [_descriptor(k) for k in keys]

    by_key = sorted(descriptors)
    by_time = sorted(descriptors, key=lambda d: d.timestamp)

    assert [d.key for d in by_key] == [d.key for d in by_time]
    assert by_key[0] < by_key[1] <= by_key[2]
    assert by_key[2] > by_key[0]


def test_descriptor_timestamp():
    assert _descriptor("20220909_034253_1024_1700pfss.jpg").timestamp == datetime(2022, 9, 9, 3, 42, 53)


def test_display_names_cover_every_set():
    assert ImageSet.I0171.display_name == "AIA 171 Å"
    assert ImageSet.HMIB.display_name == "HMI Magnetogram"
    assert all(s.display_name for s in ImageSet)
    assert len(list(ImageSet)) == 22
