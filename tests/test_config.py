from pathlib import Path

import pytest

from soldata.workflows import fetcher_config
from soldata.workflows.data_fetch import FetchConfig
from soldata.workflows.decoding import decode_image
from soldata.workflows.errors import DecodeError
from soldata.workflows.fetcher_config import resolve_cache_root


def test_explicit_cache_root_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("SOLDATA_CACHE_DIR", str(tmp_path / "env"))

    assert resolve_cache_root(tmp_path / "explicit") == tmp_path / "explicit"
    assert (tmp_path / "explicit").is_dir()


def test_cache_root_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SOLDATA_CACHE_DIR", str(tmp_path / "env"))

    assert resolve_cache_root() == tmp_path / "env"


def test_cache_root_from_xdg(tmp_path, monkeypatch):
    monkeypatch.delenv("SOLDATA_CACHE_DIR", raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))

    assert resolve_cache_root() == tmp_path / "xdg" / "soldata"


def test_cache_root_falls_back_to_tempdir(tmp_path, monkeypatch):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    monkeypatch.setattr(fetcher_config.tempfile, "gettempdir", lambda: str(tmp_path / "tmp"))

    assert resolve_cache_root(blocker / "cache") == tmp_path / "tmp" / "soldata"


def test_fetch_config_defaults():
    config = FetchConfig()

    assert config.timeout == 30.0
    assert config.max_attempts == 1
    assert config.concurrency == 6


def test_decode_image_rejects_garbage():
    with pytest.raises(DecodeError):
        decode_image(b"definitely not an image")


def test_decode_image_reads_jpeg(tmp_path):
    from PIL import Image

    path = Path(tmp_path) / "sun.jpg"
    Image.new("RGB", (3, 2), "red").save(path, "JPEG")

    image = decode_image(path.read_bytes())

    assert image.size == (3, 2)
