"""Byte-oriented key-value storage.

``FilesystemStore`` maps each key to a file below a fixed root directory.
Writes go to a sibling temp file that is then renamed over the target, so a
reader sees either the old content or the new content.
"""

from __future__ import annotations

import abc
import asyncio
import os
import tempfile
from pathlib import Path
from typing import List

from .errors import BadKeyError, EmptyDataError, NotFoundError

_TMP_PREFIX = "."
_TMP_SUFFIX = ".part"


class KeyValueStore(abc.ABC):
    """Async byte store keyed by string."""

    @abc.abstractmethod
    async def keys(self) -> List[str]:
        """Return every stored key, sorted."""

    @abc.abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abc.abstractmethod
    async def read(self, key: str) -> bytes:
        ...

    @abc.abstractmethod
    async def write(self, key: str, data: bytes) -> None:
        ...

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        ...


def _is_within(child: Path, root: Path) -> bool:
    try:
        child.relative_to(root)
        return True
    except ValueError:
        return False


def _is_partial(path: Path) -> bool:
    return path.name.startswith(_TMP_PREFIX) and path.name.endswith(_TMP_SUFFIX)


class FilesystemStore(KeyValueStore):
    """Stores each key as a file relative to ``root``.

    Disk work runs in worker threads so the event loop keeps serving other
    fetches while a file is read or written.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"FilesystemStore({str(self.root)!r})"

    def path_for(self, key: str) -> Path:
        if not key:
            raise BadKeyError(key)
        root = self.root.resolve()
        try:
            candidate = (root / key).resolve()
        except (OSError, ValueError) as exc:
            raise BadKeyError(key) from exc
        if candidate == root or not _is_within(candidate, root):
            raise BadKeyError(key)
        return candidate

    async def keys(self) -> List[str]:
        return await asyncio.to_thread(self._keys_sync)

    async def exists(self, key: str) -> bool:
        path = self.path_for(key)
        return await asyncio.to_thread(path.is_file)

    async def read(self, key: str) -> bytes:
        path = self.path_for(key)
        return await asyncio.to_thread(self._read_sync, key, path)

    async def write(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        await asyncio.to_thread(self._write_sync, path, data)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        await asyncio.to_thread(self._delete_sync, key, path)

    async def modified_at(self, key: str) -> float:
        """Return the POSIX mtime of the stored item."""

        path = self.path_for(key)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        return stat.st_mtime

    # -------- internals --------

    def _keys_sync(self) -> List[str]:
        root = self.root.resolve()
        if not root.is_dir():
            return []
        found: List[str] = []
        for path in root.rglob("*"):
            if not path.is_file() or _is_partial(path):
                continue
            found.append(path.relative_to(root).as_posix())
        return sorted(found)

    @staticmethod
    def _read_sync(key: str, path: Path) -> bytes:
        try:
            data = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise NotFoundError(key) from exc
        if not data:
            raise EmptyDataError(key)
        return data

    @staticmethod
    def _write_sync(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=_TMP_PREFIX, suffix=_TMP_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _delete_sync(key: str, path: Path) -> None:
        try:
            path.unlink()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise NotFoundError(key) from exc
