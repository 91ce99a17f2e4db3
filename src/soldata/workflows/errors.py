"""Error hierarchy shared by the fetch, store, catalog, and report layers."""

from __future__ import annotations

from typing import Optional


class SolDataError(Exception):
    """Base class for every error raised by soldata."""


class TransportError(SolDataError):
    """The remote endpoint could not deliver a usable response."""


class InvalidResponseError(TransportError):
    def __init__(self, url: str, detail: Optional[str] = None) -> None:
        self.url = url
        message = f"No usable response from {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BadStatusError(TransportError):
    def __init__(self, code: int, url: str) -> None:
        self.code = code
        self.url = url
        super().__init__(f"Unexpected status {code} from {url}")


class ContentError(SolDataError):
    """Fetched content could not be interpreted."""


class InvalidContentError(ContentError):
    """An HTML listing body is not text."""


class ReportParseError(ContentError):
    """A space-weather report is missing a section or carries a bad token."""


class StoreError(SolDataError):
    """A key-value store operation failed."""


class BadKeyError(StoreError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key does not resolve inside the store root: {key!r}")


class NotFoundError(StoreError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No stored item for key {key!r}")


class EmptyDataError(StoreError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Stored item for key {key!r} is empty")


class DecodeError(SolDataError):
    """Bytes could not be decoded into an image."""


class InvalidImageDataError(DecodeError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid image data for {key!r}")


class ContentionError(SolDataError):
    """Work for this request is already in progress and the caller must not wait."""


class NoDataError(SolDataError):
    """No images exist (yet) for the requested day and criteria."""


class InconsistentCacheError(SolDataError):
    """Internal bookkeeping disagrees with what is on disk."""


__all__ = [
    "SolDataError",
    "TransportError",
    "InvalidResponseError",
    "BadStatusError",
    "ContentError",
    "InvalidContentError",
    "ReportParseError",
    "StoreError",
    "BadKeyError",
    "NotFoundError",
    "EmptyDataError",
    "DecodeError",
    "InvalidImageDataError",
    "ContentionError",
    "NoDataError",
    "InconsistentCacheError",
]
