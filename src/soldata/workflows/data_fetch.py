"""Conditional HTTP fetching on aiohttp.

``fetch_if_non_matching`` performs a HEAD first and only downloads the body
when the remote ETag differs from the one the caller already holds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import aiohttp

from .errors import BadStatusError, InvalidResponseError
from .fetcher_config import DEFAULT_USER_AGENT, HDR_ETAG

logger = logging.getLogger(__name__)


@dataclass
class FetchConfig:
    """Configuration parameters for remote fetching."""

    timeout: float = 30.0
    max_attempts: int = 1
    backoff_initial: float = 0.8
    backoff_max: float = 6.0
    # Parallel downloads during prefetch
    concurrency: int = 6
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class Fresh:
    """Full body downloaded because the caller's ETag was missing or stale."""

    body: bytes = field(repr=False)
    etag: Optional[str] = None


@dataclass(frozen=True)
class NotModified:
    """Remote content still carries the caller's ETag; no body was downloaded."""

    etag: str


FetchOutcome = Union[Fresh, NotModified]


class ConditionalFetcher:
    """GET/HEAD client with ETag comparison.

    Uses the given ``aiohttp.ClientSession`` when provided. Used as an async
    context manager it owns one session for its lifetime; otherwise every
    request opens a short-lived session.
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config or FetchConfig()
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "ConditionalFetcher":
        if self._session is None:
            self._session = self._new_session()
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def fetch(self, url: str) -> Tuple[bytes, Optional[str]]:
        status, etag, body = await self._request_with_retries("GET", url)
        if status != 200:
            raise BadStatusError(status, url)
        return body, etag

    async def fetch_etag(self, url: str) -> Optional[str]:
        status, etag, _ = await self._request_with_retries("HEAD", url)
        if status != 200:
            # Servers that refuse HEAD get a full GET from fetch_if_non_matching.
            logger.debug("HEAD %s returned %s; treating as no ETag", url, status)
            return None
        return etag

    async def fetch_if_non_matching(self, url: str, prior_etag: Optional[str] = None) -> FetchOutcome:
        if prior_etag is None:
            body, etag = await self.fetch(url)
            return Fresh(body, etag)
        remote_etag = await self.fetch_etag(url)
        if remote_etag is not None and remote_etag == prior_etag:
            logger.debug("ETag %s unchanged for %s", prior_etag, url)
            return NotModified(prior_etag)
        body, etag = await self.fetch(url)
        return Fresh(body, etag)

    async def _request_with_retries(self, method: str, url: str) -> Tuple[int, Optional[str], bytes]:
        delay = self.config.backoff_initial
        attempts = max(1, self.config.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self._request(method, url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt == attempts:
                    raise InvalidResponseError(url, str(exc) or type(exc).__name__) from exc
                logger.debug("%s %s failed (attempt %d/%d): %s", method, url, attempt, attempts, exc)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.config.backoff_max)
        raise RuntimeError("unexpected retry state")

    async def _request(self, method: str, url: str) -> Tuple[int, Optional[str], bytes]:
        """Issue one request and return ``(status, etag, body)``."""

        if self._session is not None:
            return await self._send(self._session, method, url)
        async with self._new_session() as session:
            return await self._send(session, method, url)

    async def _send(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
    ) -> Tuple[int, Optional[str], bytes]:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with session.request(method, url, timeout=timeout, allow_redirects=True) as resp:
            body = b"" if method == "HEAD" else await resp.read()
            return resp.status, resp.headers.get(HDR_ETAG), body

    def _new_session(self) -> aiohttp.ClientSession:
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept-Encoding": "gzip, deflate",
        }
        return aiohttp.ClientSession(headers=headers)
