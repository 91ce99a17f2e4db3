"""Harvest file links from auto-generated HTML directory listings."""

from __future__ import annotations

import logging
import re
from typing import List, Protocol, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup  # type: ignore

from .errors import InvalidContentError

logger = logging.getLogger(__name__)

# The listing pages are machine generated with one anchor per line, so a
# per-line pattern is enough; the "html" parser is available for pages that
# drift from that shape.
_ANCHOR_RE = re.compile(r"<a\s+[^>]*?href=\"(?P<url>[^\"]*)\"[^>]*>.*?</a>", re.IGNORECASE)

PARSERS = ("regex", "html")


class BytesFetcher(Protocol):
    async def fetch(self, url: str) -> Tuple[bytes, object]:
        ...


def extract_hrefs(html: str, *, parser: str = "regex") -> List[str]:
    """Return raw ``href`` values in document order."""

    if parser == "regex":
        hrefs: List[str] = []
        for line in html.splitlines():
            for match in _ANCHOR_RE.finditer(line):
                hrefs.append(match.group("url"))
        return hrefs
    if parser == "html":
        soup = BeautifulSoup(html, "lxml")
        return [str(a.get("href")) for a in soup.find_all("a", href=True)]
    raise ValueError(f"Unknown link parser {parser!r}; expected one of {PARSERS}")


def resolve_links(hrefs: List[str], base_url: str) -> List[str]:
    links: List[str] = []
    for href in hrefs:
        href = href.strip()
        if not href:
            continue
        links.append(urljoin(base_url, href))
    return links


class ListingLinkScraper:
    """Fetch a directory page and return its links as absolute URLs."""

    def __init__(self, fetcher: BytesFetcher, *, parser: str = "regex") -> None:
        if parser not in PARSERS:
            raise ValueError(f"Unknown link parser {parser!r}; expected one of {PARSERS}")
        self.fetcher = fetcher
        self.parser = parser

    async def parse_links(self, directory_url: str) -> List[str]:
        body, _ = await self.fetcher.fetch(directory_url)
        try:
            html = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidContentError(f"Listing at {directory_url} is not UTF-8 text") from exc
        links = resolve_links(extract_hrefs(html, parser=self.parser), directory_url)
        logger.debug("Parsed %d links from %s", len(links), directory_url)
        return links
