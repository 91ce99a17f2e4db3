"""ETag-gated cache for SWPC text reports.

``ReportCache.get`` reads the persisted copy, asks the server whether its ETag
changed, and only downloads and re-parses the report when it did.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from .data_fetch import Fresh, NotModified
from .data_store import FilesystemStore
from .errors import InconsistentCacheError, NotFoundError, StoreError
from .fetcher_config import AP_FORECAST_URL, GEO_ALERT_URL, SWPC_COMPONENT, UNKNOWN_ETAG
from .report_parsers import AlertReport, ForecastReport, ReportDocument, parse_alert, parse_forecast

logger = logging.getLogger(__name__)


class ReportKind(str, enum.Enum):
    AP_FORECAST = "APForecast"
    GEO_ALERT = "GeoAlert"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


_PARSERS: Dict[ReportKind, Callable[[bytes, str], ReportDocument]] = {
    ReportKind.AP_FORECAST: parse_forecast,
    ReportKind.GEO_ALERT: parse_alert,
}

_MODELS: Dict[ReportKind, Any] = {
    ReportKind.AP_FORECAST: ForecastReport,
    ReportKind.GEO_ALERT: AlertReport,
}

DEFAULT_REPORT_URLS: Dict[ReportKind, str] = {
    ReportKind.AP_FORECAST: AP_FORECAST_URL,
    ReportKind.GEO_ALERT: GEO_ALERT_URL,
}


class ReportCache:
    def __init__(
        self,
        cache_root: Path,
        fetcher: Any,
        *,
        urls: Optional[Mapping[ReportKind, str]] = None,
        component: str = SWPC_COMPONENT,
    ) -> None:
        self.root = Path(cache_root) / component
        self.fetcher = fetcher
        self.urls: Dict[ReportKind, str] = {**DEFAULT_REPORT_URLS, **(urls or {})}
        self._store = FilesystemStore(self.root)
        self._lock = asyncio.Lock()
        self._in_flight: Dict[ReportKind, "asyncio.Task[ReportDocument]"] = {}

    async def ap_forecast(self) -> ForecastReport:
        return await self.get(ReportKind.AP_FORECAST)  # type: ignore[return-value]

    async def geo_alert(self) -> AlertReport:
        return await self.get(ReportKind.GEO_ALERT)  # type: ignore[return-value]

    async def get(self, kind: ReportKind) -> ReportDocument:
        """Return the current report, joining a refresh already in progress."""

        async with self._lock:
            task = self._in_flight.get(kind)
            if task is None:
                task = asyncio.create_task(self._refresh(kind))
                self._in_flight[kind] = task
                task.add_done_callback(lambda done, kind=kind: self._in_flight.pop(kind, None))
        return await asyncio.shield(task)

    async def cached(self, kind: ReportKind) -> Optional[ReportDocument]:
        """Return the persisted report, or None when absent or unreadable."""

        try:
            raw = await self._store.read(kind.filename)
        except NotFoundError:
            logger.debug("No persisted %s in %s", kind.value, self.root)
            return None
        except StoreError as exc:
            logger.warning("Unable to read persisted %s from %s: %s", kind.value, self.root / kind.filename, exc)
            return None
        try:
            payload = json.loads(raw.decode("utf-8"))
            return _MODELS[kind].from_dict(payload)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Unable to read persisted %s from %s: %s", kind.value, self.root / kind.filename, exc)
            return None

    async def _refresh(self, kind: ReportKind) -> ReportDocument:
        cached = await self.cached(kind)
        outcome = await self.fetcher.fetch_if_non_matching(
            self.urls[kind],
            cached.etag if cached is not None else None,
        )
        if isinstance(outcome, NotModified):
            if cached is None:
                raise InconsistentCacheError(f"{kind.value} reported not modified without a cached copy")
            logger.info("%s (cached) issued: %s", kind.value, cached.issued_date.isoformat())
            return cached

        assert isinstance(outcome, Fresh)
        document = _PARSERS[kind](outcome.body, outcome.etag or UNKNOWN_ETAG)
        logger.info("%s (downloaded) issued: %s", kind.value, document.issued_date.isoformat())
        payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")
        try:
            await self._store.write(kind.filename, payload)
        except (StoreError, OSError) as exc:
            logger.error("Unable to write %s to %s: %s", kind.value, self.root / kind.filename, exc)
        return document
