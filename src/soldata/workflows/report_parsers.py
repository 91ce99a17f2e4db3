"""Parsers for SWPC space-weather text products.

Both products open with a ``:Product:`` / ``:Issued:`` header and a block of
``#`` comment lines. Sample 45-day forecast excerpt::

    :Product: 45 Day AP Forecast  45DF.txt
    :Issued: 2022 Sep 17 2119 UTC
    # Prepared by the U.S. Air Force.
    # Retransmitted by the Dept. of Commerce, NOAA, Space Weather Prediction Center
    # Please send comments and suggestions to SWPC.Webmaster@noaa.gov
    #
    45-DAY AP FORECAST
    18Sep22 012 19Sep22 008 20Sep22 005 21Sep22 005 22Sep22 005
    45-DAY F10.7 CM FLUX FORECAST
    18Sep22 130 19Sep22 125 20Sep22 125 21Sep22 122 22Sep22 120
    FORECASTER:  TROST / HOUSSEAL

The geophysical alert carries free text after the comment block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Union

from ..core.keys import K_BODY, K_ETAG, K_FORECAST_AP, K_FORECAST_FLUX, K_ISSUED_DATE, K_PREPARED
from .errors import ReportParseError

_MONTHS = {
    name: index
    for index, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_UTC_NAMES = {"UTC", "GMT", "Z", "UT"}

_ISSUED_RE = re.compile(r"^:Issued:\s*(?P<issued>.+?)\s*$", re.MULTILINE)
_ISSUED_VALUE_RE = re.compile(
    r"^(?P<year>\d{4}) (?P<month>[A-Za-z]{3}) (?P<day>\d{1,2}) (?P<hour>\d{2})(?P<minute>\d{2}) (?P<tz>\S+)$"
)
_ALERT_PREPARED_RE = re.compile(r"^#\s*(?P<prepared>Prepared.*?)\s*$", re.MULTILINE)
_SERIES_TOKEN_RE = re.compile(r"(?P<date>[0-9]{2}[A-Za-z]{3}[0-9]{2}) (?P<value>[0-9]{3})")

AP_HEADER = "45-DAY AP FORECAST"
FLUX_HEADER = "45-DAY F10.7 CM FLUX FORECAST"
FORECASTER_HEADER = "FORECASTER:"
PREPARED_PREFIX = "# Prepared "


@dataclass
class ForecastReport:
    """45-day planetary A-index and F10.7 cm flux forecast."""

    etag: str
    issued_date: datetime
    prepared: str
    forecast_ap: Dict[date, int] = field(default_factory=dict)
    forecast_flux: Dict[date, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_ETAG: self.etag,
            K_ISSUED_DATE: self.issued_date.isoformat(),
            K_PREPARED: self.prepared,
            K_FORECAST_AP: {d.isoformat(): v for d, v in sorted(self.forecast_ap.items())},
            K_FORECAST_FLUX: {d.isoformat(): v for d, v in sorted(self.forecast_flux.items())},
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ForecastReport":
        return cls(
            etag=str(payload[K_ETAG]),
            issued_date=datetime.fromisoformat(payload[K_ISSUED_DATE]),
            prepared=str(payload[K_PREPARED]),
            forecast_ap={date.fromisoformat(k): int(v) for k, v in payload[K_FORECAST_AP].items()},
            forecast_flux={date.fromisoformat(k): int(v) for k, v in payload[K_FORECAST_FLUX].items()},
        )


@dataclass
class AlertReport:
    """Geophysical alert message (free text)."""

    etag: str
    issued_date: datetime
    prepared: str
    body: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_ETAG: self.etag,
            K_ISSUED_DATE: self.issued_date.isoformat(),
            K_PREPARED: self.prepared,
            K_BODY: self.body,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AlertReport":
        return cls(
            etag=str(payload[K_ETAG]),
            issued_date=datetime.fromisoformat(payload[K_ISSUED_DATE]),
            prepared=str(payload[K_PREPARED]),
            body=str(payload[K_BODY]),
        )


ReportDocument = Union[ForecastReport, AlertReport]


def _month(token: str, context: str) -> int:
    month = _MONTHS.get(token.lower())
    if month is None:
        raise ReportParseError(f"[{context}] unknown month {token!r}")
    return month


def parse_issued_date(value: str) -> datetime:
    """Parse ``yyyy MMM dd HHmm <tz>`` like ``2022 Sep 17 2119 UTC``."""

    match = _ISSUED_VALUE_RE.match(value.strip())
    if not match:
        raise ReportParseError(f"[issued_date] unable to interpret {value!r} as date")
    if match.group("tz").upper() not in _UTC_NAMES:
        raise ReportParseError(f"[issued_date] unsupported time zone {match.group('tz')!r}")
    try:
        return datetime(
            int(match.group("year")),
            _month(match.group("month"), "issued_date"),
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            tzinfo=timezone.utc,
        )
    except ValueError as exc:
        raise ReportParseError(f"[issued_date] unable to interpret {value!r} as date") from exc


def parse_series_date(token: str) -> date:
    """Parse ``ddMMMyy`` like ``18Sep22``."""

    try:
        return date(2000 + int(token[5:7]), _month(token[2:5], "forecast"), int(token[0:2]))
    except ValueError as exc:
        raise ReportParseError(f"[forecast] unable to interpret {token!r} as date") from exc


def parse_series(text: str) -> Dict[date, int]:
    """Collect ``<ddMMMyy> <nnn>`` tokens into a date -> value series."""

    series: Dict[date, int] = {}
    for match in _SERIES_TOKEN_RE.finditer(text):
        series[parse_series_date(match.group("date"))] = int(match.group("value"))
    return series


def _decode(data: bytes) -> str:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ReportParseError("Unable to interpret report bytes as UTF-8 text") from exc
    return text.replace("\r\n", "\n")


def _issued(text: str) -> datetime:
    match = _ISSUED_RE.search(text)
    if not match:
        raise ReportParseError("[issued_date] unable to find ':Issued:' line")
    return parse_issued_date(match.group("issued"))


def _index_of(lines: List[str], prefix: str, context: str) -> int:
    for index, line in enumerate(lines):
        if line.startswith(prefix):
            return index
    raise ReportParseError(f"[{context}] unable to find expected {prefix.strip()!r} line")


def parse_forecast(data: bytes, etag: str) -> ForecastReport:
    text = _decode(data)
    issued_date = _issued(text)
    lines = text.split("\n")

    start = _index_of(lines, PREPARED_PREFIX, "prepared")
    end = next((i for i in range(start, len(lines)) if lines[i].rstrip() == "#"), None)
    if end is None:
        raise ReportParseError("[prepared] unable to find end of Prepared section")
    prepared = "\n".join(line[2:] for line in lines[start:end])

    ap_index = _index_of(lines, AP_HEADER, "forecast_ap")
    flux_index = _index_of(lines, FLUX_HEADER, "forecast_flux")
    forecaster_index = _index_of(lines, FORECASTER_HEADER, "forecast_flux")
    if not ap_index < flux_index < forecaster_index:
        raise ReportParseError("[forecast] sections are out of order")

    forecast_ap = parse_series("\n".join(lines[ap_index + 1 : flux_index]))
    forecast_flux = parse_series("\n".join(lines[flux_index + 1 : forecaster_index]))
    return ForecastReport(
        etag=etag,
        issued_date=issued_date,
        prepared=prepared,
        forecast_ap=forecast_ap,
        forecast_flux=forecast_flux,
    )


def parse_alert(data: bytes, etag: str) -> AlertReport:
    text = _decode(data)
    issued_date = _issued(text)

    match = _ALERT_PREPARED_RE.search(text)
    if not match:
        raise ReportParseError("[prepared] unable to find 'Prepared' comment")
    prepared = match.group("prepared")

    lines = text.split("\n")
    header_end = -1
    for index, line in enumerate(lines):
        if line.startswith(":") or line.startswith("#"):
            header_end = index
    body = "\n".join(lines[header_end + 1 :])
    return AlertReport(etag=etag, issued_date=issued_date, prepared=prepared, body=body)
