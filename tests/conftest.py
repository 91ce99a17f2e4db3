import asyncio
from typing import Dict, List, Optional, Tuple, Union

import pytest

from soldata.workflows.data_fetch import Fresh, NotModified
from soldata.workflows.errors import BadStatusError

SDO_DIR_20220909 = "https://sdo.gsfc.nasa.gov/assets/img/browse/2022/09/09/"

Outcome = Union[bytes, Exception]


def listing_html(directory_path: str, filenames: List[str]) -> bytes:
    """Render an Apache-style autoindex page."""

    rows = [
        "<html><head><title>Index of %s</title></head>" % directory_path,
        "<body>",
        "<h1>Index of %s</h1>" % directory_path,
        '<pre><img src="/icons/blank.gif" alt="Icon "> <a href="?C=N;O=D">Name</a>'
        '                    <a href="?C=M;O=A">Last modified</a>      <a href="?C=S;O=A">Size</a>',
        '<hr><img src="/icons/back.gif" alt="[PARENTDIR]"> <a href="%s">Parent Directory</a>   -'
        % directory_path.rsplit("/", 2)[0],
    ]
    for name in filenames:
        rows.append('<img src="/icons/image2.gif" alt="[IMG]"> <a href="%s">%s</a> 2022-09-09 04:05  1.2M' % (name, name))
    rows.append("<hr></pre>")
    rows.append("</body></html>")
    return "\n".join(rows).encode("utf-8")


class FakeFetcher:
    """Serves canned bodies by URL and records every call.

    A list outcome is consumed one entry per call; its last entry repeats.
    Set ``gate`` to an ``asyncio.Event`` to hold fetches until it is set.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Union[Outcome, List[Outcome]]]] = None,
        etags: Optional[Dict[str, Optional[str]]] = None,
    ) -> None:
        self.responses: Dict[str, Union[Outcome, List[Outcome]]] = dict(responses or {})
        self.etags: Dict[str, Optional[str]] = dict(etags or {})
        self.calls: List[str] = []
        self.conditional_calls: List[Tuple[str, Optional[str]]] = []
        self.gate: Optional[asyncio.Event] = None

    def count(self, url: str) -> int:
        return self.calls.count(url)

    async def fetch(self, url: str) -> Tuple[bytes, Optional[str]]:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.responses.get(url)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if outcome is None:
            raise BadStatusError(404, url)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome, self.etags.get(url)

    async def fetch_if_non_matching(self, url: str, prior_etag: Optional[str] = None):
        self.conditional_calls.append((url, prior_etag))
        current = self.etags.get(url)
        if prior_etag is not None and current is not None and current == prior_etag:
            return NotModified(prior_etag)
        body, etag = await self.fetch(url)
        return Fresh(body, etag)


@pytest.fixture
def fake_fetcher_cls():
    return FakeFetcher


@pytest.fixture
def make_listing():
    return listing_html


AP_FORECAST_SAMPLE = b"""\
:Product: 45 Day AP Forecast  45DF.txt
:Issued: 2022 Sep 17 2119 UTC
# Prepared by the U.S. Air Force.
# Retransmitted by the Dept. of Commerce, NOAA, Space Weather Prediction Center
# Please send comments and suggestions to SWPC.Webmaster@noaa.gov
#
#
#          45-Day AP and F10.7cm Flux Forecast
#-------------------------------------------------------------
45-DAY AP FORECAST
18Sep22 012 19Sep22 008 20Sep22 005 21Sep22 005 22Sep22 005
23Sep22 015 24Sep22 012 25Sep22 014 26Sep22 014 27Sep22 014
28Sep22 008 29Sep22 008 30Sep22 022 01Oct22 050 02Oct22 030
03Oct22 020 04Oct22 012 05Oct22 015 06Oct22 012 07Oct22 010
08Oct22 008 09Oct22 005 10Oct22 010 11Oct22 008 12Oct22 005
13Oct22 015 14Oct22 020 15Oct22 012 16Oct22 005 17Oct22 005
18Oct22 005 19Oct22 005 20Oct22 012 21Oct22 010 22Oct22 014
23Oct22 014 24Oct22 014 25Oct22 008 26Oct22 008 27Oct22 022
28Oct22 050 29Oct22 030 30Oct22 020 31Oct22 012 01Nov22 015
45-DAY F10.7 CM FLUX FORECAST
18Sep22 130 19Sep22 125 20Sep22 125 21Sep22 122 22Sep22 120
23Sep22 120 24Sep22 120 25Sep22 120 26Sep22 120 27Sep22 120
28Sep22 120 29Sep22 120 30Sep22 125 01Oct22 125 02Oct22 125
03Oct22 125 04Oct22 125 05Oct22 125 06Oct22 125 07Oct22 130
08Oct22 130 09Oct22 150 10Oct22 148 11Oct22 143 12Oct22 140
13Oct22 136 14Oct22 130 15Oct22 125 16Oct22 120 17Oct22 125
18Oct22 125 19Oct22 120 20Oct22 120 21Oct22 120 22Oct22 120
23Oct22 120 24Oct22 120 25Oct22 120 26Oct22 120 27Oct22 125
28Oct22 125 29Oct22 125 30Oct22 125 31Oct22 125 01Nov22 125
FORECASTER:  TROST / HOUSSEAL
99999
NNNN
"""

GEO_ALERT_BODY = """\
Solar-terrestrial indices for 17 September follow.
Solar flux 132 and estimated planetary A-index 5.
The estimated planetary K-index at 1800 UTC on 18 September was 2.

Space weather for the past 24 hours has been minor.
Radio blackouts reaching the R1 level occurred.

No space weather storms are predicted for the next 24 hours."""

GEO_ALERT_SAMPLE = (
    ":Product: Geophysical Alert Message wwv.txt\n"
    ":Issued: 2022 Sep 18 1805 UTC\n"
    "# Prepared by the US Dept. of Commerce, NOAA, Space Weather Prediction Center\n"
    "#\n"
    "#          Geophysical Alert Message\n"
    "#\n" + GEO_ALERT_BODY
).encode("utf-8")
