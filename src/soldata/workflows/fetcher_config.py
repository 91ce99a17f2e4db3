"""soldata defaults (endpoints, intervals, file naming, cache locations).

Centralizes static defaults so the managers have no embedded magic strings.
Callers can override any endpoint per instance.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Endpoints
SDO_BASE_URL = "https://sdo.gsfc.nasa.gov/assets/img/browse"
AP_FORECAST_URL = "https://services.swpc.noaa.gov/text/45-day-ap-forecast.txt"
GEO_ALERT_URL = "https://services.swpc.noaa.gov/text/wwv.txt"

# Headers
HDR_ETAG = "ETag"
DEFAULT_USER_AGENT = "soldata/0.1 (+https://sdo.gsfc.nasa.gov)"

# Cache layout
SDO_COMPONENT = "SDO"
SWPC_COMPONENT = "SWPC"
LISTING_SUFFIX = "_listing.json"
DAY_KEY_FORMAT = "%Y%m%d"
IMAGE_EXTENSION = ".jpg"

# Today's remote directory keeps growing; past days are final.
LISTING_REFRESH_INTERVAL = timedelta(minutes=15)

UNKNOWN_ETAG = "<unknown>"

ENV_CACHE_DIR = "SOLDATA_CACHE_DIR"


def resolve_cache_root(explicit: Optional[Path] = None) -> Path:
    """Return the cache root, creating it when needed.

    Precedence: explicit argument, ``SOLDATA_CACHE_DIR``, ``$XDG_CACHE_HOME/soldata``,
    ``~/.cache/soldata``. Falls back to the system temp directory when the
    preferred location cannot be created.
    """

    if explicit is not None:
        candidate = Path(explicit)
    elif os.getenv(ENV_CACHE_DIR):
        candidate = Path(os.environ[ENV_CACHE_DIR])
    else:
        base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
        candidate = Path(base) / "soldata"
    try:
        candidate.mkdir(parents=True, exist_ok=True)
        return candidate
    except OSError as exc:
        fallback = Path(tempfile.gettempdir()) / "soldata"
        logger.error("Unable to create cache root %s, using %s instead: %s", candidate, fallback, exc)
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback
