"""Shared schema keys to avoid magic strings across persisted documents."""

from __future__ import annotations

# Report document keys
K_ETAG = "etag"
K_ISSUED_DATE = "issued_date"
K_PREPARED = "prepared"
K_BODY = "body"
K_FORECAST_AP = "forecast_ap"
K_FORECAST_FLUX = "forecast_flux"
