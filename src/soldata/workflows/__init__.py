"""High-level exports for the soldata workflows."""

from .browser import ImageBrowser
from .data_fetch import ConditionalFetcher, FetchConfig, FetchOutcome, Fresh, NotModified
from .data_store import FilesystemStore, KeyValueStore
from .image_catalog import ImageCatalogManager, PrefetchSummary
from .image_types import Awaiting, Cached, ImageDescriptor, ImageSet, Resolution, Uninitiated
from .link_scraper import ListingLinkScraper
from .listing_cache import RemoteListingCache
from .report_parsers import AlertReport, ForecastReport, parse_alert, parse_forecast
from .reports import ReportCache, ReportKind
from .settings import StaticSettings, settings_from_env

__all__ = [
    "AlertReport",
    "Awaiting",
    "Cached",
    "ConditionalFetcher",
    "FetchConfig",
    "FetchOutcome",
    "FilesystemStore",
    "ForecastReport",
    "Fresh",
    "ImageBrowser",
    "ImageCatalogManager",
    "ImageDescriptor",
    "ImageSet",
    "KeyValueStore",
    "ListingLinkScraper",
    "NotModified",
    "PrefetchSummary",
    "RemoteListingCache",
    "ReportCache",
    "ReportKind",
    "Resolution",
    "StaticSettings",
    "Uninitiated",
    "parse_alert",
    "parse_forecast",
    "settings_from_env",
]
