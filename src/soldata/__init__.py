"""Fetch, cache, and serve solar imagery and space-weather reports."""

__version__ = "0.1.0"
