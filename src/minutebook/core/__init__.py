# src/minutebook/core/__init__.py
"""Core infrastructure: record store, folio rendering, configuration, logging."""

from minutebook.core.config import MinutebookSettings, load_settings
from minutebook.core.folio import FolioInfo, format_folio, resolve_folio

__all__ = [
    "FolioInfo",
    "MinutebookSettings",
    "format_folio",
    "load_settings",
    "resolve_folio",
]
