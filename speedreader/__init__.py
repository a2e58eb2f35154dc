from __future__ import annotations

from .engine import (
    SKIP_OPTIONS,
    TICK_INTERVAL,
    WPM_OPTIONS,
    PlaybackState,
    ReaderEngine,
    SkipConfig,
    SkipSetting,
    dwell_interval,
)
from .text import ParsedDocument, format_title, parse_document

__all__ = [
    "ParsedDocument",
    "parse_document",
    "format_title",
    "PlaybackState",
    "ReaderEngine",
    "SkipConfig",
    "SkipSetting",
    "dwell_interval",
    "WPM_OPTIONS",
    "SKIP_OPTIONS",
    "TICK_INTERVAL",
]
