"""
Dub Track Sync

Marker-based delay estimation between a source video's audio and an
independently produced alternate-language audio track.
"""

__version__ = "1.0.0"

from .core.auto_sync import NO_RESULT, AutoSyncResult, AutoSyncService, estimate_offset
from .core.track_selector import TrackInfo, is_language_in_list

__all__ = [
    "NO_RESULT",
    "AutoSyncResult",
    "AutoSyncService",
    "estimate_offset",
    "TrackInfo",
    "is_language_in_list",
]
