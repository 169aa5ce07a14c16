#!/usr/bin/env python3
"""
Track listing, language matching and reference track selection.

The reference signal should come from a source audio track whose language
differs from the one being imported: two copies of the same dialogue make
poor sync anchors compared with music, effects and silences.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .exceptions import TrackProbeError

logger = logging.getLogger(__name__)

LanguagePredicate = Callable[["TrackInfo", Sequence[str]], bool]


@dataclass
class TrackInfo:
    """One track of a media file."""
    id: int
    type: str = ""  # 'audio', 'video', 'subtitles'
    codec: str = ""
    language: str = ""  # ISO 639-2, e.g. 'ita'
    language_ietf: str = ""  # e.g. 'it-IT'
    name: str = ""


@dataclass
class TrackSelection:
    """Outcome of reference track selection."""
    track_id: Optional[int]  # None = default / best available track
    low_confidence: bool = False
    reason: str = "default"


def is_language_match(track: TrackInfo, language: str) -> bool:
    """ISO 639-2 equality, or IETF tag equal to / starting with ``language``."""
    if (track.language or "").lower() == language.lower():
        return True
    ietf = (track.language_ietf or "").lower()
    if ietf:
        return ietf.startswith(language.lower())
    return False


def is_language_in_list(track: TrackInfo, languages: Sequence[str]) -> bool:
    return any(is_language_match(track, language) for language in languages)


def audio_tracks(tracks: Sequence[TrackInfo]) -> List[TrackInfo]:
    return [t for t in tracks if (t.type or "").lower() == "audio"]


def select_reference_track(
    tracks: Sequence[TrackInfo],
    target_languages: Sequence[str],
    is_language_in_list: LanguagePredicate = is_language_in_list,
) -> TrackSelection:
    """Pick the source audio track used as the sync reference.

    - default (first) audio track not in the target languages: use it
      implicitly (no explicit id)
    - otherwise the first audio track outside the target languages, by id
    - every track in a target language: default track, flagged low confidence
    """
    audio = audio_tracks(tracks)
    if not audio:
        return TrackSelection(track_id=None, reason="no audio tracks listed")

    default_track = audio[0]
    if not is_language_in_list(default_track, target_languages):
        return TrackSelection(track_id=None, reason=f"default track ({default_track.language or 'und'})")

    langs = ",".join(target_languages)
    for track in audio:
        if not is_language_in_list(track, target_languages):
            logger.info(
                f"[AUTO-SYNC] Default track is in {langs}, using track {track.id} "
                f"({track.language}) as reference"
            )
            return TrackSelection(track_id=track.id, reason=f"track {track.id} ({track.language})")

    logger.warning(f"[AUTO-SYNC] All audio tracks are in {langs}, sync may be unreliable")
    return TrackSelection(track_id=None, low_confidence=True, reason=f"all audio tracks in {langs}")


def _run_ffprobe_json(path: str, ffprobe: str = "ffprobe") -> dict:
    cmd = [
        ffprobe,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_streams",
        path,
    ]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise TrackProbeError(f"ffprobe could not run: {e}", file_path=path)
    if proc.returncode != 0:
        raise TrackProbeError(f"ffprobe failed: {proc.stderr.strip()}", file_path=path)
    try:
        return json.loads(proc.stdout)
    except json.JSONDecodeError as e:
        raise TrackProbeError(f"ffprobe returned invalid JSON: {e}", file_path=path)


def tracks_from_ffprobe(data: dict) -> List[TrackInfo]:
    """Convert ffprobe ``-show_streams`` JSON into TrackInfo records.

    The stream index doubles as the track id, which is what ``-map 0:<id>``
    expects.
    """
    type_names = {"subtitle": "subtitles"}
    tracks: List[TrackInfo] = []
    for s in data.get("streams", []):
        tags = {str(k).lower(): v for k, v in (s.get("tags") or {}).items()}
        codec_type = s.get("codec_type") or ""
        tracks.append(
            TrackInfo(
                id=int(s.get("index", len(tracks))),
                type=type_names.get(codec_type, codec_type),
                codec=s.get("codec_name") or "",
                language=tags.get("language") or "",
                language_ietf=tags.get("language_ietf") or "",
                name=tags.get("title") or "",
            )
        )
    return tracks


def probe_tracks(path: str, ffprobe: str = "ffprobe") -> List[TrackInfo]:
    """List the tracks of ``path`` using ffprobe."""
    tracks = tracks_from_ffprobe(_run_ffprobe_json(path, ffprobe))
    logger.debug(f"Probed {len(tracks)} tracks ({len(audio_tracks(tracks))} audio) in {path}")
    return tracks
