#!/usr/bin/env python3
"""
Batch Auto-Sync Example

Pairs every ``*.mkv`` in a source folder with the file of the same name in a
language folder and prints the delay to apply to the language track. Files
whose offset cannot be computed fall back to the manual delay.

    python examples/batch_auto_sync.py /media/series /media/series.ita ita --audio-delay 0
"""

import argparse
import sys
from pathlib import Path

from dub_sync.core.auto_sync import AutoSyncService, effective_delay
from dub_sync.core.exceptions import TrackProbeError
from dub_sync.core.ffmpeg_locator import find_ffprobe
from dub_sync.core.logging import setup_logging
from dub_sync.core.track_selector import probe_tracks


def run_batch(source_dir: Path, language_dir: Path, languages, manual_delay_ms: int = 0) -> int:
    """Process every matching pair; returns the number of failed syncs."""
    service = AutoSyncService()
    ffprobe = find_ffprobe()
    sync_failed = 0

    for source in sorted(source_dir.glob("*.mkv")):
        candidate = language_dir / source.name
        if not candidate.exists():
            print(f"⚠️  {source.name}: no language file, skipped")
            continue

        try:
            tracks = probe_tracks(str(source), ffprobe=ffprobe)
        except TrackProbeError as e:
            print(f"❌ {source.name}: {e.detail}")
            sync_failed += 1
            continue

        result = service.compute(str(source), str(candidate), tracks, languages)
        delay = effective_delay(result, manual_delay_ms)
        if result.succeeded:
            flag = " (low confidence)" if result.low_confidence else ""
            print(f"✅ {source.name}: {delay:+d}ms{flag} "
                  f"[FFmpeg {result.ffmpeg_time_ms}ms, Sync {result.sync_time_ms}ms]")
        else:
            sync_failed += 1
            print(f"⚠️  {source.name}: auto-sync failed ({result.failure}), using {delay:+d}ms")

    return sync_failed


def main():
    parser = argparse.ArgumentParser(description="Batch auto-sync example")
    parser.add_argument("source_dir", type=Path)
    parser.add_argument("language_dir", type=Path)
    parser.add_argument("languages", nargs="+", help="Language codes being imported")
    parser.add_argument("--audio-delay", type=int, default=0)
    args = parser.parse_args()

    setup_logging("WARNING")
    failed = run_batch(args.source_dir, args.language_dir, args.languages, args.audio_delay)
    print(f"\nSync failed: {failed}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
