#!/usr/bin/env python3
"""
Dub Track Sync CLI Tool
=======================

Command-line front end for the marker-based offset estimator. Probes the
source file's audio tracks, runs the two ffmpeg analysis pipelines and
prints the detected delay for the alternate-language track.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from ..core.auto_sync import AutoSyncResult, AutoSyncService, effective_delay
from ..core.config import MAX_WINDOW_SECONDS, MIN_WINDOW_SECONDS, get_settings
from ..core.exceptions import DubSyncException
from ..core.ffmpeg_locator import find_ffmpeg, find_ffprobe
from ..core.logging import setup_logging
from ..core.track_selector import audio_tracks, probe_tracks


def format_delay(delay_ms: int) -> str:
    """Signed millisecond string: +120ms, -80ms, 0ms."""
    if delay_ms > 0:
        return f"+{delay_ms}ms"
    return f"{delay_ms}ms"


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Dub Track Sync - estimate the delay of an alternate-language audio track",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s episode01.mkv episode01.ita.mkv -l ita
  %(prog)s episode01.mkv episode01.ita.mkv -l ita --analysis-time 120 --audio-delay 40
  %(prog)s episode01.mkv episode01.ita.mkv -l ita -l it --json
        """,
    )

    parser.add_argument("source", type=Path, help="Source video providing the reference audio")
    parser.add_argument("candidate", type=Path, help="File carrying the alternate-language audio")
    parser.add_argument(
        "-l",
        "--target-language",
        action="append",
        required=True,
        dest="target_languages",
        help="Language code being imported (repeatable, e.g. -l ita -l it)",
    )
    parser.add_argument(
        "-at",
        "--analysis-time",
        type=int,
        default=None,
        help="Seconds of audio to analyze (default: DUB_SYNC_ANALYSIS_WINDOW_SECONDS or 300)",
    )
    parser.add_argument(
        "-ad",
        "--audio-delay",
        type=int,
        default=0,
        help="Manual delay in ms added to the detected offset, used alone on failure",
    )
    parser.add_argument("--ffmpeg", default=None, help="Path to the ffmpeg executable")
    parser.add_argument("--ffprobe", default=None, help="Path to the ffprobe executable")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def validate_inputs(args: argparse.Namespace) -> bool:
    """Validate input arguments and files."""
    if not args.source.exists():
        print(f"❌ Error: Source file not found: {args.source}")
        return False

    if not args.candidate.exists():
        print(f"❌ Error: Candidate file not found: {args.candidate}")
        return False

    if args.analysis_time is not None and (
        args.analysis_time < MIN_WINDOW_SECONDS or args.analysis_time > MAX_WINDOW_SECONDS
    ):
        print(f"❌ Error: Analysis time must be between {MIN_WINDOW_SECONDS}-{MAX_WINDOW_SECONDS} seconds, got {args.analysis_time}")
        return False

    return True


def print_result(result: AutoSyncResult, manual_delay_ms: int):
    """Print the estimation outcome to the console."""
    print(f"\n📊 AUTO-SYNC RESULTS:")
    if result.reference_track_id is not None:
        print(f"   Reference track:  {result.reference_track_id}")
    else:
        print(f"   Reference track:  default")
    print(f"   Markers:          {result.source_markers} source, {result.candidate_markers} language")
    for line in result.phase_summary():
        print(f"   {line}")

    if result.succeeded:
        print(f"\n   ✅ Offset detected: {format_delay(result.offset_ms)} "
              f"(FFmpeg: {result.ffmpeg_time_ms}ms, Sync: {result.sync_time_ms}ms)")
        if manual_delay_ms:
            print(f"   Final delay (auto + manual): {format_delay(effective_delay(result, manual_delay_ms))}")
        if result.low_confidence:
            print(f"   🔬 LOW CONFIDENCE - Manual verification recommended")
    else:
        print(f"\n   ⚠️  Unable to compute offset ({result.failure}), "
              f"using manual delay {format_delay(manual_delay_ms)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    args = parse_arguments(argv)

    settings = get_settings()
    # JSON goes to stdout, so log lines must not
    setup_logging(
        "DEBUG" if args.verbose else settings.LOG_LEVEL,
        log_file=args.log_file,
        stream=sys.stderr if args.json else sys.stdout,
    )

    if not validate_inputs(args):
        return 1

    try:
        ffmpeg = find_ffmpeg(args.ffmpeg)
        ffprobe = find_ffprobe(args.ffprobe)
        tracks = probe_tracks(str(args.source), ffprobe=ffprobe)
        if not audio_tracks(tracks):
            print(f"❌ Error: No audio tracks in {args.source}")
            return 1

        service = AutoSyncService(ffmpeg_path=ffmpeg, settings=settings)
        result = service.compute(
            str(args.source),
            str(args.candidate),
            tracks,
            args.target_languages,
            analysis_window_seconds=args.analysis_time,
        )
    except DubSyncException as e:
        print(f"\n❌ Error: {e.detail}")
        return 1
    except KeyboardInterrupt:
        print(f"\n⚠️  Analysis interrupted by user.")
        return 130

    if args.json:
        data = result.to_dict()
        data["effective_delay_ms"] = effective_delay(result, args.audio_delay)
        print(json.dumps(data, indent=2))
    else:
        print_result(result, args.audio_delay)

    return 0 if result.succeeded else 2


if __name__ == "__main__":
    sys.exit(main())
