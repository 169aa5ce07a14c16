#!/usr/bin/env python3
"""
Marker extraction pipeline.

Two ffmpeg processes linked by an in-process byte pipe:

- producer: decodes one audio stream of the input, trims it to the analysis
  window, downmixes to mono, resamples to 8 kHz and writes raw s16le PCM on
  stdout.
- consumer: reads that PCM from stdin and runs silencedetect + astats +
  ametadata, emitting only text (``-f null``).

Every pipe end is serviced by its own thread so no process can stall on a
full pipe while another end is not being drained.
"""

import logging
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SAMPLE_RATE = 8000
PIPE_BUFFER_SIZE = 1024 * 1024

# silencedetect threshold/duration and per-window RMS printed with its pts_time
ANALYSIS_FILTERS = (
    "silencedetect=noise=-35dB:d=0.3,"
    "astats=metadata=1:reset=1,"
    "ametadata=print:key=lavfi.astats.Overall.RMS_level:file=-"
)


def build_producer_args(
    ffmpeg: str,
    input_path: str,
    track_id: Optional[int],
    window_seconds: int,
    sample_rate: int = SAMPLE_RATE,
    hwaccel: str = "auto",
) -> List[str]:
    """Build the decode/resample command line.

    ``track_id`` selects an absolute stream with ``-map 0:<id>``; ``None``
    lets ffmpeg pick its best audio stream (video disabled with ``-vn``).
    ``-nostdin`` keeps ffmpeg from opening the controlling terminal.
    """
    args = [ffmpeg, "-nostdin", "-hide_banner"]
    if hwaccel:
        args += ["-hwaccel", hwaccel]
    args += ["-threads", "0", "-i", str(input_path)]
    if track_id is not None and track_id >= 0:
        args += ["-map", f"0:{track_id}"]
    else:
        args += ["-vn"]
    args += [
        "-t", str(window_seconds),
        "-ac", "1",
        "-ar", str(sample_rate),
        "-f", "s16le",
        "-",
    ]
    return args


def build_consumer_args(ffmpeg: str, sample_rate: int = SAMPLE_RATE) -> List[str]:
    """Build the analysis command line reading raw PCM from stdin."""
    return [
        ffmpeg, "-nostdin", "-hide_banner",
        "-threads", "0",
        "-f", "s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        "-i", "-",
        "-af", ANALYSIS_FILTERS,
        "-f", "null",
        "-",
    ]


def _pump(source, sink, buffer_size: int) -> None:
    """Copy producer stdout into consumer stdin, then signal EOF."""
    try:
        shutil.copyfileobj(source, sink, buffer_size)
    except (BrokenPipeError, OSError, ValueError) as e:
        # Consumer went away: keep draining so the producer can exit
        logger.debug(f"Pipe transfer interrupted: {e}")
        try:
            while source.read(buffer_size):
                pass
        except (OSError, ValueError):
            pass
    finally:
        try:
            sink.close()
        except (BrokenPipeError, OSError):
            pass


def _drain(stream, store: Optional[Dict[str, bytes]] = None, key: str = "") -> None:
    """Read a stream to EOF, keeping the bytes only when a store is given."""
    try:
        data = stream.read()
    except (OSError, ValueError) as e:
        logger.debug(f"Stream read failed ({key or 'discard'}): {e}")
        data = b""
    if store is not None:
        store[key] = data


def _release(proc: Optional[subprocess.Popen]) -> None:
    if proc is None:
        return
    if proc.poll() is None:
        proc.kill()
        proc.wait()
    for stream in (proc.stdin, proc.stdout, proc.stderr):
        if stream is not None:
            try:
                stream.close()
            except OSError:
                pass


def run_piped_process(
    producer_cmd: List[str],
    consumer_cmd: List[str],
    buffer_size: int = PIPE_BUFFER_SIZE,
) -> str:
    """Run producer | consumer and return the consumer's stdout + stderr.

    Exceptions never propagate: they are folded into the returned text as
    ``pipe error: ...``. An empty string therefore means the consumer ran
    but printed nothing; callers must still validate the content.
    """
    producer = None
    consumer = None
    result = ""

    try:
        producer = subprocess.Popen(
            producer_cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        consumer = subprocess.Popen(
            consumer_cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        captured: Dict[str, bytes] = {}
        threads = [
            threading.Thread(
                target=_pump,
                args=(producer.stdout, consumer.stdin, buffer_size),
                name="pipe-transfer",
                daemon=True,
            ),
            threading.Thread(
                target=_drain, args=(producer.stderr,), name="producer-stderr", daemon=True
            ),
            threading.Thread(
                target=_drain,
                args=(consumer.stdout, captured, "stdout"),
                name="consumer-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=_drain,
                args=(consumer.stderr, captured, "stderr"),
                name="consumer-stderr",
                daemon=True,
            ),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        producer_rc = producer.wait()
        consumer_rc = consumer.wait()
        if producer_rc != 0 or consumer_rc != 0:
            logger.debug(f"Pipeline exit codes: producer={producer_rc}, consumer={consumer_rc}")

        result = (
            captured.get("stdout", b"").decode("utf-8", errors="replace")
            + captured.get("stderr", b"").decode("utf-8", errors="replace")
        )
    except Exception as e:
        logger.debug(f"Piped process failed: {e}")
        result += f"pipe error: {e}"
    finally:
        _release(producer)
        _release(consumer)

    return result


@dataclass
class MarkerPipeline:
    """One producer/consumer pair analysing a single audio stream."""
    ffmpeg: str
    input_path: str
    window_seconds: int
    track_id: Optional[int] = None  # None = best available audio stream
    sample_rate: int = SAMPLE_RATE
    buffer_size: int = PIPE_BUFFER_SIZE
    hwaccel: str = "auto"
    label: str = "stream"

    def producer_args(self) -> List[str]:
        return build_producer_args(
            self.ffmpeg,
            self.input_path,
            self.track_id,
            self.window_seconds,
            sample_rate=self.sample_rate,
            hwaccel=self.hwaccel,
        )

    def consumer_args(self) -> List[str]:
        return build_consumer_args(self.ffmpeg, sample_rate=self.sample_rate)

    def run(self) -> str:
        """Run the pipeline and return the combined analysis text."""
        start = time.perf_counter()
        output = run_piped_process(self.producer_args(), self.consumer_args(), self.buffer_size)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            f"[PIPELINE] {self.label}: {len(output)} chars in {elapsed_ms}ms "
            f"(track={'best' if self.track_id is None else self.track_id})"
        )
        return output
