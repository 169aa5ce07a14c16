import pytest

from dub_sync.core import auto_sync, marker_pipeline
from dub_sync.core.auto_sync import (
    NO_RESULT,
    AutoSyncResult,
    AutoSyncService,
    effective_delay,
    estimate_offset,
)
from dub_sync.core.config import Settings
from dub_sync.core.track_selector import TrackInfo, is_language_in_list

REFERENCE = [3.100, 7.400, 12.000, 15.550, 21.300, 26.800, 33.050, 38.600, 44.200, 51.700]
TRACKS = [
    TrackInfo(id=0, type="video"),
    TrackInfo(id=1, type="audio", language="ita"),
    TrackInfo(id=2, type="audio", language="eng"),
]


def _silence_text(markers):
    """Fake consumer output: alternate silence_start / silence_end lines."""
    lines = []
    for i, t in enumerate(markers):
        kind = "silence_start" if i % 2 == 0 else "silence_end"
        lines.append(f"[silencedetect @ 0x55d2] {kind}: {t:.3f}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace the process runner; outputs are keyed by input path."""
    outputs = {}
    calls = []

    def fake_runner(producer_cmd, consumer_cmd, buffer_size):
        path = producer_cmd[producer_cmd.index("-i") + 1]
        calls.append(producer_cmd)
        return outputs.get(path, "")

    monkeypatch.setattr(marker_pipeline, "run_piped_process", fake_runner)
    return outputs, calls


@pytest.fixture
def service():
    return AutoSyncService(ffmpeg_path="ffmpeg", settings=Settings())


def test_end_to_end_offset(fake_ffmpeg, service):
    outputs, calls = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = _silence_text([t - 1.234 for t in REFERENCE])

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"], is_language_in_list, 300)

    assert result.offset_ms == 1234
    assert result.succeeded
    assert result.search.coarse.score >= 8
    assert not result.low_confidence
    assert result.reference_track_id == 2
    assert result.source_markers == result.candidate_markers == 10
    assert result.failure is None

    source_cmd = next(c for c in calls if "source.mkv" in c)
    lang_cmd = next(c for c in calls if "lang.mkv" in c)
    assert source_cmd[source_cmd.index("-map") + 1] == "0:2"
    assert "-vn" in lang_cmd
    assert source_cmd[source_cmd.index("-t") + 1] == lang_cmd[lang_cmd.index("-t") + 1] == "300"


def test_phase_summary_lines(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = _silence_text(REFERENCE)

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    summary = result.phase_summary()
    assert len(summary) == 3
    assert summary[0].startswith("Coarse result: ")
    assert summary[2] == f"Ultra-fine result: {result.offset_ms}ms (score: {round(result.search.ultra_fine.score, 2)})"
    assert result.to_dict()["phases"]["ultra-fine"]["offset_ms"] == result.offset_ms


def test_empty_pipeline_output_returns_no_result(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.offset_ms is NO_RESULT
    assert result.failure == "EXTRACTION_FAILED"
    assert result.search is None


def test_sparse_markers_skip_the_search(fake_ffmpeg, service, monkeypatch):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = _silence_text(REFERENCE[:4])

    def must_not_run(*args, **kwargs):
        raise AssertionError("search must not run with too few markers")

    monkeypatch.setattr(auto_sync, "find_best_offset", must_not_run)
    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.offset_ms is NO_RESULT
    assert result.failure == "INSUFFICIENT_MARKERS"
    assert result.candidate_markers == 4


def test_unparseable_output_returns_no_result(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = "pipe error: [Errno 2] No such file or directory"
    outputs["lang.mkv"] = "pipe error: [Errno 2] No such file or directory"

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.offset_ms is NO_RESULT
    assert result.failure == "INSUFFICIENT_MARKERS"


def test_low_confidence_is_reported_without_aborting(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text([1.0, 2.0, 3.0, 4.0, 5.0])
    outputs["lang.mkv"] = _silence_text([200.0, 210.0, 220.0, 230.0, 240.0])

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.succeeded
    assert result.search.coarse.score < 3
    assert result.low_confidence


def test_all_tracks_in_target_language(fake_ffmpeg, service):
    outputs, calls = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = _silence_text(REFERENCE)
    tracks = [TrackInfo(id=1, type="audio", language="ita"), TrackInfo(id=2, type="audio", language="ita")]

    result = service.compute("source.mkv", "lang.mkv", tracks, ["ita"])
    assert result.reference_track_id is None
    assert result.reference_low_confidence
    assert result.low_confidence
    assert result.offset_ms == 0
    assert all("-vn" in c for c in calls)


def test_default_window_comes_from_settings(fake_ffmpeg):
    outputs, calls = fake_ffmpeg
    service = AutoSyncService(ffmpeg_path="ffmpeg", settings=Settings(ANALYSIS_WINDOW_SECONDS=90))
    service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert all(c[c.index("-t") + 1] == "90" for c in calls)


def test_estimate_offset_returns_plain_int(fake_ffmpeg):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = _silence_text([t + 0.75 for t in REFERENCE])

    offset = estimate_offset("source.mkv", "lang.mkv", TRACKS, ["ita"], is_language_in_list, 300, ffmpeg_path="ffmpeg")
    assert offset == -750


def test_effective_delay():
    assert effective_delay(AutoSyncResult(offset_ms=1234), 40) == 1274
    assert effective_delay(AutoSyncResult(offset_ms=NO_RESULT), 40) == 40
    assert effective_delay(AutoSyncResult(offset_ms=NO_RESULT)) == 0


def test_malformed_marker_values_return_no_result(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE)
    outputs["lang.mkv"] = "silence_start: .\nsilence_end: ..\n" * 10

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.offset_ms is NO_RESULT
    assert result.failure == "INSUFFICIENT_MARKERS"
    assert result.candidate_markers == 0


def test_stray_malformed_marker_does_not_break_the_estimate(fake_ffmpeg, service):
    outputs, _ = fake_ffmpeg
    outputs["source.mkv"] = _silence_text(REFERENCE) + "silence_end: .\n"
    outputs["lang.mkv"] = _silence_text(REFERENCE)

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"])
    assert result.offset_ms == 0
    assert result.source_markers == 10


@pytest.mark.parametrize("window", [0, -5, 3601])
def test_out_of_range_window_returns_no_result(fake_ffmpeg, service, window):
    _, calls = fake_ffmpeg

    result = service.compute("source.mkv", "lang.mkv", TRACKS, ["ita"], is_language_in_list, window)
    assert result.offset_ms is NO_RESULT
    assert result.failure == "INVALID_ANALYSIS_WINDOW"
    assert calls == []
