import json
import sys

import pytest

from dub_sync.cli import sync_cli
from dub_sync.core import marker_pipeline
from dub_sync.core.track_selector import TrackInfo

SOURCE_TEXT = "\n".join(f"silence_start: {t}" for t in [2.0, 6.5, 11.0, 17.25, 23.0, 31.5]) + "\n"
LANG_TEXT = "\n".join(f"silence_start: {t + 0.5}" for t in [2.0, 6.5, 11.0, 17.25, 23.0, 31.5]) + "\n"


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(sync_cli, "setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def media(tmp_path, monkeypatch):
    source = tmp_path / "episode01.mkv"
    candidate = tmp_path / "episode01.ita.mkv"
    source.write_bytes(b"")
    candidate.write_bytes(b"")

    monkeypatch.setattr(sync_cli, "find_ffmpeg", lambda explicit=None: "ffmpeg")
    monkeypatch.setattr(sync_cli, "find_ffprobe", lambda explicit=None: "ffprobe")
    monkeypatch.setattr(
        sync_cli,
        "probe_tracks",
        lambda path, ffprobe="ffprobe": [
            TrackInfo(id=0, type="video"),
            TrackInfo(id=1, type="audio", language="jpn"),
        ],
    )
    return source, candidate


def _fake_runner(outputs):
    def runner(producer_cmd, consumer_cmd, buffer_size):
        path = producer_cmd[producer_cmd.index("-i") + 1]
        return outputs.get(path, "")
    return runner


@pytest.mark.parametrize("delay,expected", [(120, "+120ms"), (-80, "-80ms"), (0, "0ms")])
def test_format_delay(delay, expected):
    assert sync_cli.format_delay(delay) == expected


def test_json_output_with_manual_delay(media, monkeypatch, capsys):
    source, candidate = media
    monkeypatch.setattr(
        marker_pipeline,
        "run_piped_process",
        _fake_runner({str(source): SOURCE_TEXT, str(candidate): LANG_TEXT}),
    )

    code = sync_cli.main([str(source), str(candidate), "-l", "ita", "--audio-delay", "40", "--json"])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["offset_ms"] == -500
    assert data["effective_delay_ms"] == -460
    assert data["reference_track_id"] is None


def test_failure_falls_back_to_manual_delay(media, monkeypatch, capsys):
    source, candidate = media
    monkeypatch.setattr(marker_pipeline, "run_piped_process", _fake_runner({}))

    code = sync_cli.main([str(source), str(candidate), "-l", "ita", "-ad", "25"])

    assert code == 2
    out = capsys.readouterr().out
    assert "Unable to compute offset" in out
    assert "+25ms" in out


def test_missing_source_file(tmp_path, capsys):
    code = sync_cli.main([str(tmp_path / "absent.mkv"), str(tmp_path / "absent.ita.mkv"), "-l", "ita"])
    assert code == 1
    assert "Source file not found" in capsys.readouterr().out


def test_analysis_time_is_validated(media, capsys):
    source, candidate = media
    code = sync_cli.main([str(source), str(candidate), "-l", "ita", "--analysis-time", "0"])
    assert code == 1


def test_json_mode_logs_to_stderr(media, monkeypatch, capsys):
    source, candidate = media
    streams = []
    monkeypatch.setattr(sync_cli, "setup_logging", lambda *args, **kwargs: streams.append(kwargs.get("stream")))
    monkeypatch.setattr(
        marker_pipeline,
        "run_piped_process",
        _fake_runner({str(source): SOURCE_TEXT, str(candidate): LANG_TEXT}),
    )

    sync_cli.main([str(source), str(candidate), "-l", "ita", "--json"])
    json.loads(capsys.readouterr().out)
    assert streams == [sys.stderr]
