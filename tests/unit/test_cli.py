from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from cuemark.app.typer_cli import app

runner = CliRunner()


def _write_peaks(path: Path) -> None:
    path.write_text(
        json.dumps({"peaks": [1, 1, 0, 0, 0, 0, 0, 1, 1, 1], "duration": 10.0}),
        encoding="utf-8",
    )


def test_detect_writes_vtt_from_peaks_json(tmp_path: Path) -> None:
    peaks_path = tmp_path / "clip.json"
    _write_peaks(peaks_path)
    result = runner.invoke(app, ["detect", str(peaks_path), "--min-silence", "2"])
    assert result.exit_code == 0, result.output
    output_path = tmp_path / "clip.cues.vtt"
    assert output_path.read_text(encoding="utf-8") == (
        "WEBVTT\n\n00:00.000 --> 00:06.000\n\n\n00:06.000 --> 00:09.000\n"
    )
    assert "- cues: 2" in result.output


def test_detect_writes_json_dump(tmp_path: Path) -> None:
    peaks_path = tmp_path / "clip.json"
    _write_peaks(peaks_path)
    output_path = tmp_path / "out" / "cues.json"
    result = runner.invoke(
        app,
        ["detect", str(peaks_path), "--min-silence", "2", "--format", "json", "-o", str(output_path)],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert [(cue["start"], cue["end"]) for cue in payload["cues"]] == [(0.0, 6.0), (6.0, 9.0)]
    assert payload["duration_seconds"] == 10.0
    assert payload["min_silence_seconds"] == 2.0


def test_normalize_reads_detect_json_dump(tmp_path: Path) -> None:
    peaks_path = tmp_path / "clip.json"
    _write_peaks(peaks_path)
    dump_path = tmp_path / "clip.cues.json"
    detected = runner.invoke(
        app, ["detect", str(peaks_path), "--min-silence", "2", "--format", "json"]
    )
    assert detected.exit_code == 0, detected.output

    result = runner.invoke(app, ["normalize", str(dump_path)])
    assert result.exit_code == 0, result.output
    assert "Imported 2 cues." in result.output
    assert (tmp_path / "clip.cues.sorted.vtt").read_text(encoding="utf-8") == (
        "WEBVTT\n\n00:00.000 --> 00:06.000\n\n\n00:06.000 --> 00:09.000\n"
    )


def test_normalize_rejects_json_without_cues(tmp_path: Path) -> None:
    dump_path = tmp_path / "broken.json"
    dump_path.write_text(json.dumps({"regions": []}), encoding="utf-8")
    result = runner.invoke(app, ["normalize", str(dump_path)])
    assert result.exit_code == 2
    assert "[failed]" in result.output


def test_detect_rejects_empty_peaks(tmp_path: Path) -> None:
    peaks_path = tmp_path / "empty.json"
    peaks_path.write_text(json.dumps({"peaks": [], "duration": 1.0}), encoding="utf-8")
    result = runner.invoke(app, ["detect", str(peaks_path)])
    assert result.exit_code == 2
    assert "[failed]" in result.output


def test_detect_rejects_unknown_format(tmp_path: Path) -> None:
    peaks_path = tmp_path / "clip.json"
    _write_peaks(peaks_path)
    result = runner.invoke(app, ["detect", str(peaks_path), "--format", "srt"])
    assert result.exit_code != 0


def test_normalize_sorts_cues(tmp_path: Path) -> None:
    input_path = tmp_path / "talk.vtt"
    input_path.write_text(
        "WEBVTT\n\n00:05.000 --> 00:06.000\nlater\n\n00:01.000 --> 00:02.000\nearlier",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["normalize", str(input_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "talk.sorted.vtt").read_text(encoding="utf-8") == (
        "WEBVTT\n\n00:01.000 --> 00:02.000\nearlier\n\n00:05.000 --> 00:06.000\nlater"
    )


def test_normalize_strict_and_lenient(tmp_path: Path) -> None:
    input_path = tmp_path / "talk.vtt"
    input_path.write_text(
        "WEBVTT\n\n00:04.000 --> 00:03.000\nbackwards\n\n00:01.000 --> 00:02.000\nok",
        encoding="utf-8",
    )
    strict = runner.invoke(app, ["normalize", str(input_path)])
    assert strict.exit_code == 2
    lenient = runner.invoke(app, ["normalize", str(input_path), "--lenient"])
    assert lenient.exit_code == 0, lenient.output
    assert "Skipped 1" in lenient.output


def test_check_reports_malformed_document(tmp_path: Path) -> None:
    input_path = tmp_path / "broken.vtt"
    input_path.write_text("00:01.000 --> 00:02.000\nmissing header", encoding="utf-8")
    result = runner.invoke(app, ["check", str(input_path)])
    assert result.exit_code == 2
    assert "signature" in result.output


def test_check_lists_cues(tmp_path: Path) -> None:
    input_path = tmp_path / "ok.vtt"
    input_path.write_text(
        "WEBVTT\n\n00:01.000 --> 00:02.000\n[music]\n\n00:03.000 --> 00:04.000\nhi",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["check", str(input_path)])
    assert result.exit_code == 0, result.output
    assert "[music]" in result.output
    assert "- cues: 2" in result.output


def test_unknown_log_level_is_rejected(tmp_path: Path) -> None:
    input_path = tmp_path / "ok.vtt"
    input_path.write_text("WEBVTT", encoding="utf-8")
    result = runner.invoke(app, ["--log-level", "loud", "check", str(input_path)])
    assert result.exit_code == 2
