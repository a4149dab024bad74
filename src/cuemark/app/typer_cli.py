from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cuemark.core.errors import DegenerateInput, InvalidRange, MalformedDocument
from cuemark.core.session import AnnotationSession
from cuemark.core.store import validate_range
from cuemark.core.subtitle import format_time, read_vtt, write_vtt
from cuemark.infra.config import build_app_config, normalize_log_level
from cuemark.infra.logging_utils import setup_logging
from cuemark.infra.peaks import read_peaks
from cuemark.infra.storage import ensure_directory, read_json, write_json

SUPPORTED_DETECT_FORMATS = {"vtt", "json"}

app = typer.Typer(
    name="cuemark",
    add_completion=False,
    help="Propose, sort and check WEBVTT cues for audio/video annotation.",
)


def _normalize_detect_format(value: str) -> str:
    fmt = value.strip().lower()
    if fmt not in SUPPORTED_DETECT_FORMATS:
        raise typer.BadParameter(
            f"Unsupported format '{value}'. Allowed: {sorted(SUPPORTED_DETECT_FORMATS)}",
            param_hint="--format",
        )
    return fmt


def _require_file(path: Path) -> None:
    if not path.exists() or not path.is_file():
        raise typer.BadParameter(f"Input not found: {path}")


def _fail(message: str, exc: Exception) -> NoReturn:
    typer.echo(f"[failed] {message}: {exc}")
    raise typer.Exit(code=2) from exc


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(
        None, "--log-level", help="CRITICAL|ERROR|WARNING|INFO|DEBUG (default: CUEMARK_LOG_LEVEL or WARNING)."
    ),
) -> None:
    if log_level is None:
        return
    try:
        level = normalize_log_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    setup_logging(level, force=True)


@app.command("detect")
def detect_command(
    input_path: Path = typer.Argument(
        ..., help="Audio file, or a JSON file with 'peaks' and 'duration'."
    ),
    output_path: Path | None = typer.Option(
        None, "--output-path", "-o", help="Output path (default: <input>.cues.<format>)."
    ),
    output_format: str = typer.Option("vtt", "--format", "-f", help="vtt|json"),
    threshold: float | None = typer.Option(
        None, "--threshold", help="Amplitude at or below which a peak is silent (default: 0.0015)."
    ),
    min_silence: float | None = typer.Option(
        None, "--min-silence", help="Shortest silence in seconds that splits cues (default: 0.25)."
    ),
    peaks_per_second: int | None = typer.Option(
        None, "--peaks-per-second", help="Peak buckets per second of audio (default: 100)."
    ),
) -> None:
    """Propose cues from the non-silent spans of an audio file."""
    _require_file(input_path)
    fmt = _normalize_detect_format(output_format)
    try:
        config = build_app_config(
            silence_threshold=threshold,
            min_silence_seconds=min_silence,
            peaks_per_second=peaks_per_second,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        peak_data = read_peaks(input_path, peaks_per_second=config.peaks_per_second)
    except (ValueError, RuntimeError) as exc:
        _fail(f"Could not read peaks from {input_path}", exc)

    session = AnnotationSession(config)
    try:
        cue_ids = session.detect(peak_data.peaks, peak_data.duration)
    except DegenerateInput as exc:
        session.close()
        _fail("Silence detection failed", exc)

    resolved_output_path = output_path or input_path.with_name(
        f"{input_path.stem}.cues.{fmt}"
    )
    ensure_directory(resolved_output_path.parent)
    if fmt == "json":
        write_json(
            resolved_output_path,
            {
                **session.snapshot(),
                "duration_seconds": peak_data.duration,
                "peaks": int(peak_data.peaks.shape[0]),
                "silence_threshold": config.silence_threshold,
                "min_silence_seconds": config.min_silence_seconds,
            },
        )
    else:
        write_vtt(session.store.list(), resolved_output_path)
    session.close()
    typer.echo(
        "[done] Silence detection complete.\n"
        f"- input: {input_path}\n"
        f"- output: {resolved_output_path}\n"
        f"- duration: {peak_data.duration:.3f}s\n"
        f"- peaks: {peak_data.peaks.shape[0]}\n"
        f"- cues: {len(cue_ids)}"
    )


@app.command("normalize")
def normalize_command(
    input_vtt: Path = typer.Argument(
        ..., help="Input WEBVTT file, or a JSON dump written by detect --format json."
    ),
    output_path: Path | None = typer.Option(
        None, "--output-path", "-o", help="Output path (default: <input>.sorted.vtt)."
    ),
    lenient: bool = typer.Option(
        False, "--lenient", help="Skip cues whose start is not before their end."
    ),
) -> None:
    """Re-emit a WEBVTT file with its cues in start order."""
    _require_file(input_vtt)
    session = AnnotationSession()
    try:
        if input_vtt.suffix.lower() == ".json":
            result = session.load_snapshot(read_json(input_vtt), strict=not lenient)
        else:
            result = session.import_text(input_vtt.read_text(encoding="utf-8"), strict=not lenient)
    except ValueError as exc:  # MalformedDocument, InvalidRange or bad JSON
        session.close()
        _fail(f"Could not import {input_vtt}", exc)

    resolved_output_path = output_path or input_vtt.with_name(f"{input_vtt.stem}.sorted.vtt")
    ensure_directory(resolved_output_path.parent)
    write_vtt(session.store.list(), resolved_output_path)
    session.close()
    typer.echo(
        f"[done] {result.message}\n"
        f"- input: {input_vtt}\n"
        f"- output: {resolved_output_path}"
    )


@app.command("check")
def check_command(
    input_vtt: Path = typer.Argument(..., help="Input WEBVTT file path."),
) -> None:
    """Parse a WEBVTT file and list its cues."""
    _require_file(input_vtt)
    try:
        records = read_vtt(input_vtt)
    except MalformedDocument as exc:
        _fail(f"Malformed document {input_vtt}", exc)

    table = Table(title=str(input_vtt))
    table.add_column("#", justify="right")
    table.add_column("start")
    table.add_column("end")
    table.add_column("text")
    table.add_column("status")
    problems = 0
    previous_start = 0.0
    for number, record in enumerate(records, start=1):
        status = "ok"
        try:
            validate_range(record.start, record.end)
        except InvalidRange:
            status = "[red]invalid range[/red]"
            problems += 1
        else:
            if record.start < previous_start:
                status = "[yellow]out of order[/yellow]"
            previous_start = record.start
        table.add_row(
            str(number),
            format_time(record.start),
            format_time(record.end),
            escape(record.text),
            status,
        )
    Console().print(table)
    typer.echo(f"- cues: {len(records)}\n- invalid: {problems}")
    if problems:
        raise typer.Exit(code=1)


def run() -> None:
    """Console-script entrypoint."""
    setup_logging()
    app()
