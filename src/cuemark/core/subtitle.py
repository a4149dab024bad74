from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Protocol

from cuemark.core.errors import MalformedDocument
from cuemark.schemas.cue import CueRecord

SIGNATURE = "WEBVTT"
SKIPPED_BLOCK_KINDS = {"NOTE", "STYLE", "REGION"}

_TIMING_PATTERN = re.compile(r"^\s*([0-9:.]+)\s*-->\s*([0-9:.]+)(?:\s+.*)?$")
_TIME_PATTERN = re.compile(r"^(?:(\d+):)?(\d+):(\d+(?:\.\d+)?)$")


class TimedText(Protocol):
    start: float
    end: float
    text: str


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS.mmm. There is no hour field; minutes grow past 59."""
    millis = max(0, int(round(seconds * 1000)))
    minutes = millis // 60_000
    secs = (millis % 60_000) // 1_000
    ms = millis % 1_000
    return f"{minutes:02d}:{secs:02d}.{ms:03d}"


def parse_time(value: str, *, line: int | None = None) -> float:
    """Parse MM:SS.mmm or HH:MM:SS.mmm into seconds."""
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise MalformedDocument(f"Invalid timestamp '{value}'", line=line)
    hours_raw, minutes_raw, seconds_raw = match.groups()
    hours = int(hours_raw) if hours_raw is not None else 0
    return hours * 3600 + int(minutes_raw) * 60 + float(seconds_raw)


def _format_block(cue: TimedText) -> str:
    return f"{format_time(cue.start)} --> {format_time(cue.end)}\n{cue.text}"


def encode(cues: Iterable[TimedText]) -> str:
    """Render cues (already in start order) as WEBVTT text.

    Blocks are separated by one blank line; no trailing newline is added.
    """
    return "\n\n".join([SIGNATURE, *(_format_block(cue) for cue in cues)])


def _has_signature(first_line: str) -> bool:
    if not first_line.startswith(SIGNATURE):
        return False
    rest = first_line[len(SIGNATURE):]
    return not rest or rest[0] in " \t"


def _split_blocks(lines: list[str]) -> list[list[tuple[int, str]]]:
    blocks: list[list[tuple[int, str]]] = []
    current: list[tuple[int, str]] = []
    in_header = True
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            if current:
                blocks.append(current)
                current = []
            in_header = False
            continue
        if in_header:
            if number == 1 or "-->" not in line:
                continue
            # A timing line ends the header without a blank line.
            in_header = False
        current.append((number, line))
    if current:
        blocks.append(current)
    return blocks


def _parse_timing(number: int, line: str) -> tuple[float, float]:
    match = _TIMING_PATTERN.match(line)
    if not match:
        raise MalformedDocument(
            f"Expected '<time> --> <time>', got '{line.strip()}'", line=number
        )
    return parse_time(match.group(1), line=number), parse_time(match.group(2), line=number)


def decode(text: str) -> list[CueRecord]:
    """Parse WEBVTT text into records in file order.

    Order is not validated; feed the records through ``CueStore.insert`` to
    get them sorted. Any unparsable timing line fails the whole document.
    """
    content = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    lines = content.split("\n")
    if not _has_signature(lines[0]):
        raise MalformedDocument(f"Missing {SIGNATURE} signature", line=1)

    records: list[CueRecord] = []
    for block in _split_blocks(lines):
        first = block[0][1]
        if "-->" not in first and first.split(maxsplit=1)[0] in SKIPPED_BLOCK_KINDS:
            continue
        if "-->" in first:
            timing, body = block[0], block[1:]
        elif len(block) > 1 and "-->" in block[1][1]:
            # Leading cue identifier.
            timing, body = block[1], block[2:]
        else:
            timing, body = block[0], block[1:]
        start, end = _parse_timing(*timing)
        records.append(
            CueRecord(start=start, end=end, text="\n".join(line for _, line in body))
        )
    return records


def read_vtt(input_path: Path) -> list[CueRecord]:
    return decode(input_path.read_text(encoding="utf-8"))


def write_vtt(cues: Iterable[TimedText], output_path: Path) -> None:
    """Write cues to a WEBVTT file."""
    output_path.write_text(encode(cues), encoding="utf-8")
