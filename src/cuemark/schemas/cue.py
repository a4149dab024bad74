from __future__ import annotations

from dataclasses import dataclass

CHANGE_INSERTED = "inserted"
CHANGE_UPDATED = "updated"
CHANGE_REMOVED = "removed"


@dataclass(frozen=True)
class Cue:
    id: str
    start: float
    end: float
    text: str = ""


@dataclass(frozen=True)
class CueRecord:
    start: float
    end: float
    text: str = ""


@dataclass(frozen=True)
class CueChange:
    kind: str
    cue_id: str
    index: int
