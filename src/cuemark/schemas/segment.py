from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Interval:
    start: float
    end: float
