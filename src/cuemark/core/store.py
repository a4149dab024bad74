from __future__ import annotations

import bisect
import itertools
import math
import threading
from dataclasses import replace
from typing import Callable, Iterator

from cuemark.core.errors import InvalidRange, NotFound
from cuemark.infra.logging_utils import get_logger
from cuemark.schemas.cue import (
    CHANGE_INSERTED,
    CHANGE_REMOVED,
    CHANGE_UPDATED,
    Cue,
    CueChange,
)

log = get_logger(__name__)

CueChangeListener = Callable[[CueChange], None]


def validate_range(start: float, end: float) -> None:
    if not (math.isfinite(start) and math.isfinite(end)):
        raise InvalidRange(f"Cue bounds must be finite, got start={start} end={end}")
    if start < 0.0:
        raise InvalidRange(f"Cue start must be >= 0, got {start}")
    if start >= end:
        raise InvalidRange(f"Cue start must be before end, got start={start} end={end}")


class CueStore:
    """Cues kept in start order after every insert, update and remove.

    Cues with equal start keep their insertion order. Ids are ``cue-<n>`` with
    ``n`` drawn from a per-store counter, so a removed id is never handed out
    again. All public methods hold one re-entrant lock.
    """

    def __init__(self) -> None:
        self._cues: list[Cue] = []
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count(1)
        self._listeners: list[CueChangeListener] = []
        self._lock = threading.RLock()

    def _key(self, cue: Cue) -> tuple[float, int]:
        return (cue.start, self._sequence[cue.id])

    def _index_of(self, cue_id: str) -> int:
        if cue_id not in self._sequence:
            raise NotFound(f"Unknown cue id '{cue_id}'")
        for index, cue in enumerate(self._cues):
            if cue.id == cue_id:
                return index
        raise NotFound(f"Unknown cue id '{cue_id}'")

    def _emit(self, change: CueChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                log.exception("Cue change listener failed for %s %s", change.kind, change.cue_id)

    def subscribe(self, listener: CueChangeListener) -> Callable[[], None]:
        """Register a listener called with a CueChange after each mutation."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def insert(self, start: float, end: float, text: str = "") -> str:
        start = float(start)
        end = float(end)
        validate_range(start, end)
        with self._lock:
            sequence = next(self._counter)
            cue = Cue(id=f"cue-{sequence}", start=start, end=end, text=str(text))
            self._sequence[cue.id] = sequence
            index = bisect.bisect_right(self._cues, self._key(cue), key=self._key)
            self._cues.insert(index, cue)
        log.debug("Inserted %s [%.3f, %.3f] at %d", cue.id, start, end, index)
        self._emit(CueChange(kind=CHANGE_INSERTED, cue_id=cue.id, index=index))
        return cue.id

    def update(
        self,
        cue_id: str,
        *,
        start: float | None = None,
        end: float | None = None,
        text: str | None = None,
    ) -> Cue:
        with self._lock:
            index = self._index_of(cue_id)
            current = self._cues[index]
            new_start = current.start if start is None else float(start)
            new_end = current.end if end is None else float(end)
            validate_range(new_start, new_end)
            updated = replace(
                current,
                start=new_start,
                end=new_end,
                text=current.text if text is None else str(text),
            )
            self._cues[index] = updated
            new_index = self._reposition(index)
        log.debug("Updated %s [%.3f, %.3f] %d -> %d", cue_id, new_start, new_end, index, new_index)
        self._emit(CueChange(kind=CHANGE_UPDATED, cue_id=cue_id, index=new_index))
        return updated

    def remove(self, cue_id: str) -> Cue:
        with self._lock:
            index = self._index_of(cue_id)
            removed = self._cues.pop(index)
            del self._sequence[cue_id]
        log.debug("Removed %s from %d", cue_id, index)
        self._emit(CueChange(kind=CHANGE_REMOVED, cue_id=cue_id, index=index))
        return removed

    def clear(self) -> None:
        with self._lock:
            removed = list(self._cues)
            self._cues.clear()
            self._sequence.clear()
        for index in range(len(removed) - 1, -1, -1):
            self._emit(CueChange(kind=CHANGE_REMOVED, cue_id=removed[index].id, index=index))

    def reposition(self, cue_id: str) -> int:
        """Move one out-of-place cue to its sorted position and return its index.

        Precondition: every cue except ``cue_id`` is already in order. Only the
        neighbours between the old and new position are inspected.
        """
        with self._lock:
            return self._reposition(self._index_of(cue_id))

    def _reposition(self, index: int) -> int:
        cues = self._cues
        cue = cues[index]
        key = self._key(cue)
        target = index
        while target > 0 and self._key(cues[target - 1]) > key:
            target -= 1
        if target == index:
            # Successors that now start earlier move in front of the cue.
            while target + 1 < len(cues) and self._key(cues[target + 1]) < key:
                target += 1
        if target != index:
            cues.pop(index)
            cues.insert(target, cue)
        return target

    def get(self, cue_id: str) -> Cue:
        with self._lock:
            return self._cues[self._index_of(cue_id)]

    def index_of(self, cue_id: str) -> int:
        with self._lock:
            return self._index_of(cue_id)

    def list(self) -> list[Cue]:
        with self._lock:
            return list(self._cues)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cues)

    def __iter__(self) -> Iterator[Cue]:
        return iter(self.list())

    def __contains__(self, cue_id: object) -> bool:
        with self._lock:
            return cue_id in self._sequence
