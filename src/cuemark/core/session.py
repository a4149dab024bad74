from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import numpy as np

from cuemark.core.debounce import Debouncer
from cuemark.core.errors import InvalidRange, MalformedDocument
from cuemark.core.segmenter import SilenceSegmenter
from cuemark.core.store import CueStore, validate_range
from cuemark.core.subtitle import decode, encode
from cuemark.infra.config import AppConfig, build_app_config
from cuemark.infra.logging_utils import get_logger
from cuemark.schemas.cue import CueChange, CueRecord

log = get_logger(__name__)

PreviewCallback = Callable[[str], None]


@dataclass(frozen=True)
class ImportResult:
    cue_ids: list[str]
    skipped: int
    message: str


class AnnotationSession:
    """One editing session: a cue store, a segmenter and a debounced preview.

    Store mutations schedule a preview encode; a burst of edits inside the
    debounce window produces a single encode once the burst settles.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        on_preview: PreviewCallback | None = None,
    ) -> None:
        self.config = config or build_app_config()
        self.store = CueStore()
        self.segmenter = SilenceSegmenter.from_config(self.config)
        self.preview: str = encode([])
        self._on_preview = on_preview
        self._preview_debouncer = Debouncer(
            self._refresh_preview, self.config.preview_debounce_seconds
        )
        self._unsubscribe = self.store.subscribe(self._on_change)

    def _on_change(self, change: CueChange) -> None:
        self._preview_debouncer()

    def _refresh_preview(self) -> None:
        text = self.export_text()
        self.preview = text
        if self._on_preview is not None:
            self._on_preview(text)

    def detect(self, peaks: Sequence[float] | np.ndarray, duration: float) -> list[str]:
        """Propose cues from non-silent spans and add them to the store."""
        intervals = self.segmenter.segment(peaks, duration)
        cue_ids = [self.store.insert(interval.start, interval.end) for interval in intervals]
        log.info("Detected %d cues over %.3fs of audio.", len(cue_ids), duration)
        return cue_ids

    def import_text(self, text: str, *, strict: bool = True) -> ImportResult:
        """Decode subtitle text and insert its cues.

        A malformed document always raises before anything is inserted. In
        strict mode a record with an invalid range raises InvalidRange and the
        store is left untouched; otherwise such records are skipped.
        """
        return self._insert_records(decode(text), strict=strict)

    def load_snapshot(self, payload: Mapping[str, Any], *, strict: bool = True) -> ImportResult:
        """Reinsert cues from a ``snapshot()`` dump. Ids are reassigned by the store."""
        entries = payload.get("cues") if isinstance(payload, Mapping) else None
        if not isinstance(entries, list):
            raise MalformedDocument("Snapshot has no 'cues' list")
        records: list[CueRecord] = []
        for number, entry in enumerate(entries, start=1):
            try:
                records.append(
                    CueRecord(
                        start=float(entry["start"]),
                        end=float(entry["end"]),
                        text=str(entry.get("text", "")),
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise MalformedDocument(f"Snapshot cue {number} is invalid: {exc!r}") from exc
        return self._insert_records(records, strict=strict)

    def _insert_records(self, records: Sequence[CueRecord], *, strict: bool) -> ImportResult:
        valid: list[CueRecord] = []
        skipped = 0
        for number, record in enumerate(records, start=1):
            try:
                validate_range(record.start, record.end)
            except InvalidRange as exc:
                if strict:
                    raise InvalidRange(f"cue {number}: {exc}") from exc
                log.warning("Skipping cue %d: %s", number, exc)
                skipped += 1
                continue
            valid.append(record)
        cue_ids = [self.store.insert(record.start, record.end, record.text) for record in valid]
        message = f"Imported {len(cue_ids)} cues."
        if skipped:
            message += f" Skipped {skipped} cues with invalid ranges."
        log.info(message)
        return ImportResult(cue_ids=cue_ids, skipped=skipped, message=message)

    def export_text(self) -> str:
        return encode(self.store.list())

    def flush_preview(self) -> bool:
        return self._preview_debouncer.flush()

    def snapshot(self) -> dict[str, Any]:
        return {
            "cues": [
                {"id": cue.id, "start": cue.start, "end": cue.end, "text": cue.text}
                for cue in self.store.list()
            ],
        }

    def close(self) -> None:
        """Stop listening to the store and drop any pending preview."""
        self._unsubscribe()
        self._preview_debouncer.cancel()
