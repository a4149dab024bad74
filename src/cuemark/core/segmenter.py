from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from cuemark.core.errors import DegenerateInput
from cuemark.infra.config import (
    DEFAULT_MIN_SILENCE_SECONDS,
    DEFAULT_SILENCE_THRESHOLD,
    AppConfig,
)
from cuemark.infra.logging_utils import get_logger
from cuemark.schemas.segment import Interval

log = get_logger(__name__)


@dataclass(frozen=True)
class SegmenterOptions:
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD
    min_silence_seconds: float = DEFAULT_MIN_SILENCE_SECONDS

    def __post_init__(self) -> None:
        if self.silence_threshold < 0.0:
            raise ValueError(
                f"silence_threshold must be >= 0, got {self.silence_threshold}"
            )
        if self.min_silence_seconds <= 0.0:
            raise ValueError(
                f"min_silence_seconds must be > 0, got {self.min_silence_seconds}"
            )


def options_from_config(config: AppConfig) -> SegmenterOptions:
    return SegmenterOptions(
        silence_threshold=config.silence_threshold,
        min_silence_seconds=config.min_silence_seconds,
    )


def _round_tenth(seconds: float) -> float:
    """Round half-up to 0.1 s."""
    return math.floor(seconds * 10 + 0.5) / 10


def _silence_clusters(values: np.ndarray, threshold: float) -> list[np.ndarray]:
    silent = np.flatnonzero(np.abs(values) <= threshold)
    if silent.size == 0:
        return []
    breaks = np.flatnonzero(np.diff(silent) != 1) + 1
    return np.split(silent, breaks)


def segment(
    peaks: Sequence[float] | np.ndarray,
    duration: float,
    options: SegmenterOptions | None = None,
) -> list[Interval]:
    """Split a peak array into the non-silent spans between silence clusters.

    A silence cluster is a maximal run of consecutive peaks whose magnitude is
    at or below ``options.silence_threshold``. Clusters shorter than
    ``options.min_silence_seconds`` are noise and do not split anything.

    Each kept cluster opens a span at its *last* index which runs to the
    *first* index of the next kept cluster (or the final peak). When the
    audio does not begin with silence, a leading span runs from index 0 to the
    last index of the first kept cluster. Spans shorter than the minimum
    silence length are dropped, and indices are converted to seconds rounded
    half-up to 0.1 s.

    Raises:
        DegenerateInput: ``peaks`` is empty or ``duration`` is not positive.
    """
    options = options or SegmenterOptions()
    values = np.asarray(peaks, dtype=np.float64).reshape(-1)
    length = int(values.shape[0])
    if length == 0:
        raise DegenerateInput("Cannot segment an empty peak array.")
    if not math.isfinite(duration) or duration <= 0.0:
        raise DegenerateInput(f"duration must be > 0, got {duration}")

    seconds_per_sample = duration / length
    min_silence_samples = options.min_silence_seconds / seconds_per_sample

    clusters = [
        cluster
        for cluster in _silence_clusters(values, options.silence_threshold)
        if cluster.shape[0] >= min_silence_samples
    ]
    if not clusters:
        log.debug("No silence cluster of %.3f samples or more found.", min_silence_samples)
        return []

    spans: list[tuple[int, int]] = []
    for index, cluster in enumerate(clusters):
        if index + 1 < len(clusters):
            end = int(clusters[index + 1][0])
        else:
            end = length - 1
        spans.append((int(cluster[-1]), end))

    first = clusters[0]
    if int(first[0]) != 0:
        spans.insert(0, (0, int(first[-1])))

    intervals: list[Interval] = []
    for start_index, end_index in spans:
        if end_index - start_index < min_silence_samples:
            continue
        start = _round_tenth(start_index * seconds_per_sample)
        end = _round_tenth(end_index * seconds_per_sample)
        if end <= start:
            # Collapsed by the 0.1 s rounding; not a valid interval.
            continue
        intervals.append(Interval(start=start, end=end))

    log.debug(
        "Segmented %d peaks over %.3fs: %d silence clusters, %d intervals.",
        length,
        duration,
        len(clusters),
        len(intervals),
    )
    return intervals


class SilenceSegmenter:
    """Holds segmentation options for repeated ``segment`` calls."""

    def __init__(self, options: SegmenterOptions | None = None) -> None:
        self.options = options or SegmenterOptions()

    @classmethod
    def from_config(cls, config: AppConfig) -> "SilenceSegmenter":
        return cls(options_from_config(config))

    def segment(self, peaks: Sequence[float] | np.ndarray, duration: float) -> list[Interval]:
        return segment(peaks, duration, self.options)
