from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from cuemark.infra.storage import read_json


@dataclass(frozen=True)
class PeakData:
    peaks: np.ndarray
    duration: float


def _read_audio(audio_path: Path) -> tuple[np.ndarray, int]:
    audio, sr = sf.read(str(audio_path), dtype="float32", always_2d=False)
    if isinstance(audio, np.ndarray) and audio.ndim == 2:
        audio = audio.mean(axis=1).astype(np.float32)
    elif not isinstance(audio, np.ndarray):
        audio = np.asarray(audio, dtype=np.float32)
    return audio.astype(np.float32, copy=False), int(sr)


def compute_peaks(samples: np.ndarray, sample_rate: int, peaks_per_second: int) -> np.ndarray:
    """Max absolute amplitude of each fixed-size bucket of samples."""
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be > 0, got {sample_rate}")
    values = np.abs(np.asarray(samples, dtype=np.float32).reshape(-1))
    if values.size == 0:
        return values
    bucket = max(1, int(round(sample_rate / peaks_per_second)))
    count = math.ceil(values.size / bucket)
    padded = np.pad(values, (0, count * bucket - values.size), mode="constant")
    return padded.reshape(count, bucket).max(axis=1)


def _peaks_from_json(input_path: Path) -> PeakData:
    payload = read_json(input_path)
    if not isinstance(payload, dict) or "peaks" not in payload or "duration" not in payload:
        raise ValueError(
            f"Peaks JSON must be an object with 'peaks' and 'duration': {input_path}"
        )
    peaks = np.asarray(payload["peaks"], dtype=np.float64).reshape(-1)
    return PeakData(peaks=peaks, duration=float(payload["duration"]))


def read_peaks(input_path: Path, *, peaks_per_second: int) -> PeakData:
    """Load peaks from a ``{"peaks", "duration"}`` JSON file or any audio soundfile can read."""
    if input_path.suffix.lower() == ".json":
        return _peaks_from_json(input_path)
    audio, sr = _read_audio(input_path)
    return PeakData(
        peaks=compute_peaks(audio, sr, peaks_per_second),
        duration=audio.shape[0] / sr,
    )
