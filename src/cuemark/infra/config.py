from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SILENCE_THRESHOLD = 0.0015
DEFAULT_MIN_SILENCE_SECONDS = 0.25
DEFAULT_PREVIEW_DEBOUNCE_SECONDS = 0.5
DEFAULT_PEAKS_PER_SECOND = 100
DEFAULT_LOG_LEVEL = "WARNING"
SUPPORTED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class AppConfig:
    silence_threshold: float
    min_silence_seconds: float
    preview_debounce_seconds: float
    peaks_per_second: int
    log_level: str


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def _to_float(value: float | str, field: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field} must be a number, got '{value}'") from exc


def normalize_silence_threshold(value: float | str) -> float:
    threshold = _to_float(value, "silence_threshold")
    if threshold < 0.0 or threshold > 1.0:
        raise ValueError(
            f"silence_threshold must be between 0.0 and 1.0, got {threshold}"
        )
    return threshold


def normalize_min_silence_seconds(value: float | str) -> float:
    seconds = _to_float(value, "min_silence_seconds")
    if seconds <= 0.0:
        raise ValueError(f"min_silence_seconds must be > 0, got {seconds}")
    return seconds


def normalize_preview_debounce(value: float | str) -> float:
    seconds = _to_float(value, "preview_debounce_seconds")
    if seconds < 0.0:
        raise ValueError(f"preview_debounce_seconds must be >= 0, got {seconds}")
    return seconds


def normalize_peaks_per_second(value: int | str) -> int:
    try:
        rate = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"peaks_per_second must be an integer, got '{value}'") from exc
    if rate <= 0:
        raise ValueError(f"peaks_per_second must be > 0, got {rate}")
    return rate


def normalize_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in SUPPORTED_LOG_LEVELS:
        raise ValueError(
            f"Unsupported log level '{value}'. Allowed: {sorted(SUPPORTED_LOG_LEVELS)}"
        )
    return level


def build_app_config(
    *,
    silence_threshold: float | None = None,
    min_silence_seconds: float | None = None,
    preview_debounce_seconds: float | None = None,
    peaks_per_second: int | None = None,
    log_level: str | None = None,
) -> AppConfig:
    """Resolve each setting from the explicit argument, then the environment, then the default."""
    if silence_threshold is None:
        silence_threshold = _env_value("CUEMARK_SILENCE_THRESHOLD") or DEFAULT_SILENCE_THRESHOLD
    if min_silence_seconds is None:
        min_silence_seconds = (
            _env_value("CUEMARK_MIN_SILENCE_SECONDS") or DEFAULT_MIN_SILENCE_SECONDS
        )
    if preview_debounce_seconds is None:
        preview_debounce_seconds = (
            _env_value("CUEMARK_PREVIEW_DEBOUNCE") or DEFAULT_PREVIEW_DEBOUNCE_SECONDS
        )
    if peaks_per_second is None:
        peaks_per_second = _env_value("CUEMARK_PEAKS_PER_SECOND") or DEFAULT_PEAKS_PER_SECOND
    if log_level is None:
        log_level = _env_value("CUEMARK_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    return AppConfig(
        silence_threshold=normalize_silence_threshold(silence_threshold),
        min_silence_seconds=normalize_min_silence_seconds(min_silence_seconds),
        preview_debounce_seconds=normalize_preview_debounce(preview_debounce_seconds),
        peaks_per_second=normalize_peaks_per_second(peaks_per_second),
        log_level=normalize_log_level(log_level),
    )
