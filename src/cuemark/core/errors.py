from __future__ import annotations


class CuemarkError(Exception):
    """Base error for cue editing operations."""


class InvalidRange(CuemarkError, ValueError):
    """Raised when a cue or interval does not satisfy 0 <= start < end."""


class NotFound(CuemarkError, LookupError):
    """Raised when an operation references an unknown cue id."""


class MalformedDocument(CuemarkError, ValueError):
    """Raised when subtitle text lacks the signature or has a bad timing line."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class DegenerateInput(CuemarkError, ValueError):
    """Raised when the segmenter receives no peaks or a non-positive duration."""
