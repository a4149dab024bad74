from __future__ import annotations

import threading
from typing import Any, Callable

from cuemark.infra.logging_utils import get_logger

log = get_logger(__name__)


class Debouncer:
    """Trailing-edge debounce around ``func``.

    Every call re-arms a timer; ``func`` runs once, with the arguments of the
    last call, after ``wait_seconds`` pass without another call. The timer
    runs ``func`` on its own thread.
    """

    def __init__(self, func: Callable[..., Any], wait_seconds: float) -> None:
        if wait_seconds < 0:
            raise ValueError(f"wait_seconds must be >= 0, got {wait_seconds}")
        self._func = func
        self.wait_seconds = wait_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._pending = (args, kwargs)
            timer = threading.Timer(self.wait_seconds, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _take_pending(self) -> tuple[tuple[Any, ...], dict[str, Any]] | None:
        pending = self._pending
        self._pending = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return pending

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer call re-armed the timer after this one was cancelled.
            if generation != self._generation:
                return
            pending = self._take_pending()
        if pending is None:
            return
        args, kwargs = pending
        try:
            self._func(*args, **kwargs)
        except Exception:
            log.exception("Debounced call to %r failed", self._func)

    def flush(self) -> bool:
        """Run the pending call now. Returns False when nothing was pending."""
        with self._lock:
            pending = self._take_pending()
        if pending is None:
            return False
        args, kwargs = pending
        self._func(*args, **kwargs)
        return True

    def cancel(self) -> None:
        with self._lock:
            self._take_pending()
