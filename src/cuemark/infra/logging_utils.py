from __future__ import annotations

import logging
import os

DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_CONFIGURED = False


def setup_logging(level: str | None = None, *, force: bool = False) -> None:
    """Configure root logging once with a consistent, readable format.

    Only the command line calls this; importing the core leaves the host's
    logging alone.

    Args:
        level: Optional log level name (e.g. "INFO", "DEBUG"). If omitted,
               reads CUEMARK_LOG_LEVEL or falls back to WARNING.
        force: Reconfigure even if logging was already set up (the CLI
               passes this so --log-level wins).
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    log_level_name = (level or os.getenv("CUEMARK_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    log_level = getattr(logging, log_level_name, logging.WARNING)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, force=force)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
