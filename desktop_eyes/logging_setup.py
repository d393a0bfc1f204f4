from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
LOG_DIR = Path(os.getenv("DESKTOP_EYES_LOG_DIR") or (ROOT / "logs"))
BACKEND_LOG = LOG_DIR / "desktop_eyes.log"
BACKEND_EVENTS_LOG = LOG_DIR / "desktop_eyes_events.log"

_CONFIGURED = False


def _safe_mkdir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        return True
    except OSError:
        # Logging will fall back to stderr.
        return False


def _formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def setup_logging(level: int = logging.INFO) -> None:
    """Configure rotating file logging for the service; safe to call more than once."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    _CONFIGURED = True

    handlers: list[logging.Handler] = []
    if _safe_mkdir(LOG_DIR):
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                BACKEND_LOG,
                maxBytes=1_000_000,
                backupCount=2,
                encoding="utf-8",
                delay=True,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(_formatter())
            handlers.append(file_handler)
        except OSError:
            pass

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(_formatter())
    handlers.append(stream_handler)

    logging.basicConfig(level=level, handlers=handlers)

    # Dedicated structured event logger (JSON lines).
    event_logger = logging.getLogger("desktop_eyes.events")
    event_logger.setLevel(logging.INFO)
    event_logger.propagate = False
    try:
        event_handler = logging.handlers.RotatingFileHandler(
            BACKEND_EVENTS_LOG,
            maxBytes=1_000_000,
            backupCount=2,
            encoding="utf-8",
            delay=True,
        )
        event_handler.setLevel(logging.INFO)
        event_handler.setFormatter(_formatter())
        event_logger.addHandler(event_handler)
    except OSError:
        event_logger.addHandler(logging.NullHandler())

    # Align uvicorn loggers to use same handlers/format.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        for h in handlers:
            logger.addHandler(h)
        logger.propagate = False
