"""Process-wide logging for the assistant.

``configure_logging()`` installs one stderr handler (plus a rotating file
handler when ``LOG_FILE`` is set) on the root logger. Timestamps are rendered
in the reference timezone so log lines line up with stored civil times and
reminder minutes. Transport and scheduler libraries are held at WARNING.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from zoneinfo import ZoneInfo

from xeyla.core.clock import CIVIL_FORMAT, REFERENCE_TZ

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_KEEP = 3
THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "apscheduler")


class ReferenceTimeFormatter(logging.Formatter):
    """Formatter whose ``asctime`` is civil time in a fixed timezone."""

    def __init__(self, fmt: str = LOG_FORMAT, *, tz: ZoneInfo = REFERENCE_TZ) -> None:
        super().__init__(fmt, datefmt=CIVIL_FORMAT)
        self._tz = tz

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        moment = datetime.fromtimestamp(record.created, tz=self._tz)
        return moment.strftime(datefmt or CIVIL_FORMAT)


def level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "").strip().upper() or "INFO"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _file_handler(log_file: str, level: int, formatter: logging.Formatter) -> logging.Handler | None:
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=_ROTATE_BYTES,
            backupCount=_ROTATE_KEEP,
            encoding="utf-8",
        )
    except OSError as exc:
        logging.getLogger(__name__).warning("log file %s unavailable (%s); stderr only", log_file, exc)
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def quiet_third_party(level: int = logging.WARNING) -> None:
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(level)


def configure_logging(
    *,
    level: int | None = None,
    log_file: str | None = None,
    tz: ZoneInfo = REFERENCE_TZ,
) -> None:
    """Install handlers on the root logger, replacing any already there.

    ``level`` defaults to ``LOG_LEVEL`` (unknown names mean INFO) and
    ``log_file`` to ``LOG_FILE``. Call once, before the dispatcher and the
    reminder sweep start.
    """
    resolved_level = level if level is not None else level_from_env()
    target_file = log_file if log_file is not None else os.environ.get("LOG_FILE", "").strip()
    formatter = ReferenceTimeFormatter(tz=tz)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(resolved_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(resolved_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if target_file:
        file_handler = _file_handler(target_file, resolved_level, formatter)
        if file_handler is not None:
            root.addHandler(file_handler)

    quiet_third_party()
