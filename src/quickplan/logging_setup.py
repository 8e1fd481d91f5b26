# src/quickplan/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "quickplan.log"

_STORE_LOGGER = "quickplan.tasks.task_store"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console view of the log stream.

    Application records pass, except store chatter (per-row inserts and
    deletes) which only shows from WARNING up. Everything else, captured
    warnings included, needs ERROR.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == _STORE_LOGGER:
            return record.levelno >= logging.WARNING
        if name.startswith("quickplan."):
            return True
        return record.levelno >= logging.ERROR


def resolve_level(level: str | int | None, default: int = logging.INFO) -> int:
    """'debug' / 'WARNING' / 10 -> logging level; unknown names fall back to default."""
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    if not level:
        return default
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/quickplan",
    console_level: str | int | None = logging.INFO,
    file_level: str | int | None = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered) plus a full DEBUG log file under log_dir.

    Replaces whatever handlers the root logger already has, so calling it
    again reconfigures instead of duplicating output. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(resolve_level(console_level))
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(resolve_level(file_level, logging.DEBUG))
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # warnings.warn(...) arrives as the 'py.warnings' logger.
    logging.captureWarnings(True)
    return log_file
