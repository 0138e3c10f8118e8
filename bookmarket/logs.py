# bookmarket/logs.py
"""
Application logging.

Two rotating files live in LOG_DIR:
  normal.log   - everything below ERROR
  critical.log - ERROR and above, with tracebacks
Search terms typed by users go to search.log through the `bookmarket.search`
logger and nowhere else.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from .config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

NORMAL = "normal"
CRITICAL = "critical"
SEARCH = "search"

_FILES = {
    NORMAL: "normal.log",
    CRITICAL: "critical.log",
    SEARCH: "search.log",
}

_log_dir = settings.LOG_DIR


class _BelowLevel(logging.Filter):
    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def _file_handler(path: str, level: int) -> RotatingFileHandler:
    h = RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    h.setLevel(level)
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    return h


def setup_logging(log_dir: str | None = None, level: str | None = None) -> logging.Logger:
    global _log_dir
    _log_dir = log_dir or settings.LOG_DIR
    os.makedirs(_log_dir, exist_ok=True)
    lvl = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root = logging.getLogger("bookmarket")
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(lvl)
    root.propagate = False

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    normal = _file_handler(log_path(NORMAL), lvl)
    normal.addFilter(_BelowLevel(logging.ERROR))
    root.addHandler(normal)
    root.addHandler(_file_handler(log_path(CRITICAL), logging.ERROR))

    search = logging.getLogger("bookmarket.search")
    for h in list(search.handlers):
        search.removeHandler(h)
        h.close()
    search.setLevel(logging.INFO)
    search.propagate = False
    search.addHandler(_file_handler(log_path(SEARCH), logging.INFO))

    return root


def get_logger(name: str) -> logging.Logger:
    if not name.startswith("bookmarket"):
        name = f"bookmarket.{name}"
    return logging.getLogger(name)


def log_path(kind: str) -> str:
    if kind not in _FILES:
        raise ValueError(f"Unknown log kind: {kind}")
    return os.path.join(_log_dir, _FILES[kind])


def _flush(kind: str) -> None:
    target = os.path.abspath(log_path(kind))
    for name in ("bookmarket", "bookmarket.search"):
        for h in logging.getLogger(name).handlers:
            if isinstance(h, RotatingFileHandler) and h.baseFilename == target:
                h.flush()


def read_log(kind: str, max_lines: int = 100) -> list[str]:
    """Newest lines first."""
    path = log_path(kind)
    _flush(kind)
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8", errors="replace") as f:
        lines = [line.rstrip("\n") for line in f if line.strip()]
    lines.reverse()
    return lines[:max(0, max_lines)]


def log_counts() -> dict[str, int]:
    out = {}
    for kind in (NORMAL, CRITICAL):
        path = log_path(kind)
        _flush(kind)
        if not os.path.exists(path):
            out[kind] = 0
            continue
        with open(path, encoding="utf-8", errors="replace") as f:
            out[kind] = sum(1 for line in f if line.strip())
    return out


def clear_logs() -> None:
    for kind in (NORMAL, CRITICAL):
        _flush(kind)
        path = log_path(kind)
        if os.path.exists(path):
            with open(path, "w", encoding="utf-8"):
                pass
