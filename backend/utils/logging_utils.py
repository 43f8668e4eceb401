import json
import logging
import re

from config import LOG_LEVEL, LOG_MAX_LEN, LOG_FILE

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] - %(message)s"
NOISY_LOGGERS = ("urllib3", "requests", "werkzeug")


class OneLineFormatter(logging.Formatter):
    """Collapses multi-line messages and tracebacks onto one line."""

    _whitespace = re.compile(r"\s+")

    def __init__(self, fmt=LOG_FORMAT, datefmt="%H:%M:%S", max_len: int | None = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.max_len = max_len

    def format(self, record: logging.LogRecord) -> str:
        line = self._whitespace.sub(" ", super().format(record)).strip()
        if self.max_len and len(line) > self.max_len:
            return f"{line[:self.max_len]} …(truncated)"
        return line


def compact_json(data) -> str:
    """Single-line JSON for log messages; falls back to ``str`` for odd payloads."""
    try:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(data)


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger once per process.

    Level, truncation length and optional log file come from ``config``
    (``BIMFLOW_LOG_LEVEL``, ``BIMFLOW_LOG_MAX_LEN``, ``BIMFLOW_LOG_FILE``).
    Calling it again only adjusts the level.
    """
    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(resolved)
    if root.handlers:
        return

    formatter = OneLineFormatter(max_len=LOG_MAX_LEN or None)
    handlers = [logging.StreamHandler()]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, resolved))
