"""Process-wide logging setup driven by a small configuration object."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "5": TRACE,
    "4": logging.DEBUG,
    "3": logging.INFO,
    "2": logging.WARNING,
    "1": logging.ERROR,
}

_installed: logging.Handler | None = None


@dataclass
class LogConfig:
    """Logging options: maximum level, source line output and console format."""

    level: str = "DEBUG"
    with_line: bool = True
    console: bool = True


def _parse_level(text: str) -> int:
    try:
        return _LEVELS[text.strip().upper()]
    except KeyError:
        raise ValueError(f"invalid log level: {text!r}") from None


class _JsonFormatter(logging.Formatter):
    """Formats each record as a single JSON object."""

    def __init__(self, with_line: bool) -> None:
        super().__init__()
        self._with_line = with_line

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "target": record.name,
            "message": record.getMessage(),
        }
        if self._with_line:
            entry["line_number"] = record.lineno
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def init(cfg: LogConfig) -> logging.Handler:
    """Install a root handler configured by ``cfg`` and return it."""
    global _installed
    level = _parse_level(cfg.level)

    handler = logging.StreamHandler()
    if cfg.console:
        location = " %(name)s:%(lineno)d" if cfg.with_line else " %(name)s"
        handler.setFormatter(
            logging.Formatter(f"%(asctime)s %(levelname)5s{location}: %(message)s")
        )
    else:
        handler.setFormatter(_JsonFormatter(cfg.with_line))

    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
    root.addHandler(handler)
    root.setLevel(level)
    _installed = handler
    return handler


def init_default() -> logging.Handler:
    """Install logging with the default configuration."""
    return init(LogConfig())