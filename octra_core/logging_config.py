"""
Logging setup for the Octra wallet.

Console output is either ``human`` (one line per record, coloured on a
terminal) or ``json``; an optional log file always gets JSON lines.
Every handler masks substrings shaped like a raw 32-byte key, in base64
or hex, so a stray private key never reaches a log sink.

Usage:
    from octra_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="octra_wallet.log")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_KEY_PATTERNS = (
    re.compile(r"[A-Za-z0-9+/]{43}="),     # base64, 32 bytes
    re.compile(r"\b[0-9a-fA-F]{64}\b"),    # hex, 32 bytes
)
_MASK = "<redacted>"

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"


class _RedactKeysFilter(logging.Filter):
    """Rewrite the record's message with key-shaped substrings masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        redacted = msg
        for pattern in _KEY_PATTERNS:
            redacted = pattern.sub(_MASK, redacted)
        if redacted != msg:
            record.msg = redacted
            record.args = None
        return True


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _HumanFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL  ] logger: message``, optionally coloured."""

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        head = f"{ts} [{record.levelname:<7}]"
        if self.colour:
            head = f"{_LEVEL_COLOURS.get(record.levelno, '')}{head}{_RESET}"
        return f"{head} {record.name}: {record.getMessage()}"


def _attach(root: logging.Logger, handler: logging.Handler,
            formatter: logging.Formatter, redact: logging.Filter) -> None:
    handler.setFormatter(formatter)
    handler.addFilter(redact)
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Replace the root logger's handlers with the wallet's.

    Parameters
    ----------
    level : str
        Level name; unknown names fall back to INFO.
    fmt : str
        ``"human"`` or ``"json"`` for the stderr handler.
    log_file : str, optional
        Also append JSON lines to this file, creating parent directories.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    redact = _RedactKeysFilter()
    console_fmt = (_JSONFormatter() if fmt == "json"
                   else _HumanFormatter(colour=sys.stderr.isatty()))
    _attach(root, logging.StreamHandler(sys.stderr), console_fmt, redact)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(root, logging.FileHandler(str(path)), _JSONFormatter(), redact)
