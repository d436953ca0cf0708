"""Logging setup shared by the blink-diff CLI and embedding callers.

The library itself only creates module loggers (logging.getLogger(__name__))
and never touches handlers. Applications call setup_logging() once; the CLI
does so in main() with the level chosen by --verbose / --debug.

Features:
    - stderr console handler, optional file handler (plain, size- or
      time-rotated)
    - human or JSON-lines records; JSON is meant for CI log collectors
    - contextual fields (app, image_a, image_b) appended to every record,
      stored in a ContextVar so concurrent run_async() calls stay separate
    - Python warnings routed into logging, uncaught exceptions logged

Record layout:
    human: 2025-10-28T13:45:12.345Z | INFO     | app=blink-diff image_a=a.png | blinkdiff.diff.engine: Result SIMILAR ...
    json:  {"t": "...", "lvl": "INFO", "name": "...", "pid": 1234, "app": "blink-diff", "msg": "..."}

Calling setup_logging() again replaces the handlers it installed earlier
instead of adding a second set.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

_context_var: contextvars.ContextVar = contextvars.ContextVar("blinkdiff_log_context", default={})

# Handlers installed by the last setup_logging() call
_installed: List[logging.Handler] = []

_FORMAT_MODES = ("human", "json")


class ContextFormatter(logging.Formatter):
    """Render records with the current context fields.

    Parameters
    ----------
    fmt_mode : str
        "human" or "json"
    use_color : bool
        Colorize the level name (human mode, and only on a TTY)
    tz : str
        "UTC" or "local" timestamps
    """

    COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }

    def __init__(self, fmt_mode: str = "human", use_color: bool = True, tz: str = "UTC"):
        super().__init__()
        if fmt_mode not in _FORMAT_MODES:
            raise ValueError(f"Unknown format mode: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()
        self.utc = tz == "UTC"

    def _iso_time(self, record: logging.LogRecord) -> str:
        if self.utc:
            ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
            return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f"{ts.microsecond // 1000:03d}Z"
        return datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds")

    def format(self, record: logging.LogRecord) -> str:
        fields = _context_var.get()
        message = record.getMessage()
        trace = self.formatException(record.exc_info) if record.exc_info else None

        if self.fmt_mode == "json":
            payload: Dict[str, Any] = {
                't': self._iso_time(record),
                'lvl': record.levelname,
                'name': record.name,
                'pid': os.getpid(),
            }
            payload.update(fields)
            payload['msg'] = message
            if trace:
                payload['exc'] = trace
            return json.dumps(payload, default=str)

        level = record.levelname.ljust(8)
        if self.use_color and record.levelno in self.COLORS:
            level = self.COLORS[record.levelno] + level + '\033[0m'
        columns = [self._iso_time(record), level]
        if fields:
            columns.append(' '.join(f"{k}={v}" for k, v in fields.items()))
        columns.append(f"{record.name}: {message}")
        line = ' | '.join(columns)
        return f"{line}\n{trace}" if trace else line


def _file_handler(log_file: str, rotate: Optional[Dict[str, Any]]) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    if not rotate:
        return logging.FileHandler(log_file, encoding="utf-8")

    mode = rotate.get('mode', 'size')
    if mode == 'size':
        return logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=rotate.get('max_bytes', 10_000_000),
            backupCount=rotate.get('backup_count', 3),
            encoding="utf-8",
        )
    if mode == 'time':
        return logging.handlers.TimedRotatingFileHandler(
            log_file,
            when=rotate.get('when', 'D'),
            interval=rotate.get('interval', 1),
            backupCount=rotate.get('backup_count', 7),
            encoding="utf-8",
        )
    raise ValueError(f"Unknown rotation mode: {mode}. Use 'size' or 'time'.")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Iterable[str] = ("PIL",),
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Configure the root logger.

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL" (any case)
    log_file : str, optional
        Also log to this file
    json : bool
        JSON lines in the log file (the console stays human-readable)
    color : bool
        ANSI level colors on the console
    to_stderr : bool
        Attach the console handler
    rotate : dict, optional
        {"mode": "size", "max_bytes": ..., "backup_count": ...} or
        {"mode": "time", "when": "D", "interval": 1, "backup_count": ...}
    tz : str
        "UTC" (default) or "local"
    capture_warnings : bool
        Route warnings.warn() through logging
    quiet_libs : iterable of str
        Loggers capped at WARNING (Pillow's PNG plugin is chatty at DEBUG)
    context : dict, optional
        Initial context fields, e.g. {"app": "blink-diff"}

    Returns
    -------
    dict
        {"handlers": [...]} installed by this call

    Raises
    ------
    ValueError
        On an unknown rotation mode
    """
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    root.setLevel(log_level.upper())

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color, tz))
        _installed.append(console)
    if log_file:
        handler = _file_handler(log_file, rotate)
        handler.setFormatter(ContextFormatter("json" if json else "human", use_color=False, tz=tz))
        _installed.append(handler)
    for handler in _installed:
        root.addHandler(handler)

    for name in quiet_libs:
        logging.getLogger(name).setLevel(logging.WARNING)
    if capture_warnings:
        logging.captureWarnings(True)
    if context:
        push_context(**context)

    return {'handlers': list(_installed)}


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Change the root level after setup (e.g. from an embedding app)."""
    logging.getLogger().setLevel(level.upper())


def push_context(**fields: Any) -> None:
    """Add fields to every subsequent record of this thread/task."""
    _context_var.set({**_context_var.get(), **fields})


def pop_context(keys: Optional[Iterable[str]] = None) -> None:
    """Drop the given context fields, or all of them."""
    if keys is None:
        _context_var.set({})
        return
    drop = set(keys)
    _context_var.set({k: v for k, v in _context_var.get().items() if k not in drop})


def get_context() -> Dict[str, Any]:
    return dict(_context_var.get())


def install_excepthook() -> None:
    """Log uncaught exceptions at CRITICAL; Ctrl+C keeps the default hook."""
    def _hook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _hook
