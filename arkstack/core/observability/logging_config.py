"""
Logging setup for the arkstack CLI.

main.py calls ``setup_logging`` once per invocation; modules log through
``logging.getLogger(__name__)`` and never attach handlers themselves.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  ARKSTACK_LOG_LEVEL  >  WARNING

A server install can run for the better part of an hour, mostly inside
SteamCMD and Proton child processes.  Point ARKSTACK_LOG_FILE at a path
to keep a timestamped record of the run; output pumps log there under
their ``pty-<pid>`` thread names.
ARKSTACK_LOG_FILE_LEVEL sets that file's level independently of the
console.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ENV_LEVEL = "ARKSTACK_LOG_LEVEL"
ENV_FILE = "ARKSTACK_LOG_FILE"
ENV_FILE_LEVEL = "ARKSTACK_LOG_FILE_LEVEL"

DEFAULT_LEVEL = logging.WARNING

# Console layouts, most detailed first: (max level, format, date format)
_CONSOLE_LAYOUTS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname).1s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(name)s: %(message)s", "%H:%M:%S"),
)
_CONSOLE_PLAIN = "%(message)s"

_FILE_LAYOUT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Libraries whose INFO chatter drowns out install progress
_CHATTY = ("urllib3", "asyncio")

_FLAG_LEVELS = (("debug", "DEBUG"), ("verbose", "INFO"), ("quiet", "ERROR"))


def level_from_flags(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name for the given CLI flags (debug wins, then verbose, then quiet)."""
    flags = {"debug": debug, "verbose": verbose, "quiet": quiet}
    for flag, name in _FLAG_LEVELS:
        if flags[flag]:
            return name
    return os.environ.get(ENV_LEVEL, logging.getLevelName(DEFAULT_LEVEL))


def resolve_level(name: str | None) -> int:
    """Numeric level for ``name``; unknown or empty names mean WARNING."""
    if not name:
        return DEFAULT_LEVEL
    return logging.getLevelNamesMapping().get(name.strip().upper(), DEFAULT_LEVEL)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with arkstack's console and file handlers.

    Args:
        level: Console level name.
        log_file: Optional path of a log file; parent directories are created.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold chatty libraries at WARNING unless the
            console is at DEBUG.
    """
    console_level = resolve_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    if log_file:
        file_level = resolve_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(Path(log_file), file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # The root passes everything any handler wants; handlers filter
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _CHATTY:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_PLAIN, None
    for ceiling, layout, layout_datefmt in _CONSOLE_LAYOUTS:
        if level <= ceiling:
            fmt, datefmt = layout, layout_datefmt
            break

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.expanduser().parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path.expanduser(), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_LAYOUT, datefmt=_FILE_DATEFMT))
    return handler
