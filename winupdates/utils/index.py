"""
HOMESERVER Update Management System
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# ANSI codes, only emitted when supports_color() is True
RESET = "\033[0m"
RED = "\033[31m"
YELLOW = "\033[33m"
GRAY = "\033[90m"

LEVEL_COLORS = {
    "ERROR": RED,
    "WARNING": YELLOW,
    "DEBUG": GRAY,
}

_HANDLER_MARKER = "_added_by_setup_update_logging"


def supports_color(stream=None) -> bool:
    """Return True when ANSI colors are likely supported on the console stream."""
    stream = stream or sys.stdout
    try:
        if os.environ.get("NO_COLOR"):
            return False
        return bool(getattr(stream, "isatty", lambda: False)())
    except Exception:
        return False


class ConsoleFormatter(logging.Formatter):
    """Formatter that highlights warning and error lines on the console."""

    def __init__(self, use_color: bool = False):
        super().__init__(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record):
        line = super().format(record)
        color = LEVEL_COLORS.get(record.levelname)
        if self.use_color and color:
            return f"{color}{line}{RESET}"
        return line


def setup_update_logging(log_file: Optional[str], silent: bool = False, debug: bool = False) -> bool:
    """
    Configure the root logger for an update session.

    Log lines go to ``log_file`` (append mode, UTF-8, parent directory created
    on demand) and, unless ``silent``, to stdout with warnings and errors
    highlighted. Only handlers installed by a previous call are replaced, so
    repeated calls are safe.

    If the log file cannot be opened the session falls back to console-only
    logging on stderr (even in silent mode) and a single warning is emitted.

    Args:
        log_file: Path of the log file, or None for console-only logging
        silent: Suppress console output while still writing the log file
        debug: Enable DEBUG level output

    Returns:
        bool: True if the log file is being written, False on console fallback
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for h in list(root_logger.handlers):
        if getattr(h, _HANDLER_MARKER, False):
            root_logger.removeHandler(h)
            h.close()

    file_error = None
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
            setattr(file_handler, _HANDLER_MARKER, True)
            root_logger.addHandler(file_handler)
        except OSError as e:
            file_error = e

    if not silent:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter(supports_color(sys.stdout)))
        setattr(console_handler, _HANDLER_MARKER, True)
        root_logger.addHandler(console_handler)
    elif file_error is not None or not log_file:
        # Nothing else would record the session
        fallback_handler = logging.StreamHandler(sys.stderr)
        fallback_handler.setFormatter(ConsoleFormatter(supports_color(sys.stderr)))
        setattr(fallback_handler, _HANDLER_MARKER, True)
        root_logger.addHandler(fallback_handler)

    if file_error is not None:
        log_message(f"Cannot write log file {log_file}: {file_error}; logging to console only", "WARNING")
        return False
    return bool(log_file)


def log_message(message: str, level: str = "INFO"):
    """Unified logger used throughout the sequence and its components."""
    level = (level or "INFO").upper()
    root_logger = logging.getLogger()
    if level == "ERROR":
        root_logger.error(message)
    elif level == "WARNING":
        root_logger.warning(message)
    elif level == "DEBUG":
        root_logger.debug(message)
    else:
        root_logger.info(message)


def debug_log(message: str):
    """Debug logging that only shows when the session runs with --debug."""
    log_message(message, "DEBUG")


def log_session_banner(config) -> None:
    """Write the session header describing how this run was started."""
    log_message("=" * 80)
    log_message("WINDOWS UPDATE SESSION STARTED")
    log_message(f"Command: {' '.join(sys.argv)}")
    debug_log(f"Working Directory: {os.getcwd()}")
    debug_log(f"Python Version: {sys.version}")
    log_message(
        f"Alternate source: {config.use_alternate_update_source}, "
        f"install: {config.install_updates}, auto reboot: {config.auto_reboot}"
    )
    log_message("=" * 80)
