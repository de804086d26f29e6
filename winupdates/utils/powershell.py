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

"""
Process helpers for talking to the Windows platform.

Every platform capability (service control, Windows Update Agent COM calls,
scan trigger, shutdown) goes through these helpers so failures surface as a
single exception type the callers can classify.
"""

import os
import sys
import json
import subprocess
from typing import Any, List, Optional

from .index import debug_log

POWERSHELL_EXE = "powershell.exe"

# Applied before every script: fail fast and keep stdout clean for JSON
SCRIPT_PREAMBLE = (
    "$ErrorActionPreference = 'Stop'\n"
    "$ProgressPreference = 'SilentlyContinue'\n"
    "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8\n"
)

CREATE_NO_WINDOW = 0x08000000


class PlatformCommandError(Exception):
    """Raised when a platform command cannot be launched or reports failure."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def _hidden_window_kwargs() -> dict:
    """Keyword arguments that keep a child process invisible on Windows."""
    if sys.platform != "win32":
        return {}
    startupinfo = subprocess.STARTUPINFO()
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
    startupinfo.wShowWindow = subprocess.SW_HIDE
    return {"startupinfo": startupinfo, "creationflags": CREATE_NO_WINDOW}


def run_hidden(command: List[str], timeout: Optional[int] = None) -> subprocess.CompletedProcess:
    """
    Run a command synchronously without showing a window.

    Args:
        command: Executable and arguments
        timeout: Optional timeout in seconds

    Returns:
        subprocess.CompletedProcess: The finished process

    Raises:
        PlatformCommandError: If the command cannot be launched, times out,
            or exits with a non-zero status
    """
    debug_log(f"Running: {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            **_hidden_window_kwargs()
        )
    except FileNotFoundError as e:
        raise PlatformCommandError(f"Command not found: {command[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise PlatformCommandError(f"Command timed out after {timeout}s: {' '.join(command)}") from e
    except OSError as e:
        raise PlatformCommandError(f"Failed to launch {command[0]}: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise PlatformCommandError(
            f"{' '.join(command)} exited with code {result.returncode}" + (f": {stderr}" if stderr else ""),
            returncode=result.returncode,
            stderr=stderr,
        )
    return result


def run_powershell(script: str, timeout: Optional[int] = None) -> str:
    """Run a PowerShell script and return its stdout."""
    command = [
        POWERSHELL_EXE,
        "-NoProfile",
        "-NonInteractive",
        "-ExecutionPolicy", "Bypass",
        "-Command", SCRIPT_PREAMBLE + script,
    ]
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            **_hidden_window_kwargs()
        )
    except FileNotFoundError as e:
        raise PlatformCommandError(f"PowerShell not available ({POWERSHELL_EXE})") from e
    except subprocess.TimeoutExpired as e:
        raise PlatformCommandError(f"PowerShell script timed out after {timeout}s") from e
    except OSError as e:
        raise PlatformCommandError(f"Failed to launch PowerShell: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise PlatformCommandError(
            stderr or f"PowerShell exited with code {result.returncode}",
            returncode=result.returncode,
            stderr=stderr,
        )
    return result.stdout or ""


def run_powershell_json(script: str, timeout: Optional[int] = None) -> Any:
    """
    Run a PowerShell script that ends in ``ConvertTo-Json`` and decode its output.

    Returns None when the script printed nothing.
    """
    out = run_powershell(script, timeout=timeout).strip()
    if not out:
        return None
    try:
        return json.loads(out)
    except json.JSONDecodeError as e:
        raise PlatformCommandError(f"Unexpected PowerShell output: {out[:200]}") from e


def ps_quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def is_admin() -> bool:
    """Return True when the current process has administrator rights."""
    try:
        if sys.platform == "win32":
            import ctypes
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        return os.geteuid() == 0
    except Exception:
        return False
