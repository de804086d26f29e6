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

import platform
from typing import Callable, List, Optional

from packaging import version

from ...utils.index import log_message, debug_log
from ...utils.powershell import run_hidden


def get_windows_version() -> Optional[str]:
    """Return the NT version as 'major.minor.build', or None when not on Windows."""
    if platform.system() != "Windows":
        return None
    return platform.version()


def select_scan_command(config, os_version: Optional[str] = None) -> List[str]:
    """
    Pick the scan utility for this Windows release.

    UsoClient replaced wuauclt's detection switch in Windows 10, so older
    releases keep the legacy command.
    """
    if os_version is None:
        os_version = get_windows_version()
    if not os_version:
        return list(config.scan_modern_command)
    try:
        if version.parse(os_version) >= version.parse(config.scan_modern_min_version):
            return list(config.scan_modern_command)
    except version.InvalidVersion:
        debug_log(f"Unrecognised Windows version '{os_version}', using modern scan command")
        return list(config.scan_modern_command)
    return list(config.scan_legacy_command)


def trigger_update_scan(config, runner: Callable = run_hidden, os_version: Optional[str] = None) -> bool:
    """
    Run the scan utility hidden and wait for it to finish.

    Failure is only a warning: the search that follows does its own detection.
    """
    command = select_scan_command(config, os_version)
    log_message(f"Triggering update scan: {' '.join(command)}")
    try:
        runner(command)
    except Exception as e:
        log_message(f"Update scan trigger failed: {e}", "WARNING")
        return False
    debug_log("Update scan trigger completed")
    return True
