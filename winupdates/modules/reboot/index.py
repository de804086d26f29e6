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

from typing import Callable, List

from ...utils.index import log_message
from ...utils.powershell import run_hidden

# shutdown.exe rejects comments longer than this
MAX_REASON_LENGTH = 512


def build_shutdown_command(delay_seconds: int, reason: str) -> List[str]:
    """Forced restart after ``delay_seconds`` with a user-visible reason."""
    return ["shutdown.exe", "/r", "/f", "/t", str(int(delay_seconds)), "/c", reason[:MAX_REASON_LENGTH]]


def schedule_reboot(config, runner: Callable = run_hidden) -> bool:
    """
    Schedule the forced restart that completes the installation.

    The countdown is logged before the request is made. If scheduling fails
    the error is logged and the machine is left running; there is no retry.

    Returns:
        bool: True if the restart was scheduled
    """
    delay = config.reboot_delay_seconds
    log_message(f"Reboot required. The system will restart in {delay} seconds.", "WARNING")
    try:
        runner(build_shutdown_command(delay, config.reboot_reason))
    except Exception as e:
        log_message(f"Failed to schedule reboot: {e}. Restart the machine manually to finish installing updates.", "ERROR")
        return False
    log_message("Reboot scheduled")
    return True
