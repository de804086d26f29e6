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

import time
from typing import Callable, Dict, Optional

from ...utils.index import log_message, debug_log
from ...utils.powershell import run_powershell, ps_quote


class ServiceController:
    """Query, stop and start Windows services through PowerShell."""

    def query_status(self, name: str) -> str:
        """Return the service status, e.g. 'Running' or 'Stopped'."""
        out = run_powershell(f"(Get-Service -Name {ps_quote(name)}).Status.ToString()")
        return out.strip()

    def is_running(self, name: str) -> bool:
        return self.query_status(name).lower() == "running"

    def stop(self, name: str, force: bool = True) -> None:
        force_flag = " -Force" if force else ""
        run_powershell(f"Stop-Service -Name {ps_quote(name)}{force_flag}")

    def start(self, name: str) -> None:
        run_powershell(f"Start-Service -Name {ps_quote(name)}")


def restart_update_services(config, controller: Optional[ServiceController] = None,
                            sleep: Callable[[float], None] = time.sleep) -> Dict[str, bool]:
    """
    Restart every service the update pipeline depends on.

    Each service is stopped (forced) if running, given a short pause and
    started again. A failure on one service is logged as a warning and the
    next service is still processed.

    Args:
        config: RunConfiguration for this run
        controller: Service control capability (defaults to ServiceController)
        sleep: Pause function between stop and start

    Returns:
        Dict[str, bool]: Service name -> True if it was restarted cleanly
    """
    controller = controller or ServiceController()
    results = {}

    log_message(f"Restarting update services: {', '.join(config.services)}")
    for name in config.services:
        try:
            if controller.is_running(name):
                debug_log(f"Stopping service {name}")
                controller.stop(name, force=True)
            sleep(config.service_restart_delay)
            debug_log(f"Starting service {name}")
            controller.start(name)
            log_message(f"Restarted service {name}")
            results[name] = True
        except Exception as e:
            log_message(f"Failed to restart service {name}: {e}", "WARNING")
            results[name] = False

    return results
