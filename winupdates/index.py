#!/usr/bin/env python3
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

import sys
import json
from typing import Any, Callable, Dict, List, Optional

from .config import ConfigurationError, RunConfiguration, build_run_configuration, parse_args
from .utils.index import log_message, debug_log, setup_update_logging, log_session_banner
from .utils.powershell import is_admin, run_hidden
from .modules.services.index import ServiceController, restart_update_services
from .modules.cache.index import clear_update_cache
from .modules.scan.index import trigger_update_scan
from .modules.wua.client import UpdateCatalogClient
from .modules.wua.index import run_update_cycle
from .modules.reboot.index import schedule_reboot

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def run_update_sequence(config: RunConfiguration,
                        controller: Optional[ServiceController] = None,
                        client: Optional[UpdateCatalogClient] = None,
                        scan_runner: Callable = run_hidden,
                        reboot: Callable[[Any], bool] = schedule_reboot,
                        check_elevation: Callable[[], bool] = is_admin) -> Dict[str, Any]:
    """
    Run the whole update sequence once.

    Services are restarted and the cache cleared unconditionally, a scan is
    triggered, then updates are searched, downloaded and installed. Every
    stage reports its own failures; the finishing line is always written.

    Returns:
        dict: Run summary. ``success`` is True when the sequence ran to the end,
        whether or not anything was installed.
    """
    summary = {
        "success": False,
        "updates_found": 0,
        "installed": False,
        "reboot_required": False,
        "reboot_scheduled": False,
        "errors": []
    }

    try:
        if not check_elevation():
            log_message("Not running with administrator rights; service and update calls will likely fail", "WARNING")

        controller = controller or ServiceController()
        restart_update_services(config, controller)
        clear_update_cache(config, controller)
        trigger_update_scan(config, runner=scan_runner)

        cycle = run_update_cycle(config, client=client, reboot=reboot)
        summary["updates_found"] = cycle["updates_found"]
        summary["installed"] = cycle["installed"]
        summary["reboot_required"] = cycle["reboot_required"]
        summary["reboot_scheduled"] = cycle["reboot_scheduled"]
        if cycle["error"]:
            summary["errors"].append(cycle["error"])

        summary["success"] = True
    except KeyboardInterrupt:
        log_message("Update process interrupted by user", "WARNING")
        summary["errors"].append("interrupted")
        raise
    except Exception as e:
        log_message(f"Unhandled error in update sequence: {e}", "ERROR")
        summary["errors"].append(str(e))
    finally:
        debug_log(f"Run summary: {json.dumps(summary)}")
        log_message("Windows update script finished")

    return summary


def main(argv: Optional[List[str]] = None):
    """
    Main entry point for the Windows update sequence.

    Exit codes: 0 when the sequence ran to completion, 2 when the
    configuration could not be built, 130 when interrupted.
    """
    args = parse_args(argv)

    try:
        config = build_run_configuration(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    # Initialize logging FIRST; every component reports through it
    setup_update_logging(config.log_file_path, silent=config.silent, debug=config.debug)

    try:
        log_session_banner(config)
        run_update_sequence(config)
    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
