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
import shutil
from typing import List, Optional

from ...utils.index import log_message, debug_log
from ..services.index import ServiceController


def clear_directory(path: str) -> List[str]:
    """
    Delete everything inside a directory, keeping the directory itself.

    Entries that cannot be removed are skipped.

    Returns:
        List[str]: Paths that could not be deleted
    """
    failed = []
    for entry in os.listdir(path):
        entry_path = os.path.join(path, entry)
        try:
            if os.path.isdir(entry_path) and not os.path.islink(entry_path):
                shutil.rmtree(entry_path)
            else:
                os.remove(entry_path)
        except OSError as e:
            debug_log(f"Could not delete {entry_path}: {e}")
            failed.append(entry_path)
    return failed


def clear_update_cache(config, controller: Optional[ServiceController] = None) -> bool:
    """
    Stop the update service, empty the cache directories and start it again.

    Nothing here fails the run: every problem is collected and reported as a
    single warning line.

    Returns:
        bool: True if every step succeeded
    """
    controller = controller or ServiceController()
    service = config.primary_service
    problems = []

    log_message("Clearing Windows Update cache...")
    try:
        controller.stop(service, force=True)
    except Exception as e:
        problems.append(f"stop {service}: {e}")

    for cache_dir in config.cache_directories:
        if not os.path.isdir(cache_dir):
            debug_log(f"Cache directory not present (skipping): {cache_dir}")
            continue
        try:
            failed = clear_directory(cache_dir)
            if failed:
                problems.append(f"{len(failed)} entries left in {cache_dir}")
            else:
                debug_log(f"Emptied {cache_dir}")
        except OSError as e:
            problems.append(f"{cache_dir}: {e}")

    try:
        controller.start(service)
    except Exception as e:
        problems.append(f"start {service}: {e}")

    if problems:
        log_message(f"Cache cleanup incomplete: {'; '.join(problems)}", "WARNING")
        return False

    log_message("Windows Update cache cleared")
    return True
