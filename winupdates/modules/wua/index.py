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

from typing import Any, Callable, Dict, List, Optional, Sequence

from ...utils.index import log_message, debug_log
from ..reboot.index import schedule_reboot
from .client import UpdateCatalogClient, UpdateDescriptor, ResultCode, describe_result_code


def format_title(title: str, max_length: int = 80) -> str:
    """Shorten a title to ``max_length`` characters, ending in '...' when cut."""
    if len(title) > max_length:
        return title[:max_length - 3] + "..."
    return title


def preview_updates(updates: Sequence[UpdateDescriptor], limit: int = 5, max_length: int = 80) -> None:
    """Log the first ``limit`` titles and a line counting the rest."""
    for update in updates[:limit]:
        log_message(f"  - {format_title(update.title, max_length)}")
    remaining = len(updates) - limit
    if remaining > 0:
        log_message(f"  ... and {remaining} more update(s)")


def run_update_cycle(config, client: Optional[UpdateCatalogClient] = None,
                     reboot: Callable[[Any], bool] = schedule_reboot) -> Dict[str, Any]:
    """
    Search, download and install pending updates.

    Search, download and install failures are logged as errors and end the
    cycle early. Nothing is raised to the caller.

    Args:
        config: RunConfiguration for this run
        client: Windows Update Agent capability (defaults to UpdateCatalogClient)
        reboot: Reboot scheduler, called when a restart is required and allowed

    Returns:
        dict: installed (bool), updates_found, reboot_required, reboot_scheduled, error
    """
    result = {
        "installed": False,
        "updates_found": 0,
        "reboot_required": False,
        "reboot_scheduled": False,
        "error": None
    }

    try:
        client = client or UpdateCatalogClient(config)

        log_message("Searching for updates...")
        try:
            updates = client.search()
        except Exception as e:
            log_message(f"Update search failed: {e}", "ERROR")
            result["error"] = f"search failed: {e}"
            return result

        result["updates_found"] = len(updates)
        if not updates:
            log_message("No updates found")
            return result

        log_message(f"Found {len(updates)} update(s):")
        preview_updates(updates, config.preview_limit, config.max_title_length)

        if not config.install_updates:
            log_message("Update installation is disabled; skipping download and install")
            return result

        collection: List[UpdateDescriptor] = list(updates)

        log_message(f"Downloading {len(collection)} update(s)...")
        download = client.download(collection)
        if download.result_code != ResultCode.SUCCEEDED:
            log_message(f"Download failed with result code {describe_result_code(download.result_code)}", "ERROR")
            result["error"] = f"download result code {download.result_code}"
            return result
        debug_log("Download completed")

        log_message(f"Installing {len(collection)} update(s)...")
        install = client.install(collection)
        if install.result_code != ResultCode.SUCCEEDED:
            log_message(f"Installation failed with result code {describe_result_code(install.result_code)}", "ERROR")
            result["error"] = f"install result code {install.result_code}"
            return result

        log_message("Updates installed successfully")
        result["installed"] = True
        result["reboot_required"] = install.reboot_required

        if install.reboot_required:
            if config.auto_reboot:
                try:
                    result["reboot_scheduled"] = bool(reboot(config))
                except Exception as e:
                    log_message(f"Failed to schedule reboot: {e}", "ERROR")
            else:
                log_message("A reboot is required to finish installing updates; automatic reboot is disabled", "WARNING")
        else:
            log_message("No reboot required")

    except Exception as e:
        log_message(f"Windows update failed: {e}", "ERROR")
        result["error"] = str(e)

    return result


def run_windows_update(config, client: Optional[UpdateCatalogClient] = None,
                       reboot: Callable[[Any], bool] = schedule_reboot) -> bool:
    """Run the update cycle and report whether updates were installed."""
    return run_update_cycle(config, client=client, reboot=reboot)["installed"]
