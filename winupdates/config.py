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
Run configuration for the Windows update sequence.

Defaults live in the package's index.json. Command line flags override the
behavioural switches, and the result is frozen into a RunConfiguration that
every component receives explicitly.
"""

import os
import json
import ntpath
import argparse
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .utils.index import log_message

LOG_FILE_ENV = "WINUPDATES_LOG_FILE"

DEFAULT_MODULE_CONFIG = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "winupdates"
    },
    "config": {
        "log_file_name": "WindowsUpdate-Automation.log",
        "services": ["wuauserv", "bits", "cryptsvc"],
        "primary_service": "wuauserv",
        "service_restart_delay_seconds": 2,
        "cache_directories": [
            "%SystemRoot%\\SoftwareDistribution\\Download",
            "%SystemRoot%\\SoftwareDistribution\\DataStore"
        ],
        "scan": {
            "modern_command": ["UsoClient.exe", "StartScan"],
            "legacy_command": ["wuauclt.exe", "/detectnow"],
            "modern_min_version": "10.0"
        },
        "search": {
            "criteria": "IsInstalled=0 and Type='Software'",
            "microsoft_update_service_id": "7971f918-a847-4430-9279-4a52d1efe18d"
        },
        "preview": {
            "limit": 5,
            "max_title_length": 80
        },
        "reboot": {
            "delay_seconds": 60,
            "reason": "Windows Update: restarting to finish installing updates"
        }
    }
}


class ConfigurationError(Exception):
    """Raised when the run configuration cannot be built."""
    pass


def load_module_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from the package's index.json file.

    Args:
        config_path: Optional explicit path, defaults to index.json beside this module

    Returns:
        dict: Configuration data, or the built-in defaults if loading fails
    """
    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "index.json")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except Exception as e:
        log_message(f"Failed to load module config: {e}", "WARNING")
        return DEFAULT_MODULE_CONFIG


def default_log_path(module_config: Optional[Dict[str, Any]] = None) -> str:
    """Log file used when neither --log-file nor the environment names one."""
    config = (module_config or DEFAULT_MODULE_CONFIG).get("config", {})
    file_name = config.get("log_file_name", DEFAULT_MODULE_CONFIG["config"]["log_file_name"])
    return os.path.join(tempfile.gettempdir(), file_name)


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable settings for one run, built once at startup."""
    use_alternate_update_source: bool = True
    install_updates: bool = True
    auto_reboot: bool = True
    log_file_path: str = ""
    silent: bool = False
    debug: bool = False
    services: Tuple[str, ...] = ("wuauserv", "bits", "cryptsvc")
    primary_service: str = "wuauserv"
    service_restart_delay: float = 2
    cache_directories: Tuple[str, ...] = ()
    scan_modern_command: Tuple[str, ...] = ("UsoClient.exe", "StartScan")
    scan_legacy_command: Tuple[str, ...] = ("wuauclt.exe", "/detectnow")
    scan_modern_min_version: str = "10.0"
    search_criteria: str = "IsInstalled=0 and Type='Software'"
    microsoft_update_service_id: str = "7971f918-a847-4430-9279-4a52d1efe18d"
    preview_limit: int = 5
    max_title_length: int = 80
    reboot_delay_seconds: int = 60
    reboot_reason: str = "Windows Update: restarting to finish installing updates"


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="winupdates",
        description="Search, download and install Windows updates without prompts"
    )
    parser.add_argument("--use-alternate-update-source", action=argparse.BooleanOptionalAction, default=True,
                       help="Search Microsoft Update instead of Windows Update (default: on)")
    parser.add_argument("--install-updates", action=argparse.BooleanOptionalAction, default=True,
                       help="Download and install the updates that are found (default: on)")
    parser.add_argument("--auto-reboot", action=argparse.BooleanOptionalAction, default=True,
                       help="Schedule a restart when installation requires one (default: on)")
    parser.add_argument("--log-file", metavar="PATH", default=None,
                       help=f"Log file path (default: ${LOG_FILE_ENV} or a file in the temp directory)")
    parser.add_argument("--silent", action="store_true",
                       help="Do not echo log lines to the console")
    parser.add_argument("--debug", action="store_true",
                       help="Enable debug logging")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return create_parser().parse_args(argv)


def _expand_path(path: str) -> str:
    # %SystemRoot% style variables; expanded the Windows way on every platform
    return os.path.expanduser(ntpath.expandvars(path))


def _tuple_of_strings(value: Any, key: str) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) and v for v in value):
        raise ConfigurationError(f"config.{key} must be a list of non-empty strings")
    return tuple(value)


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"config.{key} must be a non-empty string")
    return value


def _section(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = config.get(key, {})
    if not isinstance(value, dict):
        raise ConfigurationError(f"config.{key} must be an object")
    return value


def build_run_configuration(args: argparse.Namespace,
                            module_config: Optional[Dict[str, Any]] = None) -> RunConfiguration:
    """
    Combine command line flags with index.json defaults.

    Raises:
        ConfigurationError: If the configuration data is malformed
    """
    if module_config is None:
        module_config = load_module_config()
    config = module_config.get("config")
    if not isinstance(config, dict):
        raise ConfigurationError("index.json has no 'config' section")

    log_file = args.log_file or os.environ.get(LOG_FILE_ENV) or default_log_path(module_config)

    try:
        scan = _section(config, "scan")
        search = _section(config, "search")
        preview = _section(config, "preview")
        reboot = _section(config, "reboot")

        services = _tuple_of_strings(config.get("services", []), "services")
        if not services:
            raise ConfigurationError("config.services must name at least one service")
        cache_directories = tuple(
            _expand_path(p) for p in _tuple_of_strings(config.get("cache_directories", []), "cache_directories")
        )

        preview_limit = int(preview.get("limit", 5))
        max_title_length = int(preview.get("max_title_length", 80))
        delay_seconds = int(reboot.get("delay_seconds", 60))
        restart_delay = float(config.get("service_restart_delay_seconds", 2))
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    if preview_limit < 0 or max_title_length < 4 or delay_seconds < 0 or restart_delay < 0:
        raise ConfigurationError("Preview limits and delays must be non-negative")

    return RunConfiguration(
        use_alternate_update_source=args.use_alternate_update_source,
        install_updates=args.install_updates,
        auto_reboot=args.auto_reboot,
        log_file_path=log_file,
        silent=args.silent,
        debug=args.debug,
        services=services,
        primary_service=_string(config.get("primary_service", services[0]), "primary_service"),
        service_restart_delay=restart_delay,
        cache_directories=cache_directories,
        scan_modern_command=_tuple_of_strings(
            scan.get("modern_command", ["UsoClient.exe", "StartScan"]), "scan.modern_command"),
        scan_legacy_command=_tuple_of_strings(
            scan.get("legacy_command", ["wuauclt.exe", "/detectnow"]), "scan.legacy_command"),
        scan_modern_min_version=_string(scan.get("modern_min_version", "10.0"), "scan.modern_min_version"),
        search_criteria=_string(search.get("criteria", "IsInstalled=0 and Type='Software'"), "search.criteria"),
        microsoft_update_service_id=_string(search.get(
            "microsoft_update_service_id", "7971f918-a847-4430-9279-4a52d1efe18d"),
            "search.microsoft_update_service_id"),
        preview_limit=preview_limit,
        max_title_length=max_title_length,
        reboot_delay_seconds=delay_seconds,
        reboot_reason=_string(reboot.get("reason", "Windows Update: restarting to finish installing updates"),
                              "reboot.reason"),
    )
