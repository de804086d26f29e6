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
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""

"""
Unattended Windows update sequence.

Restarts the update services, clears the update cache, triggers a scan, then
searches, downloads and installs pending updates without prompts and
schedules a restart when one is required.
"""

from .utils.index import log_message
from .config import RunConfiguration, build_run_configuration, load_module_config
from .index import run_update_sequence, main

# Re-export the entry points for callers embedding the sequence
__all__ = [
    'log_message',
    'RunConfiguration',
    'build_run_configuration',
    'load_module_config',
    'run_update_sequence',
    'main'
]
