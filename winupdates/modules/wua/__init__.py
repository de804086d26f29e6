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
Update Orchestrator

Searches the Windows Update Agent for pending updates, then downloads and
installs them without prompts.
"""

from .client import UpdateCatalogClient, UpdateDescriptor, OperationOutcome, ResultCode, WindowsUpdateError
from .index import run_windows_update, run_update_cycle, format_title, preview_updates

__all__ = [
    'UpdateCatalogClient',
    'UpdateDescriptor',
    'OperationOutcome',
    'ResultCode',
    'WindowsUpdateError',
    'run_windows_update',
    'run_update_cycle',
    'format_title',
    'preview_updates'
]
