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
Windows Update Agent client

Talks to the Microsoft.Update.Session COM API through PowerShell. COM objects
do not survive between PowerShell invocations, so the download and install
calls search again and rebuild the collection from the update identities the
caller passes in.
"""

from enum import IntEnum
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ...utils.index import log_message, debug_log
from ...utils.powershell import PlatformCommandError, run_powershell_json, ps_quote

CLIENT_APPLICATION_ID = "winupdates"

# ServerSelection value for a service registered by ServiceID
SERVER_SELECTION_OTHERS = 3

# AddService2 flags: allow pending registration, allow online registration, register with AU
MICROSOFT_UPDATE_REGISTRATION_FLAGS = 7


class WindowsUpdateError(PlatformCommandError):
    """Raised when the Windows Update Agent cannot complete a request."""
    pass


class ResultCode(IntEnum):
    """OperationResultCode values returned by the Windows Update Agent."""
    NOT_STARTED = 0
    IN_PROGRESS = 1
    SUCCEEDED = 2
    SUCCEEDED_WITH_ERRORS = 3
    FAILED = 4
    ABORTED = 5


def describe_result_code(code: int) -> str:
    """Render a raw result code with its name when it is a known value."""
    try:
        return f"{int(code)} ({ResultCode(int(code)).name})"
    except ValueError:
        return f"{code} (unknown)"


@dataclass(frozen=True)
class UpdateDescriptor:
    """One available update as reported by the search."""
    title: str
    update_id: str
    revision_number: int = 0
    is_installed: bool = False
    max_download_size: int = 0
    kb_article_ids: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UpdateDescriptor':
        kb = data.get("KBArticleIDs") or []
        if isinstance(kb, str):
            kb = [kb]
        return cls(
            title=str(data.get("Title") or ""),
            update_id=str(data.get("UpdateID") or ""),
            revision_number=int(data.get("RevisionNumber") or 0),
            is_installed=bool(data.get("IsInstalled", False)),
            max_download_size=int(data.get("MaxDownloadSize") or 0),
            kb_article_ids=tuple(str(k) for k in kb),
        )


@dataclass(frozen=True)
class OperationOutcome:
    """Result of a download or install request."""
    result_code: int
    hresult: int = 0
    reboot_required: bool = False
    matched: int = 0

    @property
    def succeeded(self) -> bool:
        return self.result_code == ResultCode.SUCCEEDED

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'OperationOutcome':
        if not isinstance(data, dict) or "ResultCode" not in data:
            raise WindowsUpdateError(f"Windows Update Agent returned no result: {data!r}")
        return cls(
            result_code=int(data["ResultCode"]),
            hresult=int(data.get("HResult") or 0),
            reboot_required=bool(data.get("RebootRequired", False)),
            matched=int(data.get("Matched") or 0),
        )


def _as_list(data: Any) -> List[Any]:
    # ConvertTo-Json emits a bare object for single-element arrays
    if data is None:
        return []
    return data if isinstance(data, list) else [data]


class UpdateCatalogClient:
    """
    Search, download and install updates through the Windows Update Agent.

    Every method raises WindowsUpdateError (or PlatformCommandError) when the
    agent cannot be reached or reports an error; deciding whether that is
    fatal is left to the caller.
    """

    def __init__(self, config, runner: Callable[..., Any] = run_powershell_json):
        self.config = config
        self.runner = runner
        self.use_alternate_source = config.use_alternate_update_source
        self._alternate_source_checked = False

    def _session_script(self) -> str:
        lines = [
            "$session = New-Object -ComObject Microsoft.Update.Session",
            f"$session.ClientApplicationID = {ps_quote(CLIENT_APPLICATION_ID)}",
            "$searcher = $session.CreateUpdateSearcher()",
        ]
        if self.use_alternate_source:
            lines.append(f"$searcher.ServerSelection = {SERVER_SELECTION_OTHERS}")
            lines.append(f"$searcher.ServiceID = {ps_quote(self.config.microsoft_update_service_id)}")
        lines.append(f"$result = $searcher.Search({ps_quote(self.config.search_criteria)})")
        return "\n".join(lines) + "\n"

    def _collection_script(self, updates: Sequence[UpdateDescriptor], accept_eula: bool = False) -> str:
        ids = ", ".join(ps_quote(u.update_id) for u in updates)
        accept = "    if (-not $u.EulaAccepted) { $u.AcceptEula() }\n" if accept_eula else ""
        return (
            self._session_script()
            + f"$wanted = @({ids})\n"
            + "$coll = New-Object -ComObject Microsoft.Update.UpdateColl\n"
            + "foreach ($u in $result.Updates) {\n"
            + "  if ($wanted -contains $u.Identity.UpdateID) {\n"
            + accept
            + "    [void]$coll.Add($u)\n"
            + "  }\n"
            + "}\n"
            + "if ($coll.Count -eq 0) { throw 'None of the requested updates are available' }\n"
        )

    def _run(self, script: str) -> Any:
        try:
            return self.runner(script)
        except WindowsUpdateError:
            raise
        except PlatformCommandError as e:
            raise WindowsUpdateError(str(e), returncode=e.returncode, stderr=e.stderr) from e

    def ensure_alternate_source(self) -> bool:
        """
        Register the Microsoft Update service when the alternate source is enabled.

        Registration failure is a warning; the default Windows Update source is
        used instead for the rest of the run.
        """
        if not self.use_alternate_source or self._alternate_source_checked:
            return self.use_alternate_source
        self._alternate_source_checked = True
        service_id = ps_quote(self.config.microsoft_update_service_id)
        script = (
            "$manager = New-Object -ComObject Microsoft.Update.ServiceManager\n"
            f"$registered = @($manager.Services | Where-Object {{ $_.ServiceID -eq {service_id} }})\n"
            "if ($registered.Count -eq 0) {\n"
            f"  [void]$manager.AddService2({service_id}, {MICROSOFT_UPDATE_REGISTRATION_FLAGS}, '')\n"
            "  [pscustomobject]@{ Registered = $true; Added = $true } | ConvertTo-Json -Compress\n"
            "} else {\n"
            "  [pscustomobject]@{ Registered = $true; Added = $false } | ConvertTo-Json -Compress\n"
            "}\n"
        )
        try:
            data = self._run(script)
            if isinstance(data, dict) and data.get("Added"):
                log_message("Registered Microsoft Update service")
            else:
                debug_log("Microsoft Update service already registered")
        except WindowsUpdateError as e:
            log_message(f"Could not register Microsoft Update service, using Windows Update: {e}", "WARNING")
            self.use_alternate_source = False
        return self.use_alternate_source

    def search(self) -> List[UpdateDescriptor]:
        """Return every update matching the configured search criterion."""
        self.ensure_alternate_source()
        script = (
            self._session_script()
            + "$items = @()\n"
            + "foreach ($u in $result.Updates) {\n"
            + "  $items += [pscustomobject]@{\n"
            + "    Title = $u.Title\n"
            + "    UpdateID = $u.Identity.UpdateID\n"
            + "    RevisionNumber = $u.Identity.RevisionNumber\n"
            + "    IsInstalled = $u.IsInstalled\n"
            + "    MaxDownloadSize = [int64]$u.MaxDownloadSize\n"
            + "    KBArticleIDs = @($u.KBArticleIDs)\n"
            + "  }\n"
            + "}\n"
            + "ConvertTo-Json -InputObject $items -Depth 4 -Compress\n"
        )
        data = self._run(script)
        updates = []
        for item in _as_list(data):
            if not isinstance(item, dict):
                raise WindowsUpdateError(f"Unexpected search result entry: {item!r}")
            updates.append(UpdateDescriptor.from_dict(item))
        return updates

    def download(self, updates: Sequence[UpdateDescriptor]) -> OperationOutcome:
        """Download the whole collection synchronously."""
        script = (
            self._collection_script(updates)
            + "$downloader = $session.CreateUpdateDownloader()\n"
            + "$downloader.Updates = $coll\n"
            + "$r = $downloader.Download()\n"
            + "[pscustomobject]@{ ResultCode = [int]$r.ResultCode; HResult = $r.HResult; "
            + "Matched = $coll.Count } | ConvertTo-Json -Compress\n"
        )
        outcome = OperationOutcome.from_dict(self._run(script))
        self._check_matched(outcome, updates)
        return outcome

    def install(self, updates: Sequence[UpdateDescriptor]) -> OperationOutcome:
        """Install the whole collection with every prompt suppressed."""
        script = (
            self._collection_script(updates, accept_eula=True)
            + "$installer = $session.CreateUpdateInstaller()\n"
            + "$installer.ForceQuiet = $true\n"
            + "$installer.AllowSourcePrompts = $false\n"
            + "$installer.Updates = $coll\n"
            + "$r = $installer.Install()\n"
            + "[pscustomobject]@{ ResultCode = [int]$r.ResultCode; HResult = $r.HResult; "
            + "RebootRequired = [bool]$r.RebootRequired; Matched = $coll.Count } | ConvertTo-Json -Compress\n"
        )
        outcome = OperationOutcome.from_dict(self._run(script))
        self._check_matched(outcome, updates)
        return outcome

    def _check_matched(self, outcome: OperationOutcome, updates: Sequence[UpdateDescriptor]) -> None:
        if outcome.matched and outcome.matched != len(updates):
            log_message(
                f"Only {outcome.matched} of {len(updates)} updates were still available to the agent",
                "WARNING"
            )
