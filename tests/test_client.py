import dataclasses
import logging

import pytest

from winupdates.modules.wua.client import (
    OperationOutcome,
    ResultCode,
    UpdateCatalogClient,
    UpdateDescriptor,
    WindowsUpdateError,
    describe_result_code,
)
from winupdates.utils.powershell import PlatformCommandError, ps_quote


class ScriptedRunner:
    """Returns queued responses and records every script it is given."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.scripts = []
        self.timeouts = []

    def __call__(self, script, timeout=None):
        self.scripts.append(script)
        self.timeouts.append(timeout)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


SEARCH_ITEM = {
    "Title": "2024-05 Cumulative Update for Windows 11 (KB5037771)",
    "UpdateID": "a1b2c3d4-0000-0000-0000-000000000001",
    "RevisionNumber": 200,
    "IsInstalled": False,
    "MaxDownloadSize": 734003200,
    "KBArticleIDs": ["5037771"],
}


@pytest.fixture
def default_source(config):
    return dataclasses.replace(config, use_alternate_update_source=False)


def test_search_decodes_update_list(default_source):
    runner = ScriptedRunner([SEARCH_ITEM, dict(SEARCH_ITEM, UpdateID="other", Title="Defender")])
    updates = UpdateCatalogClient(default_source, runner=runner).search()

    assert [u.title for u in updates] == [SEARCH_ITEM["Title"], "Defender"]
    assert updates[0].revision_number == 200
    assert updates[0].kb_article_ids == ("5037771",)
    assert f"$searcher.Search({ps_quote(default_source.search_criteria)})" in runner.scripts[0]
    assert "Type=''Software''" in runner.scripts[0]
    assert "ServiceID" not in runner.scripts[0]
    assert runner.timeouts == [None]


def test_search_accepts_single_object_and_empty_output(default_source):
    client = UpdateCatalogClient(default_source, runner=ScriptedRunner(SEARCH_ITEM, None))

    assert len(client.search()) == 1
    assert client.search() == []


def test_alternate_source_registers_microsoft_update_first(config):
    runner = ScriptedRunner({"Registered": True, "Added": True}, [])
    client = UpdateCatalogClient(config, runner=runner)

    assert client.search() == []

    assert "Microsoft.Update.ServiceManager" in runner.scripts[0]
    assert config.microsoft_update_service_id in runner.scripts[0]
    assert "$searcher.ServerSelection = 3" in runner.scripts[1]
    assert config.microsoft_update_service_id in runner.scripts[1]


def test_registration_failure_falls_back_to_default_source(config, caplog):
    runner = ScriptedRunner(PlatformCommandError("access denied"), [])
    client = UpdateCatalogClient(config, runner=runner)

    client.search()

    assert client.use_alternate_source is False
    assert "ServerSelection" not in runner.scripts[1]
    assert any(r.levelno == logging.WARNING and "Microsoft Update" in r.getMessage() for r in caplog.records)


def test_platform_failure_becomes_windows_update_error(default_source):
    runner = ScriptedRunner(PlatformCommandError("0x8024402C", returncode=1, stderr="0x8024402C"))

    with pytest.raises(WindowsUpdateError) as excinfo:
        UpdateCatalogClient(default_source, runner=runner).search()
    assert excinfo.value.returncode == 1


def test_download_builds_collection_from_identities(default_source):
    updates = [UpdateDescriptor.from_dict(SEARCH_ITEM)]
    runner = ScriptedRunner({"ResultCode": 2, "HResult": 0, "Matched": 1})

    outcome = UpdateCatalogClient(default_source, runner=runner).download(updates)

    assert outcome.succeeded
    assert SEARCH_ITEM["UpdateID"] in runner.scripts[0]
    assert "CreateUpdateDownloader" in runner.scripts[0]


def test_install_suppresses_prompts(default_source):
    updates = [UpdateDescriptor.from_dict(SEARCH_ITEM)]
    runner = ScriptedRunner({"ResultCode": 2, "HResult": 0, "RebootRequired": True, "Matched": 1})

    outcome = UpdateCatalogClient(default_source, runner=runner).install(updates)

    assert outcome.result_code == ResultCode.SUCCEEDED
    assert outcome.reboot_required is True
    script = runner.scripts[0]
    assert "$installer.ForceQuiet = $true" in script
    assert "$installer.AllowSourcePrompts = $false" in script
    assert "AcceptEula()" in script


def test_outcome_without_result_code_is_an_error():
    with pytest.raises(WindowsUpdateError):
        OperationOutcome.from_dict({"HResult": 0})


def test_describe_result_code():
    assert describe_result_code(4) == "4 (FAILED)"
    assert describe_result_code(42) == "42 (unknown)"
