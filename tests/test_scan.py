import logging

import pytest

from winupdates.modules.scan.index import select_scan_command, trigger_update_scan
from winupdates.utils.powershell import PlatformCommandError


@pytest.mark.parametrize("os_version, expected", [
    ("10.0.22631", ["UsoClient.exe", "StartScan"]),
    ("6.3.9600", ["wuauclt.exe", "/detectnow"]),
    ("not-a-version", ["UsoClient.exe", "StartScan"]),
])
def test_select_scan_command(config, os_version, expected):
    assert select_scan_command(config, os_version) == expected


def test_select_scan_command_off_windows(config, monkeypatch):
    monkeypatch.setattr("winupdates.modules.scan.index.get_windows_version", lambda: None)

    assert select_scan_command(config) == ["UsoClient.exe", "StartScan"]


def test_trigger_runs_command_and_waits(config):
    calls = []

    def runner(command, timeout=None):
        calls.append((command, timeout))

    assert trigger_update_scan(config, runner=runner, os_version="10.0.19045") is True
    assert calls[0][0] == ["UsoClient.exe", "StartScan"]
    assert calls[0][1] is None


def test_trigger_failure_is_only_a_warning(config, caplog):
    def runner(command, timeout=None):
        raise PlatformCommandError("Command not found: UsoClient.exe")

    assert trigger_update_scan(config, runner=runner, os_version="10.0.19045") is False
    assert [r.levelno for r in caplog.records if "scan trigger failed" in r.getMessage()] == [logging.WARNING]
