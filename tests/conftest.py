"""Shared fixtures and in-memory stand-ins for the Windows platform."""

import logging

import pytest

from winupdates.config import RunConfiguration
from winupdates.modules.wua.client import OperationOutcome, ResultCode, UpdateDescriptor


@pytest.fixture(autouse=True)
def capture_all_levels(caplog):
    caplog.set_level(logging.DEBUG)
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_added_by_setup_update_logging", False):
            root.removeHandler(h)
            h.close()


@pytest.fixture
def config(tmp_path):
    return RunConfiguration(
        log_file_path=str(tmp_path / "logs" / "update.log"),
        service_restart_delay=0,
        cache_directories=(str(tmp_path / "Download"), str(tmp_path / "DataStore")),
    )


def make_updates(count, title_length=20):
    return [
        UpdateDescriptor(
            title=f"Update {i} " + "x" * max(0, title_length - len(f"Update {i} ")),
            update_id=f"00000000-0000-0000-0000-{i:012d}",
        )
        for i in range(count)
    ]


class FakeServiceController:
    """Records service calls; names in ``failing`` raise on start."""

    def __init__(self, running=None, failing=(), fail_stop=False):
        self.running = set(running or [])
        self.failing = set(failing)
        self.fail_stop = fail_stop
        self.calls = []

    def is_running(self, name):
        self.calls.append(("query", name))
        return name in self.running

    def stop(self, name, force=True):
        self.calls.append(("stop", name))
        if self.fail_stop:
            raise RuntimeError(f"cannot stop {name}")
        self.running.discard(name)

    def start(self, name):
        self.calls.append(("start", name))
        if name in self.failing:
            raise RuntimeError(f"cannot start {name}")
        self.running.add(name)


class FakeCatalogClient:
    """Update catalog returning canned search, download and install results."""

    def __init__(self, updates=None, download_code=ResultCode.SUCCEEDED,
                 install_code=ResultCode.SUCCEEDED, reboot_required=False,
                 search_error=None, install_error=None):
        self.updates = list(updates or [])
        self.download_code = download_code
        self.install_code = install_code
        self.reboot_required = reboot_required
        self.search_error = search_error
        self.install_error = install_error
        self.downloaded = None
        self.installed = None

    def search(self):
        if self.search_error:
            raise self.search_error
        return list(self.updates)

    def download(self, updates):
        self.downloaded = list(updates)
        return OperationOutcome(result_code=int(self.download_code))

    def install(self, updates):
        if self.install_error:
            raise self.install_error
        self.installed = list(updates)
        return OperationOutcome(result_code=int(self.install_code), reboot_required=self.reboot_required)


class RebootRecorder:
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def __call__(self, config):
        self.calls.append(config)
        return self.result


@pytest.fixture
def services():
    return FakeServiceController(running={"wuauserv", "bits", "cryptsvc"})


@pytest.fixture
def reboot():
    return RebootRecorder()
