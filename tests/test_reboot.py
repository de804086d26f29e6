import logging

from winupdates.modules.reboot.index import build_shutdown_command, schedule_reboot
from winupdates.utils.powershell import PlatformCommandError


def test_shutdown_command():
    assert build_shutdown_command(60, "Finishing updates") == [
        "shutdown.exe", "/r", "/f", "/t", "60", "/c", "Finishing updates"
    ]


def test_schedule_reboot_logs_countdown_first(config, caplog):
    seen = []

    def runner(command, timeout=None):
        assert timeout is None
        seen.append(([r.getMessage() for r in caplog.records], command))

    assert schedule_reboot(config, runner=runner) is True

    messages_before, command = seen[0]
    assert any("60 seconds" in m for m in messages_before)
    assert command[command.index("/t") + 1] == "60"
    assert command[-1] == config.reboot_reason


def test_schedule_failure_leaves_machine_running(config, caplog):
    def runner(command, timeout=None):
        raise PlatformCommandError("shutdown.exe exited with code 1190")

    assert schedule_reboot(config, runner=runner) is False
    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "1190" in errors[0]
