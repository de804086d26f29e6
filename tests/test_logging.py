import logging
import re

from winupdates.utils.index import ConsoleFormatter, log_message, setup_update_logging

LINE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2} \[(INFO|WARNING|ERROR|DEBUG)\] .+$")


def test_log_file_lines_are_timestamped_and_levelled(tmp_path):
    log_path = tmp_path / "nested" / "dir" / "update.log"

    assert setup_update_logging(str(log_path), silent=True) is True
    log_message("Searching for updates...")
    log_message("Update scan trigger failed", "WARNING")

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(LINE.match(line) for line in lines)
    assert lines[0].endswith("[INFO] Searching for updates...")
    assert lines[1].endswith("[WARNING] Update scan trigger failed")


def test_log_file_is_appended(tmp_path):
    log_path = tmp_path / "update.log"
    log_path.write_text("previous run\n", encoding="utf-8")

    setup_update_logging(str(log_path), silent=True)
    log_message("next run")

    assert log_path.read_text(encoding="utf-8").splitlines()[0] == "previous run"


def test_console_echo_unless_silent(tmp_path, capsys):
    setup_update_logging(str(tmp_path / "a.log"), silent=False)
    log_message("visible")
    assert "[INFO] visible" in capsys.readouterr().out

    setup_update_logging(str(tmp_path / "b.log"), silent=True)
    log_message("hidden")
    assert "hidden" not in capsys.readouterr().out
    assert "hidden" in (tmp_path / "b.log").read_text(encoding="utf-8")


def test_reconfiguring_does_not_duplicate_lines(tmp_path):
    log_path = tmp_path / "update.log"
    setup_update_logging(str(log_path), silent=True)
    setup_update_logging(str(log_path), silent=True)

    log_message("once")

    assert log_path.read_text(encoding="utf-8").count("once") == 1


def test_unwritable_log_file_falls_back_to_console(tmp_path, capsys, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    assert setup_update_logging(str(blocker / "update.log"), silent=True) is False

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Cannot write log file" in warnings[0]
    assert "Cannot write log file" in capsys.readouterr().err


def test_debug_lines_only_with_debug(tmp_path):
    log_path = tmp_path / "update.log"
    setup_update_logging(str(log_path), silent=True, debug=False)
    log_message("quiet detail", "DEBUG")
    setup_update_logging(str(log_path), silent=True, debug=True)
    log_message("loud detail", "DEBUG")

    text = log_path.read_text(encoding="utf-8")
    assert "quiet detail" not in text
    assert "[DEBUG] loud detail" in text


def test_unknown_level_is_logged_as_info(caplog):
    log_message("odd level", "NOTICE")

    assert caplog.records[-1].levelno == logging.INFO


def test_console_formatter_highlights_errors_and_warnings():
    formatter = ConsoleFormatter(use_color=True)

    def fmt(level):
        record = logging.LogRecord("root", level, __file__, 1, "msg", None, None)
        return formatter.format(record)

    assert fmt(logging.ERROR).startswith("\033[31m")
    assert fmt(logging.WARNING).startswith("\033[33m")
    assert not fmt(logging.INFO).startswith("\033[")
    assert not ConsoleFormatter(use_color=False).format(
        logging.LogRecord("root", logging.ERROR, __file__, 1, "msg", None, None)
    ).startswith("\033[")
