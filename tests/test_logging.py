import logging

import pytest

from dqlite.logging import Level, logger_log_func, stdout_log_func


@pytest.mark.parametrize(
    "level, expected",
    [
        (Level.DEBUG, "DEBUG"),
        (Level.INFO, "INFO"),
        (Level.WARN, "WARN"),
        (Level.ERROR, "ERROR"),
    ],
)
def test_level_string(level, expected):
    assert str(level) == expected


def test_unknown_level_string():
    unknown = Level(666)
    assert str(unknown) == "UNKNOWN"
    assert int(unknown) == 666


def test_none_level_is_unknown(capsys):
    log = stdout_log_func()
    log(Level.NONE, "quiet")
    assert capsys.readouterr().out == "UNKNOWN: quiet\n"


def test_logger_func_hello(caplog):
    caplog.set_level(logging.DEBUG, logger="dqlite-test")
    log = logger_log_func(logging.getLogger("dqlite-test"))
    log(Level.INFO, "hello")
    assert [r.getMessage() for r in caplog.records] == ["INFO: hello"]
    assert caplog.records[0].levelno == logging.INFO


def test_logger_func_formats_arguments(caplog):
    caplog.set_level(logging.DEBUG, logger="dqlite-test-args")
    log = logger_log_func(logging.getLogger("dqlite-test-args"))
    log(Level.WARN, "attempt %d: %s", 3, "refused")
    assert caplog.records[0].getMessage() == "WARN: attempt 3: refused"
    assert caplog.records[0].levelno == logging.WARNING


def test_stdout_func(capsys):
    log = stdout_log_func()
    log(Level.ERROR, "boom %s", "now")
    log(Level.DEBUG, "100%")
    out = capsys.readouterr().out
    assert out == "ERROR: boom now\nDEBUG: 100%\n"