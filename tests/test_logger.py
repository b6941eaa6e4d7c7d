"""Tests for logger functionality."""

import logging

import pytest


def test_logger_set_level():
    """Test setting log level via string."""
    from ofdmtrace import logger

    logger.set_log_level("DEBUG")
    assert logger.logger.level == 10
    logger.set_log_level("info")
    assert logger.logger.level == 20
    logger.set_log_level(logging.WARNING)
    assert logger.logger.level == 30
    logger.set_log_level("INFO")


def test_unknown_level():
    from ofdmtrace.logger import set_log_level

    with pytest.raises(ValueError):
        set_log_level("LOUD")


def test_package_logger_has_single_handler():
    from ofdmtrace.logger import ColorFormatter, get_logger

    log = get_logger()
    assert log is get_logger("ofdmtrace")
    assert len(log.handlers) == 1
    assert isinstance(log.handlers[0].formatter, ColorFormatter)


def test_child_loggers_propagate():
    from ofdmtrace.logger import get_logger

    child = get_logger("modem")
    assert child.name == "ofdmtrace.modem"
    assert child.handlers == []
    assert get_logger("ofdmtrace.io").name == "ofdmtrace.io"


def test_color_formatter():
    from ofdmtrace.logger import ColorFormatter

    record = logging.LogRecord("ofdmtrace", logging.WARNING, __file__, 1, "msg", None, None)
    text = ColorFormatter(use_color=True).format(record)
    assert ColorFormatter.YELLOW in text
    assert "[WARNING]" in text
    assert text.endswith(ColorFormatter.RESET)

    plain = ColorFormatter(use_color=False).format(record)
    assert "\x1b[" not in plain
    assert plain.endswith("msg")


def test_frame_logger_prefix(caplog):
    from ofdmtrace.logger import frame_logger

    with caplog.at_level(logging.INFO, logger="ofdmtrace"):
        frame_logger(3).info("nin 1280")
    assert "[frame 3] nin 1280" in caplog.text
