"""
Logging for trace runs.

All modules log through the ``ofdmtrace`` package logger, which carries a
single colorized stdout handler. Messages about one demodulated frame go
through a `FrameLogger`, which prefixes the frame number so the lines of a
long run can be matched against the trace arrays.
"""

import logging
import sys
from typing import Optional, Union

PACKAGE = "ofdmtrace"


class ColorFormatter(logging.Formatter):
    """
    Formatter that colors the whole line by log level.

    Args:
        use_color: Emit ANSI color codes. Defaults to whether stdout is a
            terminal, so redirected runs write plain text.
    """

    GREY = "\x1b[38;20m"
    CYAN = "\x1b[36;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"
    FORMAT = "%(asctime)s [%(levelname)s] [%(name)s/%(filename)s] %(message)s"
    DATEFMT = "%Y-%m-%d %H:%M:%S"

    LEVEL_COLORS = {
        logging.DEBUG: CYAN,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def __init__(self, use_color: Optional[bool] = None):
        super().__init__(self.FORMAT, datefmt=self.DATEFMT)
        if use_color is None:
            use_color = sys.stdout.isatty()
        self.use_color = use_color
        self._formatters = {
            level: logging.Formatter(f"{color}{self.FORMAT}{self.RESET}", datefmt=self.DATEFMT)
            for level, color in self.LEVEL_COLORS.items()
        }

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)
        formatter = self._formatters.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)


class FrameLogger(logging.LoggerAdapter):
    """Adapter that prefixes every message with ``[frame N]``."""

    def process(self, msg, kwargs):
        return f"[frame {self.extra['frame']}] {msg}", kwargs


def get_logger(name: str = PACKAGE) -> logging.Logger:
    """
    Returns the package logger or one of its children.

    Only the package logger gets a handler; children propagate to it, so the
    output is configured in one place.

    Args:
        name: Logger name. Names outside the package are placed under it.

    Returns:
        A configured logging.Logger instance.
    """
    if name != PACKAGE and not name.startswith(PACKAGE + "."):
        name = f"{PACKAGE}.{name}"
    log = logging.getLogger(name)

    if name == PACKAGE and not log.handlers:
        log.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColorFormatter())
        log.addHandler(handler)

    return log


# Default logger for the package
logger = get_logger()


def frame_logger(frame: int, log: Optional[logging.Logger] = None) -> FrameLogger:
    """Returns an adapter of ``log`` (the package logger by default) for one frame."""
    return FrameLogger(log if log is not None else logger, {"frame": frame})


def set_log_level(level: Union[int, str]):
    """
    Sets the level of the package logger.

    Args:
        level: logging.DEBUG, logging.INFO, etc. or a name such as "DEBUG".
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"unknown log level '{name}'")
    logger.setLevel(level)
