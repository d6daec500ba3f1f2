"""
Logging setup for q-config-backup.

Every module logs through the standard ``logging`` package under the
``q_config_backup`` logger. Two handlers are attached:

- a console handler: errors and warnings on stderr, successes on stdout,
  informational messages only in verbose mode;
- an append-only log file with ``[YYYY-mm-dd HH:MM:SS] [LEVEL] message``
  lines. Records emitted before the log file is attached (while the
  configuration is still being loaded) are held and written once it is.

Problems writing the log file are reported once on the console and never
interrupt the running command.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

PACKAGE_LOGGER = "q_config_backup"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Records kept until the log file location is known
STARTUP_BUFFER_SIZE = 1000

_LEVEL_NAMES = {
    logging.WARNING: "WARN",
    logging.CRITICAL: "ERROR",
}


class LevelFormatter(logging.Formatter):
    """Formatter that renders WARNING as WARN."""

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = _LEVEL_NAMES.get(record.levelno, original)
        try:
            return super().format(record)
        finally:
            record.levelname = original


class ConsoleHandler(logging.Handler):
    """Write warnings and errors to stderr and everything else to stdout."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            stream = sys.stderr if record.levelno >= logging.WARNING else sys.stdout
            stream.write(message + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


class LogFileHandler(logging.FileHandler):
    """
    Append-only log file handler that degrades to a console warning.

    The parent directory is created on first write. If the file cannot be
    opened or written, a single warning goes to stderr and further records
    are dropped for this handler.
    """

    def __init__(self, filename: str | Path) -> None:
        super().__init__(filename, mode="a", encoding="utf-8", delay=True)
        self.failed = False

    def _open(self):
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()

    def emit(self, record: logging.LogRecord) -> None:
        if self.failed:
            return
        try:
            super().emit(record)
        except OSError as e:
            self._report_failure(e)

    def handleError(self, record: logging.LogRecord) -> None:
        self._report_failure(sys.exc_info()[1])

    def _report_failure(self, error: BaseException | None) -> None:
        if self.failed:
            return
        self.failed = True
        sys.stderr.write(
            f"WARN: Cannot write to log file {self.baseFilename}: {error}\n"
        )


def _console_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose > 1:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return SUCCESS


def setup_logging(verbose: int = 0, quiet: bool = False) -> logging.Logger:
    """
    Configure console logging for the package.

    Replaces handlers installed by earlier calls, so it is safe to call once
    per command invocation.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, (ConsoleHandler, LogFileHandler, logging.handlers.MemoryHandler)):
            logger.removeHandler(handler)
            handler.close()

    console = ConsoleHandler(level=_console_level(verbose, quiet))
    console.setFormatter(LevelFormatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    startup = logging.handlers.MemoryHandler(
        capacity=STARTUP_BUFFER_SIZE,
        flushLevel=logging.CRITICAL + 1,
        flushOnClose=False,
    )
    startup.setLevel(logging.INFO)
    logger.addHandler(startup)

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger


def attach_log_file(log_file: str | Path) -> LogFileHandler:
    """
    Start appending package log records to ``log_file``.

    Records held since :func:`setup_logging` are written first.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = LogFileHandler(log_file)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    for startup in [h for h in logger.handlers if isinstance(h, logging.handlers.MemoryHandler)]:
        startup.setTarget(handler)
        startup.flush()
        logger.removeHandler(startup)
        startup.close()

    logger.addHandler(handler)
    return handler
