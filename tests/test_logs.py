"""Tests for console and log file output."""

import io
import logging
import re
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from q_config_backup.logs import (
    PACKAGE_LOGGER,
    SUCCESS,
    LogFileHandler,
    attach_log_file,
    setup_logging,
)

LINE_PATTERN = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[(?P<level>[A-Z]+)\] (?P<message>.*)$")


def reset_package_logger() -> None:
    """Remove and close handlers installed on the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class LoggingTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.mkdtemp()
        self.logger = logging.getLogger(f"{PACKAGE_LOGGER}.tests")

    def tearDown(self) -> None:
        reset_package_logger()
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestLogFile(LoggingTestCase):
    """Tests for the append-only log file."""

    def test_log_line_format(self) -> None:
        """Test the [timestamp] [LEVEL] message layout."""
        log_path = Path(self.temp_dir) / "logs" / "backup.log"
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            setup_logging()
            attach_log_file(log_path)

            self.logger.info("starting")
            self.logger.warning("careful")
            self.logger.error("broken")
            self.logger.log(SUCCESS, "done")

        lines = log_path.read_text().splitlines()
        parsed = [LINE_PATTERN.match(line) for line in lines]

        self.assertTrue(all(parsed), lines)
        self.assertEqual(
            [(m.group("level"), m.group("message")) for m in parsed],
            [("INFO", "starting"), ("WARN", "careful"), ("ERROR", "broken"), ("SUCCESS", "done")],
        )

    def test_log_file_is_appended(self) -> None:
        """Test that existing log content is kept."""
        log_path = Path(self.temp_dir) / "backup.log"
        log_path.write_text("previous line\n")

        with redirect_stdout(io.StringIO()):
            setup_logging()
            attach_log_file(log_path)
            self.logger.log(SUCCESS, "next")
        reset_package_logger()

        lines = log_path.read_text().splitlines()
        self.assertEqual(lines[0], "previous line")
        self.assertTrue(lines[1].endswith("[SUCCESS] next"))

    def test_records_before_attach_are_written(self) -> None:
        """Test that records logged before the file is attached are kept."""
        log_path = Path(self.temp_dir) / "backup.log"
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            setup_logging()
            self.logger.warning("early warning")
            self.logger.info("early info")
            self.logger.debug("early debug")
            attach_log_file(log_path)
            self.logger.log(SUCCESS, "later")

        messages = [LINE_PATTERN.match(line).group("message") for line in log_path.read_text().splitlines()]
        self.assertEqual(messages, ["early warning", "early info", "later"])

    def test_unwritable_log_file_warns_once(self) -> None:
        """Test that log file failures go to stderr and do not raise."""
        blocker = Path(self.temp_dir) / "not-a-dir"
        blocker.write_text("x")
        stderr = io.StringIO()

        with redirect_stdout(io.StringIO()), redirect_stderr(stderr):
            setup_logging()
            handler = attach_log_file(blocker / "backup.log")
            self.logger.error("first")
            self.logger.error("second")

        self.assertIsInstance(handler, LogFileHandler)
        self.assertTrue(handler.failed)
        self.assertEqual(stderr.getvalue().count("Cannot write to log file"), 1)
        self.assertIn("ERROR: second", stderr.getvalue())


class TestConsoleOutput(LoggingTestCase):
    """Tests for console routing and verbosity."""

    def _emit_all(self, **kwargs) -> tuple[str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            setup_logging(**kwargs)
            self.logger.info("info message")
            self.logger.log(SUCCESS, "success message")
            self.logger.warning("warning message")
            self.logger.error("error message")
        return stdout.getvalue(), stderr.getvalue()

    def test_default_hides_info(self) -> None:
        stdout, stderr = self._emit_all()

        self.assertNotIn("info message", stdout)
        self.assertIn("SUCCESS: success message", stdout)
        self.assertIn("WARN: warning message", stderr)
        self.assertIn("ERROR: error message", stderr)

    def test_verbose_shows_info(self) -> None:
        stdout, _ = self._emit_all(verbose=1)

        self.assertIn("INFO: info message", stdout)

    def test_quiet_shows_only_problems(self) -> None:
        stdout, stderr = self._emit_all(quiet=True)

        self.assertEqual(stdout, "")
        self.assertIn("ERROR: error message", stderr)

    def test_setup_logging_replaces_handlers(self) -> None:
        """Test that repeated setup does not duplicate output."""
        setup_logging()
        stdout, _ = self._emit_all()

        self.assertEqual(stdout.count("success message"), 1)


if __name__ == "__main__":
    unittest.main()
