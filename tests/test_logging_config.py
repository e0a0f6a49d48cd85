"""Tests for logging setup."""

import logging
import sys

import pytest
from longpoll import setup_logging
from longpoll.logging_config import FILE_FORMAT, verbosity_level


class TestVerbosityLevel:
    """Tests for mapping CLI flags to levels."""

    @pytest.mark.parametrize(
        "verbose,quiet,expected",
        [
            (False, False, "WARNING"),
            (True, False, "DEBUG"),
            (False, True, "ERROR"),
            (True, True, "DEBUG"),
        ],
    )
    def test_levels(self, verbose, quiet, expected):
        """Test each flag combination."""
        assert verbosity_level(verbose, quiet) == expected


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_console_handler_on_stderr(self):
        """Test the console handler writes to stderr and propagation is off."""
        logger = setup_logging("DEBUG", force=True)

        assert logger.name == "longpoll"
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert logger.handlers[0].stream is sys.stderr

    def test_unknown_level_falls_back_to_info(self):
        """Test an unknown level name yields INFO."""
        assert setup_logging("chatty", force=True).level == logging.INFO

    def test_second_call_only_adjusts_levels(self):
        """Test calling again without force keeps the handlers."""
        setup_logging("DEBUG", force=True)
        logger = setup_logging("ERROR")

        assert len(logger.handlers) == 1
        assert logger.level == logging.ERROR
        assert logger.handlers[0].level == logging.ERROR

    def test_log_file(self, tmp_path):
        """Test records also reach the log file with timestamps."""
        path = tmp_path / "poll.log"
        logger = setup_logging("INFO", log_file=str(path), force=True)
        file_handler = logger.handlers[1]

        try:
            logging.getLogger("longpoll.core.poller").info("Session 1 started polling")
            file_handler.flush()
        finally:
            file_handler.close()

        assert file_handler.formatter._fmt == FILE_FORMAT
        assert "INFO - Session 1 started polling" in path.read_text()
