"""Tests for the package logging setup."""

import logging

import pytest

from roster_admin_api.app.core.logging_config import PACKAGE_LOGGER, setup_logging


@pytest.fixture
def package_logger():
    """Package logger stripped of handlers for the test, restored afterwards."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved_handlers, saved_level = logger.handlers[:], logger.level
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)


class TestSetupLogging:
    def test_writes_module_records_to_file(self, package_logger, tmp_path):
        logfile = tmp_path / "logs" / "roster.log"
        assert setup_logging("debug", logfile) is package_logger
        assert package_logger.level == logging.DEBUG

        logging.getLogger("roster_admin_api.app.services.roster_store").info("Roster refreshed")
        for handler in package_logger.handlers:
            handler.flush()

        text = logfile.read_text(encoding="utf-8")
        assert "INFO" in text
        assert "roster_admin_api.app.services.roster_store | Roster refreshed" in text

    def test_second_call_only_changes_level(self, package_logger):
        setup_logging("INFO")
        handlers = package_logger.handlers[:]
        setup_logging("WARNING")
        assert package_logger.handlers == handlers
        assert package_logger.level == logging.WARNING

    def test_unknown_level_means_info(self, package_logger):
        setup_logging("chatty")
        assert package_logger.level == logging.INFO

    def test_root_logger_is_left_alone(self, package_logger):
        root_handlers = logging.getLogger().handlers[:]
        setup_logging("INFO")
        assert logging.getLogger().handlers == root_handlers
