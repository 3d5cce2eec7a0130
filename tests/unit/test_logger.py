"""
Unit tests for logging configuration.

Tests cover:
- Level parsing from names and constants
- Reconfiguration after the default handler is installed
- Subsystem level overrides
- Optional file output
"""

import logging

import pytest

from claimdrop.utils.logger import (
    ROOT_LOGGER,
    ClaimdropLogger,
    get_logger,
    parse_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """Put the default configuration back after each test."""
    yield
    logging.getLogger(f"{ROOT_LOGGER}.enumerator").setLevel(logging.NOTSET)
    setup_logging()


def _handlers():
    return logging.getLogger(ROOT_LOGGER).handlers


class TestParseLevel:
    """Tests for level parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        (" warning ", logging.WARNING),
        (logging.ERROR, logging.ERROR),
    ])
    def test_accepts(self, value, expected):
        assert parse_level(value) == expected

    def test_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_level("chatty")


class TestSetup:
    """Tests for (re)configuration."""

    def test_get_logger_namespaced(self):
        logger = get_logger("ledger")
        assert logger.name == "claimdrop.ledger"
        assert ClaimdropLogger._configured

    def test_explicit_setup_replaces_default(self):
        """A later setup call (e.g. from --debug) takes effect."""
        get_logger("cli")
        setup_logging("DEBUG")

        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == logging.DEBUG
        assert len(_handlers()) == 1
        assert _handlers()[0].level == logging.DEBUG
        assert get_logger("cli").isEnabledFor(logging.DEBUG)

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging()
        setup_logging()
        setup_logging()
        assert len(_handlers()) == 1

    def test_subsystem_override(self):
        setup_logging("WARNING", subsystem_levels={"enumerator": "DEBUG"})

        assert get_logger("enumerator").isEnabledFor(logging.DEBUG)
        assert not get_logger("ledger").isEnabledFor(logging.INFO)
        # Handler must let the verbose subsystem through
        assert _handlers()[0].level == logging.DEBUG

    def test_does_not_propagate(self):
        setup_logging()
        assert logging.getLogger(ROOT_LOGGER).propagate is False


class TestFileOutput:
    """Tests for claimdrop.log output."""

    def test_no_file_by_default(self):
        setup_logging()
        assert ClaimdropLogger.log_file() is None

    def test_writes_log_file(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path / "logs"), log_to_file=True)
        get_logger("push").info("round done")
        for handler in _handlers():
            handler.flush()

        log_file = ClaimdropLogger.log_file()
        assert log_file == tmp_path / "logs" / "claimdrop.log"
        assert "[claimdrop.push]" in log_file.read_text()
        assert "round done" in log_file.read_text()
