"""Tests for CLI logging setup."""

import logging

import pytest

from datalens.logging_config import DEFAULT_FORMAT, setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("datalens")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


class TestSetupLogging:
    def test_configures_package_logger(self):
        logger = setup_logging("debug")
        assert logger.name == "datalens"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.handlers[0].formatter._fmt == DEFAULT_FORMAT
        assert logger.propagate is False

    def test_repeated_calls_do_not_stack_handlers(self):
        setup_logging("INFO")
        logger = setup_logging("WARNING")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_module_loggers_inherit_level(self):
        setup_logging("ERROR")
        assert logging.getLogger("datalens.tools.cleaning").getEffectiveLevel() == logging.ERROR

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("LOUD")
